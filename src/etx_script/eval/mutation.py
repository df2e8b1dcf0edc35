from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .common import coerce_index
from .expr import evaluate, substitute_variables

if TYPE_CHECKING:
    from ..runtime import ExecutionContext

SET_RE = re.compile(r"^set\s+(\w+)(?:\[([^\]]+)\])?\s+(.+)$")

async def eval_set_stmt(line: str, ctx: 'ExecutionContext') -> None:
    match = SET_RE.match(line)

    if match is None:
        # `set` without a value is a no-op
        return

    name, index, value_text = match.groups()
    value = await evaluate(value_text, ctx)
    old_value = ctx.store.get(name)

    if index is None:
        ctx.store.set(name, value)
        ctx.notify("variable", "set", name, value, old_value)
        return

    position = coerce_index(await evaluate(index, ctx))
    ctx.store.set_indexed(name, position, value, max_index=ctx.max_array_index)
    ctx.notify("variable", "set", f"{name}[{position}]", value, old_value)

def eval_unset_stmt(line: str, ctx: 'ExecutionContext') -> None:
    name = line[len("unset"):].strip()
    old_value = ctx.store.get(name)
    ctx.store.unset(name)
    ctx.notify("variable", "unset", name, None, old_value)

async def eval_command(line: str, ctx: 'ExecutionContext') -> None:
    command = await substitute_variables(line, ctx)
    ctx.notify("command", command)
    await ctx.dispatch(command)
