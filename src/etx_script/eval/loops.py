from __future__ import annotations

import math
from typing import TYPE_CHECKING, Tuple

from ..types import (
    BreakSignal,
    EtxArray,
    EtxNumber,
    EtxRuntimeError,
    ReturnSignal,
    ScriptSource,
    Signal,
)
from .blocks import find_block_end, leading_keyword
from .common import is_truthy, to_number
from .expr import evaluate

if TYPE_CHECKING:
    from ..runtime import ExecutionContext

BlockResult = Tuple[int, Signal]

IF_CHAIN_KEYWORDS = frozenset({"elif", "else", "endif"})

def _loop_outcome(signal: Signal) -> Tuple[bool, Signal]:
    """Consume break/continue; a return stops the loop and keeps propagating."""
    if isinstance(signal, BreakSignal):
        return True, None

    if isinstance(signal, ReturnSignal):
        return True, signal

    return False, None

async def eval_if_block(start: int, source: ScriptSource, ctx: 'ExecutionContext') -> BlockResult:
    from ..evaluator import execute_lines  # local import to avoid cycle

    lines = source.lines
    current = start
    executed = False

    while current < len(lines):
        line = lines[current].strip()
        keyword = leading_keyword(line)

        if current == start or keyword == "elif":
            cond_text = line[len(keyword):].strip()
            block_end = find_block_end(current, lines, IF_CHAIN_KEYWORDS)
            # later conditions are still evaluated, only their bodies are skipped
            cond = await evaluate(cond_text, ctx)
            ctx.notify("control_flow", keyword, cond_text, cond)

            if is_truthy(cond) and not executed:
                executed = True
                signal = await execute_lines(source, current + 1, block_end - 1, ctx)
                if signal is not None:
                    return block_end, signal

            current = block_end
        elif line == "else":
            block_end = find_block_end(current, lines, {"endif"})

            if not executed:
                ctx.notify("control_flow", "else", None, None)
                executed = True
                signal = await execute_lines(source, current + 1, block_end - 1, ctx)
                if signal is not None:
                    return block_end, signal

            current = block_end
        elif line == "endif":
            break
        else:
            current += 1

    return current, None

async def eval_while_loop(start: int, source: ScriptSource, ctx: 'ExecutionContext') -> BlockResult:
    from ..evaluator import execute_lines  # local import to avoid cycle

    lines = source.lines
    cond_text = lines[start].strip()[len("while"):].strip()
    end = find_block_end(start, lines, {"endwhile"})

    while True:
        cond = await evaluate(cond_text, ctx)
        ctx.notify("control_flow", "while", cond_text, cond)
        if not is_truthy(cond):
            break

        signal = await execute_lines(source, start + 1, end - 1, ctx)
        stop, propagate = _loop_outcome(signal)
        if stop:
            return end, propagate

    return end, None

async def eval_for_loop(start: int, source: ScriptSource, ctx: 'ExecutionContext') -> BlockResult:
    lines = source.lines
    clause = lines[start].strip()[len("for"):].strip()
    end = find_block_end(start, lines, {"endfor"})

    if " in " in clause:
        var, list_expr = clause.split(" in ", 1)
        signal = await _for_in(var.strip(), list_expr.strip(), start, end, source, ctx)
    else:
        signal = await _for_range(clause, start, end, source, ctx)

    return end, signal

async def _for_in(var: str, list_expr: str, start: int, end: int, source: ScriptSource, ctx: 'ExecutionContext') -> Signal:
    from ..evaluator import execute_lines  # local import to avoid cycle

    values = await evaluate(list_expr, ctx)
    ctx.notify("control_flow", "for", list_expr, values)

    if not isinstance(values, EtxArray):
        return None

    for item in list(values.items):
        ctx.store.set(var, item)
        signal = await execute_lines(source, start + 1, end - 1, ctx)
        stop, propagate = _loop_outcome(signal)
        if stop:
            return propagate

    return None

async def _for_range(clause: str, start: int, end: int, source: ScriptSource, ctx: 'ExecutionContext') -> Signal:
    from ..evaluator import execute_lines  # local import to avoid cycle

    parts = clause.split()
    if len(parts) < 3:
        raise EtxRuntimeError(f"Malformed for loop: for {clause}")

    var = parts[0]
    first = to_number(await evaluate(parts[1], ctx))
    last = to_number(await evaluate(parts[2], ctx))
    step = to_number(await evaluate(parts[3], ctx)) if len(parts) > 3 else 1.0

    if step == 0 or math.isnan(step):
        raise EtxRuntimeError("for loop step must be a non-zero number")

    ctx.notify("control_flow", "for", clause, EtxNumber(first))
    counter = first

    while (counter <= last) if step > 0 else (counter >= last):
        ctx.store.set(var, EtxNumber(counter))
        signal = await execute_lines(source, start + 1, end - 1, ctx)
        stop, propagate = _loop_outcome(signal)
        if stop:
            return propagate
        counter += step

    return None
