from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

from ..types import (
    EtxCancelledError,
    EtxImportError,
    EtxNull,
    EtxRuntimeError,
    EtxString,
    ReturnSignal,
    ScriptSource,
    Signal,
)
from .blocks import find_block_end, leading_keyword
from .expr import evaluate, substitute_variables

if TYPE_CHECKING:
    from ..runtime import ExecutionContext

ERROR_VARIABLE = "error"

async def eval_return_stmt(line: str, ctx: 'ExecutionContext') -> ReturnSignal:
    expr = line[len("return"):].strip()

    if not expr:
        return ReturnSignal(EtxNull())

    return ReturnSignal(await evaluate(expr, ctx))

async def eval_try_block(start: int, source: ScriptSource, ctx: 'ExecutionContext') -> Tuple[int, Signal]:
    from ..evaluator import execute_lines  # local import to avoid cycle

    lines = source.lines
    catch_index = find_block_end(start, lines, {"catch"})
    has_catch = catch_index < len(lines) and leading_keyword(lines[catch_index].strip()) == "catch"

    if has_catch:
        end = find_block_end(catch_index, lines, {"endtry"})
    else:
        end = catch_index

    try_end = catch_index if has_catch else end

    try:
        signal = await execute_lines(source, start + 1, try_end - 1, ctx)
    except EtxCancelledError:
        raise
    except EtxRuntimeError as exc:
        ctx.store.set(ERROR_VARIABLE, EtxString(exc.message))
        ctx.notify("control_flow", "catch", None, EtxString(exc.message))

        if not has_catch:
            return end, None

        # errors raised by the handler itself are not caught here
        signal = await execute_lines(source, catch_index + 1, end - 1, ctx)

    return end, signal

def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]

    return text

async def eval_import_stmt(line: str, ctx: 'ExecutionContext') -> None:
    from ..evaluator import execute_source  # local import to avoid cycle

    target = await substitute_variables(line[len("import"):].strip(), ctx)
    path = _strip_quotes(target.strip())
    ctx.notify("import_attempt", path, None)

    if path in ctx.import_stack:
        raise EtxImportError(path, "circular import")

    text = ctx.reader.read_script(path)
    if text is None:
        ctx.notify("import_attempt", path, False)
        raise EtxImportError(path)

    ctx.notify("import_attempt", path, True)

    # same store and registry: whatever the import defines stays visible
    try:
        await execute_source(ScriptSource.from_text(text, path), ctx)
    except EtxCancelledError:
        raise
    except EtxRuntimeError as exc:
        # the imported script fails on its own; the importer carries on
        ctx.report(f"Script execution failed: {exc}", exc)
