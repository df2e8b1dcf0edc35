from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

from .types import BREAK, CONTINUE, EtxRuntimeError, ScriptSource, Signal
from .eval.control import eval_import_stmt, eval_return_stmt, eval_try_block
from .eval.fn import define_function, eval_function_call_stmt, is_function_call
from .eval.loops import eval_for_loop, eval_if_block, eval_while_loop
from .eval.mutation import eval_command, eval_set_stmt, eval_unset_stmt

if TYPE_CHECKING:
    from .runtime import ExecutionContext

LineResult = Tuple[int, Signal]

# ---------------- Public API ----------------

async def execute_source(source: ScriptSource, ctx: 'ExecutionContext') -> Signal:
    """Run a whole script against *ctx*; signals left at the top level end it."""
    ctx.import_stack.append(source.path)
    ctx.notify("script_start", source.path, len(source.lines))

    try:
        signal = await execute_lines(source, 0, len(source.lines) - 1, ctx)
    except EtxRuntimeError as exc:
        ctx.notify("script_end", source.path, False, {"error": str(exc)})
        raise
    finally:
        ctx.import_stack.pop()

    ctx.notify("script_end", source.path, True, {"signal": type(signal).__name__ if signal else None})
    return signal

async def execute_lines(source: ScriptSource, start: int, end: int, ctx: 'ExecutionContext') -> Signal:
    """
    Execute lines ``start..end`` inclusive.

    Stops at the first statement that produces a signal and hands it to the
    caller; the nearest loop consumes break/continue and the function call
    consumes return.
    """
    lines = source.lines
    index = start

    while index <= end and index < len(lines):
        line = lines[index].strip()

        if not line or line.startswith("#"):
            index += 1
            continue

        ctx.notify("line", index + 1, line)

        if ctx.debug:
            ctx.terminal.write_line(f"[DEBUG] Line {index + 1}: {line}", color="cyan")

        try:
            ctx.check_cancelled()
            index, signal = await execute_line(line, index, source, ctx)
        except EtxRuntimeError as exc:
            if exc.line is None:
                exc.attach_location(index + 1, line, source.path)
                ctx.notify("error", exc, {"line": index + 1, "content": line, "path": source.path})
            raise

        if signal is not None:
            return signal

        index += 1

    return None

async def execute_line(line: str, index: int, source: ScriptSource, ctx: 'ExecutionContext') -> LineResult:
    """Classify one trimmed line and run it; returns the last line consumed."""
    if line.startswith("if "):
        return await eval_if_block(index, source, ctx)

    if line.startswith("while "):
        return await eval_while_loop(index, source, ctx)

    if line.startswith("for "):
        return await eval_for_loop(index, source, ctx)

    if line.startswith("function "):
        return define_function(index, source, ctx), None

    if line == "return" or line.startswith("return "):
        return index, await eval_return_stmt(line, ctx)

    if line == "break":
        ctx.notify("control_flow", "break", None, None)
        return index, BREAK

    if line == "continue":
        ctx.notify("control_flow", "continue", None, None)
        return index, CONTINUE

    if line.startswith("set "):
        await eval_set_stmt(line, ctx)
        return index, None

    if line.startswith("unset "):
        eval_unset_stmt(line, ctx)
        return index, None

    if line.startswith("import "):
        await eval_import_stmt(line, ctx)
        return index, None

    if line == "try":
        return await eval_try_block(index, source, ctx)

    if is_function_call(line):
        # a bare call statement discards the result
        await eval_function_call_stmt(line, ctx)
        return index, None

    await eval_command(line, ctx)
    return index, None
