from __future__ import annotations

import re
from typing import TYPE_CHECKING, List, Sequence, Tuple

from ..lexer import split_top_level
from ..types import (
    CallFrame,
    EtxNull,
    EtxRuntimeError,
    EtxUndefinedFunctionError,
    EtxValue,
    FunctionDef,
    ReturnSignal,
    ScriptSource,
)
from .blocks import find_block_end
from .expr import evaluate

if TYPE_CHECKING:
    from ..runtime import ExecutionContext

FUNCTION_HEADER_RE = re.compile(r"^(\w+)\s*(?:\((.*)\))?\s*$")
CALL_SHAPE_RE = re.compile(r"^(\w+)\s*\((.*)\)$")

def is_function_call(line: str) -> bool:
    return CALL_SHAPE_RE.match(line.strip()) is not None

def parse_params(params_text: str | None) -> Tuple[str, ...]:
    if not params_text:
        return ()

    return tuple(p.strip() for p in params_text.split(",") if p.strip())

def define_function(start: int, source: ScriptSource, ctx: 'ExecutionContext') -> int:
    header = source.lines[start].strip()[len("function"):].strip()
    match = FUNCTION_HEADER_RE.match(header)

    if match is None:
        raise EtxRuntimeError(f"Malformed function header: function {header}")

    name, params_text = match.group(1), match.group(2)
    end = find_block_end(start, source.lines, {"endfunction"})
    fn = FunctionDef(
        name=name,
        params=parse_params(params_text),
        source=source,
        start=start + 1,
        end=end - 1,
    )
    # redefinition silently replaces the earlier entry
    ctx.functions[name] = fn
    ctx.notify("function", "define", name, list(fn.params), None)

    return end

async def eval_function_call_stmt(line: str, ctx: 'ExecutionContext') -> EtxValue:
    match = CALL_SHAPE_RE.match(line.strip())
    if match is None:
        raise EtxRuntimeError(f"Malformed function call: {line}")

    name, args_text = match.group(1), match.group(2).strip()
    args: List[EtxValue] = []

    if args_text:
        # evaluated against the caller's store, before the callee swaps it
        for arg in split_top_level(args_text):
            args.append(await evaluate(arg.strip(), ctx))

    fn = ctx.functions.get(name)
    if fn is None:
        raise EtxUndefinedFunctionError(name)

    return await invoke_function(fn, args, ctx)

async def invoke_function(fn: FunctionDef, args: Sequence[EtxValue], ctx: 'ExecutionContext') -> EtxValue:
    """
    Call *fn* under snapshot scoping.

    The store is copied before parameters are bound and the copy is put back
    afterwards, whether the body finished, returned or raised. Only the return
    value crosses back to the caller.
    """
    from ..evaluator import execute_lines  # local import to avoid cycle

    if len(ctx.call_stack) >= ctx.max_call_depth:
        raise EtxRuntimeError(f"Maximum call depth of {ctx.max_call_depth} exceeded in '{fn.name}'")

    saved = ctx.store.snapshot()

    for idx, param in enumerate(fn.params):
        ctx.store.set(param, args[idx] if idx < len(args) else EtxNull())

    ctx.call_stack.append(CallFrame(function=fn.name, script_path=fn.source.path, line=fn.start))
    ctx.notify("function", "call", fn.name, list(fn.params), list(args))

    try:
        signal = await execute_lines(fn.source, fn.start, fn.end, ctx)
    except RecursionError:
        # calls wrapped in nested blocks can exhaust the host stack before max_call_depth
        raise EtxRuntimeError(f"Maximum recursion depth exceeded in '{fn.name}'") from None
    finally:
        ctx.call_stack.pop()
        ctx.store.restore(saved)

    # break/continue that escape the body end the call without leaking out
    result: EtxValue = signal.value if isinstance(signal, ReturnSignal) else EtxNull()
    ctx.notify("function", "return", fn.name, list(fn.params), result)

    return result
