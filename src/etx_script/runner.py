from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .diagnostics import configure_logging, get_logger
from .evaluator import execute_source
from .filesystem import DiskScriptReader
from .runtime import ExecutionContext
from .types import EtxRuntimeError, ReturnSignal, ScriptSource, from_python, to_python
from .utils import log_level_from_env

logger = get_logger(__name__)

@dataclass
class ScriptResult:
    success: bool
    variables: Dict[str, Any] = field(default_factory=dict)
    return_value: Any = None
    error: Optional[str] = None
    line: Optional[int] = None

def _failure(exc: EtxRuntimeError, ctx: ExecutionContext) -> ScriptResult:
    ctx.call_stack.clear()
    ctx.report(f"Script execution failed: {exc}", exc)
    return ScriptResult(
        success=False,
        variables=ctx.get_context()["variables"],
        error=str(exc),
        line=exc.line,
    )

async def run_script_async(
    source: str,
    context: Optional[ExecutionContext]=None,
    initial: Optional[Mapping[str, Any]]=None,
    path: str="inline",
) -> ScriptResult:
    """
    Execute *source* to completion.

    Errors that escape every try/catch end the run: they are reported once as
    ``Script execution failed: ...`` and returned in the result instead of
    raised. A top-level ``return`` stops the script and becomes the result's
    return value.
    """
    ctx = context if context is not None else ExecutionContext()

    for name, value in (initial or {}).items():
        ctx.store.set(name, from_python(value))

    script = ScriptSource.from_text(source, path)

    try:
        signal = await execute_source(script, ctx)
    except RecursionError:
        return _failure(EtxRuntimeError("Maximum recursion depth exceeded"), ctx)
    except EtxRuntimeError as exc:
        return _failure(exc, ctx)

    return_value = to_python(signal.value) if isinstance(signal, ReturnSignal) else None
    return ScriptResult(
        success=True,
        variables=ctx.get_context()["variables"],
        return_value=return_value,
    )

def run_script(
    source: str,
    context: Optional[ExecutionContext]=None,
    initial: Optional[Mapping[str, Any]]=None,
    path: str="inline",
) -> ScriptResult:
    return asyncio.run(run_script_async(source, context=context, initial=initial, path=path))

def _load_source(arg: Optional[str]) -> tuple[str, str]:
    """
    Resolve CLI input into (source text, path).
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """
    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data, "<stdin>"

    candidate = Path(arg)
    if candidate.is_file():
        return candidate.read_text(encoding="utf-8"), str(candidate)

    return arg, "inline"

def main() -> None:
    debug = None
    log_level = log_level_from_env()
    start_repl = False
    arg = None
    it = iter(sys.argv[1:])

    for token in it:
        if token == "--debug":
            debug = True
            continue

        if token == "--repl":
            start_repl = True
            continue

        if token.startswith("--log-level="):
            log_level = token.split("=", 1)[1]
            continue

        if token == "--log-level":
            try:
                log_level = next(it)
            except StopIteration:
                raise SystemExit("--log-level flag requires a level") from None
            continue

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    configure_logging(level=log_level, format_name="json", stream=sys.stderr)

    if start_repl or (arg is None and sys.stdin.isatty()):
        from .repl import repl  # local import to keep prompt sessions out of plain runs

        repl(debug=bool(debug))
        return

    source, path = _load_source(arg)
    base_dir = Path(path).parent if path not in ("inline", "<stdin>") else Path.cwd()

    ctx = ExecutionContext(reader=DiskScriptReader(base_dir), debug=debug)
    result = run_script(source, context=ctx, path=path)
    logger.debug("finished %s success=%s", path, result.success)

    if not result.success:
        sys.exit(1)

if __name__ == "__main__":
    main()
