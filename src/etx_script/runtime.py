from __future__ import annotations

import traceback
from typing import Any, Callable, Dict, List, Optional

from .commands import CommandDispatcher, CommandTable
from .diagnostics import DiagnosticsSink, ScriptLogger, get_logger
from .filesystem import DiskScriptReader, ScriptReader
from .terminal import ConsoleTerminal, Terminal
from .types import (
    CallFrame,
    EtxCancelledError,
    EtxCommandError,
    EtxRuntimeError,
    EtxValue,
    FunctionDef,
    VariableStore,
    to_python,
)
from .utils import debug_mode_enabled, debug_py_trace_enabled

logger = get_logger(__name__)

ErrorHandler = Callable[[str, Optional[BaseException]], None]

DEFAULT_MAX_CALL_DEPTH = 50
# highest index `set name[idx]` may write; the gap below it is padded with null
DEFAULT_MAX_ARRAY_INDEX = 100_000

class ExecutionContext:
    """
    Everything one interpreter run shares: the variable store, the function
    registry, the call stack and the collaborators (commands, files, output,
    diagnostics).
    """

    def __init__(
        self,
        dispatcher: Optional[CommandDispatcher]=None,
        reader: Optional[ScriptReader]=None,
        terminal: Optional[Terminal]=None,
        sink: Optional[DiagnosticsSink]=None,
        debug: Optional[bool]=None,
        max_call_depth: int=DEFAULT_MAX_CALL_DEPTH,
        max_array_index: int=DEFAULT_MAX_ARRAY_INDEX,
    ):
        self.store = VariableStore()
        self.functions: Dict[str, FunctionDef] = {}
        self.call_stack: List[CallFrame] = []
        self.import_stack: List[str] = []
        self.dispatcher: CommandDispatcher = dispatcher if dispatcher is not None else CommandTable()
        self.reader: ScriptReader = reader if reader is not None else DiskScriptReader()
        self.terminal: Terminal = terminal if terminal is not None else ConsoleTerminal()
        self.sink: DiagnosticsSink = sink if sink is not None else ScriptLogger()
        self.debug = debug_mode_enabled() if debug is None else debug
        self.error_handler: Optional[ErrorHandler] = None
        self.max_call_depth = max_call_depth
        self.max_array_index = max_array_index
        self._cancelled = False

    # ---------- lifecycle ----------

    def reset(self) -> None:
        self.store.clear()
        self.functions.clear()
        self.call_stack.clear()
        self.import_stack.clear()
        self._cancelled = False

    def set_debug_mode(self, enabled: bool) -> None:
        self.debug = enabled

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        self.error_handler = handler

    def cancel(self) -> None:
        self._cancelled = True

    def clear_cancellation(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def check_cancelled(self) -> None:
        if self._cancelled:
            raise EtxCancelledError()

    # ---------- reporting ----------

    def report(self, message: str, exc: Optional[BaseException]=None) -> None:
        """Surface an error to the user: custom handler if set, else a red line."""
        if self.error_handler is not None:
            self.error_handler(message, exc)
            return

        self.terminal.write_line(message, color="red")

        if exc is not None and debug_py_trace_enabled() and exc.__traceback__ is not None:
            for chunk in traceback.format_tb(exc.__traceback__):
                self.terminal.write_line(chunk.rstrip("\n"), color="gray")

    def notify(self, event: str, *args: Any) -> None:
        hook = getattr(self.sink, event, None)
        if hook is None:
            return

        try:
            hook(*args)
        except Exception:
            logger.exception("diagnostics sink failed on %s", event)

    # ---------- introspection ----------

    def get_context(self) -> Dict[str, Any]:
        return {
            "variables": {name: to_python(value) for name, value in self.store.vars.items()},
            "functions": sorted(self.functions),
            "call_stack": [
                {"function": frame.function, "script_path": frame.script_path, "line": frame.line}
                for frame in self.call_stack
            ],
        }

    # ---------- collaborators ----------

    async def evaluate(self, expr: str) -> EtxValue:
        from .eval.expr import evaluate  # local import to avoid cycle

        return await evaluate(expr, self)

    async def dispatch(self, command: str) -> None:
        try:
            await self.dispatcher.dispatch(command, self)
        except EtxRuntimeError:
            raise
        except Exception as exc:
            raise EtxCommandError(command, f"Command failed: {command}: {exc}") from exc
