"""Structured logging and the diagnostics sink the interpreter reports to."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .types import EtxValue, to_python

LOGGER_NAME = "etx_script"

LOG_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

def get_logger(name: str=LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)

def configure_logging(*, level: str="warning", format_name: str="json", stream=None) -> None:
    normalized = level.strip().upper()
    level_value = getattr(logging, normalized, logging.WARNING)

    if format_name == "json":
        formatter = logging.Formatter("%(message)s")
    else:
        formatter = logging.Formatter("%(levelname)s %(name)s %(message)s")

    logger = get_logger()
    logger.setLevel(level_value)

    if stream is None:
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    logger.handlers = [handler]

def log_event(logger: logging.Logger, event: str, level: int=logging.INFO, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, sort_keys=True, default=str))

def _plain(value: Optional[EtxValue]) -> Any:
    return None if value is None else to_python(value)

class DiagnosticsSink(Protocol):
    """Observer of interpreter events. Implementations must not affect control flow."""

    def script_start(self, path: str, line_count: int) -> None: ...
    def script_end(self, path: str, success: bool, info: Optional[Dict[str, Any]]=None) -> None: ...
    def line(self, number: int, content: str) -> None: ...
    def command(self, command: str) -> None: ...
    def variable(self, action: str, name: str, value: Optional[EtxValue], old_value: Optional[EtxValue]) -> None: ...
    def function(self, action: str, name: str, params: List[str], info: Any) -> None: ...
    def control_flow(self, kind: str, condition: Optional[str], result: Optional[EtxValue]) -> None: ...
    def error(self, exc: BaseException, info: Optional[Dict[str, Any]]=None) -> None: ...
    def import_attempt(self, path: str, success: Optional[bool]) -> None: ...

class NullSink:
    def script_start(self, path: str, line_count: int) -> None:
        pass

    def script_end(self, path: str, success: bool, info: Optional[Dict[str, Any]]=None) -> None:
        pass

    def line(self, number: int, content: str) -> None:
        pass

    def command(self, command: str) -> None:
        pass

    def variable(self, action: str, name: str, value: Optional[EtxValue], old_value: Optional[EtxValue]) -> None:
        pass

    def function(self, action: str, name: str, params: List[str], info: Any) -> None:
        pass

    def control_flow(self, kind: str, condition: Optional[str], result: Optional[EtxValue]) -> None:
        pass

    def error(self, exc: BaseException, info: Optional[Dict[str, Any]]=None) -> None:
        pass

    def import_attempt(self, path: str, success: Optional[bool]) -> None:
        pass

class ScriptLogger:
    """
    Sink that turns interpreter events into JSON log records.

    Keeps a stack of (path, start time) so nested imports report their own
    duration when they finish. Turning it off silences the records but the
    stack is still tracked, so `stats()` stays accurate.
    """

    def __init__(self, logger: Optional[logging.Logger]=None):
        self.logger = logger or get_logger(f"{LOGGER_NAME}.script")
        self.scripts: List[Tuple[str, float]] = []
        self.enabled = True

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def set_level(self, level: str) -> None:
        value = LOG_LEVELS.get(level.strip().lower())
        if value is None:
            raise ValueError(f"Unknown log level: {level}")
        self.logger.setLevel(value)

    @property
    def level(self) -> str:
        return logging.getLevelName(self.logger.getEffectiveLevel()).lower()

    def stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "level": self.level,
            "depth": len(self.scripts),
            "scripts": [path for path, _ in self.scripts],
        }

    def _log(self, event: str, level: int=logging.INFO, **fields: Any) -> None:
        if self.enabled:
            log_event(self.logger, event, level, **fields)

    def script_start(self, path: str, line_count: int) -> None:
        self.scripts.append((path, time.monotonic()))
        self._log("script_start", path=path, lines=line_count, depth=len(self.scripts))

    def script_end(self, path: str, success: bool, info: Optional[Dict[str, Any]]=None) -> None:
        started = None
        if self.scripts and self.scripts[-1][0] == path:
            started = self.scripts.pop()[1]

        duration_ms = round((time.monotonic() - started) * 1000, 3) if started is not None else None
        self._log(
            "script_end",
            logging.INFO if success else logging.ERROR,
            path=path,
            success=success,
            duration_ms=duration_ms,
            **(info or {}),
        )

    def line(self, number: int, content: str) -> None:
        self._log("line", logging.DEBUG, line=number, content=content)

    def command(self, command: str) -> None:
        self._log("command", logging.DEBUG, command=command)

    def variable(self, action: str, name: str, value: Optional[EtxValue], old_value: Optional[EtxValue]) -> None:
        self._log(
            "variable",
            logging.DEBUG,
            action=action,
            name=name,
            value=_plain(value),
            old_value=_plain(old_value),
        )

    def function(self, action: str, name: str, params: List[str], info: Any) -> None:
        if isinstance(info, list):
            info = [_plain(v) for v in info]
        elif info is not None and not isinstance(info, (str, int, float, bool)):
            info = _plain(info)

        self._log("function", logging.DEBUG, action=action, name=name, params=params, info=info)

    def control_flow(self, kind: str, condition: Optional[str], result: Optional[EtxValue]) -> None:
        self._log("control_flow", logging.DEBUG, kind=kind, condition=condition, result=_plain(result))

    def error(self, exc: BaseException, info: Optional[Dict[str, Any]]=None) -> None:
        self._log("error", logging.ERROR, error=str(exc), kind=type(exc).__name__, **(info or {}))

    def import_attempt(self, path: str, success: Optional[bool]) -> None:
        self._log("import", logging.INFO, path=path, success=success)
