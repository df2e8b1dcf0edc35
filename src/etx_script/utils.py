from __future__ import annotations

import os

_TRUTHY = frozenset({"1", "true", "yes", "on"})

def _env_flag(name: str) -> bool:
    """Environment switches are read at use time so tests can flip them."""
    return os.environ.get(name, "").strip().lower() in _TRUTHY

def debug_mode_enabled() -> bool:
    return _env_flag("ETX_DEBUG")

def debug_py_trace_enabled() -> bool:
    return _env_flag("ETX_DEBUG_PY_TRACE")

def set_debug_py_trace(enabled: bool) -> None:
    if enabled:
        os.environ["ETX_DEBUG_PY_TRACE"] = "1"
    else:
        os.environ.pop("ETX_DEBUG_PY_TRACE", None)

def log_level_from_env(default: str="warning") -> str:
    return os.environ.get("ETX_LOG_LEVEL", "").strip() or default
