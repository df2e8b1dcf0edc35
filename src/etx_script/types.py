from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
from typing_extensions import TypeAlias, TypeGuard

# ---------- Value Model ----------

@dataclass
class EtxNull:
    def __repr__(self) -> str:
        return "null"

@dataclass
class EtxNumber:
    value: float
    def __repr__(self) -> str:
        return format_number(self.value)

@dataclass
class EtxString:
    value: str
    def __repr__(self) -> str:
        return f'"{self.value}"'

@dataclass
class EtxBool:
    value: bool
    def __repr__(self) -> str:
        return "true" if self.value else "false"

@dataclass
class EtxArray:
    items: List['EtxValue']
    def __repr__(self) -> str:
        return "[" + ", ".join(repr(x) for x in self.items) + "]"

EtxValue: TypeAlias = Union[EtxNull, EtxNumber, EtxString, EtxBool, EtxArray]

_ETX_VALUE_TYPES: Tuple[type, ...] = (EtxNull, EtxNumber, EtxString, EtxBool, EtxArray)

def is_etx_value(value: object) -> TypeGuard[EtxValue]:
    return isinstance(value, _ETX_VALUE_TYPES)

def format_number(num: float) -> str:
    if math.isnan(num):
        return "NaN"

    if math.isinf(num):
        return "Infinity" if num > 0 else "-Infinity"

    return str(int(num)) if num.is_integer() else repr(num)

def from_python(value: object) -> EtxValue:
    """Wrap a plain Python value (host-supplied context) as a runtime value."""
    if is_etx_value(value):
        return value

    if value is None:
        return EtxNull()

    if isinstance(value, bool):
        return EtxBool(value)

    if isinstance(value, (int, float)):
        return EtxNumber(float(value))

    if isinstance(value, str):
        return EtxString(value)

    if isinstance(value, (list, tuple)):
        return EtxArray([from_python(v) for v in value])

    raise EtxTypeError(f"Cannot convert {type(value).__name__} to a script value")

def to_python(value: Optional[EtxValue]) -> object:
    match value:
        case EtxNumber(value=num):
            return int(num) if num.is_integer() else num
        case EtxString(value=s):
            return s
        case EtxBool(value=b):
            return b
        case EtxArray(items=items):
            return [to_python(v) for v in items]
        case _:
            return None

# ---------- Variable Store ----------

class VariableStore:
    """Flat name -> value mapping; function calls swap it via snapshot/restore."""

    def __init__(self, initial: Optional[Dict[str, EtxValue]]=None):
        self.vars: Dict[str, EtxValue] = dict(initial or {})

    def __contains__(self, name: object) -> bool:
        return name in self.vars

    def __len__(self) -> int:
        return len(self.vars)

    def get(self, name: str) -> Optional[EtxValue]:
        return self.vars.get(name)

    def set(self, name: str, val: EtxValue) -> None:
        self.vars[name] = val

    def unset(self, name: str) -> None:
        self.vars.pop(name, None)

    def get_indexed(self, name: str, index: int) -> EtxValue:
        current = self.vars.get(name)

        if not isinstance(current, EtxArray):
            raise EtxTypeError(f"Variable '{name}' is not an array")

        if 0 <= index < len(current.items):
            return current.items[index]

        return EtxNull()

    def set_indexed(self, name: str, index: int, val: EtxValue, max_index: Optional[int]=None) -> None:
        if index < 0:
            raise EtxTypeError(f"Array index must be non-negative; got {index}")

        if max_index is not None and index > max_index:
            raise EtxTypeError(f"Array index {index} exceeds the maximum of {max_index}")

        current = self.vars.get(name)

        if current is None or isinstance(current, EtxNull):
            current = EtxArray([])
            self.vars[name] = current
        elif not isinstance(current, EtxArray):
            raise EtxTypeError(f"Cannot index-assign into non-array variable '{name}'")

        items = current.items
        # assigning past the end grows the array, padding the gap with null
        while len(items) <= index:
            items.append(EtxNull())
        items[index] = val

    def snapshot(self) -> Dict[str, EtxValue]:
        return dict(self.vars)

    def restore(self, saved: Dict[str, EtxValue]) -> None:
        self.vars = dict(saved)

    def clear(self) -> None:
        self.vars.clear()

    def names(self) -> List[str]:
        return list(self.vars)

# ---------- Sources, functions & frames ----------

@dataclass(frozen=True)
class ScriptSource:
    path: str
    lines: Tuple[str, ...]

    @classmethod
    def from_text(cls, text: str, path: str="inline") -> 'ScriptSource':
        return cls(path=path, lines=tuple(text.split("\n")))

@dataclass(frozen=True)
class FunctionDef:
    name: str
    params: Tuple[str, ...]
    source: ScriptSource     # owning script; body lines are re-dispatched per call
    start: int               # first body line (inclusive)
    end: int                 # last body line (inclusive)

    @property
    def body(self) -> Tuple[str, ...]:
        return self.source.lines[self.start:self.end + 1]

@dataclass
class CallFrame:
    """Diagnostic record of the function currently executing."""
    function: str
    script_path: str = "inline"
    line: int = 0

# ---------- Execution signals ----------

@dataclass(frozen=True)
class BreakSignal:
    pass

@dataclass(frozen=True)
class ContinueSignal:
    pass

@dataclass(frozen=True)
class ReturnSignal:
    value: EtxValue = field(default_factory=EtxNull)

BREAK = BreakSignal()
CONTINUE = ContinueSignal()

Signal: TypeAlias = Optional[Union[BreakSignal, ContinueSignal, ReturnSignal]]

# ---------- Exceptions ----------

class EtxRuntimeError(Exception):
    line: Optional[int]
    source_line: Optional[str]
    script_path: Optional[str]
    # set once the error has left a function body; expression recovery must not absorb it
    from_call: bool

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.line = None
        self.source_line = None
        self.script_path = None
        self.from_call = False

    def attach_location(self, line: int, source_line: str, script_path: str) -> None:
        if self.line is not None:
            return

        self.line = line
        self.source_line = source_line
        self.script_path = script_path

    def __str__(self) -> str:
        if self.line is None:
            return self.message

        where = f"line {self.line}"
        if self.script_path and self.script_path != "inline":
            where = f"{self.script_path} {where}"

        if self.source_line:
            return f"{self.message} ({where}: {self.source_line})"

        return f"{self.message} ({where})"

class EtxExpressionError(EtxRuntimeError):
    pass

class EtxTypeError(EtxRuntimeError):
    pass

class EtxUndefinedFunctionError(EtxRuntimeError):
    def __init__(self, name: str):
        super().__init__(f"Function '{name}' is not defined")
        self.name = name

class EtxImportError(EtxRuntimeError):
    def __init__(self, path: str, reason: Optional[str]=None):
        message = f"Cannot import file: {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path

class EtxCommandError(EtxRuntimeError):
    def __init__(self, command: str, message: str):
        super().__init__(message)
        self.command = command

class EtxCancelledError(EtxRuntimeError):
    def __init__(self) -> None:
        super().__init__("Script execution cancelled")
