from __future__ import annotations

import math
import re
from typing import Optional

from ..types import (
    EtxArray,
    EtxBool,
    EtxNull,
    EtxNumber,
    EtxString,
    EtxTypeError,
    EtxValue,
    format_number,
)

NUMERIC_LITERAL_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

def is_numeric_literal(text: str) -> bool:
    return bool(NUMERIC_LITERAL_RE.match(text))

def stringify(value: Optional[EtxValue]) -> str:
    match value:
        case EtxString(value=s):
            return s
        case EtxNumber(value=num):
            return format_number(num)
        case EtxBool(value=b):
            return "true" if b else "false"
        case EtxArray(items=items):
            # arrays flatten the way the terminal always printed them: comma-joined
            return ",".join("" if isinstance(item, EtxNull) else stringify(item) for item in items)
        case _:
            return "null"

def is_truthy(val: Optional[EtxValue]) -> bool:
    match val:
        case EtxBool(value=b):
            return b
        case EtxNumber(value=num):
            return num != 0 and not math.isnan(num)
        case EtxString(value=s):
            return bool(s)
        case EtxArray(items=items):
            return bool(items)
        case _:
            return False

def to_number(val: EtxValue) -> float:
    match val:
        case EtxNumber(value=num):
            return num
        case EtxBool(value=b):
            return 1.0 if b else 0.0
        case EtxNull():
            return 0.0
        case EtxString(value=s):
            stripped = s.strip()
            if not stripped:
                return 0.0
            if is_numeric_literal(stripped):
                return float(stripped)
            return math.nan
        case _:
            return math.nan

def strict_equals(lhs: EtxValue, rhs: EtxValue) -> bool:
    match (lhs, rhs):
        case (EtxNull(), EtxNull()):
            return True
        case (EtxNumber(value=a), EtxNumber(value=b)):
            return a == b
        case (EtxString(value=a), EtxString(value=b)):
            return a == b
        case (EtxBool(value=a), EtxBool(value=b)):
            return a == b
        case (EtxArray(items=items_a), EtxArray(items=items_b)):
            return len(items_a) == len(items_b) and all(
                strict_equals(a, b) for a, b in zip(items_a, items_b)
            )
        case _:
            return False

def coerce_index(value: EtxValue) -> int:
    """Turn an evaluated index expression into a list position."""
    num = to_number(value)

    if math.isnan(num) or math.isinf(num) or not num.is_integer():
        raise EtxTypeError(f"Invalid array index: {stringify(value)}")

    return int(num)
