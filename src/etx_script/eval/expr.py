from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Union

from lark import Token

from ..lexer import KEYWORD_LITERALS, quoted_literal_end, split_top_level, tokenize, unquote
from ..types import (
    EtxArray,
    EtxBool,
    EtxCancelledError,
    EtxExpressionError,
    EtxNull,
    EtxNumber,
    EtxRuntimeError,
    EtxString,
    EtxUndefinedFunctionError,
    EtxValue,
    is_etx_value,
)
from .common import coerce_index, is_numeric_literal, is_truthy, strict_equals, stringify, to_number

if TYPE_CHECKING:
    from ..runtime import ExecutionContext

VAR_REF_RE = re.compile(r"\$(\w+)(?:\[([^\]]+)\])?")
WHOLE_VAR_REF_RE = re.compile(r"^\$(\w+)(?:\[([^\]]+)\])?$")

NEG = "neg"

PRECEDENCE = {
    "?": 1, ":": 1,
    "||": 2,
    "&&": 3,
    "==": 4, "!=": 4,
    "<": 5, ">": 5, "<=": 5, ">=": 5,
    "+": 6, "-": 6,
    "*": 7, "/": 7, "%": 7,
    "!": 8, NEG: 8,
}

RIGHT_ASSOC = frozenset({"?", ":", "!", NEG})
UNARY = frozenset({"!", NEG})

@dataclass(frozen=True)
class CallItem:
    name: str
    args: List[List[Token]]

@dataclass(frozen=True)
class TernaryArms:
    when_true: EtxValue
    when_false: EtxValue

PostfixItem = Union[EtxValue, CallItem, str]
StackItem = Union[EtxValue, TernaryArms]

# ---------------- Public API ----------------

async def evaluate(expr: str, ctx: 'ExecutionContext') -> EtxValue:
    """
    Evaluate *expr*; expression failures are reported and yield null instead
    of raising. Errors raised inside a called function propagate unchanged.
    """
    try:
        return await evaluate_strict(expr, ctx)
    except EtxCancelledError:
        raise
    except EtxRuntimeError as exc:
        if exc.from_call:
            raise

        ctx.notify("error", exc, {"expression": expr})
        ctx.report(f"Error evaluating expression: {expr}", exc)
        return EtxNull()

async def evaluate_strict(expr: str, ctx: 'ExecutionContext') -> EtxValue:
    text = expr.strip()

    if not text:
        return EtxNull()

    if is_numeric_literal(text):
        return EtxNumber(float(text))

    if text[0] in "\"'" and quoted_literal_end(text, 0) == len(text) - 1:
        return EtxString(unquote(text))

    if _is_bracket_list(text):
        inner = text[1:-1].strip()
        if not inner:
            return EtxArray([])
        return EtxArray([await evaluate(part.strip(), ctx) for part in split_top_level(inner)])

    lowered = text.lower()
    if lowered == "true":
        return EtxBool(True)
    if lowered == "false":
        return EtxBool(False)
    if lowered == "null":
        return EtxNull()

    whole = WHOLE_VAR_REF_RE.match(text)
    if whole is not None and whole.group(1) in ctx.store:
        return await _lookup_reference(whole.group(1), whole.group(2), ctx)

    replaced = await substitute_variables(text, ctx)
    return await eval_tokens(tokenize(replaced), ctx)

async def substitute_variables(text: str, ctx: 'ExecutionContext') -> str:
    """Replace `$name` / `$name[index]` with the current values, as text."""
    parts: List[str] = []
    last = 0

    for match in VAR_REF_RE.finditer(text):
        parts.append(text[last:match.start()])
        last = match.end()
        name, index = match.group(1), match.group(2)

        if name not in ctx.store:
            parts.append(match.group(0))
            continue

        value = ctx.store.get(name)

        if index is not None and isinstance(value, EtxArray):
            element = await _lookup_reference(name, index, ctx)
            parts.append("" if isinstance(element, EtxNull) else stringify(element))
            continue

        parts.append(stringify(value))

    parts.append(text[last:])
    return "".join(parts)

async def eval_tokens(tokens: List[Token], ctx: 'ExecutionContext') -> EtxValue:
    postfix = to_postfix(tokens, ctx)
    return await eval_postfix(postfix, ctx)

# ---------------- Shunting-yard ----------------

def to_postfix(tokens: List[Token], ctx: 'ExecutionContext') -> List[PostfixItem]:
    output: List[PostfixItem] = []
    ops: List[str] = []
    prev_operand = False
    i = 0

    while i < len(tokens):
        tok = tokens[i]
        kind = tok.type

        if kind == "NUMBER":
            output.append(EtxNumber(float(tok.value)))
            prev_operand = True
        elif kind == "STRING":
            output.append(EtxString(unquote(tok.value)))
            prev_operand = True
        elif kind == "VARREF":
            # unresolved `$name` and `$name[idx]` references survive as literal text
            output.append(EtxString(str(tok.value)))
            prev_operand = True
        elif kind == "NAME":
            name = str(tok.value)
            if _opens_call(tokens, i):
                call, i = _collect_call(tokens, i, ctx)
                output.append(call)
            else:
                output.append(_resolve_bare_word(name, ctx))
            prev_operand = True
        elif kind == "COMMA":
            raise EtxExpressionError("Unexpected ',' outside of a call")
        else:
            sym = str(tok.value)

            if sym == "(":
                ops.append(sym)
                prev_operand = False
            elif sym == ")":
                while ops and ops[-1] != "(":
                    output.append(ops.pop())
                if not ops:
                    raise EtxExpressionError("Unbalanced ')'")
                ops.pop()
                prev_operand = True
            else:
                if sym == "-" and not prev_operand:
                    sym = NEG

                while ops and ops[-1] != "(" and _should_pop(ops[-1], sym):
                    output.append(ops.pop())
                ops.append(sym)
                prev_operand = False
        i += 1

    while ops:
        top = ops.pop()
        if top == "(":
            raise EtxExpressionError("Unbalanced '('")
        output.append(top)

    return output

def _should_pop(top: str, incoming: str) -> bool:
    if incoming in UNARY:
        # prefix operators have no left operand to bind
        return False

    if PRECEDENCE[top] > PRECEDENCE[incoming]:
        return True

    return PRECEDENCE[top] == PRECEDENCE[incoming] and incoming not in RIGHT_ASSOC

def _opens_call(tokens: List[Token], i: int) -> bool:
    nxt = tokens[i + 1] if i + 1 < len(tokens) else None
    return nxt is not None and nxt.type == "OPERATOR" and nxt.value == "("

def _collect_call(tokens: List[Token], i: int, ctx: 'ExecutionContext') -> tuple[CallItem, int]:
    name = str(tokens[i].value)

    if name not in ctx.functions:
        raise EtxUndefinedFunctionError(name)

    depth = 0
    args: List[List[Token]] = []
    current: List[Token] = []
    j = i + 1

    while j < len(tokens):
        tok = tokens[j]
        if tok.type == "OPERATOR" and tok.value == "(":
            depth += 1
            if depth == 1:
                j += 1
                continue
        elif tok.type == "OPERATOR" and tok.value == ")":
            depth -= 1
            if depth == 0:
                if current or args:
                    args.append(current)
                return CallItem(name, args), j
        elif tok.type == "COMMA" and depth == 1:
            args.append(current)
            current = []
            j += 1
            continue
        current.append(tok)
        j += 1

    raise EtxExpressionError(f"Unclosed call to '{name}'")

def _resolve_bare_word(name: str, ctx: 'ExecutionContext') -> EtxValue:
    if name.lower() in KEYWORD_LITERALS:
        lowered = name.lower()
        if lowered == "null":
            return EtxNull()
        return EtxBool(lowered == "true")

    value = ctx.store.get(name)
    if value is not None:
        return value

    # unknown bare words stand for their own text
    return EtxString(name)

# ---------------- Postfix evaluation ----------------

async def eval_postfix(postfix: List[PostfixItem], ctx: 'ExecutionContext') -> EtxValue:
    stack: List[StackItem] = []

    def pop() -> StackItem:
        if not stack:
            raise EtxExpressionError("Malformed expression: missing operand")
        return stack.pop()

    def pop_value() -> EtxValue:
        item = pop()
        if isinstance(item, TernaryArms):
            raise EtxExpressionError("Malformed conditional expression")
        return item

    for item in postfix:
        if isinstance(item, CallItem):
            stack.append(await _eval_call(item, ctx))
        elif isinstance(item, str):
            if item == "!":
                stack.append(EtxBool(not is_truthy(pop_value())))
            elif item == NEG:
                stack.append(EtxNumber(-to_number(pop_value())))
            elif item == ":":
                when_false = pop_value()
                when_true = pop_value()
                stack.append(TernaryArms(when_true, when_false))
            elif item == "?":
                arms = pop()
                cond = pop_value()
                if not isinstance(arms, TernaryArms):
                    raise EtxExpressionError("'?' without matching ':'")
                stack.append(arms.when_true if is_truthy(cond) else arms.when_false)
            else:
                right = pop_value()
                left = pop_value()
                stack.append(apply_binary(item, left, right))
        else:
            stack.append(item)

    if not stack:
        return EtxNull()

    result = stack[0]
    if not is_etx_value(result):
        raise EtxExpressionError("':' without matching '?'")

    return result

async def _eval_call(call: CallItem, ctx: 'ExecutionContext') -> EtxValue:
    from .fn import invoke_function  # local import to avoid cycle

    args = [await eval_tokens(arg, ctx) for arg in call.args]
    fn = ctx.functions.get(call.name)

    if fn is None:
        raise EtxUndefinedFunctionError(call.name)

    try:
        return await invoke_function(fn, args, ctx)
    except EtxRuntimeError as exc:
        exc.from_call = True
        raise

def apply_binary(op: str, left: EtxValue, right: EtxValue) -> EtxValue:
    match op:
        case "+":
            if isinstance(left, (EtxString, EtxArray)) or isinstance(right, (EtxString, EtxArray)):
                return EtxString(stringify(left) + stringify(right))
            return EtxNumber(to_number(left) + to_number(right))
        case "-":
            return EtxNumber(to_number(left) - to_number(right))
        case "*":
            return EtxNumber(to_number(left) * to_number(right))
        case "/":
            return EtxNumber(_divide(to_number(left), to_number(right)))
        case "%":
            return EtxNumber(_remainder(to_number(left), to_number(right)))
        case "<" | ">" | "<=" | ">=":
            return EtxBool(_compare(op, left, right))
        case "==":
            return EtxBool(strict_equals(left, right))
        case "!=":
            return EtxBool(not strict_equals(left, right))
        case "&&":
            return right if is_truthy(left) else left
        case "||":
            return left if is_truthy(left) else right
        case _:
            raise EtxExpressionError(f"Unknown operator '{op}'")

def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)

    return a / b

def _remainder(a: float, b: float) -> float:
    if b == 0 or math.isnan(a) or math.isnan(b) or math.isinf(a):
        return math.nan

    if math.isinf(b):
        return a

    return math.fmod(a, b)

def _compare(op: str, left: EtxValue, right: EtxValue) -> bool:
    if isinstance(left, EtxString) and isinstance(right, EtxString):
        a_str, b_str = left.value, right.value
        match op:
            case "<":
                return a_str < b_str
            case ">":
                return a_str > b_str
            case "<=":
                return a_str <= b_str
            case _:
                return a_str >= b_str

    a, b = to_number(left), to_number(right)
    match op:
        case "<":
            return a < b
        case ">":
            return a > b
        case "<=":
            return a <= b
        case _:
            return a >= b

# ---------------- Helpers ----------------

async def _lookup_reference(name: str, index: str | None, ctx: 'ExecutionContext') -> EtxValue:
    value = ctx.store.get(name)
    if value is None:
        return EtxNull()

    if index is None or not isinstance(value, EtxArray):
        return value

    position = coerce_index(await evaluate(index, ctx))
    return ctx.store.get_indexed(name, position)

def _is_bracket_list(text: str) -> bool:
    if not (text.startswith("[") and text.endswith("]")):
        return False

    depth = 0
    i = 0

    while i < len(text):
        ch = text[i]
        if ch in "\"'":
            end = quoted_literal_end(text, i)
            if end == -1:
                return False
            i = end + 1
            continue
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0 and i != len(text) - 1:
                return False
        i += 1

    return depth == 0
