"""Expression tokenizer backed by a lark terminal grammar."""

from __future__ import annotations

from functools import lru_cache
from typing import List

from lark import Lark, Token
from lark.exceptions import LarkError, UnexpectedCharacters

from .types import EtxExpressionError

# Two-character operators are listed first so the alternation prefers them.
EXPR_GRAMMAR = r"""
start: item*
item: NUMBER | STRING | NAME | VARREF | OPERATOR | COMMA

NUMBER: /\d+(\.\d*)?([eE][+-]?\d+)?/ | /\.\d+([eE][+-]?\d+)?/
STRING: /"(?:[^"\\]|\\.)*"/ | /'(?:[^'\\]|\\.)*'/
NAME: /[A-Za-z_]\w*/
VARREF: /\$\w+(?:\[[^\]]*\])?/
OPERATOR: /<=|>=|==|!=|&&|\|\||[-+*\/%<>!()?:]/
COMMA: ","

%import common.WS
%ignore WS
"""

OPERATORS = frozenset({
    "+", "-", "*", "/", "%",
    "<", ">", "<=", ">=", "==", "!=",
    "&&", "||", "!",
    "(", ")", "?", ":",
})

KEYWORD_LITERALS = frozenset({"true", "false", "null"})

@lru_cache(maxsize=1)
def _lexer() -> Lark:
    return Lark(EXPR_GRAMMAR, parser="lalr", lexer="basic")

def tokenize(text: str) -> List[Token]:
    """Split *text* into NUMBER/STRING/NAME/OPERATOR/COMMA tokens."""
    try:
        return list(_lexer().lex(text))
    except UnexpectedCharacters as exc:
        raise EtxExpressionError(
            f"Unexpected character {text[exc.pos_in_stream]!r} at column {exc.column}"
        ) from exc
    except LarkError as exc:
        raise EtxExpressionError(str(exc)) from exc

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    "'": "'",
    '"': '"',
}

def unquote(raw: str) -> str:
    """Strip the surrounding quotes from a string token and resolve escapes."""
    body = raw[1:-1]
    out: List[str] = []
    i = 0

    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1

    return "".join(out)

def quoted_literal_end(text: str, start: int=0) -> int:
    """Index of the quote closing the literal opened at *start*, or -1."""
    quote = text[start]
    i = start + 1

    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i
        i += 1

    return -1

def split_top_level(text: str, sep: str=",") -> List[str]:
    """Split on *sep* outside of quotes, brackets and parentheses."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    i = 0

    while i < len(text):
        ch = text[i]
        if ch in "\"'":
            end = quoted_literal_end(text, i)
            if end == -1:
                current.append(text[i:])
                break
            current.append(text[i:end + 1])
            i = end + 1
            continue
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1

    parts.append("".join(current))
    return parts
