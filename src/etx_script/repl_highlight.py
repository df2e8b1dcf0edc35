"""prompt_toolkit lexer for live ETX syntax highlighting in the REPL."""

from __future__ import annotations

from typing import Callable

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer import KEYWORD_LITERALS, OPERATORS, tokenize
from .types import EtxExpressionError

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "constant": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "variable": "ansiyellow",
    "identifier": "",
    "operator": "",
    "punctuation": "",
    "comment": "italic ansigray",
}

STATEMENT_KEYWORDS = frozenset({
    "if", "elif", "else", "endif",
    "while", "endwhile",
    "for", "in", "endfor",
    "function", "endfunction", "return",
    "break", "continue",
    "set", "unset", "import",
    "try", "catch", "endtry",
})

_TOKEN_GROUP = {
    "NUMBER": "number",
    "STRING": "string",
    "VARREF": "variable",
    "COMMA": "punctuation",
}

def _token_group(kind: str, value: str) -> str:
    if kind == "NAME":
        lowered = value.lower()
        if value in STATEMENT_KEYWORDS:
            return "keyword"
        if lowered in KEYWORD_LITERALS:
            return "constant"
        return "identifier"

    if kind == "OPERATOR":
        return "operator" if value in OPERATORS and value not in "()" else "punctuation"

    return _TOKEN_GROUP.get(kind, "")

def _highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    if text.lstrip().startswith("#"):
        return [(GROUP_STYLE["comment"], text)]

    try:
        tokens = tokenize(text)
    except EtxExpressionError:
        # command lines may hold characters the expression lexer rejects
        head, sep, rest = text.lstrip().partition(" ")
        indent = text[:len(text) - len(text.lstrip())]
        style = GROUP_STYLE["keyword"] if head in STATEMENT_KEYWORDS else ""
        return [("", indent), (style, head), ("", sep + rest)]

    result: StyleAndTextTuples = []
    pos = 0

    for tok in tokens:
        start = tok.start_pos if tok.start_pos is not None else pos
        tok_text = str(tok.value)

        # Unstyled gap before token.
        if start > pos:
            result.append(("", text[pos:start]))

        style = GROUP_STYLE.get(_token_group(tok.type, tok_text), "")
        result.append((style, tok_text))
        pos = start + len(tok_text)

    # Trailing unstyled text.
    if pos < len(text):
        result.append(("", text[pos:]))

    return result if result else [("", text)]

class EtxLexer(Lexer):
    """prompt_toolkit Lexer that highlights ETX source line by line."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines
        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = _highlight_line(lines[lineno])
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
