"""Locate the terminator line of compound statements."""

from __future__ import annotations

from typing import Collection, Sequence

OPENING_KEYWORDS = ("if", "while", "for", "function", "try")
TERMINATORS = frozenset({"endif", "endwhile", "endfor", "endfunction", "endtry"})

def opens_block(line: str) -> bool:
    stripped = line.strip()

    if stripped == "try":
        return True

    return any(stripped.startswith(keyword + " ") for keyword in OPENING_KEYWORDS)

def leading_keyword(line: str) -> str:
    parts = line.split(None, 1)
    return parts[0] if parts else ""

def find_block_end(start: int, lines: Sequence[str], end_keywords: Collection[str]) -> int:
    """
    Scan forward from the line after *start* tracking nesting depth.

    Every opening keyword nests one level and every terminator closes one,
    whatever its kind. A line listed in *end_keywords* only matches at the
    outermost level, so an inner `else` or `endif` never ends an outer block.
    Returns ``len(lines)`` when the block is never closed; callers treat that
    as running to the end.
    """
    depth = 1
    index = start + 1

    while index < len(lines):
        line = lines[index].strip()

        if opens_block(line):
            depth += 1
        elif depth == 1 and leading_keyword(line) in end_keywords:
            return index
        elif line in TERMINATORS:
            depth -= 1
            if depth == 0:
                return index

        index += 1

    return index
