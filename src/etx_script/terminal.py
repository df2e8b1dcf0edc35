"""Output surfaces for script text, debug echo and error lines."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText

# colour names map to prompt_toolkit ANSI styles
COLOR_STYLE = {
    "red": "ansired",
    "green": "ansigreen",
    "yellow": "ansiyellow",
    "cyan": "ansicyan",
    "gray": "ansigray",
}

class Terminal(Protocol):
    def write_line(self, text: str, color: Optional[str]=None) -> None: ...

class ConsoleTerminal:
    """Writes to the real terminal through prompt_toolkit."""

    def write_line(self, text: str, color: Optional[str]=None) -> None:
        style = COLOR_STYLE.get(color or "", "")
        print_formatted_text(FormattedText([(style, text)]), file=sys.stdout)

@dataclass
class BufferTerminal:
    """Collects written lines; used by tests and embedding hosts."""
    lines: List[Tuple[str, Optional[str]]] = field(default_factory=list)

    def write_line(self, text: str, color: Optional[str]=None) -> None:
        self.lines.append((text, color))

    @property
    def text(self) -> List[str]:
        return [line for line, _ in self.lines]

    def clear(self) -> None:
        self.lines.clear()
