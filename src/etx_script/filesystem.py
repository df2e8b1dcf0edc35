"""Script readers used by `import`."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Dict, Optional, Protocol

class ScriptReader(Protocol):
    def read_script(self, path: str) -> Optional[str]: ...

class DiskScriptReader:
    def __init__(self, base_dir: str | Path | None=None):
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()

    def read_script(self, path: str) -> Optional[str]:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate

        try:
            return candidate.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

class MemoryScriptReader:
    """In-memory file table with POSIX-style path resolution."""

    def __init__(self, files: Optional[Dict[str, str]]=None, cwd: str="/"):
        self.cwd = cwd
        self.files: Dict[str, str] = {}

        for path, text in (files or {}).items():
            self.write(path, text)

    def resolve(self, path: str) -> str:
        joined = path if path.startswith("/") else posixpath.join(self.cwd, path)
        return posixpath.normpath(joined)

    def write(self, path: str, text: str) -> None:
        self.files[self.resolve(path)] = text

    def read_script(self, path: str) -> Optional[str]:
        return self.files.get(self.resolve(path))
