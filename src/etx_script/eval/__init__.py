"""Evaluator helper modules for the ETX script interpreter."""

__all__ = [
    "blocks",
    "common",
    "control",
    "expr",
    "fn",
    "loops",
    "mutation",
]
