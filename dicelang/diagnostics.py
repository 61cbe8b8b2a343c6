"""
Diagnostic records produced by the lexer and parser.

A diagnostic is a message plus a stable code and the source offset it
refers to. They are accumulated rather than raised so that a single parse
can report every problem in an expression.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Diagnostic:
    """A lexer or parser error tied to a position in the source text."""

    message: str
    code: Optional[str] = None
    phase: Optional[str] = None
    severity: str = "error"
    position: Optional[int] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "phase": self.phase,
            "severity": self.severity,
            "position": self.position,
        }
