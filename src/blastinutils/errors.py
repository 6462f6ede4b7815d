# src/blastinutils/errors.py

from __future__ import annotations

__all__ = ["BlastinutilsError", "CorruptStreamError", "BuilderClosedError"]


class BlastinutilsError(RuntimeError):
    """Base class for errors raised by blastinutils."""


class CorruptStreamError(BlastinutilsError):
    """A BLAST tabular stream contained a line that is not a valid record.

    The offending line is kept verbatim on ``.line`` so callers can report it.
    """

    def __init__(self, line: str, reason: str = "BLAST data seems to be corrupt.") -> None:
        super().__init__(f"{reason} Offending line: {line!r}")
        self.line = line
        self.reason = reason


class BuilderClosedError(BlastinutilsError):
    """feed()/close() called on a builder whose stream is already closed."""
