"""Exceptions raised by the content intelligence engine."""

from __future__ import annotations


class ContentIntelError(Exception):
    """Base class for engine errors."""


class UnknownColumnError(ContentIntelError):
    """The storage layer rejected a column it does not know about."""

    def __init__(self, column: str, message: str | None = None) -> None:
        self.column = column
        super().__init__(message or f"Unknown column: {column}")


class PersistenceError(ContentIntelError):
    """Link occurrences could not be written to the store."""
