"""Errors raised by the library index, the streaming service and mutations."""

from __future__ import annotations


class LibraryError(Exception):
    """Base exception for all musikarchiv errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class NotFoundError(LibraryError):
    """An album, a track or the file behind a track does not exist."""


class InvalidInputError(LibraryError):
    """A request was rejected before touching the filesystem."""


class ConflictError(LibraryError):
    """The target album folder already exists."""

    def __init__(self, album_id: str) -> None:
        super().__init__(
            f"Album '{album_id}' already exists",
            "Pick a different name or add tracks to the existing album",
        )
        self.album_id = album_id


class IOFailureError(LibraryError):
    """Unexpected filesystem error while reading or writing the library."""
