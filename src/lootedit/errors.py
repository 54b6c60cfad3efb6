"""Error types raised by the document model and file sources."""

from __future__ import annotations

from enum import Enum


class LootEditError(Exception):
    """Base class for every error the editor reports on its status line."""


class ParseError(LootEditError):
    """The document could not be parsed as a ``<types>`` file."""

    def __init__(self, reason: str, byte_offset: int = 0) -> None:
        super().__init__(reason)
        self.reason = reason
        self.byte_offset = byte_offset

    def __str__(self) -> str:
        return f"parse error: {self.reason} (at byte {self.byte_offset})"


class ErrorKind(Enum):
    NOT_FOUND = "not found"
    PERMISSION_DENIED = "permission denied"
    TRANSPORT_FAILURE = "transport failure"
    TIMEOUT = "timeout"
    NOT_READY = "not ready"
    IO_FAILURE = "i/o failure"


class SourceError(LootEditError):
    """A list/read/write call on a file source failed."""

    def __init__(self, kind: ErrorKind, message: str, path: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.kind.value}: {self.message} ({self.path})"
        return f"{self.kind.value}: {self.message}"


class AuthError(LootEditError):
    """The remote host rejected the supplied credentials."""

    def __str__(self) -> str:
        return f"auth error: {self.args[0] if self.args else 'authentication failed'}"


class StateError(LootEditError):
    """An index or state invariant was violated by the caller."""

    def __str__(self) -> str:
        return f"state error: {self.args[0] if self.args else ''}"


class SerializeError(LootEditError):
    """The in-memory document holds a name or value XML cannot represent."""

    def __str__(self) -> str:
        return f"serialize error: {self.args[0] if self.args else ''}"
