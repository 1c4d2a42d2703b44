from __future__ import annotations


class OpenclawMemError(Exception):
    """Base class for errors raised by the memory core."""


class NotFoundError(OpenclawMemError):
    pass


class ValidationError(OpenclawMemError, ValueError):
    pass


class DuplicateSessionError(ValidationError):
    def __init__(self, session_key: str) -> None:
        super().__init__(f"session already exists: {session_key}")
        self.session_key = session_key


class QuerySyntaxError(OpenclawMemError, ValueError):
    def __init__(self, query: str, detail: str = "") -> None:
        message = "Search query syntax error"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.query = query


class UnavailableError(OpenclawMemError):
    """The store (or the worker in front of it) cannot be reached."""


class TransportError(UnavailableError):
    """No JSON answer came back from the worker."""
