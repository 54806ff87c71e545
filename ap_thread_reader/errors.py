from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class InvalidPostIdError(ValueError):
    """Raised when a string is not a valid http(s) post identifier."""


class InvalidThreadError(ValueError):
    """Raised when a thread is empty or mixes posts from different authors."""


class FetchError(RuntimeError):
    """Raised when an ActivityPub document cannot be fetched or decoded."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
