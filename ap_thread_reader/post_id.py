from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from .errors import InvalidPostIdError

_ALLOWED_SCHEMES = ("http", "https")


def _canonicalize(value: str) -> str:
    raw = (value or "").strip()
    if not raw:
        raise InvalidPostIdError("Post id must be a non-empty URL")
    if any(ch.isspace() for ch in raw):
        raise InvalidPostIdError(f"Post id must not contain whitespace: {raw!r}")

    try:
        parts = urlsplit(raw)
        host = parts.hostname
    except ValueError as e:
        raise InvalidPostIdError(f"Malformed post id: {raw!r}") from e

    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES:
        raise InvalidPostIdError(f"Post id must use http or https: {raw!r}")
    if not parts.netloc or not host:
        raise InvalidPostIdError(f"Post id must include a host: {raw!r}")

    return urlunsplit((scheme, parts.netloc.lower(), parts.path, parts.query, parts.fragment))


class PostId:
    """
    Validated absolute http(s) URI identifying a post.

    Equality and hashing use the canonical string form (scheme and host
    lower-cased), so two spellings of the same id compare equal.
    """

    __slots__ = ("_href",)

    def __init__(self, value: "str | PostId") -> None:
        if isinstance(value, PostId):
            self._href = value.href
            return
        if not isinstance(value, str):
            raise InvalidPostIdError(f"Post id must be a string, got {type(value).__name__}")
        self._href = _canonicalize(value)

    @property
    def href(self) -> str:
        return self._href

    @property
    def host(self) -> str:
        return urlsplit(self._href).netloc

    def __str__(self) -> str:
        return self._href

    def __repr__(self) -> str:
        return f"PostId({self._href!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PostId):
            return NotImplemented
        return self._href == other._href

    def __hash__(self) -> int:
        return hash(self._href)


def create_post_id(value: str | PostId) -> PostId:
    return PostId(value)


def try_create_post_id(value: str | None) -> PostId | None:
    """Return a PostId, or None when the value is not a valid http(s) URL."""
    if value is None:
        return None
    try:
        return PostId(value)
    except InvalidPostIdError:
        return None


def is_valid_post_url(value: str | None) -> bool:
    return try_create_post_id(value) is not None
