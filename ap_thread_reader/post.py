from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .post_id import PostId

AuthorId = str


@dataclass(frozen=True)
class Author:
    id: AuthorId
    name: str
    profile_url: str | None = None


@dataclass(frozen=True)
class Post:
    """
    A fetched Note/Article reduced to what thread reading needs.

    `content` is the display content already resolved for the requested
    language (HTML, unsanitized). The raw language maps are kept only when the
    source object declared them; `None` means the object had no map at all.
    """

    id: PostId
    author_id: AuthorId
    content: str
    published_at: str

    author: Author | None = None
    summary: str | None = None
    content_by_language: Mapping[str, str] | None = None
    summary_by_language: Mapping[str, str] | None = None
    in_reply_to: PostId | None = None
    url: str | None = None

    available_languages: Sequence[str] = field(default_factory=tuple)
    content_language: str | None = None
    content_language_is_fallback: bool = False

    # Unhashable: language maps are plain dicts.
    __hash__ = None  # type: ignore[assignment]
