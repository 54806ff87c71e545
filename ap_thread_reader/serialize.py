from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .language import select_language_content
from .post import Author, Post
from .post_id import PostId


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class SerializableAuthor(_CamelModel):
    id: str
    name: str
    profile_url: str | None = None


class SerializablePost(_CamelModel):
    """JSON-ready post: ids as plain strings, camelCase keys when dumped by alias."""

    id: str
    author_id: str
    author: SerializableAuthor | None = None
    content: str
    summary: str | None = None
    content_map: dict[str, str] | None = None
    summary_map: dict[str, str] | None = None
    published_at: str
    in_reply_to: str | None = None
    url: str | None = None
    available_languages: list[str] = Field(default_factory=list)
    content_language: str | None = None
    content_language_is_fallback: bool = False


class ReadThreadResult(_CamelModel):
    thread: list[SerializablePost] | None = None
    error: str | None = None
    available_content_languages: list[str] = Field(default_factory=list)

    def to_json(self, *, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def to_serializable_post(post: Post) -> SerializablePost:
    author = None
    if post.author is not None:
        author = SerializableAuthor(
            id=post.author.id,
            name=post.author.name,
            profile_url=post.author.profile_url,
        )

    return SerializablePost(
        id=post.id.href,
        author_id=post.author_id,
        author=author,
        content=post.content,
        summary=post.summary,
        content_map=dict(post.content_by_language) if post.content_by_language else None,
        summary_map=dict(post.summary_by_language) if post.summary_by_language else None,
        published_at=post.published_at,
        in_reply_to=post.in_reply_to.href if post.in_reply_to is not None else None,
        url=post.url,
        available_languages=list(post.available_languages),
        content_language=post.content_language,
        content_language_is_fallback=post.content_language_is_fallback,
    )


def to_serializable_thread(posts: Iterable[Post]) -> list[SerializablePost]:
    return [to_serializable_post(post) for post in posts]


def from_serializable_post(data: SerializablePost) -> Post:
    """Inverse of to_serializable_post; raises InvalidPostIdError on malformed ids."""
    author = None
    if data.author is not None:
        author = Author(id=data.author.id, name=data.author.name, profile_url=data.author.profile_url)

    return Post(
        id=PostId(data.id),
        author_id=data.author_id,
        author=author,
        content=data.content,
        summary=data.summary,
        content_by_language=dict(data.content_map) if data.content_map else None,
        summary_by_language=dict(data.summary_map) if data.summary_map else None,
        published_at=data.published_at,
        in_reply_to=PostId(data.in_reply_to) if data.in_reply_to else None,
        url=data.url,
        available_languages=tuple(data.available_languages),
        content_language=data.content_language,
        content_language_is_fallback=data.content_language_is_fallback,
    )


def from_serializable_thread(items: Iterable[SerializablePost]) -> list[Post]:
    return [from_serializable_post(item) for item in items]


def apply_language_to_serializable_post(
    data: SerializablePost,
    language: str | None = None,
) -> SerializablePost:
    if language is None:
        return data

    content = select_language_content(data.content, data.content_map, language)
    summary = data.summary
    if summary is not None or data.summary_map:
        summary = select_language_content(summary or "", data.summary_map, language) or None
    return data.model_copy(update={"content": content, "summary": summary})
