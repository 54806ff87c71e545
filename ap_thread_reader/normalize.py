from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from .language import available_languages, resolve_language_variant
from .post import Author, AuthorId, Post
from .post_id import try_create_post_id

POST_TYPES = frozenset({"Note", "Article", "Page", "Question"})
ACTOR_TYPES = frozenset({"Person", "Service", "Application", "Group", "Organization"})


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def object_types(obj: Mapping[str, Any]) -> frozenset[str]:
    raw = obj.get("type")
    if isinstance(raw, str):
        return frozenset({raw})
    if isinstance(raw, list):
        return frozenset(t for t in raw if isinstance(t, str))
    return frozenset()


def is_actor(obj: Mapping[str, Any]) -> bool:
    return bool(object_types(obj) & ACTOR_TYPES)


def is_post_object(obj: Mapping[str, Any]) -> bool:
    return bool(object_types(obj) & POST_TYPES)


def object_id(value: Any) -> str | None:
    """Id of a reference that may be a bare URI, an embedded object, or a list of either."""
    if isinstance(value, str):
        return _coerce_str(value)
    if isinstance(value, Mapping):
        return _coerce_str(value.get("id"))
    if isinstance(value, list):
        for item in value:
            ref = object_id(item)
            if ref:
                return ref
    return None


def link_href(value: Any) -> str | None:
    """Resolve `url`-style values: a string, a Link object, or a list (text/html preferred)."""
    if isinstance(value, str):
        return _coerce_str(value)
    if isinstance(value, Mapping):
        return _coerce_str(value.get("href")) or _coerce_str(value.get("id"))
    if isinstance(value, list):
        for item in value:
            if isinstance(item, Mapping) and item.get("mediaType") == "text/html":
                href = link_href(item)
                if href:
                    return href
        for item in value:
            href = link_href(item)
            if href:
                return href
    return None


def attributed_to(obj: Mapping[str, Any]) -> AuthorId | None:
    raw = obj.get("attributedTo")
    if isinstance(raw, list):
        for item in raw:
            if isinstance(item, Mapping) and is_actor(item):
                ref = object_id(item)
                if ref:
                    return ref
    return object_id(raw)


def language_map(value: Any) -> dict[str, str] | None:
    if not isinstance(value, Mapping):
        return None
    out: dict[str, str] = {}
    for lang, text in value.items():
        if isinstance(lang, str) and lang.strip() and isinstance(text, str):
            out[lang.strip()] = text
    return out or None


def author_from_actor(actor: Mapping[str, Any], author_id: AuthorId) -> Author:
    name = (
        _coerce_str(actor.get("name"))
        or _coerce_str(actor.get("preferredUsername"))
        or author_id
    )
    return Author(id=author_id, name=name, profile_url=link_href(actor.get("url")))


def post_from_activitypub_object(
    obj: Mapping[str, Any],
    language: str | None = None,
    *,
    author: Author | None = None,
) -> Post | None:
    """
    Convert a Note/Article JSON object into a Post.

    Returns None for non-post objects and for objects missing an id, an
    attribution, or any content.
    """
    if not is_post_object(obj):
        return None

    post_id = try_create_post_id(_coerce_str(obj.get("id")))
    if post_id is None:
        return None

    author_id = attributed_to(obj)
    if not author_id:
        return None

    raw_content = obj.get("content") if isinstance(obj.get("content"), str) else ""
    content_map = language_map(obj.get("contentMap"))
    if not raw_content and not content_map:
        return None

    content = resolve_language_variant(raw_content, content_map, language)

    raw_summary = obj.get("summary") if isinstance(obj.get("summary"), str) else ""
    summary_map = language_map(obj.get("summaryMap"))
    summary = resolve_language_variant(raw_summary, summary_map, language).text or None

    published_at = _coerce_str(obj.get("published")) or datetime.now(timezone.utc).isoformat()

    return Post(
        id=post_id,
        author_id=author_id,
        author=author if author is not None and author.id == author_id else None,
        content=content.text,
        summary=summary,
        content_by_language=content_map,
        summary_by_language=summary_map,
        published_at=published_at,
        in_reply_to=try_create_post_id(object_id(obj.get("inReplyTo"))),
        url=link_href(obj.get("url")),
        available_languages=available_languages(content_map),
        content_language=content.language,
        content_language_is_fallback=content.is_fallback,
    )
