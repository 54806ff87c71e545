from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping

from .post import Post


@dataclass(frozen=True)
class LanguageVariant:
    text: str
    language: str | None
    is_fallback: bool


def primary_subtag(tag: str) -> str:
    """`en-US` -> `en`."""
    return (tag or "").split("-", 1)[0]


def available_languages(language_map: Mapping[str, str] | None) -> tuple[str, ...]:
    if not language_map:
        return ()
    return tuple(lang for lang in language_map if lang)


def _match_language(language_map: Mapping[str, str], requested: str) -> str | None:
    if requested in language_map:
        return requested
    primary = primary_subtag(requested)
    if primary in language_map:
        return primary
    return None


def select_language_content(
    default_text: str,
    language_map: Mapping[str, str] | None = None,
    requested_language: str | None = None,
) -> str:
    """
    Pick the text for `requested_language` out of `language_map`.

    Tries the exact tag first, then its primary subtag, and degrades to
    `default_text` whenever there is no map, no request, or no match.
    """
    if not language_map or not requested_language:
        return default_text

    key = _match_language(language_map, requested_language)
    if key is None:
        return default_text
    return language_map[key]


def resolve_language_variant(
    default_text: str,
    language_map: Mapping[str, str] | None,
    requested_language: str | None = None,
) -> LanguageVariant:
    if not language_map:
        return LanguageVariant(text=default_text, language=None, is_fallback=False)

    first_lang = next(iter(language_map))

    if requested_language:
        key = _match_language(language_map, requested_language)
        if key is not None:
            return LanguageVariant(text=language_map[key], language=key, is_fallback=False)
        return LanguageVariant(text=language_map[first_lang], language=first_lang, is_fallback=True)

    text = default_text or language_map[first_lang]
    return LanguageVariant(text=text, language=first_lang, is_fallback=False)


def apply_language_to_post(post: Post, language: str | None = None) -> Post:
    """Return `post` with content/summary projected to `language`; no-op when language is None."""
    if language is None:
        return post

    content = select_language_content(post.content, post.content_by_language, language)
    summary = post.summary
    if summary is not None or post.summary_by_language:
        summary = select_language_content(summary or "", post.summary_by_language, language) or None

    return replace(post, content=content, summary=summary)
