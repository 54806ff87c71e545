from __future__ import annotations

from .collector import get_longest_thread
from .post_id import try_create_post_id
from .repository import PostRepository
from .run_log import RunLogger
from .serialize import ReadThreadResult, to_serializable_thread

ERROR_INVALID_URL = "Invalid URL"
ERROR_NO_POSTS = "No posts found in thread"
ERROR_FETCH_FAILED = "Failed to fetch thread"


async def read_thread(
    url: str | None,
    repository: PostRepository,
    language: str | None = None,
    *,
    logger: RunLogger | None = None,
) -> ReadThreadResult:
    """
    Read the longest self-reply thread starting at `url`.

    Never raises: invalid input, an empty result and unexpected failures are
    reported through `ReadThreadResult.error`.
    """
    post_id = try_create_post_id((url or "").strip() or None)
    if post_id is None:
        return ReadThreadResult(error=ERROR_INVALID_URL)

    try:
        thread = await get_longest_thread(post_id, repository, language, logger=logger)
    except Exception as e:
        if logger is not None:
            logger.exception("read_thread_failed", exc=e, url=post_id.href)
        return ReadThreadResult(error=ERROR_FETCH_FAILED)

    if thread is None:
        return ReadThreadResult(error=ERROR_NO_POSTS)

    languages: list[str] = []
    seen: set[str] = set()
    for post in thread:
        for lang in post.available_languages:
            if lang not in seen:
                seen.add(lang)
                languages.append(lang)

    return ReadThreadResult(
        thread=to_serializable_thread(thread),
        available_content_languages=languages,
    )
