from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Sequence

from .language import apply_language_to_post
from .post import AuthorId, Post
from .post_id import PostId
from .repository import PostRepository
from .run_log import RunLogger
from .thread import Thread


@dataclass(frozen=True)
class _FrontierEntry:
    post: Post
    path: tuple[Post, ...]


def filter_self_replies(replies: Sequence[Post], author_id: AuthorId) -> list[Post]:
    """Keep only replies written by `author_id`, in their original order."""
    return [reply for reply in replies if reply.author_id == author_id]


async def _fetch_start_post(
    start_id: PostId,
    repository: PostRepository,
    language: str | None,
    logger: RunLogger | None,
) -> Post | None:
    try:
        post = await repository.find_by_id(start_id, language)
    except Exception as e:
        if logger is not None:
            logger.exception("thread_start_fetch_failed", exc=e, url=start_id.href)
        return None

    if post is None:
        return None
    return apply_language_to_post(post, language)


async def _fetch_self_replies(
    entry: _FrontierEntry,
    author_id: AuthorId,
    repository: PostRepository,
    language: str | None,
    logger: RunLogger | None,
) -> list[Post]:
    try:
        replies = await repository.find_replies(entry.post, author_id, language)
    except Exception as e:
        # A failing node ends its own branch; siblings are unaffected.
        if logger is not None:
            logger.warning(
                "thread_replies_failed",
                url=entry.post.id.href,
                error_type=type(e).__name__,
                error_message=str(e),
            )
        return []

    seen = {p.id for p in entry.path}
    out: list[Post] = []
    for reply in filter_self_replies(replies or [], author_id):
        if reply.id in seen:
            if logger is not None:
                logger.warning("thread_reply_cycle_skipped", url=reply.id.href)
            continue
        seen.add(reply.id)
        out.append(apply_language_to_post(reply, language))
    return out


async def get_possible_threads(
    start_id: PostId,
    repository: PostRepository,
    language: str | None = None,
    *,
    logger: RunLogger | None = None,
) -> list[Thread]:
    """
    Collect every maximal self-reply chain starting at `start_id`.

    The reply graph is expanded one level at a time: all reply lookups of a
    level run concurrently and the next level starts once they have all
    settled. Threads come back in the order their branches were returned by
    the repository, shorter branches (which terminate earlier) first.

    Returns an empty list when the start post cannot be resolved.
    """
    start = await _fetch_start_post(start_id, repository, language, logger)
    if start is None:
        if logger is not None:
            logger.warning("thread_start_not_found", url=start_id.href)
        return []

    author_id = start.author_id
    threads: list[Thread] = []
    frontier = [_FrontierEntry(post=start, path=(start,))]
    depth = 0

    while frontier:
        depth += 1
        results = await asyncio.gather(
            *(
                _fetch_self_replies(entry, author_id, repository, language, logger)
                for entry in frontier
            )
        )

        next_frontier: list[_FrontierEntry] = []
        for entry, self_replies in zip(frontier, results):
            if not self_replies:
                threads.append(Thread(entry.path))
                continue

            if len(self_replies) > 1 and logger is not None:
                logger.debug(
                    "thread_branch_found",
                    url=entry.post.id.href,
                    branches=len(self_replies),
                    depth=depth,
                )

            for reply in self_replies:
                next_frontier.append(_FrontierEntry(post=reply, path=entry.path + (reply,)))

        if logger is not None:
            logger.debug(
                "thread_level_expanded",
                url=start_id.href,
                depth=depth,
                frontier=len(frontier),
                next_frontier=len(next_frontier),
                completed=len(threads),
            )
        frontier = next_frontier

    if logger is not None:
        logger.info(
            "thread_collected",
            url=start_id.href,
            author_id=author_id,
            threads=len(threads),
            depth=depth,
        )
    return threads


async def get_longest_thread(
    start_id: PostId,
    repository: PostRepository,
    language: str | None = None,
    *,
    logger: RunLogger | None = None,
) -> Thread | None:
    """
    Return the longest self-reply chain from `start_id`, or None if the start
    post cannot be resolved.

    Ties go to the first thread encountered, i.e. the branch the repository
    returned first at the branching point.
    """
    threads = await get_possible_threads(start_id, repository, language, logger=logger)
    if not threads:
        return None

    longest = threads[0]
    for thread in threads[1:]:
        if len(thread) > len(longest):
            longest = thread
    return longest
