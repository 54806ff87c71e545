from __future__ import annotations

from typing import Iterable, Mapping, Protocol, Sequence

from .language import apply_language_to_post
from .post import AuthorId, Post
from .post_id import PostId


class PostRepository(Protocol):
    """
    Source of posts for thread collection.

    Both operations fail softly: `find_by_id` returns None for anything that is
    not a resolvable post, and `find_replies` returns whatever replies it
    managed to collect before an error.
    """

    async def find_by_id(self, id: PostId, language: str | None = None) -> Post | None: ...

    async def find_replies(
        self,
        post: Post,
        author_filter: AuthorId | None = None,
        language: str | None = None,
    ) -> list[Post]: ...


class InMemoryPostRepository:
    """
    Network-free repository backed by dictionaries keyed by post id.

    `replies` maps a parent id to its direct replies in the order they should
    be returned. Every call is recorded for assertions in tests.
    """

    def __init__(
        self,
        posts: Iterable[Post] = (),
        replies: Mapping[str | PostId, Sequence[Post]] | None = None,
    ) -> None:
        self._posts: dict[str, Post] = {}
        self._replies: dict[str, list[Post]] = {}
        self.find_by_id_calls: list[tuple[str, str | None]] = []
        self.find_replies_calls: list[tuple[str, AuthorId | None, str | None]] = []

        for post in posts:
            self.add(post)

        for parent, children in (replies or {}).items():
            self._replies[str(PostId(parent))] = list(children)
            for child in children:
                self._posts.setdefault(child.id.href, child)

    def add(self, post: Post, *, replies: Sequence[Post] | None = None) -> None:
        self._posts[post.id.href] = post
        if replies is not None:
            self._replies[post.id.href] = list(replies)
            for child in replies:
                self._posts.setdefault(child.id.href, child)

    async def find_by_id(self, id: PostId, language: str | None = None) -> Post | None:
        self.find_by_id_calls.append((id.href, language))
        post = self._posts.get(id.href)
        if post is None:
            return None
        return apply_language_to_post(post, language)

    async def find_replies(
        self,
        post: Post,
        author_filter: AuthorId | None = None,
        language: str | None = None,
    ) -> list[Post]:
        self.find_replies_calls.append((post.id.href, author_filter, language))
        out: list[Post] = []
        for reply in self._replies.get(post.id.href, []):
            if author_filter and reply.author_id != author_filter:
                continue
            out.append(apply_language_to_post(reply, language))
        return out
