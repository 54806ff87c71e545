from __future__ import annotations

from typing import Iterable, Iterator, Sequence, overload

from .errors import InvalidThreadError
from .post import Author, AuthorId, Post


class Thread(Sequence[Post]):
    """
    Non-empty, immutable chain of posts by a single author.

    Index 0 is the root post and the last index is the deepest reply.
    """

    __slots__ = ("_posts",)

    def __init__(self, posts: Iterable[Post]) -> None:
        items = tuple(posts)
        if not items:
            raise InvalidThreadError("Thread must contain at least one post")

        author_id = items[0].author_id
        for post in items:
            if post.author_id != author_id:
                raise InvalidThreadError(
                    "All posts in a thread must have the same author. "
                    f"Expected {author_id!r}, got {post.author_id!r}"
                )

        self._posts = items

    @property
    def posts(self) -> tuple[Post, ...]:
        return self._posts

    @property
    def root(self) -> Post:
        return self._posts[0]

    @property
    def last(self) -> Post:
        return self._posts[-1]

    @property
    def author_id(self) -> AuthorId:
        return self._posts[0].author_id

    @property
    def author(self) -> Author | None:
        return self._posts[0].author

    @overload
    def __getitem__(self, index: int) -> Post: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Post, ...]: ...

    def __getitem__(self, index: int | slice) -> Post | tuple[Post, ...]:
        return self._posts[index]

    def __len__(self) -> int:
        return len(self._posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Thread):
            return NotImplemented
        return self._posts == other._posts

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        ids = ", ".join(str(p.id) for p in self._posts)
        return f"Thread([{ids}])"


def create_thread(posts: Iterable[Post]) -> Thread:
    return Thread(posts)


def try_create_thread(posts: Iterable[Post]) -> Thread | None:
    try:
        return Thread(posts)
    except InvalidThreadError:
        return None
