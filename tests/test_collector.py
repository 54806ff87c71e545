from __future__ import annotations

import asyncio
import io
import json
import unittest

from ap_thread_reader.collector import (
    filter_self_replies,
    get_longest_thread,
    get_possible_threads,
)
from ap_thread_reader.post import Post
from ap_thread_reader.post_id import PostId
from ap_thread_reader.repository import InMemoryPostRepository
from ap_thread_reader.run_log import RunLogger

ALICE = "https://example.com/users/alice"
BOB = "https://example.com/users/bob"


def _post(name: str, *, author: str = ALICE, reply_to: str | None = None, **kw: object) -> Post:
    return Post(
        id=PostId(f"https://example.com/{name}"),
        author_id=author,
        content=f"<p>{name}</p>",
        published_at="2024-01-01T00:00:00Z",
        in_reply_to=PostId(f"https://example.com/{reply_to}") if reply_to else None,
        **kw,  # type: ignore[arg-type]
    )


def _ids(thread: object) -> list[str]:
    return [p.id.href.rsplit("/", 1)[-1] for p in thread]  # type: ignore[attr-defined]


class _IgnoresAuthorFilter(InMemoryPostRepository):
    """Returns every reply regardless of author_filter, like a server without filtering."""

    async def find_replies(self, post, author_filter=None, language=None):  # type: ignore[override]
        return await super().find_replies(post, None, language)


class _FailingReplies(InMemoryPostRepository):
    def __init__(self, *args: object, failing: set[str], **kw: object) -> None:
        super().__init__(*args, **kw)  # type: ignore[arg-type]
        self._failing = failing

    async def find_replies(self, post, author_filter=None, language=None):  # type: ignore[override]
        if post.id.href in self._failing:
            raise RuntimeError("boom")
        return await super().find_replies(post, author_filter, language)


class _TracksConcurrency(InMemoryPostRepository):
    def __init__(self, *args: object, **kw: object) -> None:
        super().__init__(*args, **kw)  # type: ignore[arg-type]
        self.active = 0
        self.max_active = 0

    async def find_replies(self, post, author_filter=None, language=None):  # type: ignore[override]
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().find_replies(post, author_filter, language)
        finally:
            self.active -= 1


class TestFilterSelfReplies(unittest.TestCase):
    def test_keeps_only_author_replies_in_order(self) -> None:
        replies = [
            _post("reply1"),
            _post("reply2", author=BOB),
            _post("reply3"),
        ]

        result = filter_self_replies(replies, ALICE)

        self.assertEqual(_ids(result), ["reply1", "reply3"])

    def test_no_self_replies(self) -> None:
        self.assertEqual(filter_self_replies([_post("r", author=BOB)], ALICE), [])


class TestGetPossibleThreads(unittest.IsolatedAsyncioTestCase):
    async def test_single_post_yields_singleton_thread(self) -> None:
        a = _post("A")
        repo = InMemoryPostRepository([a])

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual(len(threads), 1)
        self.assertEqual(list(threads[0]), [a])

    async def test_follows_linear_chain(self) -> None:
        a, b, c, d = _post("A"), _post("B", reply_to="A"), _post("C", reply_to="B"), _post("D", reply_to="C")
        repo = InMemoryPostRepository([a], {a.id: [b], b.id: [c], c.id: [d]})

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual(len(threads), 1)
        self.assertEqual(_ids(threads[0]), ["A", "B", "C", "D"])

    async def test_branches_yield_one_thread_each_in_reply_order(self) -> None:
        a, b, c = _post("A"), _post("B", reply_to="A"), _post("C", reply_to="A")
        repo = InMemoryPostRepository([a], {a.id: [b, c]})

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual([_ids(t) for t in threads], [["A", "B"], ["A", "C"]])

    async def test_unresolvable_start_returns_empty(self) -> None:
        repo = InMemoryPostRepository()

        threads = await get_possible_threads(PostId("https://example.com/missing"), repo)

        self.assertEqual(threads, [])
        self.assertEqual(repo.find_replies_calls, [])

    async def test_passes_author_filter_and_language_to_repository(self) -> None:
        a, b = _post("A"), _post("B", reply_to="A")
        repo = InMemoryPostRepository([a], {a.id: [b]})

        await get_possible_threads(a.id, repo, "ko")

        self.assertEqual(repo.find_by_id_calls, [(a.id.href, "ko")])
        self.assertEqual(
            repo.find_replies_calls,
            [(a.id.href, ALICE, "ko"), (b.id.href, ALICE, "ko")],
        )

    async def test_foreign_replies_are_never_followed(self) -> None:
        a = _post("A")
        bob_reply = _post("X", author=BOB, reply_to="A")
        bob_self_reply = _post("Y", author=BOB, reply_to="X")
        b = _post("B", reply_to="A")
        repo = _IgnoresAuthorFilter([a], {a.id: [bob_reply, b], bob_reply.id: [bob_self_reply]})

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual([_ids(t) for t in threads], [["A", "B"]])
        fetched_parents = [call[0] for call in repo.find_replies_calls]
        self.assertNotIn(bob_reply.id.href, fetched_parents)

    async def test_reply_failure_only_ends_that_branch(self) -> None:
        a, b, c = _post("A"), _post("B", reply_to="A"), _post("C", reply_to="A")
        d = _post("D", reply_to="C")
        repo = _FailingReplies([a], {a.id: [b, c], c.id: [d]}, failing={b.id.href})

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual([_ids(t) for t in threads], [["A", "B"], ["A", "C", "D"]])

    async def test_start_lookup_failure_is_not_found(self) -> None:
        class _Broken(InMemoryPostRepository):
            async def find_by_id(self, id, language=None):  # type: ignore[override]
                raise RuntimeError("network down")

        threads = await get_possible_threads(PostId("https://example.com/A"), _Broken())

        self.assertEqual(threads, [])

    async def test_reply_cycle_does_not_loop(self) -> None:
        a, b = _post("A"), _post("B", reply_to="A")
        repo = InMemoryPostRepository([a], {a.id: [b], b.id: [a]})

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual([_ids(t) for t in threads], [["A", "B"]])

    async def test_level_fetches_run_concurrently(self) -> None:
        a = _post("A")
        children = [_post(f"B{i}", reply_to="A") for i in range(4)]
        repo = _TracksConcurrency([a], {a.id: children})

        threads = await get_possible_threads(a.id, repo)

        self.assertEqual(len(threads), 4)
        self.assertEqual(repo.max_active, 4)

    async def test_applies_requested_language(self) -> None:
        a = _post("A", content_by_language={"en": "E-A", "ko": "K-A"})
        b = _post("B", reply_to="A", content_by_language={"en": "E-B", "ko": "K-B"})
        repo = InMemoryPostRepository([a], {a.id: [b]})

        threads = await get_possible_threads(a.id, repo, "ko-KR")

        self.assertEqual([p.content for p in threads[0]], ["K-A", "K-B"])

    async def test_logs_collection_events(self) -> None:
        a, b, c = _post("A"), _post("B", reply_to="A"), _post("C", reply_to="A")
        repo = InMemoryPostRepository([a], {a.id: [b, c]})
        stream = io.StringIO()
        log = RunLogger(stream=stream)

        await get_possible_threads(a.id, repo, logger=log)

        events = [json.loads(line)["event"] for line in stream.getvalue().splitlines()]
        self.assertIn("thread_branch_found", events)
        self.assertIn("thread_level_expanded", events)
        self.assertEqual(events[-1], "thread_collected")


class TestGetLongestThread(unittest.IsolatedAsyncioTestCase):
    async def test_longest_branch_wins(self) -> None:
        a = _post("A")
        b, d = _post("B", reply_to="A"), _post("D", reply_to="A")
        c = _post("C", reply_to="B")
        repo = InMemoryPostRepository([a], {a.id: [b, d], b.id: [c]})

        thread = await get_longest_thread(a.id, repo)

        assert thread is not None
        self.assertEqual(_ids(thread), ["A", "B", "C"])
        self.assertEqual(len(thread), 3)

    async def test_longest_branch_wins_when_returned_last(self) -> None:
        a = _post("A")
        b, d = _post("B", reply_to="A"), _post("D", reply_to="A")
        e = _post("E", reply_to="D")
        repo = InMemoryPostRepository([a], {a.id: [b, d], d.id: [e]})

        thread = await get_longest_thread(a.id, repo)

        assert thread is not None
        self.assertEqual(_ids(thread), ["A", "D", "E"])

    async def test_tie_goes_to_first_returned_branch(self) -> None:
        a = _post("A")
        b, c = _post("B", reply_to="A"), _post("C", reply_to="A")
        b2, c2 = _post("B2", reply_to="B"), _post("C2", reply_to="C")
        repo = InMemoryPostRepository([a], {a.id: [c, b], b.id: [b2], c.id: [c2]})

        thread = await get_longest_thread(a.id, repo)

        assert thread is not None
        self.assertEqual(_ids(thread), ["A", "C", "C2"])

    async def test_not_found_returns_none(self) -> None:
        thread = await get_longest_thread(PostId("https://example.com/nope"), InMemoryPostRepository())
        self.assertIsNone(thread)

    async def test_linear_chains_of_any_length(self) -> None:
        for n in (1, 2, 5, 12):
            posts = [_post("P0")] + [_post(f"P{i}", reply_to=f"P{i - 1}") for i in range(1, n)]
            replies = {posts[i].id: [posts[i + 1]] for i in range(n - 1)}
            repo = InMemoryPostRepository([posts[0]], replies)

            thread = await get_longest_thread(posts[0].id, repo)

            assert thread is not None
            self.assertEqual(list(thread), posts, msg=f"n={n}")


if __name__ == "__main__":
    unittest.main()
