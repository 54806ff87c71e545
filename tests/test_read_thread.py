from __future__ import annotations

import io
import json
import unittest
from unittest import mock

from ap_thread_reader.post import Post
from ap_thread_reader.post_id import PostId
from ap_thread_reader.read_thread import (
    ERROR_FETCH_FAILED,
    ERROR_INVALID_URL,
    ERROR_NO_POSTS,
    read_thread,
)
from ap_thread_reader.repository import InMemoryPostRepository
from ap_thread_reader.run_log import RunLogger

ALICE = "https://example.com/users/alice"


def _post(name: str, reply_to: str | None = None, languages: dict[str, str] | None = None) -> Post:
    return Post(
        id=PostId(f"https://example.com/{name}"),
        author_id=ALICE,
        content=f"<p>{name}</p>",
        published_at="2024-01-01T00:00:00Z",
        in_reply_to=PostId(f"https://example.com/{reply_to}") if reply_to else None,
        content_by_language=languages,
        available_languages=tuple(languages or ()),
    )


class _Exploding(InMemoryPostRepository):
    async def find_replies(self, post, author_filter=None, language=None):  # type: ignore[override]
        raise RuntimeError("boom")


class TestReadThread(unittest.IsolatedAsyncioTestCase):
    async def test_invalid_urls(self) -> None:
        repo = InMemoryPostRepository()

        for url in (None, "", "   ", "not a url", "ftp://example.com/1"):
            result = await read_thread(url, repo)
            self.assertEqual(result.error, ERROR_INVALID_URL, msg=repr(url))
            self.assertIsNone(result.thread)

        self.assertEqual(repo.find_by_id_calls, [])

    async def test_no_posts(self) -> None:
        result = await read_thread("https://example.com/missing", InMemoryPostRepository())

        self.assertEqual(result.error, ERROR_NO_POSTS)
        self.assertIsNone(result.thread)

    async def test_returns_serialized_thread_and_language_union(self) -> None:
        a = _post("A", languages={"en": "A-en", "ja": "A-ja"})
        b = _post("B", reply_to="A", languages={"ja": "B-ja", "ko": "B-ko"})
        repo = InMemoryPostRepository([a], {a.id: [b]})

        result = await read_thread(" https://example.com/A ", repo)

        self.assertIsNone(result.error)
        assert result.thread is not None
        self.assertEqual([p.id for p in result.thread], ["https://example.com/A", "https://example.com/B"])
        self.assertEqual(result.available_content_languages, ["en", "ja", "ko"])

    async def test_language_is_applied(self) -> None:
        a = _post("A", languages={"en": "A-en", "ja": "A-ja"})
        repo = InMemoryPostRepository([a])

        result = await read_thread("https://example.com/A", repo, "ja")

        assert result.thread is not None
        self.assertEqual(result.thread[0].content, "A-ja")

    async def test_repository_errors_degrade_to_shorter_thread(self) -> None:
        a = _post("A")

        result = await read_thread("https://example.com/A", _Exploding([a]))

        self.assertIsNone(result.error)
        assert result.thread is not None
        self.assertEqual(len(result.thread), 1)

    async def test_unexpected_failure_is_reported(self) -> None:
        stream = io.StringIO()

        with mock.patch(
            "ap_thread_reader.read_thread.get_longest_thread",
            new=mock.AsyncMock(side_effect=RuntimeError("boom")),
        ):
            result = await read_thread(
                "https://example.com/A",
                InMemoryPostRepository(),
                logger=RunLogger(stream=stream),
            )

        self.assertEqual(result.error, ERROR_FETCH_FAILED)
        self.assertIsNone(result.thread)
        record = json.loads(stream.getvalue().splitlines()[-1])
        self.assertEqual(record["event"], "read_thread_failed")
        self.assertEqual(record["data"]["error"]["message"], "boom")


if __name__ == "__main__":
    unittest.main()
