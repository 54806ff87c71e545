from __future__ import annotations

import io
import json
import tempfile
import unittest
from pathlib import Path

from ap_thread_reader.run_log import RunLogger


class TestRunLogger(unittest.TestCase):
    def test_writes_jsonl_records(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "run.jsonl"
            with RunLogger.open(path, session_id="abc") as log:
                log.info("read_command_started", url="https://example.com/1", format="text")
                log.debug("no_url")

            lines = path.read_text(encoding="utf-8").splitlines()

        first = json.loads(lines[0])
        self.assertEqual(first["event"], "read_command_started")
        self.assertEqual(first["level"], "INFO")
        self.assertEqual(first["session_id"], "abc")
        self.assertEqual(first["url"], "https://example.com/1")
        self.assertEqual(first["data"], {"format": "text"})

        second = json.loads(lines[1])
        self.assertNotIn("url", second)
        self.assertNotIn("data", second)

    def test_min_level_filters(self) -> None:
        stream = io.StringIO()
        log = RunLogger(stream=stream, min_level="warn")

        log.debug("a")
        log.info("b")
        log.warning("c")
        log.error("d")

        events = [json.loads(line)["event"] for line in stream.getvalue().splitlines()]
        self.assertEqual(events, ["c", "d"])

    def test_exception_records_error(self) -> None:
        stream = io.StringIO()
        log = RunLogger(stream=stream)

        try:
            raise ValueError("bad thing")
        except ValueError as e:
            log.exception("failed", exc=e)

        record = json.loads(stream.getvalue())
        self.assertEqual(record["level"], "ERROR")
        self.assertEqual(record["data"]["error"]["type"], "ValueError")
        self.assertIn("bad thing", record["data"]["error"]["traceback"])

    def test_close_leaves_borrowed_stream_open(self) -> None:
        stream = io.StringIO()
        log = RunLogger(stream=stream)
        log.info("x")

        log.close()

        self.assertFalse(stream.closed)

    def test_needs_a_destination(self) -> None:
        with self.assertRaises(ValueError):
            RunLogger()


if __name__ == "__main__":
    unittest.main()
