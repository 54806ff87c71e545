from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RunLogger:
    """
    JSONL event logger for thread reads.

    Each line is one JSON object (`ts`, `level`, `event`, `session_id`, plus an
    optional `url` and `data`). Writes go to a file opened lazily, or to an
    already-open text stream such as stderr.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        stream: TextIO | None = None,
        overwrite: bool = True,
        min_level: str = "DEBUG",
        session_id: str | None = None,
    ) -> None:
        if path is None and stream is None:
            raise ValueError("RunLogger needs a path or a stream")

        self._path = Path(path) if path is not None else None
        self._overwrite = bool(overwrite)
        self._min_level = _LEVELS.get((min_level or "").strip().upper(), _LEVELS["DEBUG"])
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._fp: TextIO | None = stream
        self._owns_fp = stream is None
        self._lock = Lock()
        self._opened = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        min_level: str = "DEBUG",
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, overwrite=overwrite, min_level=min_level, session_id=session_id)
        logger._ensure_open()
        return logger

    @property
    def session_id(self) -> str:
        return self._session_id

    def close(self) -> None:
        with self._lock:
            if self._fp is None:
                return
            if not self._owns_fp:
                self._fp.flush()
                return
            try:
                self._fp.flush()
            finally:
                self._fp.close()
            self._fp = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def debug(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("DEBUG", event, url=url, **data)

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("WARN", event, url=url, **data)

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, url=url, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, url=url, error=err, **data)

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        if _LEVELS.get(lvl, _LEVELS["INFO"]) < self._min_level:
            return

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": lvl,
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }

        u = (url or "").strip()
        if u:
            record["url"] = u

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._fp is not None or self._path is None:
            return

        with self._lock:
            if self._fp is not None:
                return

            self._path.parent.mkdir(parents=True, exist_ok=True)
            mode = "w" if self._overwrite and not self._opened else "a"

            self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
            self._opened = True

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()
