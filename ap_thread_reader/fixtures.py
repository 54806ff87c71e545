from __future__ import annotations

from pathlib import Path

import httpx

_ACTIVITY_JSON = "application/activity+json; charset=utf-8"


def fixture_transport(directory: str | Path) -> httpx.MockTransport:
    """
    Serve ActivityPub documents from disk instead of the network.

    A request for `https://any.host/users/alice/statuses/1` is answered with
    `<directory>/users/alice/statuses/1.json`; the host is ignored. Missing
    files answer 404.
    """
    root = Path(directory).resolve()

    def _not_found(path: str) -> httpx.Response:
        return httpx.Response(404, json={"error": "Not Found", "path": path})

    def _handler(request: httpx.Request) -> httpx.Response:
        rel = request.url.path.strip("/")
        if not rel:
            return _not_found(request.url.path)

        candidate = (root / f"{rel}.json").resolve()
        if root not in candidate.parents or not candidate.is_file():
            return _not_found(request.url.path)

        return httpx.Response(
            200,
            content=candidate.read_bytes(),
            headers={"Content-Type": _ACTIVITY_JSON},
        )

    return httpx.MockTransport(_handler)
