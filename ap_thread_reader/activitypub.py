from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Mapping

import httpx

from .config import retry_config
from .config_schema import AppConfig, HttpConfig
from .doc_cache import DocumentCache, default_cache_rules
from .errors import FetchError
from .http_retry import is_retryable_http_exception
from .normalize import (
    attributed_to,
    author_from_actor,
    is_actor,
    is_post_object,
    object_id,
    post_from_activitypub_object,
)
from .post import Author, AuthorId, Post
from .post_id import PostId
from .retry import RetryEvent, SleepFn, call_with_retries
from .run_log import RunLogger

ACTIVITY_JSON_ACCEPT = (
    'application/activity+json, application/ld+json; profile="https://www.w3.org/ns/activitystreams"'
)

_MAX_COLLECTION_PAGES = 50
_GONE_STATUS = (404, 410)


def build_http_client(
    http: HttpConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Keep-alive client shared by every lookup of one repository."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(http.timeout_seconds),
        limits=httpx.Limits(
            max_connections=http.max_connections,
            max_keepalive_connections=http.max_keepalive_connections,
            keepalive_expiry=http.keepalive_expiry_seconds,
        ),
        headers={"Accept": ACTIVITY_JSON_ACCEPT, "User-Agent": http.user_agent},
        follow_redirects=True,
        transport=transport,
    )


def build_document_cache(config: AppConfig) -> DocumentCache | None:
    if not config.cache.enabled:
        return None
    return DocumentCache(
        default_cache_rules(
            context_ttl_seconds=config.cache.context_ttl_seconds,
            object_ttl_seconds=config.cache.object_ttl_seconds,
        ),
        max_entries=config.cache.max_entries,
    )


def _inline_items(collection: Mapping[str, Any]) -> list[Any]:
    for key in ("orderedItems", "items"):
        value = collection.get(key)
        if isinstance(value, list):
            return list(value)
        if isinstance(value, (str, Mapping)):
            return [value]
    return []


class ActivityPubPostRepository:
    """
    PostRepository backed by ActivityPub object lookups over HTTP.

    Every lookup goes through a shared document cache (when enabled) and is
    retried on transient failures. Lookup failures never escape the two
    repository operations: `find_by_id` returns None and `find_replies`
    returns the replies gathered before the failure.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        config: AppConfig | None = None,
        cache: DocumentCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: RunLogger | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        cfg = config or AppConfig()
        self._retry = retry_config(cfg)
        self._cache = cache if cache is not None else build_document_cache(cfg)
        self._logger = logger
        self._sleep_fn = sleep_fn

        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = build_http_client(cfg.http, transport=transport)
            self._owns_client = True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ActivityPubPostRepository":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()

    def _on_retry(self, event: RetryEvent) -> None:
        if self._logger is None:
            return
        self._logger.warning(
            "http_retry",
            url=event.context_url,
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
            error_type=event.error_type,
        )

    async def _fetch_json(self, url: str) -> dict[str, Any] | None:
        async def _do_get() -> dict[str, Any] | None:
            response = await self._client.get(url, headers={"Accept": ACTIVITY_JSON_ACCEPT})
            if response.status_code in _GONE_STATUS:
                return None
            response.raise_for_status()
            try:
                data = response.json()
            except ValueError as e:
                raise FetchError(f"Response from {url} is not valid JSON", url=url) from e
            if not isinstance(data, dict):
                raise FetchError(f"Response from {url} is not a JSON object", url=url)
            return data

        try:
            return await call_with_retries(
                _do_get,
                cfg=self._retry,
                is_retryable=is_retryable_http_exception,
                operation="activitypub.get",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                context_url=url,
            )
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            raise FetchError(f"HTTP {code} while fetching {url}", url=url, status_code=code) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed for {url}: {e}", url=url) from e

    async def lookup_object(self, url: str) -> dict[str, Any] | None:
        """Fetch one ActivityPub document; None when the server says it does not exist."""
        if self._cache is None:
            return await self._fetch_json(url)
        return await self._cache.get_or_fetch(url, lambda: self._fetch_json(url))

    async def _dereference(self, value: Any) -> Mapping[str, Any] | None:
        if isinstance(value, Mapping):
            # Bare references ({"id": ...}) carry no type and must be fetched.
            if "type" in value:
                return value
            value = object_id(value)
        if isinstance(value, str) and value.strip():
            return await self.lookup_object(value.strip())
        return None

    async def _fetch_author(self, obj: Mapping[str, Any], author_id: AuthorId) -> Author | None:
        raw = obj.get("attributedTo")
        candidates = raw if isinstance(raw, list) else [raw]
        for candidate in candidates:
            if isinstance(candidate, Mapping) and is_actor(candidate) and object_id(candidate) == author_id:
                return author_from_actor(candidate, author_id)

        try:
            actor = await self.lookup_object(author_id)
        except FetchError as e:
            if self._logger is not None:
                self._logger.debug("author_fetch_failed", url=author_id, error_message=str(e))
            return None

        if actor is None or not is_actor(actor):
            return None
        return author_from_actor(actor, author_id)

    async def _to_post(self, obj: Mapping[str, Any], language: str | None) -> Post | None:
        author_id = attributed_to(obj)
        author = await self._fetch_author(obj, author_id) if author_id else None
        post = post_from_activitypub_object(obj, language, author=author)
        if post is None and self._logger is not None:
            self._logger.warning("object_not_convertible", url=object_id(obj), type=obj.get("type"))
        return post

    async def find_by_id(self, id: PostId, language: str | None = None) -> Post | None:
        try:
            obj = await self.lookup_object(id.href)
        except FetchError as e:
            if self._logger is not None:
                self._logger.error("post_fetch_failed", url=id.href, error_message=str(e))
            return None

        if obj is None:
            if self._logger is not None:
                self._logger.warning("post_not_found", url=id.href)
            return None

        if is_actor(obj):
            if self._logger is not None:
                self._logger.warning("object_is_actor", url=id.href)
            return None

        if not is_post_object(obj):
            if self._logger is not None:
                self._logger.warning("object_not_a_post", url=id.href, type=obj.get("type"))
            return None

        return await self._to_post(obj, language)

    async def _iter_collection(self, ref: Any) -> AsyncIterator[Any]:
        collection = await self._dereference(ref)
        if collection is None:
            return

        for item in _inline_items(collection):
            yield item

        seen_pages: set[str] = set()
        page_ref = collection.get("first")
        pages = 0
        while page_ref is not None and pages < _MAX_COLLECTION_PAGES:
            page_id = object_id(page_ref)
            if page_id:
                if page_id in seen_pages:
                    break
                seen_pages.add(page_id)

            page = await self._dereference(page_ref)
            if page is None:
                break
            pages += 1

            for item in _inline_items(page):
                yield item
            page_ref = page.get("next")

    async def _resolve_reply(self, item: Any) -> Mapping[str, Any] | None:
        try:
            return await self._dereference(item)
        except FetchError as e:
            if self._logger is not None:
                self._logger.debug("reply_fetch_failed", url=object_id(item), error_message=str(e))
            return None

    async def find_replies(
        self,
        post: Post,
        author_filter: AuthorId | None = None,
        language: str | None = None,
    ) -> list[Post]:
        try:
            obj = await self.lookup_object(post.id.href)
        except FetchError as e:
            if self._logger is not None:
                self._logger.error("replies_fetch_failed", url=post.id.href, error_message=str(e))
            return []

        if obj is None or not is_post_object(obj):
            if self._logger is not None:
                self._logger.warning("replies_parent_unavailable", url=post.id.href)
            return []

        replies_ref = obj.get("replies")
        if replies_ref is None:
            return []

        refs: list[Any] = []
        seen_items: set[str] = set()
        try:
            async for item in self._iter_collection(replies_ref):
                ref = object_id(item)
                if ref:
                    if ref in seen_items:
                        continue
                    seen_items.add(ref)
                if isinstance(item, Mapping) and "type" in item:
                    if not is_post_object(item):
                        continue
                    if author_filter and attributed_to(item) != author_filter:
                        continue
                refs.append(item)
        except FetchError as e:
            if self._logger is not None:
                self._logger.debug(
                    "replies_traversal_interrupted",
                    url=post.id.href,
                    collected=len(refs),
                    error_message=str(e),
                )

        resolved = await asyncio.gather(*(self._resolve_reply(ref) for ref in refs))
        candidates = [
            item
            for item in resolved
            if item is not None
            and is_post_object(item)
            and (not author_filter or attributed_to(item) == author_filter)
        ]

        converted = await asyncio.gather(*(self._to_post(item, language) for item in candidates))
        replies = [reply for reply in converted if reply is not None]

        if self._logger is not None:
            self._logger.debug(
                "replies_found",
                url=post.id.href,
                replies=len(replies),
                iterated=len(refs),
            )
        return replies
