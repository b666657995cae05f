"""Shared plumbing for the citation search surfaces.

Each surface adapter subclasses :class:`SearchSurface` and implements
``_fetch``. The public ``search`` method owns the degrade-gracefully policy:
a disabled surface or a failed call yields an empty list, never an
exception.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx

from seogenix.config import Settings, settings
from seogenix.errors import ConfigAbsentError, TransportError
from seogenix.models.citation import SearchHit, Surface
from seogenix.services import logger as log_service
from seogenix.tools.relevance import classify


@dataclass(frozen=True)
class SurfaceCredentials:
    """Per-surface API credentials; ``None`` or empty disables a surface."""

    google_api_key: str | None = None
    google_search_engine_id: str | None = None
    newsapi_key: str | None = None
    reddit_client_id: str | None = None
    reddit_client_secret: str | None = None

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "SurfaceCredentials":
        source = source or settings
        return cls(
            google_api_key=source.google_api_key or None,
            google_search_engine_id=source.google_search_engine_id or None,
            newsapi_key=source.newsapi_key or None,
            reddit_client_id=source.reddit_client_id or None,
            reddit_client_secret=source.reddit_client_secret or None,
        )


@dataclass
class RawHit:
    title: str
    snippet: str
    url: str


def text_field(item: dict[str, Any], key: str) -> str:
    """String value of ``item[key]``; missing or non-string values read as empty."""
    value = item.get(key)
    return value if isinstance(value, str) else ""


class SearchSurface:
    surface: Surface

    def __init__(
        self,
        credentials: SurfaceCredentials,
        *,
        domain: str,
        brand_name: str,
        max_results: int = 10,
        timeout: float = 10.0,
    ):
        self.credentials = credentials
        self.domain = domain
        self.brand_name = brand_name
        self.max_results = max_results
        self.timeout = timeout
        self.queries_issued = 0
        self._disabled_reason: str | None = None

    @property
    def provider(self) -> str:
        return self.surface.provider

    def has_credentials(self) -> bool:
        raise NotImplementedError

    @property
    def enabled(self) -> bool:
        return self._disabled_reason is None and self.has_credentials()

    def disable(self, reason: str) -> None:
        """Switch the surface off for the rest of this run (e.g. quota reached)."""
        self._disabled_reason = reason
        log_service.log_event(
            event_type="surface_disabled",
            message=f"{self.provider} disabled",
            provider=self.provider,
            reason=reason,
        )

    async def search(self, query: str) -> list[SearchHit]:
        if not self.enabled:
            return []

        started = time.monotonic()
        try:
            raw_hits = await self._fetch(query)
        except (ConfigAbsentError, TransportError) as e:
            log_service.log_search_call(
                provider=self.provider,
                query=query,
                status="error",
                duration_ms=int((time.monotonic() - started) * 1000),
                error=str(e),
            )
            return []

        hits = []
        for raw in raw_hits[: self.max_results]:
            verdict = classify(raw.snippet, self.domain, self.brand_name)
            hits.append(
                SearchHit(
                    source_surface=self.surface,
                    title=raw.title,
                    snippet=raw.snippet,
                    url=raw.url,
                    relevance=verdict.relevance,
                )
            )
        log_service.log_search_call(
            provider=self.provider,
            query=query,
            status="success",
            results=len(hits),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return hits

    async def _fetch(self, query: str) -> list[RawHit]:
        raise NotImplementedError

    def _decode(self, response: Any) -> dict[str, Any]:
        """Check status and parse a JSON object body, raising TransportError otherwise."""
        status = response.status_code
        if status < 200 or status >= 300:
            raise TransportError(
                f"{self.provider} returned HTTP {status}",
                provider=self.provider,
                status_code=status,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"{self.provider} returned a non-JSON body", provider=self.provider) from e
        if not isinstance(payload, dict):
            raise TransportError(f"{self.provider} returned an unexpected payload", provider=self.provider)
        return payload

    def _entries(self, container: dict[str, Any], key: str) -> list[Any]:
        """Return ``container[key]`` as a list; a missing key is an empty list."""
        value = container.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise TransportError(f"{self.provider} returned a malformed '{key}' field", provider=self.provider)
        return value

    def _section(self, container: dict[str, Any], key: str) -> dict[str, Any]:
        value = container.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TransportError(f"{self.provider} returned a malformed '{key}' field", provider=self.provider)
        return value

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout)

    async def _get(self, url: str, **kwargs: Any) -> dict[str, Any]:
        self.queries_issued += 1
        try:
            async with self._client() as client:
                response = await client.get(url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.provider} request failed: {e}", provider=self.provider) from e
        return self._decode(response)


def build_surfaces(
    credentials: SurfaceCredentials,
    *,
    domain: str,
    brand_name: str,
    max_results: int | None = None,
    timeout: float | None = None,
) -> list[SearchSurface]:
    """Instantiate the Web, News and Forum surfaces in query order."""
    from seogenix.tools.google_search import GoogleSearchSurface
    from seogenix.tools.news_search import NewsSearchSurface
    from seogenix.tools.reddit_search import RedditSearchSurface

    kwargs = {
        "domain": domain,
        "brand_name": brand_name,
        "max_results": max_results if max_results is not None else settings.search_max_results_per_query,
        "timeout": timeout if timeout is not None else settings.search_timeout_seconds,
    }
    return [
        GoogleSearchSurface(credentials, **kwargs),
        NewsSearchSurface(credentials, **kwargs),
        RedditSearchSurface(credentials, **kwargs),
    ]
