from __future__ import annotations

from typing import Any

from seogenix.errors import ConfigAbsentError, TransportError
from seogenix.models.citation import Surface
from seogenix.tools.search_provider import RawHit, SearchSurface, text_field

NEWSAPI_URL = "https://newsapi.org/v2/everything"
NEWSAPI_MAX_PAGE_SIZE = 100


class NewsSearchSurface(SearchSurface):
    """News search via NewsAPI ``/v2/everything``."""

    surface = Surface.NEWS_SEARCH

    def has_credentials(self) -> bool:
        return bool(self.credentials.newsapi_key)

    async def _fetch(self, query: str) -> list[RawHit]:
        if not self.has_credentials():
            raise ConfigAbsentError("NEWSAPI_KEY is not configured")

        params: dict[str, Any] = {
            "q": query,
            "sortBy": "publishedAt",
            "pageSize": min(self.max_results, NEWSAPI_MAX_PAGE_SIZE),
            "apiKey": self.credentials.newsapi_key,
        }
        payload = await self._get(NEWSAPI_URL, params=params)

        # NewsAPI can answer 200 with {"status": "error", ...}.
        if payload.get("status") == "error":
            raise TransportError(
                f"news: {payload.get('code', 'error')}: {payload.get('message', '')}",
                provider=self.provider,
            )

        hits: list[RawHit] = []
        for article in self._entries(payload, "articles"):
            if not isinstance(article, dict):
                continue
            title = text_field(article, "title")
            description = text_field(article, "description")
            hits.append(
                RawHit(
                    title=title,
                    snippet=description.strip() or title,
                    url=text_field(article, "url"),
                )
            )
        return hits
