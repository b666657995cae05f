from __future__ import annotations

from typing import Any

from seogenix.errors import ConfigAbsentError
from seogenix.models.citation import Surface
from seogenix.tools.search_provider import RawHit, SearchSurface, text_field

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

# Custom Search rejects num > 10.
GOOGLE_MAX_NUM = 10


class GoogleSearchSurface(SearchSurface):
    """Web search via the Google Custom Search JSON API."""

    surface = Surface.WEB_SEARCH

    def has_credentials(self) -> bool:
        return bool(self.credentials.google_api_key and self.credentials.google_search_engine_id)

    async def _fetch(self, query: str) -> list[RawHit]:
        if not self.has_credentials():
            raise ConfigAbsentError("GOOGLE_API_KEY / GOOGLE_SEARCH_ENGINE_ID are not configured")

        params: dict[str, Any] = {
            "key": self.credentials.google_api_key,
            "cx": self.credentials.google_search_engine_id,
            "q": query,
            "num": min(self.max_results, GOOGLE_MAX_NUM),
        }
        payload = await self._get(GOOGLE_SEARCH_URL, params=params)

        return [
            RawHit(
                title=text_field(item, "title"),
                snippet=text_field(item, "snippet"),
                url=text_field(item, "link"),
            )
            for item in self._entries(payload, "items")
            if isinstance(item, dict)
        ]
