from __future__ import annotations

from typing import Any

import httpx

from seogenix.config import settings
from seogenix.errors import ConfigAbsentError, TransportError
from seogenix.models.citation import Surface
from seogenix.tools.search_provider import RawHit, SearchSurface, text_field

REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
REDDIT_SEARCH_URL = "https://oauth.reddit.com/search"
REDDIT_MAX_LIMIT = 100


class RedditSearchSurface(SearchSurface):
    """Forum search via Reddit's OAuth API.

    Reddit needs an application-only token (client-credentials grant)
    before any search call. The token is fetched on first use and kept for
    the lifetime of this adapter, which is one pipeline run.
    """

    surface = Surface.FORUM_SEARCH

    def __init__(self, *args: Any, user_agent: str | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.user_agent = user_agent or settings.reddit_user_agent
        self._access_token: str | None = None

    def has_credentials(self) -> bool:
        return bool(self.credentials.reddit_client_id and self.credentials.reddit_client_secret)

    async def _fetch_token(self) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    REDDIT_TOKEN_URL,
                    auth=(self.credentials.reddit_client_id, self.credentials.reddit_client_secret),
                    data={"grant_type": "client_credentials"},
                    headers={"User-Agent": self.user_agent},
                )
        except httpx.HTTPError as e:
            raise TransportError(f"reddit auth failed: {e}", provider=self.provider) from e

        payload = self._decode(response)
        token = payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise TransportError("reddit auth returned no access_token", provider=self.provider)
        return token

    async def _fetch(self, query: str) -> list[RawHit]:
        if not self.has_credentials():
            raise ConfigAbsentError("REDDIT_CLIENT_ID / REDDIT_CLIENT_SECRET are not configured")

        if self._access_token is None:
            self._access_token = await self._fetch_token()

        payload = await self._get(
            REDDIT_SEARCH_URL,
            params={
                "q": query,
                "type": "link",
                "sort": "new",
                "limit": min(self.max_results, REDDIT_MAX_LIMIT),
            },
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "User-Agent": self.user_agent,
            },
        )

        children = self._entries(self._section(payload, "data"), "children")
        hits: list[RawHit] = []
        for child in children:
            post = child.get("data") if isinstance(child, dict) else None
            if not isinstance(post, dict):
                continue
            title = text_field(post, "title")
            selftext = text_field(post, "selftext").strip()
            permalink = text_field(post, "permalink")
            hits.append(
                RawHit(
                    title=title,
                    snippet=f"{title} {selftext}".strip(),
                    url=f"https://reddit.com{permalink}" if permalink else text_field(post, "url"),
                )
            )
        return hits
