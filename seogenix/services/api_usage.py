"""Daily per-provider query budgets backed by the ``api_usage`` table."""
from __future__ import annotations

from typing import Any

from loguru import logger

from seogenix.errors import ConfigAbsentError, PersistenceError

# Free-tier budgets: NewsAPI allows ~1000/month.
DAILY_LIMITS: dict[str, int] = {
    "google": 100,
    "news": 33,
    "reddit": 1000,
}
DEFAULT_DAILY_LIMIT = 100


def daily_limit(provider: str) -> int:
    return DAILY_LIMITS.get(provider, DEFAULT_DAILY_LIMIT)


class ApiUsageTracker:
    """Checks and records provider usage through a store.

    The store needs ``get_api_usage(provider)`` and
    ``increment_api_usage(provider, queries)`` coroutines; the Supabase
    service module is the default.
    """

    def __init__(self, store: Any | None = None, limits: dict[str, int] | None = None):
        if store is None:
            from seogenix.services import supabase as store
        self.store = store
        self.limits = limits if limits is not None else DAILY_LIMITS

    def limit_for(self, provider: str) -> int:
        return self.limits.get(provider, DEFAULT_DAILY_LIMIT)

    async def has_quota(self, provider: str) -> bool:
        """True while today's usage is under the limit.

        An unreadable counter counts as exhausted so an outage in the store
        cannot burn through a paid quota.
        """
        try:
            used = await self.store.get_api_usage(provider)
        except (PersistenceError, ConfigAbsentError) as e:
            logger.warning(f"Could not read {provider} usage, skipping provider: {e}")
            return False

        limit = self.limit_for(provider)
        logger.info(f"{provider} usage today: {used}/{limit}")
        return used < limit

    async def record(self, provider: str, queries: int) -> None:
        if queries <= 0:
            return
        try:
            await self.store.increment_api_usage(provider, queries)
        except (PersistenceError, ConfigAbsentError) as e:
            logger.warning(f"Could not record {queries} {provider} queries: {e}")
