"""Supabase persistence for sites, citations and API usage counters.

All query execution is blocking inside supabase-py, so it runs in a worker
thread. Failures are raised as :class:`PersistenceError`; callers decide
whether a write is best-effort.
"""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from typing import Any

import httpx
from supabase import Client, PostgrestAPIError, SupabaseException, create_client

from seogenix.config import settings
from seogenix.errors import ConfigAbsentError, PersistenceError
from seogenix.models.citation import Citation
from seogenix.services import logger as log_service


def get_client() -> Client:
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ConfigAbsentError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY are not configured")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_role_key)
    except SupabaseException as e:
        raise ConfigAbsentError(f"Supabase client could not be created: {e}") from e


_client: Client | None = None


def client() -> Client:
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def _execute(query: Any, *, operation: str, table: str) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    try:
        result = await asyncio.to_thread(query.execute)
    except (PostgrestAPIError, httpx.HTTPError) as e:
        log_service.log_db_operation(operation, table, "error", error=str(e))
        raise PersistenceError(f"{operation} on {table} failed: {e}", table=table) from e
    log_service.log_db_operation(operation, table, "success")
    return result


# --- Sites ---


async def get_site(site_id: str) -> dict[str, Any] | None:
    result = await _execute(
        client().table("sites").select("*").eq("id", site_id),
        operation="select",
        table="sites",
    )
    return result.data[0] if result.data else None


# --- Citations ---


async def insert_citations(site_id: str, citations: list[Citation]) -> list[dict[str, Any]]:
    """Insert citations for a site; returns the stored rows."""
    if not citations:
        return []
    rows = [{**c.to_row(), "site_id": site_id} for c in citations]
    result = await _execute(
        client().table("citations").insert(rows),
        operation="insert",
        table="citations",
    )
    return result.data or []


async def query_citations(site_id: str) -> list[Citation]:
    result = await _execute(
        client()
        .table("citations")
        .select("*")
        .eq("site_id", site_id)
        .order("detected_at", desc=True),
        operation="select",
        table="citations",
    )
    return [Citation.from_row(row) for row in result.data or []]


# --- API usage ---


def _today() -> date:
    return datetime.now(timezone.utc).date()


async def get_api_usage(provider: str, day: date | None = None) -> int:
    """Queries already spent today against ``provider``."""
    result = await _execute(
        client()
        .table("api_usage")
        .select("queries_used")
        .eq("date", (day or _today()).isoformat())
        .eq("provider", provider),
        operation="select",
        table="api_usage",
    )
    if not result.data:
        return 0
    return int(result.data[0].get("queries_used") or 0)


async def increment_api_usage(provider: str, queries: int, day: date | None = None) -> None:
    await _execute(
        client().rpc(
            "increment_api_usage",
            {
                "p_date": (day or _today()).isoformat(),
                "p_provider": provider,
                "p_queries": queries,
            },
        ),
        operation="rpc",
        table="api_usage",
    )


async def increment_user_usage(user_id: str, kind: str = "citations") -> None:
    await _execute(
        client().rpc("increment_usage", {"p_user_id": user_id, "p_type": kind}),
        operation="rpc",
        table="user_usage",
    )
