"""Citation aggregation pipeline.

For one site: query every enabled search surface with a fixed set of query
templates, keep the hits that name the site, persist a bounded number of
them as citations and ask the text-generation service for an
assistant-style answer. Every external failure degrades to empty results or
templated text; only a malformed site URL aborts a run.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from seogenix.config import settings
from seogenix.errors import (
    ConfigAbsentError,
    GenerationError,
    InvalidSiteURLError,
    PersistenceError,
    TransportError,
)
from seogenix.llm_client import TextGenerator, get_text_generator
from seogenix.models.citation import (
    AssistantResponse,
    Citation,
    CitationRunResult,
    GeneratedBy,
    RelevanceLevel,
    SearchHit,
    SearchSummary,
    Site,
)
from seogenix.services import logger as log_service
from seogenix.services.api_usage import ApiUsageTracker
from seogenix.services.prompt_store import render_prompt
from seogenix.tools import web_utils
from seogenix.tools.relevance import mentions_target
from seogenix.tools.search_provider import SearchSurface, SurfaceCredentials, build_surfaces

SIMULATION_PLATFORM = "Citation Simulation"

QUERY_TEMPLATES: tuple[str, ...] = (
    '"{domain}"',
    '"{brand_name}"',
    "{brand_name} services",
    "{brand_name} company",
    "site:{domain}",
)

SYNTHETIC_SOURCES: tuple[tuple[str, str, str], ...] = (
    ("Google Search", "citation.synthetic_search_snippet", "https://www.google.com/search"),
    ("News Article", "citation.synthetic_news_snippet", "https://news.google.com/search"),
)


def resolve_target(url: str) -> tuple[str, str]:
    """Validate ``url`` and return ``(domain, brand_name)``."""
    if not isinstance(url, str) or not web_utils.is_valid_url(url):
        raise InvalidSiteURLError(url)
    domain = web_utils.extract_domain(url)
    return domain, web_utils.brand_name_from_domain(domain)


def build_queries(domain: str, brand_name: str) -> list[str]:
    return [t.format(domain=domain, brand_name=brand_name) for t in QUERY_TEMPLATES]


def select_relevant(hits: list[SearchHit], domain: str, brand_name: str) -> list[SearchHit]:
    """Hits whose snippet names the site, first occurrence per URL."""
    relevant: list[SearchHit] = []
    seen_urls: set[str] = set()
    for hit in hits:
        if not mentions_target(hit.snippet, domain, brand_name):
            continue
        key = hit.url or f"{hit.source_surface.value}:{hit.snippet}"
        if key in seen_urls:
            continue
        seen_urls.add(key)
        relevant.append(hit)
    return relevant


def hit_to_citation(hit: SearchHit, site_id: str, detected_at: datetime, max_chars: int) -> Citation:
    return Citation(
        site_id=site_id,
        source_type=hit.source_surface.source_label,
        snippet_text=web_utils.truncate(hit.snippet, max_chars),
        url=hit.url,
        detected_at=detected_at,
    )


def synthetic_citations(
    site_id: str, domain: str, brand_name: str, detected_at: datetime, max_chars: int
) -> list[Citation]:
    """Two templated citations used when no live hit names the site."""
    return [
        Citation(
            site_id=site_id,
            source_type=source_type,
            snippet_text=web_utils.truncate(
                render_prompt(key, domain=domain, brand_name=brand_name), max_chars
            ),
            url=web_utils.search_url(domain, base=base_url),
            detected_at=detected_at,
        )
        for source_type, key, base_url in SYNTHETIC_SOURCES
    ]


def fallback_response(domain: str, brand_name: str, *, has_mentions: bool) -> str:
    key = "citation.fallback_with_mentions" if has_mentions else "citation.fallback_without_mentions"
    return render_prompt(key, domain=domain, brand_name=brand_name, platforms="several online platforms")


def build_assistant_prompt(
    *,
    url: str,
    domain: str,
    brand_name: str,
    relevant_hits: int,
    citations: list[Citation],
    platforms_checked: list[str],
) -> str:
    if relevant_hits:
        context = render_prompt(
            "citation.context_with_citations",
            citations="; ".join(f'{c.source_type}: "{c.snippet_text}"' for c in citations),
        )
        guidance = render_prompt("citation.guidance_with_mentions")
    else:
        context = render_prompt("citation.context_without_citations")
        guidance = render_prompt("citation.guidance_without_mentions")

    return render_prompt(
        "citation.assistant_response",
        url=url,
        domain=domain,
        brand_name=brand_name,
        platforms=", ".join(platforms_checked),
        relevant_hits=relevant_hits,
        citation_count=len(citations),
        citation_context=context,
        guidance=guidance,
    )


class CitationPipeline:
    """Runs one citation search for a site.

    ``store`` must provide ``query_citations(site_id)`` and
    ``insert_citations(site_id, citations)`` coroutines; the Supabase
    service module is the default.
    """

    def __init__(
        self,
        credentials: SurfaceCredentials | None = None,
        *,
        store: Any | None = None,
        text_generator: TextGenerator | None = None,
        usage_tracker: ApiUsageTracker | None = None,
        citation_limit: int | None = None,
        snippet_max_chars: int | None = None,
        query_delay_ms: int | None = None,
        max_results_per_query: int | None = None,
        search_timeout: float | None = None,
        persist: bool = True,
    ):
        if store is None and persist:
            from seogenix.services import supabase as store
        self.credentials = credentials or SurfaceCredentials.from_settings()
        self.store = store
        self.text_generator = text_generator or get_text_generator()
        self.usage_tracker = usage_tracker
        self.citation_limit = citation_limit if citation_limit is not None else settings.citation_limit
        self.snippet_max_chars = snippet_max_chars if snippet_max_chars is not None else settings.snippet_max_chars
        delay_ms = query_delay_ms if query_delay_ms is not None else settings.search_query_delay_ms
        self.query_delay = max(delay_ms, 0) / 1000
        self.max_results_per_query = max_results_per_query
        self.search_timeout = search_timeout
        self.persist = persist

    def _surfaces(self, domain: str, brand_name: str) -> list[SearchSurface]:
        return build_surfaces(
            self.credentials,
            domain=domain,
            brand_name=brand_name,
            max_results=self.max_results_per_query,
            timeout=self.search_timeout,
        )

    async def _apply_quotas(self, surfaces: list[SearchSurface]) -> None:
        if self.usage_tracker is None:
            return
        for surface in surfaces:
            if surface.enabled and not await self.usage_tracker.has_quota(surface.provider):
                surface.disable("daily quota reached")

    async def _record_usage(self, surfaces: list[SearchSurface]) -> None:
        if self.usage_tracker is None:
            return
        for surface in surfaces:
            await self.usage_tracker.record(surface.provider, surface.queries_issued)

    async def _search(
        self, surfaces: list[SearchSurface], queries: list[str]
    ) -> tuple[list[SearchHit], SearchSummary, list[str]]:
        hits: list[SearchHit] = []
        summary = SearchSummary()
        platforms: list[str] = []

        for index, query in enumerate(queries):
            if index and self.query_delay:
                await asyncio.sleep(self.query_delay)
            for surface in surfaces:
                found = await surface.search(query)
                summary.add(surface.surface, len(found))
                if found and surface.surface.platform_name not in platforms:
                    platforms.append(surface.surface.platform_name)
                hits.extend(found)

        return hits, summary, platforms or [SIMULATION_PLATFORM]

    async def _persist(self, site_id: str, citations: list[Citation]) -> int:
        """Best-effort write; returns the number of rows stored."""
        if not self.persist or not citations:
            return 0
        try:
            existing = {c.url for c in await self.store.query_citations(site_id)}
            fresh = [c for c in citations if c.url not in existing]
            if len(fresh) < len(citations):
                logger.info(f"Skipping {len(citations) - len(fresh)} already stored citation(s) for site {site_id}")
            rows = await self.store.insert_citations(site_id, fresh)
        except (PersistenceError, ConfigAbsentError) as e:
            logger.error(f"Failed to store citations for site {site_id}: {e}")
            return 0

        ids_by_url = {row.get("url"): row.get("id") for row in rows if isinstance(row, dict)}
        for citation in citations:
            if citation.id is None and ids_by_url.get(citation.url) is not None:
                citation.id = str(ids_by_url[citation.url])
        return len(rows)

    async def _assistant_response(
        self,
        site: Site,
        domain: str,
        brand_name: str,
        relevant_hits: list[SearchHit],
        citations: list[Citation],
        platforms_checked: list[str],
    ) -> AssistantResponse:
        prompt = build_assistant_prompt(
            url=site.url,
            domain=domain,
            brand_name=brand_name,
            relevant_hits=len(relevant_hits),
            citations=citations,
            platforms_checked=platforms_checked,
        )
        try:
            text = await self.text_generator.generate(prompt, caller="citation_assistant_response")
        except ConfigAbsentError as e:
            logger.info(f"Using fallback assistant response: {e}")
        except (TransportError, GenerationError) as e:
            logger.warning(f"Text generation failed, using fallback assistant response: {e}")
        else:
            return AssistantResponse(text=text, generated_by=GeneratedBy.TEXT_GENERATION_SERVICE)

        return AssistantResponse(
            text=fallback_response(domain, brand_name, has_mentions=bool(relevant_hits)),
            generated_by=GeneratedBy.FALLBACK_TEMPLATE,
        )

    async def run(self, site: Site) -> CitationRunResult:
        domain, brand_name = resolve_target(site.url)
        started = time.monotonic()
        log_service.log_event(
            event_type="citation_run_started",
            message="Citation tracking started",
            site_id=site.id,
            domain=domain,
        )

        surfaces = self._surfaces(domain, brand_name)
        await self._apply_quotas(surfaces)

        hits, summary, platforms_checked = await self._search(surfaces, build_queries(domain, brand_name))
        await self._record_usage(surfaces)

        relevant = select_relevant(hits, domain, brand_name)
        summary.high_authority_citations = sum(1 for h in relevant if h.relevance is RelevanceLevel.HIGH)

        detected_at = datetime.now(timezone.utc)
        if relevant:
            citations = [
                hit_to_citation(hit, site.id, detected_at, self.snippet_max_chars)
                for hit in relevant[: self.citation_limit]
            ]
        else:
            citations = synthetic_citations(site.id, domain, brand_name, detected_at, self.snippet_max_chars)

        new_citations_found = await self._persist(site.id, citations)
        assistant_response = await self._assistant_response(
            site, domain, brand_name, relevant, citations, platforms_checked
        )

        log_service.log_event(
            event_type="citation_run_completed",
            message="Citation tracking complete",
            site_id=site.id,
            hits=len(hits),
            relevant_hits=len(relevant),
            citations=len(citations),
            new_citations_found=new_citations_found,
            generated_by=assistant_response.generated_by.value,
            runtime_ms=int((time.monotonic() - started) * 1000),
        )

        return CitationRunResult(
            citations=citations,
            new_citations_found=new_citations_found,
            assistant_response=assistant_response,
            search_summary=summary,
            platforms_checked=platforms_checked,
            search_completed_at=datetime.now(timezone.utc),
            queries_issued={s.provider: s.queries_issued for s in surfaces},
        )
