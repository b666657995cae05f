"""Tests for the citation aggregation pipeline."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from supabase import SupabaseException

from seogenix.errors import (
    ConfigAbsentError,
    InvalidSiteURLError,
    PersistenceError,
    ResponseValidationError,
    TransportError,
)
from seogenix.llm_client import TextGenerator
from seogenix.models.citation import Citation, GeneratedBy, Site, Surface
from seogenix.pipeline import citations as pipeline_module
from seogenix.pipeline.citations import (
    SIMULATION_PLATFORM,
    CitationPipeline,
    build_queries,
    fallback_response,
    resolve_target,
)
from seogenix.services import supabase
from seogenix.services.api_usage import ApiUsageTracker
from seogenix.tools.search_provider import RawHit, SearchSurface, SurfaceCredentials
from tests.fakes import FakeClient, FakeResponse


class FakeStore:
    def __init__(self, existing=None, fail_insert=False, fail_query=False):
        self.existing = list(existing or [])
        self.fail_insert = fail_insert
        self.fail_query = fail_query
        self.inserted: list[dict] = []

    async def query_citations(self, site_id):
        if self.fail_query:
            raise PersistenceError("select failed", table="citations")
        return list(self.existing)

    async def insert_citations(self, site_id, citations):
        if self.fail_insert:
            raise PersistenceError("insert failed", table="citations")
        rows = [{**c.to_row(), "id": f"cit-{len(self.inserted) + i}"} for i, c in enumerate(citations)]
        self.inserted.extend(rows)
        return rows


class StubSurface(SearchSurface):
    """Surface whose upstream answers are scripted per query."""

    def __init__(self, surface, respond):
        super().__init__(SurfaceCredentials(), domain="acme.com", brand_name="Acme")
        self.surface = surface
        self._respond = respond
        self.calls: list[str] = []

    def has_credentials(self) -> bool:
        return True

    async def _fetch(self, query):
        self.calls.append(query)
        self.queries_issued += 1
        result = self._respond(query)
        if isinstance(result, Exception):
            raise result
        return result


def _no_hits(query):
    return []


def _generator(text=None, error=None):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=text, side_effect=error)
    return generator


def _pipeline(store=None, generator=None, **kwargs):
    kwargs.setdefault("query_delay_ms", 0)
    return CitationPipeline(
        kwargs.pop("credentials", SurfaceCredentials()),
        store=store if store is not None else FakeStore(),
        text_generator=generator or TextGenerator(None, model="test-model"),
        **kwargs,
    )


SITE = Site(id="site-1", url="https://acme.com")


def test_resolve_target_derives_domain_and_brand():
    assert resolve_target("https://www.acme.com/pricing") == ("acme.com", "Acme")


def test_build_queries_uses_five_templates():
    assert build_queries("acme.com", "Acme") == [
        '"acme.com"',
        '"Acme"',
        "Acme services",
        "Acme company",
        "site:acme.com",
    ]


@pytest.mark.asyncio
async def test_invalid_url_is_the_only_error_raised():
    with pytest.raises(InvalidSiteURLError):
        await _pipeline().run(Site(id="site-1", url="not a url"))


@pytest.mark.asyncio
async def test_no_credentials_produces_simulation_fallback():
    store = FakeStore()

    result = await _pipeline(store=store).run(SITE)

    assert result.platforms_checked == [SIMULATION_PLATFORM]
    assert len(result.citations) == 2
    for citation in result.citations:
        assert "Acme" in citation.snippet_text
        assert "acme.com" in citation.snippet_text
        assert citation.site_id == "site-1"
    assert result.assistant_response.generated_by == GeneratedBy.FALLBACK_TEMPLATE
    assert result.new_citations_found == 2
    assert len(store.inserted) == 2
    summary = result.search_summary
    assert (summary.google_results, summary.news_results, summary.reddit_results) == (0, 0, 0)
    assert summary.high_authority_citations == 0


@pytest.mark.asyncio
async def test_single_news_hit_yields_one_citation():
    payload = {
        "status": "ok",
        "articles": [
            {"title": "Launch", "description": "Startup acme.com launches a new API", "url": "https://news.example/acme"},
        ],
    }
    fake = FakeClient(get=FakeResponse(payload))
    generator = _generator(text="Acme is a developer platform mentioned by the press.")

    with patch("seogenix.tools.search_provider.httpx.AsyncClient", return_value=fake):
        result = await _pipeline(
            credentials=SurfaceCredentials(newsapi_key="news-key"),
            generator=generator,
        ).run(SITE)

    assert len(result.citations) == 1
    assert result.citations[0].source_type == "News Article"
    assert result.citations[0].url == "https://news.example/acme"
    assert result.search_summary.high_authority_citations == 1
    assert result.search_summary.news_results == 5
    assert result.search_summary.google_results == 0
    assert result.platforms_checked == ["News API"]
    assert result.assistant_response.generated_by == GeneratedBy.TEXT_GENERATION_SERVICE
    assert result.assistant_response.text.startswith("Acme is a developer platform")
    assert result.queries_issued == {"google": 0, "news": 5, "reddit": 0}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "credentials, payload",
    [
        (SurfaceCredentials(newsapi_key="news-key"), {"status": "ok", "articles": [{"description": 42}]}),
        (SurfaceCredentials(google_api_key="g-key", google_search_engine_id="cx"), {"items": [{"snippet": 7}]}),
        (SurfaceCredentials(reddit_client_id="r-id", reddit_client_secret="r-secret"), {"data": ["oops"]}),
    ],
)
async def test_malformed_surface_payload_falls_back_to_synthetic(credentials, payload):
    fake = FakeClient(get=FakeResponse(payload), post=FakeResponse({"access_token": "tok"}))

    with patch("seogenix.tools.search_provider.httpx.AsyncClient", return_value=fake):
        result = await _pipeline(credentials=credentials).run(SITE)

    assert len(result.citations) == 2
    assert result.search_summary.high_authority_citations == 0


@pytest.mark.asyncio
async def test_generation_failure_uses_deterministic_fallback():
    generator = _generator(error=TransportError("gateway down", provider="openrouter"))

    result = await _pipeline(generator=generator).run(SITE)

    assert result.assistant_response.generated_by == GeneratedBy.FALLBACK_TEMPLATE
    assert result.assistant_response.text == fallback_response("acme.com", "Acme", has_mentions=False)
    generator.generate.assert_awaited_once()


@pytest.mark.asyncio
async def test_invalid_generation_reply_uses_fallback():
    generator = _generator(error=ResponseValidationError("Completion content is empty"))

    result = await _pipeline(generator=generator).run(SITE)

    assert result.assistant_response.generated_by == GeneratedBy.FALLBACK_TEMPLATE


def test_fallback_text_is_pure_function_of_site():
    first = fallback_response("acme.com", "Acme", has_mentions=False)
    second = fallback_response("acme.com", "Acme", has_mentions=False)

    assert first == second
    assert "Acme" in first and "acme.com" in first
    assert "acme.com" in fallback_response("acme.com", "Acme", has_mentions=True)


@pytest.mark.asyncio
async def test_citations_capped_and_snippets_truncated():
    long_snippet = "acme.com " + "x" * 900

    def respond(query):
        return [
            RawHit(title=f"t{i}", snippet=long_snippet, url=f"https://site{i}.example/{query}")
            for i in range(4)
        ]

    web = StubSurface(Surface.WEB_SEARCH, respond)
    with patch.object(pipeline_module, "build_surfaces", return_value=[web]):
        result = await _pipeline().run(SITE)

    assert len(result.citations) == 3
    assert all(len(c.snippet_text) <= 500 for c in result.citations)
    assert result.search_summary.google_results == 20
    assert result.search_summary.high_authority_citations == 20
    assert result.new_citations_found == 3


@pytest.mark.asyncio
async def test_citation_limit_is_configurable():
    def respond(query):
        return [RawHit(title="t", snippet="Acme rocks", url=f"https://a.example/{query}")]

    web = StubSurface(Surface.WEB_SEARCH, respond)
    with patch.object(pipeline_module, "build_surfaces", return_value=[web]):
        result = await _pipeline(citation_limit=1).run(SITE)

    assert len(result.citations) == 1


@pytest.mark.asyncio
async def test_irrelevant_hits_count_in_summary_but_fall_back_to_synthetic():
    def respond(query):
        return [RawHit(title="noise", snippet="completely unrelated", url="https://noise.example")]

    forum = StubSurface(Surface.FORUM_SEARCH, respond)
    with patch.object(pipeline_module, "build_surfaces", return_value=[forum]):
        result = await _pipeline().run(SITE)

    assert result.search_summary.reddit_results == 5
    assert result.platforms_checked == ["Reddit API"]
    assert len(result.citations) == 2
    assert result.search_summary.high_authority_citations == 0


@pytest.mark.asyncio
async def test_surfaces_queried_in_order_for_each_template():
    order: list[str] = []

    def recorder(name):
        def respond(query):
            order.append(name)
            return []
        return respond

    surfaces = [
        StubSurface(Surface.WEB_SEARCH, recorder("web")),
        StubSurface(Surface.NEWS_SEARCH, recorder("news")),
        StubSurface(Surface.FORUM_SEARCH, recorder("forum")),
    ]
    with patch.object(pipeline_module, "build_surfaces", return_value=surfaces):
        await _pipeline().run(SITE)

    assert order == ["web", "news", "forum"] * 5
    assert surfaces[0].calls == build_queries("acme.com", "Acme")


@pytest.mark.asyncio
async def test_failing_surface_does_not_stop_others():
    def broken(query):
        return TransportError("boom", provider="google")

    def good(query):
        return [RawHit(title="t", snippet="acme.com mention", url="https://good.example")]

    surfaces = [StubSurface(Surface.WEB_SEARCH, broken), StubSurface(Surface.NEWS_SEARCH, good)]
    with patch.object(pipeline_module, "build_surfaces", return_value=surfaces):
        result = await _pipeline().run(SITE)

    assert result.search_summary.google_results == 0
    assert result.search_summary.news_results == 5
    assert result.platforms_checked == ["News API"]
    assert [c.url for c in result.citations] == ["https://good.example"]


@pytest.mark.asyncio
async def test_delay_inserted_between_query_iterations():
    web = StubSurface(Surface.WEB_SEARCH, _no_hits)
    with (
        patch.object(pipeline_module, "build_surfaces", return_value=[web]),
        patch("seogenix.pipeline.citations.asyncio.sleep", new=AsyncMock()) as sleep,
    ):
        await _pipeline(query_delay_ms=100).run(SITE)

    assert sleep.await_count == 4
    sleep.assert_awaited_with(0.1)


@pytest.mark.asyncio
async def test_persistence_failure_still_returns_citations():
    result = await _pipeline(store=FakeStore(fail_insert=True)).run(SITE)

    assert len(result.citations) == 2
    assert result.new_citations_found == 0


@pytest.mark.asyncio
async def test_store_lookup_failure_is_best_effort():
    result = await _pipeline(store=FakeStore(fail_query=True)).run(SITE)

    assert result.new_citations_found == 0
    assert len(result.citations) == 2


@pytest.mark.asyncio
async def test_misconfigured_store_is_best_effort():
    with (
        patch("seogenix.services.supabase.settings") as mock_settings,
        patch("seogenix.services.supabase._client", None),
        patch("seogenix.services.supabase.create_client", side_effect=SupabaseException("Invalid URL")),
    ):
        mock_settings.supabase_url = "not-a-url"
        mock_settings.supabase_service_role_key = "service-key"
        result = await _pipeline(store=supabase).run(SITE)

    assert result.new_citations_found == 0
    assert len(result.citations) == 2


@pytest.mark.asyncio
async def test_already_stored_urls_are_not_reinserted():
    first_store = FakeStore()
    first = await _pipeline(store=first_store).run(SITE)
    existing = [Citation.from_row(row) for row in first_store.inserted]

    second_store = FakeStore(existing=existing)
    second = await _pipeline(store=second_store).run(SITE)

    assert first.new_citations_found == 2
    assert second.new_citations_found == 0
    assert second_store.inserted == []
    assert len(second.citations) == 2


@pytest.mark.asyncio
async def test_inserted_ids_are_attached_to_citations():
    result = await _pipeline().run(SITE)

    assert [c.id for c in result.citations] == ["cit-0", "cit-1"]


@pytest.mark.asyncio
async def test_persist_disabled_writes_nothing():
    pipeline = CitationPipeline(
        SurfaceCredentials(),
        text_generator=TextGenerator(None, model="test-model"),
        query_delay_ms=0,
        persist=False,
    )

    result = await pipeline.run(SITE)

    assert result.new_citations_found == 0
    assert len(result.citations) == 2


@pytest.mark.asyncio
async def test_quota_exhausted_surface_is_skipped_and_usage_recorded():
    usage_store = MagicMock()
    usage_store.get_api_usage = AsyncMock(side_effect=lambda provider: 100 if provider == "google" else 0)
    usage_store.increment_api_usage = AsyncMock()
    tracker = ApiUsageTracker(usage_store)

    def respond(query):
        return [RawHit(title="t", snippet="acme.com", url=f"https://x.example/{query}")]

    web = StubSurface(Surface.WEB_SEARCH, respond)
    news = StubSurface(Surface.NEWS_SEARCH, respond)
    with patch.object(pipeline_module, "build_surfaces", return_value=[web, news]):
        result = await _pipeline(usage_tracker=tracker).run(SITE)

    assert web.calls == []
    assert len(news.calls) == 5
    assert result.search_summary.google_results == 0
    usage_store.increment_api_usage.assert_awaited_once_with("news", 5)


@pytest.mark.asyncio
async def test_missing_generation_key_falls_back_without_error():
    generator = _generator(error=ConfigAbsentError("OPENROUTER_API_KEY is not configured"))

    result = await _pipeline(generator=generator).run(SITE)

    assert result.assistant_response.generated_by == GeneratedBy.FALLBACK_TEMPLATE


@pytest.mark.asyncio
async def test_prompt_mentions_site_counts_and_platforms():
    generator = _generator(text="ok")

    def respond(query):
        return [RawHit(title="t", snippet="Acme is cited", url="https://cite.example")]

    web = StubSurface(Surface.WEB_SEARCH, respond)
    with patch.object(pipeline_module, "build_surfaces", return_value=[web]):
        await _pipeline(generator=generator).run(SITE)

    prompt = generator.generate.await_args.args[0]
    assert "https://acme.com" in prompt
    assert "acme.com" in prompt
    assert "Google Custom Search" in prompt
    assert "found 1 mention(s)" in prompt
    assert "recorded 1 citation(s)" in prompt
