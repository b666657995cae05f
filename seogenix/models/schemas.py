from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from seogenix.models.citation import Citation, CitationRunResult


# --- Requests ---


class TrackCitationsRequest(BaseModel):
    site_id: str
    url: str
    user_id: str = ""


# --- Responses ---


class CitationResponse(BaseModel):
    id: str | None = None
    site_id: str
    source_type: str
    snippet_text: str
    url: str
    detected_at: datetime

    @classmethod
    def from_citation(cls, citation: Citation) -> "CitationResponse":
        return cls(
            id=citation.id,
            site_id=citation.site_id,
            source_type=citation.source_type,
            snippet_text=citation.snippet_text,
            url=citation.url,
            detected_at=citation.detected_at,
        )


class SearchSummaryResponse(BaseModel):
    google_results: int
    news_results: int
    reddit_results: int
    high_authority_citations: int


class TrackCitationsResponse(BaseModel):
    citations: list[CitationResponse]
    new_citations_found: int
    assistant_response: str
    generated_by: str
    search_summary: SearchSummaryResponse
    platforms_checked: list[str]
    search_completed_at: datetime

    @classmethod
    def from_result(cls, result: CitationRunResult) -> "TrackCitationsResponse":
        summary = result.search_summary
        return cls(
            citations=[CitationResponse.from_citation(c) for c in result.citations],
            new_citations_found=result.new_citations_found,
            assistant_response=result.assistant_response.text,
            generated_by=result.assistant_response.generated_by.value,
            search_summary=SearchSummaryResponse(
                google_results=summary.google_results,
                news_results=summary.news_results,
                reddit_results=summary.reddit_results,
                high_authority_citations=summary.high_authority_citations,
            ),
            platforms_checked=result.platforms_checked,
            search_completed_at=result.search_completed_at,
        )


class CitationListResponse(BaseModel):
    site_id: str
    citations: list[CitationResponse]
