from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Surface(str, Enum):
    WEB_SEARCH = "WebSearch"
    NEWS_SEARCH = "NewsSearch"
    FORUM_SEARCH = "ForumSearch"

    @property
    def source_label(self) -> str:
        return SOURCE_LABELS[self]

    @property
    def provider(self) -> str:
        return PROVIDER_KEYS[self]

    @property
    def platform_name(self) -> str:
        return PLATFORM_NAMES[self]


PLATFORM_NAMES: dict[Surface, str] = {
    Surface.WEB_SEARCH: "Google Custom Search",
    Surface.NEWS_SEARCH: "News API",
    Surface.FORUM_SEARCH: "Reddit API",
}

SOURCE_LABELS: dict[Surface, str] = {
    Surface.WEB_SEARCH: "Google Search Result",
    Surface.NEWS_SEARCH: "News Article",
    Surface.FORUM_SEARCH: "Reddit Post",
}

# Keys used for quota rows in api_usage and in search_summary.
PROVIDER_KEYS: dict[Surface, str] = {
    Surface.WEB_SEARCH: "google",
    Surface.NEWS_SEARCH: "news",
    Surface.FORUM_SEARCH: "reddit",
}


class RelevanceLevel(str, Enum):
    HIGH = "high"
    LOW = "low"


class GeneratedBy(str, Enum):
    TEXT_GENERATION_SERVICE = "TextGenerationService"
    FALLBACK_TEMPLATE = "FallbackTemplate"


@dataclass
class Site:
    id: str
    url: str
    owner_id: str | None = None
    display_name: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Site":
        return cls(
            id=str(row["id"]),
            url=row["url"],
            owner_id=row.get("user_id"),
            display_name=row.get("name"),
            created_at=row.get("created_at"),
        )


@dataclass
class SearchHit:
    source_surface: Surface
    title: str
    snippet: str
    url: str
    relevance: RelevanceLevel = RelevanceLevel.LOW


@dataclass
class Citation:
    site_id: str
    source_type: str
    snippet_text: str
    url: str
    detected_at: datetime
    id: str | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "site_id": self.site_id,
            "source_type": self.source_type,
            "snippet_text": self.snippet_text,
            "url": self.url,
            "detected_at": self.detected_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Citation":
        detected_at = row.get("detected_at")
        if isinstance(detected_at, str):
            detected_at = datetime.fromisoformat(detected_at.replace("Z", "+00:00"))
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            site_id=str(row["site_id"]),
            source_type=row.get("source_type", ""),
            snippet_text=row.get("snippet_text", ""),
            url=row.get("url", ""),
            detected_at=detected_at,
        )


@dataclass
class AssistantResponse:
    text: str
    generated_by: GeneratedBy


@dataclass
class SearchSummary:
    google_results: int = 0
    news_results: int = 0
    reddit_results: int = 0
    high_authority_citations: int = 0

    def add(self, surface: Surface, count: int) -> None:
        attr = f"{surface.provider}_results"
        setattr(self, attr, getattr(self, attr) + count)


@dataclass
class CitationRunResult:
    citations: list[Citation]
    new_citations_found: int
    assistant_response: AssistantResponse
    search_summary: SearchSummary
    platforms_checked: list[str]
    search_completed_at: datetime
    queries_issued: dict[str, int] = field(default_factory=dict)
