from __future__ import annotations

from typing import Any

from seogenix.config import settings
from seogenix.pipeline.citations import CitationPipeline
from seogenix.services import supabase
from seogenix.services.api_usage import ApiUsageTracker
from seogenix.tools.search_provider import SurfaceCredentials


def get_store() -> Any:
    """Persistence backend shared by routes and the pipeline."""
    return supabase


def get_pipeline() -> CitationPipeline:
    store = get_store()
    tracker = ApiUsageTracker(store) if settings.quota_enforcement_enabled else None
    return CitationPipeline(
        SurfaceCredentials.from_settings(settings),
        store=store,
        usage_tracker=tracker,
    )
