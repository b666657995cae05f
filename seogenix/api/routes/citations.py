from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from seogenix.api.deps import get_pipeline, get_store
from seogenix.errors import ConfigAbsentError, InvalidSiteURLError, PersistenceError
from seogenix.models.citation import Site
from seogenix.models.schemas import (
    CitationListResponse,
    CitationResponse,
    TrackCitationsRequest,
    TrackCitationsResponse,
)
from seogenix.pipeline.citations import CitationPipeline
from seogenix.services import logger as log_service
from seogenix.tools import web_utils

router = APIRouter(prefix="/api", tags=["citations"])


async def _load_site(store: Any, site_id: str) -> Site:
    try:
        row = await store.get_site(site_id)
    except ConfigAbsentError as e:
        raise HTTPException(status_code=503, detail="Site store is not configured") from e
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail="Could not load site") from e
    if not row:
        raise HTTPException(status_code=404, detail="Site not found")
    return Site.from_row(row)


@router.post("/citations/track", response_model=TrackCitationsResponse)
async def track_citations(
    request: TrackCitationsRequest,
    pipeline: CitationPipeline = Depends(get_pipeline),
    store: Any = Depends(get_store),
):
    """Search for citations of a site and return the aggregate result."""
    if not request.user_id:
        raise HTTPException(status_code=400, detail="Missing required field: user_id")
    if not web_utils.is_valid_url(request.url):
        raise HTTPException(status_code=400, detail="Invalid URL format")

    site = await _load_site(store, request.site_id)
    # The request URL wins; the stored one may be stale.
    site.url = request.url

    try:
        await store.increment_user_usage(request.user_id, "citations")
    except (PersistenceError, ConfigAbsentError) as e:
        logger.warning(f"Failed to track citation usage for user {request.user_id}: {e}")

    try:
        result = await pipeline.run(site)
    except InvalidSiteURLError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    log_service.log_event(
        event_type="citations_tracked",
        message="Citation tracking request served",
        site_id=site.id,
        user_id=request.user_id,
        new_citations_found=result.new_citations_found,
    )
    return TrackCitationsResponse.from_result(result)


@router.get("/sites/{site_id}/citations", response_model=CitationListResponse)
async def list_citations(site_id: str, store: Any = Depends(get_store)):
    """All stored citations for a site, newest first."""
    try:
        citations = await store.query_citations(site_id)
    except ConfigAbsentError as e:
        raise HTTPException(status_code=503, detail="Citation store is not configured") from e
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail="Could not load citations") from e
    return CitationListResponse(
        site_id=site_id,
        citations=[CitationResponse.from_citation(c) for c in citations],
    )
