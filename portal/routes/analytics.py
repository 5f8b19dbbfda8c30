"""
Analytics Routes

View tracking endpoints called by article pages, and read-only reporting
endpoints for the admin dashboard.
"""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.database import get_db
from portal.exceptions import InvalidRequestError
from portal.schemas.analytics import (
    EngagementAction,
    EngagementRequest,
    EngagementResponse,
    ViewTrackingData,
    ViewTrackingRequest,
    ViewTrackingResponse,
)
from portal.services.analytics_service import analytics_service
from portal.services.stores import SqlAnalyticsStore, SqlArticleStore
from portal.services.view_tracker import DedupWindow, EngagementKind, ViewRequest, ViewTracker
from portal.utils.client import get_client_ip, get_user_agent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@lru_cache
def get_dedup_window() -> DedupWindow:
    """Dedup policy from settings, built once per process."""
    return DedupWindow(settings.analytics_dedup_window, settings.analytics_timezone)


def get_view_tracker(
    db: AsyncSession = Depends(get_db),
    window: DedupWindow = Depends(get_dedup_window),
) -> ViewTracker:
    return ViewTracker(
        article_store=SqlArticleStore(db),
        analytics_store=SqlAnalyticsStore(db),
        window=window,
    )


@router.post("/view", response_model=ViewTrackingResponse)
async def track_view(
    payload: ViewTrackingRequest,
    request: Request,
    tracker: ViewTracker = Depends(get_view_tracker),
):
    """
    Record a page view of an article.

    Client address and user agent are read from the request, not the body.
    Repeat views and views of unknown articles are still a 200.
    """
    client_info = payload.client_info
    view = ViewRequest(
        article_slug=payload.article_slug,
        client_address=get_client_ip(request, settings.trust_forwarded_headers),
        session_id=payload.session_id,
        user_agent=get_user_agent(request),
        referrer=payload.referrer,
        client_timestamp=payload.timestamp,
    )
    if client_info is not None:
        view.url = client_info.url
        view.pathname = client_info.pathname
        view.language = client_info.language
        view.platform = client_info.platform
        view.screen_resolution = client_info.screen_resolution
        view.viewport_size = client_info.viewport_size
        view.timezone = client_info.timezone
        view.extra_metadata = client_info.extras
        if client_info.search:
            view.extra_metadata["search"] = client_info.search

    result = await tracker.record_view(view)

    return ViewTrackingResponse(
        data=ViewTrackingData(
            tracking_id=result.tracking_id,
            article_slug=result.article_slug,
            session_id=result.session_id,
            new_view_count=result.new_view_count,
            is_unique_view=result.is_unique_view,
            article_found=result.article_found,
        )
    )


@router.post("/engagement", response_model=EngagementResponse)
async def track_engagement(
    payload: EngagementRequest,
    tracker: ViewTracker = Depends(get_view_tracker),
):
    """
    Attach reading duration or scroll depth to the session's latest view.

    A session with no recorded view is a no-op, reported as updated=false.
    """
    if payload.action is EngagementAction.TRACK_DURATION:
        kind, value, field = EngagementKind.DURATION, payload.view_duration, "viewDuration"
    else:
        kind, value, field = EngagementKind.SCROLL_DEPTH, payload.scroll_depth, "scrollDepth"

    if value is None:
        raise InvalidRequestError(f"{field} is required for action '{payload.action.value}'", field=field)

    updated = await tracker.record_engagement(payload.article_slug, payload.session_id, kind, value)
    return EngagementResponse(updated=updated)


@router.get("/views")
async def get_recent_views(
    articleSlug: str | None = None,
    limit: int = 10,
    db: AsyncSession = Depends(get_db),
):
    """
    Get the most recent view events, newest first.

    **Parameters**:
    - articleSlug: Restrict to one article
    - limit: Maximum results (default: 10, max: 100)
    """
    limit = max(1, min(limit, 100))

    data = await analytics_service.get_recent_views(db, article_slug=articleSlug, limit=limit)
    return {"success": True, "data": data}


@router.get("/articles/popular")
async def get_popular_articles(
    days: int = 30,
    limit: int = 10,
    db: AsyncSession = Depends(get_db),
):
    """
    Get articles ranked by unique views.

    **Parameters**:
    - days: Analysis period in days (default: 30, max: 365)
    - limit: Maximum results (default: 10, max: 50)
    """
    days = max(1, min(days, 365))
    limit = max(1, min(limit, 50))

    data = await analytics_service.get_popular_articles(db, days=days, limit=limit)
    return {"success": True, "data": data}


@router.get("/articles/{slug}/stats")
async def get_article_view_stats(
    slug: str,
    days: int = 30,
    db: AsyncSession = Depends(get_db),
):
    """
    Get view statistics for one article.

    **Parameters**:
    - slug: Article slug
    - days: Analysis period in days (default: 30, max: 365)
    """
    days = max(1, min(days, 365))

    data = await analytics_service.get_article_view_stats(db, slug, days=days)
    return {"success": True, "data": data}


@router.get("/dashboard")
async def get_dashboard(
    period: str = "7d",
    db: AsyncSession = Depends(get_db),
):
    """
    Get the site-wide reader analytics dashboard.

    **Parameters**:
    - period: One of 1d, 7d, 30d, 90d (default: 7d)

    **Returns**: Overall totals, top articles, daily trends, top referrers,
    visitors by masked address and a device breakdown
    """
    data = await analytics_service.get_dashboard(db, period=period)
    return {"success": True, "data": data}
