"""
View Tracker

Records article page views, decides which of them are unique views, and keeps
each article's view counter in step with the unique views.

A view is unique when no earlier event for the same article and client address
falls in the dedup window around it. Client addresses come from forwarded
headers and are shared behind NAT and carrier proxies, so this is a popularity
heuristic, not reader identity. Two concurrent first views from one address can
both be marked unique.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from portal.exceptions import InvalidRequestError, StorageUnavailableError
from portal.models.analytics_event import AnalyticsEvent
from portal.services.stores import AnalyticsStore, ArticleStore
from portal.utils.client import detect_device_type, generate_session_id, mask_address

logger = logging.getLogger(__name__)

UNKNOWN_ARTICLE_TITLE = "Unknown Article"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize to the naive-UTC form stored in the database."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class DedupMode(str, Enum):
    CALENDAR_DAY = "calendar_day"
    ROLLING_24H = "rolling_24h"


class DedupWindow:
    """Window of time in which repeat views from one address are not unique."""

    def __init__(self, mode: DedupMode | str = DedupMode.CALENDAR_DAY, tz_name: str = "UTC"):
        self.mode = DedupMode(mode)
        self.zone = _zone(tz_name)

    def bounds(self, viewed_at: datetime) -> tuple[datetime, datetime]:
        """
        Inclusive (start, end) bounds, naive UTC, for a naive-UTC view time.

        calendar_day: local midnight to the last microsecond before the next
        local midnight in the reference timezone.
        rolling_24h: the 24 hours leading up to the view.
        """
        if self.mode is DedupMode.ROLLING_24H:
            return viewed_at - timedelta(hours=24), viewed_at

        local = viewed_at.replace(tzinfo=timezone.utc).astimezone(self.zone)
        start = datetime.combine(local.date(), time.min, tzinfo=self.zone)
        next_start = datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=self.zone)
        return to_utc_naive(start), to_utc_naive(next_start) - timedelta(microseconds=1)


class EngagementKind(str, Enum):
    DURATION = "duration"
    SCROLL_DEPTH = "scrollDepth"

    @property
    def column(self) -> str:
        return "view_duration" if self is EngagementKind.DURATION else "scroll_depth"


@dataclass
class ViewRequest:
    article_slug: str
    client_address: str
    session_id: str | None = None
    user_agent: str = "Unknown"
    referrer: str | None = None
    client_timestamp: datetime | None = None
    url: str | None = None
    pathname: str | None = None
    language: str | None = None
    platform: str | None = None
    screen_resolution: str | None = None
    viewport_size: str | None = None
    timezone: str | None = None
    extra_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ViewResult:
    tracking_id: int
    article_slug: str
    session_id: str
    is_unique_view: bool
    new_view_count: int | None
    article_found: bool


class ViewTracker:
    """Records views and engagement against injected article and analytics stores."""

    def __init__(
        self,
        article_store: ArticleStore,
        analytics_store: AnalyticsStore,
        window: DedupWindow | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.article_store = article_store
        self.analytics_store = analytics_store
        self.window = window or DedupWindow()
        self.clock = clock

    async def record_view(self, request: ViewRequest) -> ViewResult:
        slug = (request.article_slug or "").strip()
        if not slug:
            raise InvalidRequestError("Article slug is required", field="articleSlug")

        article = await self.article_store.find_by_slug(slug)
        if article is None:
            logger.info(f"View for unknown article '{slug}' recorded without counting")

        # Server time decides the window; the client clock is only recorded
        viewed_at = to_utc_naive(self.clock())
        client_timestamp = to_utc_naive(request.client_timestamp) if request.client_timestamp else None
        client_address = request.client_address or "unknown"
        start, end = self.window.bounds(viewed_at)

        # Must run before this event is inserted
        prior = await self.analytics_store.count_events_in_window(slug, client_address, start, end)
        is_unique = prior == 0

        session_id = request.session_id or generate_session_id()
        user_agent = request.user_agent or "Unknown"
        event = AnalyticsEvent(
            article_slug=slug,
            article_title=article.title if article is not None else UNKNOWN_ARTICLE_TITLE,
            article_category=article.category if article is not None else None,
            article_author=article.author if article is not None else None,
            client_address=client_address,
            user_agent=user_agent,
            session_id=session_id,
            referrer=request.referrer or "",
            device_type=detect_device_type(user_agent),
            viewed_at=viewed_at,
            client_timestamp=client_timestamp,
            is_unique_view=is_unique,
            url=request.url,
            pathname=request.pathname,
            language=request.language,
            platform=request.platform,
            screen_resolution=request.screen_resolution,
            viewport_size=request.viewport_size,
            timezone=request.timezone,
            extra_metadata=request.extra_metadata or None,
        )
        tracking_id = await self.analytics_store.insert_event(event)

        new_view_count = article.view_count if article is not None else None
        if is_unique and article is not None:
            try:
                incremented = await self.article_store.increment_view_count(slug)
            except StorageUnavailableError:
                # The event stays recorded as unique; the counter simply lags
                logger.warning(f"View counter for '{slug}' not incremented for event {tracking_id}")
            else:
                if incremented is not None:
                    new_view_count = incremented

        logger.debug(
            f"Tracked view {tracking_id} of '{slug}' from {mask_address(client_address)}"
            f" (unique={is_unique}, views={new_view_count})"
        )

        return ViewResult(
            tracking_id=tracking_id,
            article_slug=slug,
            session_id=session_id,
            is_unique_view=is_unique,
            new_view_count=new_view_count,
            article_found=article is not None,
        )

    async def record_engagement(
        self,
        article_slug: str,
        session_id: str,
        kind: EngagementKind | str,
        value: float,
    ) -> bool:
        """
        Attach engagement data to the most recent event of a reading session.

        Returns False when no event matches; the caller treats that as a no-op.
        """
        try:
            kind = EngagementKind(kind)
        except ValueError as e:
            raise InvalidRequestError(f"Unknown engagement kind: {kind}", field="kind") from e
        if not article_slug or not session_id:
            raise InvalidRequestError("Article slug and session id are required")
        if value < 0:
            raise InvalidRequestError(f"{kind.value} must not be negative", field=kind.value)
        if kind is EngagementKind.SCROLL_DEPTH and value > 100:
            raise InvalidRequestError("scrollDepth is a percentage and cannot exceed 100", field=kind.value)

        event = await self.analytics_store.find_most_recent_event(article_slug, session_id)
        if event is None:
            logger.debug(f"No view event for session on '{article_slug}', engagement ignored")
            return False

        await self.analytics_store.set_engagement(event.id, kind.column, value)
        return True
