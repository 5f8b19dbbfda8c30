"""
Storage collaborators for view tracking.

ViewTracker only talks to these two interfaces. The SQLAlchemy
implementations below translate driver errors into StorageUnavailableError
and roll the session back so it stays usable for the next call.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Protocol

from sqlalchemy import and_, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from portal.exceptions import StorageUnavailableError
from portal.models.analytics_event import AnalyticsEvent
from portal.models.article import Article

logger = logging.getLogger(__name__)

ENGAGEMENT_COLUMNS = {"view_duration", "scroll_depth"}


class ArticleStore(Protocol):
    async def find_by_slug(self, slug: str) -> Article | None: ...

    async def increment_view_count(self, slug: str) -> int | None: ...


class AnalyticsStore(Protocol):
    async def insert_event(self, event: AnalyticsEvent) -> int: ...

    async def count_events_in_window(
        self, slug: str, client_address: str, start: datetime, end: datetime
    ) -> int: ...

    async def find_most_recent_event(self, slug: str, session_id: str) -> AnalyticsEvent | None: ...

    async def set_engagement(self, event_id: int, field: str, value: float) -> None: ...


@asynccontextmanager
async def storage_operation(db: AsyncSession, operation: str) -> AsyncIterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Storage operation '{operation}' failed: {e}")
        try:
            await db.rollback()
        except SQLAlchemyError as rollback_error:
            logger.warning(f"Rollback after '{operation}' failed: {rollback_error}")
        raise StorageUnavailableError(operation=operation) from e


class SqlArticleStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_slug(self, slug: str) -> Article | None:
        async with storage_operation(self.db, "find_article"):
            result = await self.db.execute(
                select(Article).where(Article.slug == slug).execution_options(populate_existing=True)
            )
            return result.scalars().first()

    async def increment_view_count(self, slug: str) -> int | None:
        """
        Add one to the article's counter in a single UPDATE.

        The new value comes back through RETURNING, so concurrent unique views
        never overwrite each other. Returns None when the slug does not exist.
        """
        async with storage_operation(self.db, "increment_view_count"):
            result = await self.db.execute(
                update(Article)
                .where(Article.slug == slug)
                .values(view_count=Article.view_count + 1, updated_at=datetime.utcnow())
                .returning(Article.view_count)
                .execution_options(synchronize_session=False)
            )
            new_count = result.scalar_one_or_none()
            await self.db.commit()
            return new_count


class SqlAnalyticsStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert_event(self, event: AnalyticsEvent) -> int:
        async with storage_operation(self.db, "insert_event"):
            self.db.add(event)
            await self.db.commit()
            return event.id

    async def count_events_in_window(self, slug: str, client_address: str, start: datetime, end: datetime) -> int:
        """Count events for slug + client with start <= viewed_at <= end."""
        async with storage_operation(self.db, "count_events_in_window"):
            result = await self.db.execute(
                select(func.count(AnalyticsEvent.id)).where(
                    and_(
                        AnalyticsEvent.article_slug == slug,
                        AnalyticsEvent.client_address == client_address,
                        AnalyticsEvent.viewed_at >= start,
                        AnalyticsEvent.viewed_at <= end,
                    )
                )
            )
            return result.scalar() or 0

    async def find_most_recent_event(self, slug: str, session_id: str) -> AnalyticsEvent | None:
        async with storage_operation(self.db, "find_most_recent_event"):
            result = await self.db.execute(
                select(AnalyticsEvent)
                .where(
                    and_(
                        AnalyticsEvent.article_slug == slug,
                        AnalyticsEvent.session_id == session_id,
                    )
                )
                .order_by(AnalyticsEvent.viewed_at.desc(), AnalyticsEvent.id.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

    async def set_engagement(self, event_id: int, field: str, value: float) -> None:
        if field not in ENGAGEMENT_COLUMNS:
            raise ValueError(f"Unknown engagement field: {field}")

        async with storage_operation(self.db, "set_engagement"):
            await self.db.execute(
                update(AnalyticsEvent)
                .where(AnalyticsEvent.id == event_id)
                .values({field: value})
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
