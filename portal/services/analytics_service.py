"""
Analytics Service

Read-side reporting over the recorded view events for the admin dashboard.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from portal.exceptions import ArticleNotFoundError
from portal.models.analytics_event import AnalyticsEvent
from portal.models.article import Article
from portal.schemas.analytics import AnalyticsEventResponse
from portal.services.stores import storage_operation
from portal.utils.client import mask_address

logger = logging.getLogger(__name__)

unique_views_expr = func.sum(case((AnalyticsEvent.is_unique_view.is_(True), 1), else_=0))

DASHBOARD_PERIODS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90}
DEFAULT_DASHBOARD_PERIOD = "7d"


class AnalyticsService:
    """Service for aggregating reader analytics"""

    @staticmethod
    async def get_recent_views(
        db: AsyncSession,
        article_slug: str | None = None,
        limit: int = 10,
    ) -> dict[str, Any]:
        """
        Get the most recent view events with totals for the same filter.

        Args:
            db: Database session
            article_slug: Restrict to one article when given
            limit: Maximum number of events returned

        Returns:
            Dict with recent views and view totals
        """
        conditions = []
        if article_slug:
            conditions.append(AnalyticsEvent.article_slug == article_slug)

        async with storage_operation(db, "get_recent_views"):
            recent_result = await db.execute(
                select(AnalyticsEvent)
                .where(*conditions)
                .order_by(AnalyticsEvent.viewed_at.desc(), AnalyticsEvent.id.desc())
                .limit(limit)
            )
            recent_views = recent_result.scalars().all()

            totals_result = await db.execute(
                select(
                    func.count(AnalyticsEvent.id).label("total_views"),
                    unique_views_expr.label("unique_views"),
                ).where(*conditions)
            )
            totals = totals_result.one()

        return {
            "recentViews": [
                AnalyticsEventResponse.model_validate(view).model_dump(by_alias=True, mode="json")
                for view in recent_views
            ],
            "totalViews": totals.total_views or 0,
            "uniqueViews": totals.unique_views or 0,
        }

    @staticmethod
    async def get_article_view_stats(
        db: AsyncSession,
        article_slug: str,
        days: int = 30,
    ) -> dict[str, Any]:
        """Get view statistics for a single article over the last N days."""
        start_date = datetime.utcnow() - timedelta(days=days)
        period = and_(
            AnalyticsEvent.article_slug == article_slug,
            AnalyticsEvent.viewed_at >= start_date,
        )

        async with storage_operation(db, "get_article_view_stats"):
            article_result = await db.execute(select(Article).where(Article.slug == article_slug))
            article = article_result.scalars().first()
            if article is None:
                raise ArticleNotFoundError(article_slug)

            agg_result = await db.execute(
                select(
                    func.count(AnalyticsEvent.id).label("total_views"),
                    unique_views_expr.label("unique_views"),
                    func.avg(AnalyticsEvent.view_duration).label("avg_view_duration"),
                    func.avg(AnalyticsEvent.scroll_depth).label("avg_scroll_depth"),
                ).where(period)
            )
            row = agg_result.one()

            daily_result = await db.execute(
                select(
                    func.date(AnalyticsEvent.viewed_at).label("date"),
                    func.count(AnalyticsEvent.id).label("views"),
                    unique_views_expr.label("unique_views"),
                )
                .where(period)
                .group_by(func.date(AnalyticsEvent.viewed_at))
                .order_by(func.date(AnalyticsEvent.viewed_at))
            )
            daily_views = [{"date": str(r[0]), "views": r[1], "uniqueViews": r[2] or 0} for r in daily_result.all()]

        return {
            "articleSlug": article.slug,
            "articleTitle": article.title,
            "viewCount": article.view_count,
            "periodDays": days,
            "totalViews": row.total_views or 0,
            "uniqueViews": row.unique_views or 0,
            "avgViewDuration": round(row.avg_view_duration, 2) if row.avg_view_duration is not None else None,
            "avgScrollDepth": round(row.avg_scroll_depth, 2) if row.avg_scroll_depth is not None else None,
            "dailyViews": daily_views,
        }

    @staticmethod
    async def get_popular_articles(
        db: AsyncSession,
        days: int = 30,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Get articles ranked by unique views in the period."""
        start_date = datetime.utcnow() - timedelta(days=days)

        async with storage_operation(db, "get_popular_articles"):
            result = await db.execute(
                select(
                    AnalyticsEvent.article_slug,
                    func.max(AnalyticsEvent.article_title).label("title"),
                    func.count(AnalyticsEvent.id).label("total_views"),
                    unique_views_expr.label("unique_views"),
                )
                .where(AnalyticsEvent.viewed_at >= start_date)
                .group_by(AnalyticsEvent.article_slug)
                .order_by(unique_views_expr.desc(), func.count(AnalyticsEvent.id).desc())
                .limit(limit)
            )
            rows = result.all()

        return [
            {
                "articleSlug": row[0],
                "articleTitle": row[1],
                "totalViews": row[2],
                "uniqueViews": row[3] or 0,
            }
            for row in rows
        ]

    @staticmethod
    async def get_dashboard(db: AsyncSession, period: str = DEFAULT_DASHBOARD_PERIOD) -> dict[str, Any]:
        """
        Get the site-wide dashboard for a period.

        Args:
            db: Database session
            period: One of DASHBOARD_PERIODS; anything else falls back to 7d

        Returns:
            Dict with overall stats, top articles, daily trends, top referrers,
            per-address visitors and a device breakdown
        """
        if period not in DASHBOARD_PERIODS:
            period = DEFAULT_DASHBOARD_PERIOD
        end_date = datetime.utcnow()
        start_date = end_date - timedelta(days=DASHBOARD_PERIODS[period])
        in_period = and_(AnalyticsEvent.viewed_at >= start_date, AnalyticsEvent.viewed_at <= end_date)
        total_views_expr = func.count(AnalyticsEvent.id)

        async with storage_operation(db, "get_dashboard"):
            overall = (
                await db.execute(
                    select(
                        total_views_expr.label("total_views"),
                        unique_views_expr.label("unique_views"),
                        func.count(func.distinct(AnalyticsEvent.session_id)).label("total_sessions"),
                    ).where(in_period)
                )
            ).one()

            top_articles = await db.execute(
                select(
                    AnalyticsEvent.article_slug,
                    func.max(AnalyticsEvent.article_title),
                    total_views_expr,
                    unique_views_expr,
                    func.max(AnalyticsEvent.viewed_at),
                )
                .where(in_period)
                .group_by(AnalyticsEvent.article_slug)
                .order_by(total_views_expr.desc())
                .limit(10)
            )

            daily_trends = await db.execute(
                select(
                    func.date(AnalyticsEvent.viewed_at),
                    total_views_expr,
                    unique_views_expr,
                    func.count(func.distinct(AnalyticsEvent.client_address)),
                )
                .where(in_period)
                .group_by(func.date(AnalyticsEvent.viewed_at))
                .order_by(func.date(AnalyticsEvent.viewed_at))
            )

            top_referrers = await db.execute(
                select(AnalyticsEvent.referrer, total_views_expr, unique_views_expr)
                .where(in_period, AnalyticsEvent.referrer != "")
                .group_by(AnalyticsEvent.referrer)
                .order_by(total_views_expr.desc())
                .limit(10)
            )

            visitors = await db.execute(
                select(
                    AnalyticsEvent.client_address,
                    total_views_expr,
                    unique_views_expr,
                    func.min(AnalyticsEvent.viewed_at),
                    func.max(AnalyticsEvent.viewed_at),
                    func.count(func.distinct(AnalyticsEvent.article_slug)),
                )
                .where(in_period)
                .group_by(AnalyticsEvent.client_address)
                .order_by(total_views_expr.desc())
                .limit(20)
            )

            devices = await db.execute(
                select(AnalyticsEvent.device_type, total_views_expr, unique_views_expr)
                .where(in_period)
                .group_by(AnalyticsEvent.device_type)
                .order_by(total_views_expr.desc())
            )

        total_views = overall.total_views or 0
        unique_views = overall.unique_views or 0

        return {
            "period": period,
            "dateRange": {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
            "overallStats": {
                "totalViews": total_views,
                "uniqueViews": unique_views,
                "totalSessions": overall.total_sessions or 0,
                # Share of views that were repeats
                "bounceRate": round((total_views - unique_views) / total_views * 100) if total_views else 0,
            },
            "topArticles": [
                {
                    "articleSlug": row[0],
                    "articleTitle": row[1],
                    "totalViews": row[2],
                    "uniqueViews": row[3] or 0,
                    "lastViewed": _isoformat(row[4]),
                }
                for row in top_articles.all()
            ],
            "dailyTrends": [
                {"date": str(row[0]), "totalViews": row[1], "uniqueViews": row[2] or 0, "uniqueVisitors": row[3]}
                for row in daily_trends.all()
            ],
            "topReferrers": [
                {"referrer": row[0], "totalViews": row[1], "uniqueViews": row[2] or 0} for row in top_referrers.all()
            ],
            "uniqueVisitors": [
                {
                    "ipAddress": mask_address(row[0]),
                    "totalViews": row[1],
                    "uniqueViews": row[2] or 0,
                    "firstVisit": _isoformat(row[3]),
                    "lastVisit": _isoformat(row[4]),
                    "articlesCount": row[5],
                }
                for row in visitors.all()
            ],
            "deviceBreakdown": [
                {"deviceType": row[0], "totalViews": row[1], "uniqueViews": row[2] or 0} for row in devices.all()
            ],
        }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


analytics_service = AnalyticsService()
