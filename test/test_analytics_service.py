"""
Tests for Analytics Service

Tests the read-side reporting over recorded view events.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from utils.mock_utils import create_test_article, create_test_event

from portal.exceptions import ArticleNotFoundError
from portal.models.article import Article
from portal.services.analytics_service import analytics_service


class TestGetRecentViews:
    """Tests for get_recent_views"""

    @pytest.mark.asyncio
    async def test_newest_first_with_totals(self, test_db: AsyncSession):
        """Recent views are ordered newest first and totals cover the whole filter"""
        now = datetime.utcnow()
        await create_test_event(test_db, "a1", viewed_at=now - timedelta(hours=2))
        newest = await create_test_event(test_db, "a1", viewed_at=now, is_unique_view=False)
        await create_test_event(test_db, "a1", viewed_at=now - timedelta(hours=1))

        data = await analytics_service.get_recent_views(test_db, limit=2)

        assert [view["id"] for view in data["recentViews"]][0] == newest.id
        assert len(data["recentViews"]) == 2
        assert data["totalViews"] == 3
        assert data["uniqueViews"] == 2

    @pytest.mark.asyncio
    async def test_filter_by_article(self, test_db: AsyncSession):
        """Only the requested article's events are returned"""
        await create_test_event(test_db, "a1")
        await create_test_event(test_db, "b2")

        data = await analytics_service.get_recent_views(test_db, article_slug="b2")

        assert data["totalViews"] == 1
        assert data["recentViews"][0]["articleSlug"] == "b2"

    @pytest.mark.asyncio
    async def test_empty(self, test_db: AsyncSession):
        """No events gives zero totals"""
        data = await analytics_service.get_recent_views(test_db)

        assert data == {"recentViews": [], "totalViews": 0, "uniqueViews": 0}


class TestGetArticleViewStats:
    """Tests for get_article_view_stats"""

    @pytest.mark.asyncio
    async def test_stats_for_period(self, test_db: AsyncSession, test_article: Article):
        """Events outside the period are left out of the aggregates"""
        now = datetime.utcnow()
        await create_test_event(test_db, "a1", viewed_at=now - timedelta(days=1), view_duration=10)
        await create_test_event(test_db, "a1", viewed_at=now, is_unique_view=False, view_duration=25)
        await create_test_event(test_db, "a1", viewed_at=now - timedelta(days=60), view_duration=500)

        stats = await analytics_service.get_article_view_stats(test_db, "a1", days=30)

        assert stats["articleTitle"] == "Banjir Rob Landa Pesisir Pontianak"
        assert stats["viewCount"] == 5
        assert stats["periodDays"] == 30
        assert stats["totalViews"] == 2
        assert stats["uniqueViews"] == 1
        assert stats["avgViewDuration"] == 17.5
        assert stats["avgScrollDepth"] is None
        assert len(stats["dailyViews"]) == 2
        assert sum(day["views"] for day in stats["dailyViews"]) == 2

    @pytest.mark.asyncio
    async def test_unknown_article(self, test_db: AsyncSession):
        """Stats for an unknown slug raise ArticleNotFoundError"""
        with pytest.raises(ArticleNotFoundError):
            await analytics_service.get_article_view_stats(test_db, "hilang")


class TestGetPopularArticles:
    """Tests for get_popular_articles"""

    @pytest.mark.asyncio
    async def test_ranked_by_unique_views(self, test_db: AsyncSession):
        """Unique views rank first, total views break ties"""
        await create_test_article(test_db, title="Harga Sawit Naik", slug="sawit")
        for address in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
            await create_test_event(test_db, "sawit", client_address=address)
        await create_test_event(test_db, "banjir")
        await create_test_event(test_db, "banjir", is_unique_view=False)
        await create_test_event(test_db, "pemilu")

        popular = await analytics_service.get_popular_articles(test_db, days=30, limit=10)

        assert [row["articleSlug"] for row in popular] == ["sawit", "banjir", "pemilu"]
        assert popular[0]["uniqueViews"] == 3
        assert popular[1]["totalViews"] == 2

    @pytest.mark.asyncio
    async def test_period_and_limit(self, test_db: AsyncSession):
        """Old events are ignored and the limit is honoured"""
        await create_test_event(test_db, "lama", viewed_at=datetime.utcnow() - timedelta(days=90))
        await create_test_event(test_db, "a1")
        await create_test_event(test_db, "b2")

        popular = await analytics_service.get_popular_articles(test_db, days=30, limit=1)

        assert len(popular) == 1
        assert popular[0]["articleSlug"] in {"a1", "b2"}


class TestGetDashboard:
    """Tests for get_dashboard"""

    @pytest.fixture
    async def seeded_events(self, test_db: AsyncSession):
        now = datetime.utcnow() - timedelta(minutes=1)
        google = "https://www.google.com/"
        await create_test_event(
            test_db, "a1", "1.1.1.1", "s1", viewed_at=now, referrer=google, device_type="mobile"
        )
        await create_test_event(
            test_db, "a1", "1.1.1.1", "s1", viewed_at=now, is_unique_view=False, referrer=google, device_type="mobile"
        )
        await create_test_event(test_db, "a1", "2.2.2.2", "s2", viewed_at=now)
        await create_test_event(
            test_db, "b2", "1.1.1.1", "s3", viewed_at=now, referrer="https://facebook.com/", device_type="tablet"
        )
        await create_test_event(test_db, "c3", "3.3.3.3", "s4", viewed_at=now - timedelta(days=10))

    @pytest.mark.asyncio
    async def test_overall_stats(self, test_db: AsyncSession, seeded_events):
        """Totals, distinct sessions and the repeat share cover the period only"""
        dashboard = await analytics_service.get_dashboard(test_db, period="7d")

        assert dashboard["period"] == "7d"
        assert dashboard["overallStats"] == {
            "totalViews": 4,
            "uniqueViews": 3,
            "totalSessions": 3,
            "bounceRate": 25,
        }
        assert sum(day["totalViews"] for day in dashboard["dailyTrends"]) == 4

    @pytest.mark.asyncio
    async def test_rankings(self, test_db: AsyncSession, seeded_events):
        """Articles, referrers and visitors are ranked by total views"""
        dashboard = await analytics_service.get_dashboard(test_db, period="7d")

        assert [row["articleSlug"] for row in dashboard["topArticles"]] == ["a1", "b2"]
        assert dashboard["topArticles"][0]["uniqueViews"] == 2
        assert dashboard["topArticles"][0]["lastViewed"] is not None

        assert [(row["referrer"], row["totalViews"]) for row in dashboard["topReferrers"]] == [
            ("https://www.google.com/", 2),
            ("https://facebook.com/", 1),
        ]

        top_visitor = dashboard["uniqueVisitors"][0]
        assert top_visitor["ipAddress"] == "1.1.***"
        assert top_visitor["totalViews"] == 3
        assert top_visitor["articlesCount"] == 2
        assert all("1.1.1.1" != row["ipAddress"] for row in dashboard["uniqueVisitors"])

    @pytest.mark.asyncio
    async def test_device_breakdown(self, test_db: AsyncSession, seeded_events):
        """Views are grouped by the detected device type"""
        dashboard = await analytics_service.get_dashboard(test_db, period="7d")

        devices = {row["deviceType"]: (row["totalViews"], row["uniqueViews"]) for row in dashboard["deviceBreakdown"]}
        assert devices == {"mobile": (2, 1), "desktop": (1, 1), "tablet": (1, 1)}
        assert dashboard["deviceBreakdown"][0]["deviceType"] == "mobile"

    @pytest.mark.asyncio
    async def test_period_selection(self, test_db: AsyncSession, seeded_events):
        """Longer periods reach older events and unknown periods fall back to 7d"""
        month = await analytics_service.get_dashboard(test_db, period="30d")
        fallback = await analytics_service.get_dashboard(test_db, period="forever")

        assert month["overallStats"]["totalViews"] == 5
        assert fallback["period"] == "7d"
        assert fallback["overallStats"]["totalViews"] == 4

    @pytest.mark.asyncio
    async def test_empty_period(self, test_db: AsyncSession):
        """No events gives zeroed stats and empty lists"""
        dashboard = await analytics_service.get_dashboard(test_db)

        assert dashboard["overallStats"]["bounceRate"] == 0
        assert dashboard["topArticles"] == []
        assert dashboard["deviceBreakdown"] == []
