"""
In-memory store implementations for testing ViewTracker without a database

Failures can be injected per operation to exercise the storage error paths.
"""

from dataclasses import dataclass

from portal.exceptions import StorageUnavailableError


@dataclass
class FakeArticle:
    slug: str
    title: str
    category: str = "Berita"
    author: str = "Redaksi"
    view_count: int = 0


class InMemoryArticleStore:
    """Article store backed by a dict, with optional injected failures"""

    def __init__(self, *articles: FakeArticle):
        self.articles = {article.slug: article for article in articles}
        self.fail_on: set[str] = set()
        self.increment_calls = 0

    async def find_by_slug(self, slug: str):
        if "find_by_slug" in self.fail_on:
            raise StorageUnavailableError(operation="find_article")
        article = self.articles.get(slug)
        if article is None:
            return None
        return FakeArticle(**vars(article))

    async def increment_view_count(self, slug: str):
        self.increment_calls += 1
        if "increment_view_count" in self.fail_on:
            raise StorageUnavailableError(operation="increment_view_count")
        article = self.articles.get(slug)
        if article is None:
            return None
        article.view_count += 1
        return article.view_count


class InMemoryAnalyticsStore:
    """Analytics store keeping events in a list"""

    def __init__(self):
        self.events = []
        self.fail_on: set[str] = set()

    async def insert_event(self, event):
        if "insert_event" in self.fail_on:
            raise StorageUnavailableError(operation="insert_event")
        event.id = len(self.events) + 1
        self.events.append(event)
        return event.id

    async def count_events_in_window(self, slug, client_address, start, end):
        if "count_events_in_window" in self.fail_on:
            raise StorageUnavailableError(operation="count_events_in_window")
        return sum(
            1
            for event in self.events
            if event.article_slug == slug and event.client_address == client_address and start <= event.viewed_at <= end
        )

    async def find_most_recent_event(self, slug, session_id):
        matches = [event for event in self.events if event.article_slug == slug and event.session_id == session_id]
        if not matches:
            return None
        return max(matches, key=lambda event: (event.viewed_at, event.id))

    async def set_engagement(self, event_id, field, value):
        for event in self.events:
            if event.id == event_id:
                setattr(event, field, value)
