from .analytics_event import AnalyticsEvent
from .article import Article

__all__ = [
    "AnalyticsEvent",
    "Article",
]
