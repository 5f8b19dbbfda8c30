"""Reader analytics event model: one row per view-tracking call."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, String, Text

from portal.database import Base


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Article snapshot; the slug is not a foreign key so events outlive renames
    article_slug = Column(String(255), nullable=False, index=True)
    article_title = Column(Text, nullable=False)
    article_category = Column(String(100), nullable=True)
    article_author = Column(String(100), nullable=True)

    # Reader information
    client_address = Column(String(45), nullable=False)
    user_agent = Column(Text, default="Unknown", nullable=False)
    session_id = Column(String(128), nullable=False)
    referrer = Column(Text, default="", nullable=False)
    device_type = Column(String(16), default="desktop", nullable=False)

    viewed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    client_timestamp = Column(DateTime, nullable=True)
    is_unique_view = Column(Boolean, default=True, nullable=False)

    # Client metadata
    url = Column(Text, nullable=True)
    pathname = Column(Text, nullable=True)
    language = Column(String(35), nullable=True)
    platform = Column(String(100), nullable=True)
    screen_resolution = Column(String(32), nullable=True)
    viewport_size = Column(String(32), nullable=True)
    timezone = Column(String(64), nullable=True)
    extra_metadata = Column(JSON, nullable=True)

    # Engagement, patched after the view
    view_duration = Column(Float, nullable=True)
    scroll_depth = Column(Float, nullable=True)

    __table_args__ = (
        Index("idx_analytics_events_dedup", "article_slug", "client_address", "viewed_at"),
        Index("idx_analytics_events_session", "article_slug", "session_id", "viewed_at"),
        Index("idx_analytics_events_slug_viewed", "article_slug", "viewed_at"),
    )
