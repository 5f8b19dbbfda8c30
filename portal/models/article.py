from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint

from portal.database import Base


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    slug = Column(String(255), index=True, nullable=False)
    title = Column(String, nullable=False)
    category = Column(String(100), default="Uncategorized", nullable=False)
    author = Column(String(100), default="Unknown", nullable=False)
    view_count = Column(Integer, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("slug", name="unique_article_slug"),
        CheckConstraint("view_count >= 0", name="ck_articles_view_count_non_negative"),
    )
