"""create articles and analytics events tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "articles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("author", sa.String(100), nullable=False),
        sa.Column("view_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug", name="unique_article_slug"),
        sa.CheckConstraint("view_count >= 0", name="ck_articles_view_count_non_negative"),
    )
    op.create_index(op.f("ix_articles_id"), "articles", ["id"])
    op.create_index(op.f("ix_articles_slug"), "articles", ["slug"])

    op.create_table(
        "analytics_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("article_slug", sa.String(255), nullable=False),
        sa.Column("article_title", sa.Text(), nullable=False),
        sa.Column("article_category", sa.String(100), nullable=True),
        sa.Column("article_author", sa.String(100), nullable=True),
        sa.Column("client_address", sa.String(45), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=False),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("referrer", sa.Text(), nullable=False),
        sa.Column("device_type", sa.String(16), nullable=False),
        sa.Column("viewed_at", sa.DateTime(), nullable=False),
        sa.Column("client_timestamp", sa.DateTime(), nullable=True),
        sa.Column("is_unique_view", sa.Boolean(), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("pathname", sa.Text(), nullable=True),
        sa.Column("language", sa.String(35), nullable=True),
        sa.Column("platform", sa.String(100), nullable=True),
        sa.Column("screen_resolution", sa.String(32), nullable=True),
        sa.Column("viewport_size", sa.String(32), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("extra_metadata", sa.JSON(), nullable=True),
        sa.Column("view_duration", sa.Float(), nullable=True),
        sa.Column("scroll_depth", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_analytics_events_id"), "analytics_events", ["id"])
    op.create_index(op.f("ix_analytics_events_article_slug"), "analytics_events", ["article_slug"])
    op.create_index(
        "idx_analytics_events_dedup",
        "analytics_events",
        ["article_slug", "client_address", "viewed_at"],
    )
    op.create_index(
        "idx_analytics_events_session",
        "analytics_events",
        ["article_slug", "session_id", "viewed_at"],
    )
    op.create_index("idx_analytics_events_slug_viewed", "analytics_events", ["article_slug", "viewed_at"])


def downgrade() -> None:
    op.drop_table("analytics_events")
    op.drop_table("articles")
