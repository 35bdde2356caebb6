"""标签模型."""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel


class Tag(SQLModel, table=True):
    """订阅源标签（名称不区分大小写唯一）."""

    __tablename__ = "tags"  # type: ignore[assignment]
    __table_args__ = (CheckConstraint("name <> ''", name="ck_tags_name"),)

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FeedTag(SQLModel, table=True):
    """订阅源与标签的关联."""

    __tablename__ = "feed_tags"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("feed_id", "tag_id", name="uq_feed_tags_pair"),)

    id: int | None = Field(default=None, primary_key=True)
    feed_id: int = Field(foreign_key="feeds.id", index=True)
    tag_id: int = Field(foreign_key="tags.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
