"""Feed 订阅源模型."""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel


class Feed(SQLModel, table=True):
    """RSS 订阅源."""

    __tablename__ = "feeds"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'active', 'error', 'deleted')",
            name="ck_feeds_status",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    url: str = Field(unique=True, description="Feed URL")
    title: str = Field(default="", description="Feed 标题")
    category: str = Field(default="", description="分类")
    status: str = Field(default="pending", description="状态: pending|active|error|deleted")
    error_count: int = Field(default=0, description="连续抓取失败次数")
    last_error: str = Field(default="", description="最近一次抓取错误")
    last_fetched: datetime | None = Field(default=None)
    last_modified: str = Field(default="", description="Last-Modified 响应头")
    etag: str = Field(default="", description="ETag 响应头")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
