"""点击统计模型."""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class ClickStat(SQLModel, table=True):
    """点击计数器，key 为稳定的语义字符串（如 total_clicks）."""

    __tablename__ = "click_stats"  # type: ignore[assignment]

    key: str = Field(primary_key=True)
    value: int = Field(default=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
