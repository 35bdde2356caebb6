"""条目过滤器配置模型.

只存储过滤配置本身，规则如何组合求值不在此处定义。
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel


class EntryFilter(SQLModel, table=True):
    """单条过滤器.

    自然键为 (pattern, pattern_type, target_type, case_sensitive)。
    """

    __tablename__ = "entry_filters"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint("pattern <> ''", name="ck_entry_filters_pattern"),
        UniqueConstraint(
            "pattern",
            "pattern_type",
            "target_type",
            "case_sensitive",
            name="uq_entry_filters_natural_key",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(default="")
    pattern: str
    pattern_type: str = Field(default="keyword", description="keyword|regex")
    target_type: str = Field(default="title", description="匹配目标")
    case_sensitive: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FilterGroup(SQLModel, table=True):
    """过滤器组，按 priority 顺序生效."""

    __tablename__ = "filter_groups"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    action: str = Field(default="keep")
    is_active: bool = Field(default=True)
    priority: int = Field(default=0)
    apply_to_category: str = Field(default="")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FilterGroupRule(SQLModel, table=True):
    """过滤器组中的有序规则."""

    __tablename__ = "filter_group_rules"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint("operator IN ('AND', 'OR')", name="ck_filter_group_rules_operator"),
        UniqueConstraint("group_id", "position", name="uq_filter_group_rules_position"),
    )

    id: int | None = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="filter_groups.id", index=True)
    filter_id: int = Field(foreign_key="entry_filters.id")
    operator: str = Field(default="AND")
    position: int = Field(default=0)
