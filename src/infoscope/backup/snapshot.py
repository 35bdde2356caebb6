"""快照结构与编解码.

支持两种格式:

- ``1.0``: 旧格式，只有 feeds 列表 (url, title, lastFetched, category, tags)
- ``2.0``: 当前格式，包含完整的数据图

version 字段缺失或为空时按 ``1.0`` 处理。解码时先读取 version，
再选择对应的模型校验整个文档。
"""

import json
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from infoscope.backup.errors import SnapshotDecodeError

CURRENT_VERSION = "2.0"
LEGACY_VERSION = "1.0"


def _utcnow() -> datetime:
    return datetime.now(UTC)


# 数据库整数列为 64 位有符号整数
Int64 = Annotated[int, Field(ge=-(2**63), le=2**63 - 1)]


class SnapshotModel(BaseModel):
    """快照记录基类（JSON 使用 camelCase 字段名）."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        # JSON null 视为字段默认值
        if value is None and info.field_name is not None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class FeedRecord(SnapshotModel):
    id: Int64 | None = None
    url: str = ""
    title: str = ""
    category: str = ""
    status: str = ""
    error_count: Int64 = 0
    last_error: str = ""
    last_fetched: datetime | None = None
    last_modified: str = ""
    etag: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class LegacyFeedRecord(SnapshotModel):
    """1.0 格式中的订阅源."""

    id: Int64 | None = None
    url: str = ""
    title: str = ""
    last_fetched: datetime | None = None
    category: str = ""
    tags: list[str] = Field(default_factory=list)


class FilterRecord(SnapshotModel):
    id: Int64 | None = None
    name: str = ""
    pattern: str = ""
    pattern_type: str = "keyword"
    target_type: str = "title"
    case_sensitive: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class FilterGroupRuleRecord(SnapshotModel):
    id: Int64 | None = None
    filter_id: Int64 = 0
    operator: str = "AND"
    position: Int64 = 0


class FilterGroupRecord(SnapshotModel):
    id: Int64 | None = None
    name: str = ""
    action: str = "keep"
    is_active: bool = True
    priority: Int64 = 0
    apply_to_category: str = ""
    rules: list[FilterGroupRuleRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TagRecord(SnapshotModel):
    id: Int64 | None = None
    name: str = ""
    created_at: datetime = Field(default_factory=_utcnow)


class FeedTagRecord(SnapshotModel):
    id: Int64 | None = None
    feed_id: Int64 = 0
    tag_id: Int64 = 0
    created_at: datetime = Field(default_factory=_utcnow)


def _decode_feed_list(value: Any) -> Any:
    """feeds 可以是数组，也可以是包含 JSON 数组的字符串."""
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        if not value.strip():
            return []
        return json.loads(value)
    return value


class Snapshot(SnapshotModel):
    """2.0 格式快照（完整数据图）."""

    version: Literal["2.0"] = CURRENT_VERSION
    export_date: datetime = Field(default_factory=_utcnow)
    settings: dict[str, str] = Field(default_factory=dict)
    feeds: list[FeedRecord] = Field(default_factory=list)
    filters: list[FilterRecord] = Field(default_factory=list)
    filter_groups: list[FilterGroupRecord] = Field(default_factory=list)
    tags: list[TagRecord] = Field(default_factory=list)
    feed_tags: list[FeedTagRecord] = Field(default_factory=list)
    click_stats: dict[str, Int64] = Field(default_factory=dict)

    @field_validator("feeds", mode="before")
    @classmethod
    def _parse_feeds(cls, value: Any) -> Any:
        return _decode_feed_list(value)


class LegacySnapshot(SnapshotModel):
    """1.0 格式快照，只包含订阅源列表."""

    version: Literal["1.0"] = LEGACY_VERSION
    feeds: list[LegacyFeedRecord] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _default_version(cls, value: Any) -> Any:
        return value or LEGACY_VERSION

    @field_validator("feeds", mode="before")
    @classmethod
    def _parse_feeds(cls, value: Any) -> Any:
        return _decode_feed_list(value)


AnySnapshot = Snapshot | LegacySnapshot


def decode_snapshot(data: bytes | str) -> AnySnapshot:
    """解析快照文档.

    Raises:
        SnapshotDecodeError: JSON 无效、版本不受支持或结构不符
    """
    try:
        document = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SnapshotDecodeError(f"无效的备份文件: {e}") from e

    if not isinstance(document, dict):
        raise SnapshotDecodeError("无效的备份文件: 顶层必须是 JSON 对象")

    version = document.get("version") or LEGACY_VERSION
    if version == LEGACY_VERSION:
        model: type[AnySnapshot] = LegacySnapshot
    elif version == CURRENT_VERSION:
        model = Snapshot
    else:
        raise SnapshotDecodeError(f"不支持的备份版本: {version}")

    try:
        return model.model_validate({**document, "version": version})
    except (ValidationError, json.JSONDecodeError) as e:
        raise SnapshotDecodeError(f"备份内容无效 (版本 {version}): {e}") from e


def encode_snapshot(snapshot: Snapshot, indent: int | None = None) -> str:
    """序列化快照为 JSON（始终为 2.0 格式）."""
    return snapshot.model_dump_json(by_alias=True, indent=indent)
