"""快照导入 - 按依赖顺序写回数据库.

导入顺序固定: 设置 → 标签 → 过滤器 → 订阅源 → 过滤器组(含规则) → 订阅源标签 → 点击统计。

快照中的 id 只在快照内部有效，导入时按自然键去重并建立
``旧 id → 新 id`` 映射，用于改写外键引用。映射只在单次导入内有效。

单行失败（约束冲突、非法值）记录到 ``ImportResults.errors`` 后继续；
其他数据库错误向上抛出，由调用方回滚整个事务。
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import delete, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infoscope.backup.snapshot import (
    AnySnapshot,
    FeedRecord,
    FilterGroupRecord,
    LegacyFeedRecord,
    LegacySnapshot,
    Snapshot,
)
from infoscope.models.click_stat import ClickStat
from infoscope.models.feed import Feed
from infoscope.models.filter import EntryFilter, FilterGroup, FilterGroupRule
from infoscope.models.settings import SettingItem
from infoscope.models.tag import FeedTag, Tag

logger = logging.getLogger(__name__)

# 单行级别的错误：记录后跳过该行
ROW_ERRORS = (IntegrityError, DataError, ValueError)

# 允许通过备份导入的设置项
ALLOWED_SETTING_KEYS = frozenset(
    {
        "site_title",
        "site_url",
        "max_posts",
        "update_interval",
        "header_link_text",
        "header_link_url",
        "footer_link_text",
        "footer_link_url",
        "footer_image_height",
        "footer_image_url",
        "tracking_code",
        "favicon_url",
        "timezone",
        "meta_description",
        "meta_image_url",
        "theme",
        "public_theme",
        "admin_theme",
        "show_blog_name",
        "show_body_text",
        "body_text_length",
        # 自动备份
        "backup_enabled",
        "backup_interval_hours",
        "backup_retention_days",
        "backup_last_run",
    }
)

TrackingCodeValidator = Callable[[str], str]


@dataclass
class ImportResults:
    """导入结果统计."""

    version: str
    settings: int = 0
    feeds: int = 0
    filters: int = 0
    filter_groups: int = 0
    tags: int = 0
    feed_tags: int = 0
    click_stats: int = 0
    errors: list[str] = field(default_factory=list)

    def stats(self) -> dict[str, int]:
        """各实体的成功数量（camelCase 键）."""
        return {
            "settings": self.settings,
            "feeds": self.feeds,
            "filters": self.filters,
            "filterGroups": self.filter_groups,
            "tags": self.tags,
            "feedTags": self.feed_tags,
            "clickStats": self.click_stats,
        }


@dataclass
class IdRemap:
    """快照 id → 数据库 id 的映射表."""

    feeds: dict[int, int] = field(default_factory=dict)
    tags: dict[int, int] = field(default_factory=dict)
    filters: dict[int, int] = field(default_factory=dict)


def normalize_feed_status(status: str) -> str:
    """导入的订阅源视为重新启用：空状态和 pending 统一为 active."""
    if status in ("", "pending"):
        return "active"
    return status


def _db_time(value: datetime | None) -> datetime | None:
    """转换为带时区的 UTC 时间，无时区的值按 UTC 解释."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _describe(error: Exception) -> str:
    return str(getattr(error, "orig", None) or error)


class SnapshotImporter:
    """快照导入器.

    只负责写入，不提交也不回滚；事务由调用方管理。
    """

    def __init__(
        self,
        session: AsyncSession,
        validate_tracking_code: TrackingCodeValidator,
    ) -> None:
        self.session = session
        self.validate_tracking_code = validate_tracking_code

    async def run(self, snapshot: AnySnapshot) -> ImportResults:
        """执行导入，返回各实体统计与单行错误."""
        results = ImportResults(version=snapshot.version)
        logger.info(f"开始导入备份，版本 {snapshot.version}")

        if isinstance(snapshot, LegacySnapshot):
            await self._import_legacy_feeds(snapshot.feeds, results)
        else:
            await self._import_full(snapshot, results)

        logger.info(
            f"导入完成: settings={results.settings}, feeds={results.feeds}, "
            f"filters={results.filters}, groups={results.filter_groups}, "
            f"tags={results.tags}, feed_tags={results.feed_tags}, "
            f"click_stats={results.click_stats}"
        )
        if results.errors:
            logger.warning(f"导入过程中有 {len(results.errors)} 个错误")
        return results

    async def _import_full(self, snapshot: Snapshot, results: ImportResults) -> None:
        remap = IdRemap()
        await self._import_settings(snapshot.settings, results)
        await self._import_tags(snapshot, remap, results)
        await self._import_filters(snapshot, remap, results)
        await self._import_feeds(snapshot.feeds, remap, results)
        for group in snapshot.filter_groups:
            await self._import_filter_group(group, remap, results)
        await self._import_feed_tags(snapshot, remap, results)
        await self._import_click_stats(snapshot.click_stats, results)

    def _row_failed(self, results: ImportResults, label: str, error: Exception) -> None:
        message = f"{label}: {_describe(error)}"
        logger.warning(f"导入失败 {message}")
        results.errors.append(message)

    async def _import_settings(
        self, settings: dict[str, str], results: ImportResults
    ) -> None:
        now = datetime.now(UTC)
        for key, raw_value in settings.items():
            if key not in ALLOWED_SETTING_KEYS:
                logger.info(f"跳过未知设置项: {key}")
                continue

            value = raw_value
            if key == "tracking_code":
                try:
                    value = self.validate_tracking_code(raw_value)
                except ValueError as e:
                    logger.warning(f"备份中的统计代码无效，已跳过: {e}")
                    results.errors.append(f"Setting {key}: {e}")
                    continue

            stmt = insert(SettingItem).values(key=key, value=value, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=["key"],
                set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
            )
            try:
                await self.session.execute(stmt)
            except ROW_ERRORS as e:
                self._row_failed(results, f"Setting {key}", e)
                continue
            results.settings += 1

    async def _import_tags(
        self, snapshot: Snapshot, remap: IdRemap, results: ImportResults
    ) -> None:
        for tag in snapshot.tags:
            try:
                tag_id = await self.session.scalar(
                    select(Tag.id).where(Tag.name.collate("nocase") == tag.name)
                )
                if tag_id is None:
                    tag_id = await self.session.scalar(
                        insert(Tag)
                        .values(name=tag.name, created_at=_db_time(tag.created_at))
                        .returning(Tag.id)
                    )
            except ROW_ERRORS as e:
                self._row_failed(results, f"Tag {tag.name}", e)
                continue

            results.tags += 1
            if tag.id is not None:
                remap.tags[tag.id] = tag_id

    async def _import_filters(
        self, snapshot: Snapshot, remap: IdRemap, results: ImportResults
    ) -> None:
        for record in snapshot.filters:
            try:
                filter_id = await self.session.scalar(
                    select(EntryFilter.id).where(
                        EntryFilter.pattern == record.pattern,
                        EntryFilter.pattern_type == record.pattern_type,
                        EntryFilter.target_type == record.target_type,
                        EntryFilter.case_sensitive == record.case_sensitive,
                    )
                )
                if filter_id is None:
                    filter_id = await self.session.scalar(
                        insert(EntryFilter)
                        .values(
                            name=record.name,
                            pattern=record.pattern,
                            pattern_type=record.pattern_type,
                            target_type=record.target_type,
                            case_sensitive=record.case_sensitive,
                            created_at=_db_time(record.created_at),
                            updated_at=_db_time(record.updated_at),
                        )
                        .returning(EntryFilter.id)
                    )
                elif record.name:
                    # 已存在的过滤器只更新名称
                    await self.session.execute(
                        update(EntryFilter)
                        .where(EntryFilter.id == filter_id)
                        .values(name=record.name, updated_at=datetime.now(UTC))
                    )
            except ROW_ERRORS as e:
                self._row_failed(results, f"Filter {record.name or record.pattern}", e)
                continue

            results.filters += 1
            if record.id is not None:
                remap.filters[record.id] = filter_id

    async def _import_feeds(
        self, feeds: list[FeedRecord], remap: IdRemap, results: ImportResults
    ) -> None:
        for record in feeds:
            if not record.url:
                continue

            stmt = insert(Feed).values(
                url=record.url,
                title=record.title,
                category=record.category,
                status=normalize_feed_status(record.status),
                error_count=record.error_count,
                last_error=record.last_error,
                last_fetched=_db_time(record.last_fetched),
                last_modified=record.last_modified,
                etag=record.etag,
                created_at=_db_time(record.created_at),
                updated_at=_db_time(record.updated_at),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["url"],
                set_={
                    name: stmt.excluded[name]
                    for name in (
                        "title",
                        "category",
                        "status",
                        "error_count",
                        "last_error",
                        "last_fetched",
                        "last_modified",
                        "etag",
                        "updated_at",
                    )
                },
            )
            try:
                await self.session.execute(stmt)
                # ON CONFLICT 不一定返回已有行的 id，按 url 重新查询
                feed_id = await self.session.scalar(
                    select(Feed.id).where(Feed.url == record.url)
                )
            except ROW_ERRORS as e:
                self._row_failed(results, f"Feed {record.url}", e)
                continue

            results.feeds += 1
            if record.id is not None and feed_id is not None:
                remap.feeds[record.id] = feed_id

    async def _import_legacy_feeds(
        self, feeds: list[LegacyFeedRecord], results: ImportResults
    ) -> None:
        # 1.0 中的 tags 字段不写入标签表
        now = datetime.now(UTC)
        for record in feeds:
            if not record.url:
                continue

            stmt = insert(Feed).values(
                url=record.url,
                title=record.title,
                status="active",
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["url"],
                set_={"title": stmt.excluded.title, "status": "active", "updated_at": now},
            )
            try:
                await self.session.execute(stmt)
            except ROW_ERRORS as e:
                self._row_failed(results, f"Feed {record.url}", e)
                continue
            results.feeds += 1

    async def _import_filter_group(
        self, group: FilterGroupRecord, remap: IdRemap, results: ImportResults
    ) -> None:
        values = {
            "action": group.action,
            "is_active": group.is_active,
            "priority": group.priority,
            "apply_to_category": group.apply_to_category,
        }
        try:
            group_id = await self.session.scalar(
                select(FilterGroup.id).where(FilterGroup.name == group.name)
            )
            if group_id is None:
                group_id = await self.session.scalar(
                    insert(FilterGroup)
                    .values(
                        name=group.name,
                        created_at=_db_time(group.created_at),
                        updated_at=_db_time(group.updated_at),
                        **values,
                    )
                    .returning(FilterGroup.id)
                )
            else:
                await self.session.execute(
                    update(FilterGroup)
                    .where(FilterGroup.id == group_id)
                    .values(updated_at=datetime.now(UTC), **values)
                )
                # 规则整体替换，不做合并
                await self.session.execute(
                    delete(FilterGroupRule).where(FilterGroupRule.group_id == group_id)
                )
        except ROW_ERRORS as e:
            self._row_failed(results, f"Group {group.name}", e)
            return

        # position 按数组顺序重新编号，不信任快照中的值
        position = 0
        for rule in group.rules:
            filter_id = remap.filters.get(rule.filter_id)
            if filter_id is None:
                logger.info(f"过滤器组 {group.name} 的规则引用了不存在的过滤器 {rule.filter_id}，已丢弃")
                continue
            try:
                await self.session.execute(
                    insert(FilterGroupRule).values(
                        group_id=group_id,
                        filter_id=filter_id,
                        operator=rule.operator or "AND",
                        position=position,
                    )
                )
            except ROW_ERRORS as e:
                self._row_failed(results, f"Rule {position} of group {group.name}", e)
                continue
            position += 1

        results.filter_groups += 1

    async def _import_feed_tags(
        self, snapshot: Snapshot, remap: IdRemap, results: ImportResults
    ) -> None:
        for link in snapshot.feed_tags:
            feed_id = remap.feeds.get(link.feed_id)
            tag_id = remap.tags.get(link.tag_id)
            if feed_id is None or tag_id is None:
                continue

            try:
                await self.session.execute(
                    insert(FeedTag)
                    .values(
                        feed_id=feed_id,
                        tag_id=tag_id,
                        created_at=_db_time(link.created_at),
                    )
                    .on_conflict_do_nothing(index_elements=["feed_id", "tag_id"])
                )
            except ROW_ERRORS as e:
                self._row_failed(results, f"Feed tag {link.feed_id}/{link.tag_id}", e)
                continue
            results.feed_tags += 1

    async def _import_click_stats(
        self, click_stats: dict[str, int], results: ImportResults
    ) -> None:
        now = datetime.now(UTC)
        for key, value in click_stats.items():
            stmt = insert(ClickStat).values(key=key, value=value, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=["key"],
                set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
            )
            try:
                await self.session.execute(stmt)
            except ROW_ERRORS as e:
                self._row_failed(results, f"Click stat {key}", e)
                continue
            results.click_stats += 1
