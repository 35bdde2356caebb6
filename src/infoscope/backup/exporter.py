"""快照导出 - 读取数据库生成完整快照.

每类实体单独读取，某一类读取失败只记录日志并留空，不影响整体导出。
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infoscope.backup.snapshot import (
    FeedRecord,
    FeedTagRecord,
    FilterGroupRecord,
    FilterGroupRuleRecord,
    FilterRecord,
    Snapshot,
    TagRecord,
)
from infoscope.models.click_stat import ClickStat
from infoscope.models.feed import Feed
from infoscope.models.filter import EntryFilter, FilterGroup, FilterGroupRule
from infoscope.models.settings import SettingItem
from infoscope.models.tag import FeedTag, Tag

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotExporter:
    """快照导出器."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def export(self) -> Snapshot:
        """导出当前数据库内容为 2.0 快照."""
        snapshot = Snapshot(export_date=datetime.now(UTC))

        snapshot.settings = await self._read("settings", self._export_settings, {})
        snapshot.feeds = await self._read("feeds", self._export_feeds, [])
        snapshot.filters = await self._read("filters", self._export_filters, [])
        snapshot.filter_groups = await self._read(
            "filter groups", self._export_filter_groups, []
        )
        snapshot.tags = await self._read("tags", self._export_tags, [])
        snapshot.feed_tags = await self._read("feed tags", self._export_feed_tags, [])
        snapshot.click_stats = await self._read(
            "click stats", self._export_click_stats, {}
        )

        logger.info(
            f"导出完成: feeds={len(snapshot.feeds)}, filters={len(snapshot.filters)}, "
            f"groups={len(snapshot.filter_groups)}, tags={len(snapshot.tags)}"
        )
        return snapshot

    async def _read(
        self, label: str, reader: Callable[[], Awaitable[T]], empty: T
    ) -> T:
        try:
            return await reader()
        except SQLAlchemyError:
            logger.exception(f"导出 {label} 失败，该部分留空")
            return empty

    async def _export_settings(self) -> dict[str, str]:
        result = await self.session.execute(
            select(SettingItem).order_by(SettingItem.key)
        )
        return {item.key: item.value or "" for item in result.scalars().all()}

    async def _export_feeds(self) -> list[FeedRecord]:
        result = await self.session.execute(select(Feed).order_by(Feed.id))
        return [
            FeedRecord(
                id=feed.id,
                url=feed.url,
                title=feed.title or "",
                category=feed.category or "",
                status=feed.status or "",
                error_count=feed.error_count or 0,
                last_error=feed.last_error or "",
                last_fetched=feed.last_fetched,
                last_modified=feed.last_modified or "",
                etag=feed.etag or "",
                created_at=feed.created_at,
                updated_at=feed.updated_at,
            )
            for feed in result.scalars().all()
        ]

    async def _export_filters(self) -> list[FilterRecord]:
        result = await self.session.execute(
            select(EntryFilter).order_by(EntryFilter.id)
        )
        return [
            FilterRecord(
                id=f.id,
                name=f.name,
                pattern=f.pattern,
                pattern_type=f.pattern_type,
                target_type=f.target_type or "title",
                case_sensitive=bool(f.case_sensitive),
                created_at=f.created_at,
                updated_at=f.updated_at,
            )
            for f in result.scalars().all()
        ]

    async def _export_filter_groups(self) -> list[FilterGroupRecord]:
        result = await self.session.execute(
            select(FilterGroup).order_by(FilterGroup.priority, FilterGroup.id)
        )
        groups = []
        for group in result.scalars().all():
            groups.append(
                FilterGroupRecord(
                    id=group.id,
                    name=group.name,
                    action=group.action,
                    is_active=bool(group.is_active),
                    priority=group.priority or 0,
                    apply_to_category=group.apply_to_category or "",
                    rules=await self._export_rules(group),
                    created_at=group.created_at,
                    updated_at=group.updated_at,
                )
            )
        return groups

    async def _export_rules(self, group: FilterGroup) -> list[FilterGroupRuleRecord]:
        # 单个组的规则读取失败时该组规则留空
        try:
            result = await self.session.execute(
                select(FilterGroupRule)
                .where(FilterGroupRule.group_id == group.id)
                .order_by(FilterGroupRule.position)
            )
        except SQLAlchemyError:
            logger.exception(f"读取过滤器组 {group.id} 的规则失败")
            return []

        return [
            FilterGroupRuleRecord(
                id=rule.id,
                filter_id=rule.filter_id,
                operator=rule.operator or "AND",
                position=rule.position or 0,
            )
            for rule in result.scalars().all()
        ]

    async def _export_tags(self) -> list[TagRecord]:
        result = await self.session.execute(select(Tag).order_by(Tag.id))
        return [
            TagRecord(id=tag.id, name=tag.name, created_at=tag.created_at)
            for tag in result.scalars().all()
        ]

    async def _export_feed_tags(self) -> list[FeedTagRecord]:
        result = await self.session.execute(
            select(FeedTag).order_by(FeedTag.feed_id, FeedTag.tag_id)
        )
        return [
            FeedTagRecord(
                id=ft.id,
                feed_id=ft.feed_id,
                tag_id=ft.tag_id,
                created_at=ft.created_at,
            )
            for ft in result.scalars().all()
        ]

    async def _export_click_stats(self) -> dict[str, int]:
        result = await self.session.execute(select(ClickStat).order_by(ClickStat.key))
        return {stat.key: stat.value for stat in result.scalars().all()}
