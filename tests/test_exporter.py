"""测试快照导出."""

from unittest.mock import AsyncMock

from conftest import count_rows, fetch_all, seed
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from infoscope.backup.exporter import SnapshotExporter
from infoscope.backup.service import BackupService
from infoscope.models import ClickStat, EntryFilter, Feed, FeedTag, FilterGroup, FilterGroupRule, Tag


async def _seed_graph(session_factory) -> None:
    await seed(
        session_factory,
        Feed(url="http://a.example/feed", title="A", status="active"),
        Feed(url="http://b.example/feed", title="B", status="error", error_count=2),
        Tag(name="tech"),
        EntryFilter(name="ads", pattern="ad"),
        FilterGroup(name="late", priority=5),
        FilterGroup(name="early", priority=1),
        ClickStat(key="total_clicks", value=7),
    )
    await seed(
        session_factory,
        FeedTag(feed_id=2, tag_id=1),
        FeedTag(feed_id=1, tag_id=1),
        FilterGroupRule(group_id=2, filter_id=1, operator="OR", position=1),
        FilterGroupRule(group_id=2, filter_id=1, operator="AND", position=0),
    )


class TestSnapshotExporter:
    """测试 SnapshotExporter."""

    async def test_exports_full_graph_in_stable_order(self, session_factory) -> None:
        """导出全部实体并按稳定顺序排列."""
        await _seed_graph(session_factory)

        async with session_factory() as session:
            snapshot = await SnapshotExporter(session).export()

        assert snapshot.version == "2.0"
        assert [f.url for f in snapshot.feeds] == ["http://a.example/feed", "http://b.example/feed"]
        assert snapshot.feeds[1].error_count == 2
        assert [g.name for g in snapshot.filter_groups] == ["early", "late"]
        assert [(r.operator, r.position) for r in snapshot.filter_groups[0].rules] == [
            ("AND", 0),
            ("OR", 1),
        ]
        assert snapshot.filter_groups[1].rules == []
        assert [(ft.feed_id, ft.tag_id) for ft in snapshot.feed_tags] == [(1, 1), (2, 1)]
        assert snapshot.click_stats == {"total_clicks": 7}
        assert snapshot.settings["site_title"] == "infoscope_"

    async def test_failed_entity_is_left_empty(self, session_factory) -> None:
        """某一类实体读取失败时该部分留空，其余照常导出."""
        await _seed_graph(session_factory)

        async with session_factory() as session:
            exporter = SnapshotExporter(session)
            exporter._export_tags = AsyncMock(
                side_effect=OperationalError("SELECT", {}, Exception("no such table"))
            )
            snapshot = await exporter.export()

        assert snapshot.tags == []
        assert len(snapshot.feeds) == 2

    async def test_export_then_import_into_fresh_database(
        self, service, session_factory, store, tmp_path
    ) -> None:
        """导出的快照可以导入到新数据库."""
        await _seed_graph(session_factory)
        snapshot = await service.export_snapshot()

        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        fresh = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        try:
            results = await BackupService(fresh, store).import_snapshot(snapshot)

            assert results.errors == []
            for model in (Feed, Tag, EntryFilter, FilterGroup, FilterGroupRule, FeedTag, ClickStat):
                assert await count_rows(fresh, model) == await count_rows(session_factory, model)
            feeds = {f.url: f.status for f in await fetch_all(fresh, Feed)}
            assert feeds == {"http://a.example/feed": "active", "http://b.example/feed": "error"}
        finally:
            await engine.dispose()
