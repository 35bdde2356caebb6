"""数据库初始化和会话管理."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from infoscope.models.settings import DEFAULT_SETTINGS, SettingItem

logger = logging.getLogger(__name__)

# 全局引擎和会话工厂
_engine: Any = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

# 旧版本数据库中 feeds 表可能缺失的列
_FEED_COLUMNS: list[tuple[str, str]] = [
    ("category", "VARCHAR NOT NULL DEFAULT ''"),
    ("status", "VARCHAR NOT NULL DEFAULT 'pending'"),
    ("error_count", "INTEGER NOT NULL DEFAULT 0"),
    ("last_error", "VARCHAR NOT NULL DEFAULT ''"),
    ("last_fetched", "DATETIME"),
    ("last_modified", "VARCHAR NOT NULL DEFAULT ''"),
    ("etag", "VARCHAR NOT NULL DEFAULT ''"),
]


async def init_db(database_url: str) -> None:
    """初始化数据库，创建所有表."""
    global _engine, _session_factory

    _engine = create_async_engine(database_url, echo=False)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    await _add_feed_columns()
    await insert_default_settings(_session_factory)


async def close_db() -> None:
    """释放数据库连接."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def _add_feed_columns() -> None:
    """为旧数据库补齐 feeds 表的列（如果不存在）."""
    if _session_factory is None:
        return

    async with _session_factory() as session:
        result = await session.execute(text("PRAGMA table_info(feeds)"))
        columns = [row[1] for row in result.fetchall()]

        for name, definition in _FEED_COLUMNS:
            if name not in columns:
                logger.info(f"添加 feeds.{name} 列")
                await session.execute(
                    text(f"ALTER TABLE feeds ADD COLUMN {name} {definition}")
                )

        await session.commit()


async def insert_default_settings(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """写入缺失的默认配置，不覆盖已有值."""
    now = datetime.now(UTC)
    async with session_factory() as session:
        for key, value in DEFAULT_SETTINGS.items():
            stmt = (
                insert(SettingItem)
                .values(key=key, value=value, updated_at=now)
                .on_conflict_do_nothing(index_elements=["key"])
            )
            await session.execute(stmt)
        await session.commit()


def async_session_maker() -> async_sessionmaker[AsyncSession]:
    """获取会话工厂（用于后台任务）."""
    if _session_factory is None:
        msg = "数据库未初始化，请先调用 init_db()"
        raise RuntimeError(msg)
    return _session_factory
