"""备份服务 - 导出、导入与备份文件管理的统一入口."""

import logging
from datetime import UTC, datetime

from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from infoscope.backup.errors import ImportAbortedError
from infoscope.backup.exporter import SnapshotExporter
from infoscope.backup.importer import ImportResults, SnapshotImporter, TrackingCodeValidator
from infoscope.backup.scheduler import (
    SCHEDULE_SETTING_KEYS,
    BackupScheduleConfig,
    format_last_run,
)
from infoscope.backup.snapshot import AnySnapshot, Snapshot
from infoscope.backup.store import BackupFileInfo, BackupStore
from infoscope.core.refresh import FeedRefreshDispatcher
from infoscope.models.settings import SettingItem
from infoscope.security.tracking import validate_tracking_code

logger = logging.getLogger(__name__)


class BackupService:
    """备份服务."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: BackupStore,
        tracking_validator: TrackingCodeValidator = validate_tracking_code,
        refresh_dispatcher: FeedRefreshDispatcher | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.store = store
        self.tracking_validator = tracking_validator
        self.refresh_dispatcher = refresh_dispatcher

    async def export_snapshot(self) -> Snapshot:
        """导出当前数据为快照."""
        async with self.session_factory() as session:
            return await SnapshotExporter(session).export()

    async def import_snapshot(self, snapshot: AnySnapshot) -> ImportResults:
        """在单个事务中导入快照.

        单行错误记录在结果中；其他数据库错误（含提交失败）回滚全部写入。

        Raises:
            ImportAbortedError: 导入被整体中止
        """
        try:
            async with self.session_factory() as session, session.begin():
                importer = SnapshotImporter(session, self.tracking_validator)
                results = await importer.run(snapshot)
        except SQLAlchemyError as e:
            logger.exception("导入备份失败，事务已回滚")
            msg = f"导入失败: {e}"
            raise ImportAbortedError(msg) from e

        if self.refresh_dispatcher is not None:
            self.refresh_dispatcher.request_refresh(f"backup import {results.version}")
        return results

    async def write_backup(self) -> str:
        """导出快照并写入备份目录，返回文件名."""
        snapshot = await self.export_snapshot()
        return self.store.write(snapshot)

    def list_backups(self) -> list[BackupFileInfo]:
        return self.store.list_files()

    def read_backup(self, name: str) -> AnySnapshot:
        return self.store.read(name)

    def delete_backup(self, name: str) -> None:
        self.store.delete(name)

    async def restore_backup(self, name: str) -> ImportResults:
        """从备份目录恢复指定文件."""
        snapshot = self.read_backup(name)
        logger.info(f"从备份文件恢复: {name}")
        return await self.import_snapshot(snapshot)

    async def schedule_config(self) -> BackupScheduleConfig:
        """读取自动备份配置."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SettingItem).where(SettingItem.key.in_(SCHEDULE_SETTING_KEYS))
            )
            values = {item.key: item.value for item in result.scalars().all()}
        return BackupScheduleConfig.from_settings(values)

    async def mark_last_run(self, when: datetime | None = None) -> None:
        """记录最近一次自动备份时间."""
        value = format_last_run(when or datetime.now(UTC))
        stmt = insert(SettingItem).values(
            key="backup_last_run", value=value, updated_at=datetime.now(UTC)
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
