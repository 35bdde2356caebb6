"""备份模块.

提供快照导出/导入、备份文件管理和自动备份调度。
"""

from infoscope.backup.errors import (
    BackupError,
    BackupNotFoundError,
    ImportAbortedError,
    InvalidBackupNameError,
    SnapshotDecodeError,
)
from infoscope.backup.exporter import SnapshotExporter
from infoscope.backup.importer import ImportResults, SnapshotImporter
from infoscope.backup.scheduler import BackupScheduleConfig, BackupScheduler, SchedulerState
from infoscope.backup.service import BackupService
from infoscope.backup.snapshot import (
    CURRENT_VERSION,
    LEGACY_VERSION,
    LegacySnapshot,
    Snapshot,
    decode_snapshot,
    encode_snapshot,
)
from infoscope.backup.store import BackupFileInfo, BackupStore

__all__ = [
    "CURRENT_VERSION",
    "LEGACY_VERSION",
    "BackupError",
    "BackupFileInfo",
    "BackupNotFoundError",
    "BackupScheduleConfig",
    "BackupScheduler",
    "BackupService",
    "BackupStore",
    "ImportAbortedError",
    "ImportResults",
    "InvalidBackupNameError",
    "LegacySnapshot",
    "SchedulerState",
    "Snapshot",
    "SnapshotDecodeError",
    "SnapshotExporter",
    "SnapshotImporter",
    "decode_snapshot",
    "encode_snapshot",
]
