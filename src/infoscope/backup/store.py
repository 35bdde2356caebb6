"""备份文件存储.

每个备份是目录下的一个 JSON 文件，以生成时间命名，不维护索引文件。
"""

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from infoscope.backup.errors import BackupNotFoundError, InvalidBackupNameError
from infoscope.backup.snapshot import AnySnapshot, Snapshot, decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)

BACKUP_NAME_FORMAT = "infoscope_backup_%Y%m%d_%H%M%S.json"


@dataclass
class BackupFileInfo:
    """备份文件信息."""

    name: str
    size: int
    modified: datetime

    def to_dict(self) -> dict[str, str | int]:
        return {
            "name": self.name,
            "size": self.size,
            "modified": self.modified.isoformat(),
        }


class BackupStore:
    """备份目录管理."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def write(self, snapshot: Snapshot, now: datetime | None = None) -> str:
        """写入备份文件，返回文件名.

        同一秒内重复写入时追加序号，不覆盖已有备份。
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        content = encode_snapshot(snapshot, indent=2)
        base = (now or datetime.now()).strftime(BACKUP_NAME_FORMAT)
        name = base
        suffix = 0
        while True:
            try:
                with (self.directory / name).open("x", encoding="utf-8") as f:
                    f.write(content)
                break
            except FileExistsError:
                suffix += 1
                name = f"{base.removesuffix('.json')}_{suffix}.json"
        logger.info(f"备份已写入: {name}")
        return name

    def list_files(self) -> list[BackupFileInfo]:
        """列出备份文件（最新的在前）."""
        if not self.directory.is_dir():
            return []

        files = []
        for entry in self.directory.iterdir():
            if not entry.is_file():
                continue
            stat = entry.stat()
            files.append(
                BackupFileInfo(
                    name=entry.name,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                )
            )
        files.sort(key=lambda f: f.modified, reverse=True)
        return files

    def path_for(self, name: str) -> Path:
        """返回备份文件路径（只取文件名部分，防止路径穿越）."""
        path = self.directory / _safe_name(name)
        if not path.is_file():
            raise BackupNotFoundError(name)
        return path

    def read(self, name: str) -> AnySnapshot:
        """读取并解析备份文件."""
        return decode_snapshot(self.path_for(name).read_bytes())

    def delete(self, name: str) -> None:
        """删除备份文件."""
        path = self.path_for(name)
        path.unlink()
        logger.info(f"备份已删除: {path.name}")

    def prune(self, retention_days: int, now: float | None = None) -> list[str]:
        """删除修改时间早于保留期的备份，返回被删除的文件名.

        retention_days <= 0 时不做清理。
        """
        if retention_days <= 0 or not self.directory.is_dir():
            return []

        cutoff = (now if now is not None else time.time()) - retention_days * 86400
        removed = []
        for entry in self.directory.iterdir():
            try:
                if entry.is_file() and entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    removed.append(entry.name)
            except OSError as e:
                logger.warning(f"清理备份 {entry.name} 失败: {e}")

        if removed:
            logger.info(f"已清理 {len(removed)} 个过期备份")
        return removed


def _safe_name(name: str) -> str:
    base = Path(name.strip()).name
    if base in ("", ".", ".."):
        raise InvalidBackupNameError("缺少备份文件名")
    return base
