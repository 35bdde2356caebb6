"""备份模块异常."""


class BackupError(Exception):
    """备份/恢复相关错误的基类."""


class SnapshotDecodeError(BackupError):
    """快照无法解析（JSON 损坏、版本未知或结构不符）."""


class ImportAbortedError(BackupError):
    """导入被整体中止，事务已回滚."""


class BackupNotFoundError(BackupError):
    """备份文件不存在."""

    def __init__(self, name: str) -> None:
        super().__init__(f"备份文件不存在: {name}")
        self.name = name


class InvalidBackupNameError(BackupError):
    """备份文件名为空或非法."""
