"""自动备份调度.

APScheduler 按固定间隔轮询，每次从 settings 表读取配置（不缓存）:

    Idle -> CheckDue -> (已启用且距上次备份超过间隔) Running -> UpdateLastRun -> Idle

备份失败时直接回到 Idle 且不更新 backup_last_run，下一次轮询会立即重试，
而不是等待一个完整的备份间隔。这里不做退避。
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from infoscope.backup.service import BackupService

logger = logging.getLogger(__name__)

SCHEDULE_SETTING_KEYS = (
    "backup_enabled",
    "backup_interval_hours",
    "backup_retention_days",
    "backup_last_run",
)
DEFAULT_INTERVAL_HOURS = 24
DEFAULT_RETENTION_DAYS = 30


class SchedulerState(StrEnum):
    """调度器状态."""

    IDLE = "idle"
    CHECK_DUE = "check_due"
    RUNNING = "running"
    UPDATE_LAST_RUN = "update_last_run"


def _positive_int(value: str | None, default: int) -> int:
    try:
        parsed = int((value or "").strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def parse_last_run(value: str | None) -> datetime | None:
    """解析 RFC 3339 时间，无法解析时视为从未运行."""
    if not value or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_last_run(when: datetime) -> str:
    return when.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class BackupScheduleConfig:
    """自动备份配置（存储在 settings 表）."""

    enabled: bool = False
    interval_hours: int = DEFAULT_INTERVAL_HOURS
    retention_days: int = DEFAULT_RETENTION_DAYS
    last_run: datetime | None = None

    @classmethod
    def from_settings(cls, values: dict[str, str]) -> "BackupScheduleConfig":
        return cls(
            enabled=(values.get("backup_enabled") or "").strip().lower() == "true",
            interval_hours=_positive_int(
                values.get("backup_interval_hours"), DEFAULT_INTERVAL_HOURS
            ),
            retention_days=_positive_int(
                values.get("backup_retention_days"), DEFAULT_RETENTION_DAYS
            ),
            last_run=parse_last_run(values.get("backup_last_run")),
        )

    def is_due(self, now: datetime) -> bool:
        """是否需要执行备份."""
        if not self.enabled:
            return False
        if self.last_run is None:
            return True
        return now - self.last_run >= timedelta(hours=self.interval_hours)

    def to_dict(self) -> dict[str, bool | int | str | None]:
        return {
            "enabled": self.enabled,
            "interval_hours": self.interval_hours,
            "retention_days": self.retention_days,
            "last_run": format_last_run(self.last_run) if self.last_run else None,
        }


class BackupScheduler:
    """自动备份调度器."""

    def __init__(self, service: "BackupService", poll_seconds: int = 60) -> None:
        self.service = service
        self.poll_seconds = poll_seconds
        self.state = SchedulerState.IDLE
        self._scheduler: AsyncIOScheduler | None = None

    async def run_if_due(self, now: datetime | None = None) -> str | None:
        """检查配置，到期则执行一次备份，返回备份文件名."""
        now = now or datetime.now(UTC)
        self.state = SchedulerState.CHECK_DUE
        try:
            config = await self.service.schedule_config()
            if not config.is_due(now):
                return None

            self.state = SchedulerState.RUNNING
            logger.info("开始自动备份...")
            name = await self.service.write_backup()
            self.service.store.prune(config.retention_days)

            self.state = SchedulerState.UPDATE_LAST_RUN
            await self.service.mark_last_run(now)
            logger.info(f"自动备份完成: {name}")
            return name
        except (SQLAlchemyError, OSError):
            # 不更新 last_run，下次轮询重试
            logger.exception("自动备份失败，将在下次轮询时重试")
            return None
        finally:
            self.state = SchedulerState.IDLE

    def start(self) -> AsyncIOScheduler:
        """启动轮询."""
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_if_due,
            "interval",
            seconds=self.poll_seconds,
            id="auto_backup",
            name="自动备份检查",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"自动备份调度器已启动，轮询间隔: {self.poll_seconds} 秒")
        return self._scheduler

    async def shutdown(self) -> None:
        """停止轮询（不会中断正在进行的备份）."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            logger.info("自动备份调度器已关闭")
            self._scheduler = None
