"""应用配置管理."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 存储配置
    database_url: str = "sqlite+aiosqlite:///./infoscope.db"
    data_path: str = "./data"

    # 备份配置
    backup_dir: str | None = None
    backup_poll_seconds: int = 60
    import_max_bytes: int = 10 * 1024 * 1024

    log_level: str = "INFO"

    @property
    def backup_path(self) -> Path:
        """备份文件目录（未显式配置时位于数据目录下）."""
        if self.backup_dir:
            return Path(self.backup_dir)
        return Path(self.data_path) / "backups"


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
