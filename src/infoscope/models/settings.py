"""Settings 配置存储模型."""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class SettingItem(SQLModel, table=True):
    """配置项存储."""

    __tablename__ = "settings"  # type: ignore[assignment]

    key: str = Field(primary_key=True, description="配置键")
    value: str = Field(default="", description="配置值")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# 首次启动时写入的默认配置（已存在的键不会被覆盖）
DEFAULT_SETTINGS: dict[str, str] = {
    "site_title": "infoscope_",
    "max_posts": "100",
    "update_interval": "900",
    "header_link_text": "infoscope_",
    "header_link_url": "/",
    "footer_link_text": "infoscope_",
    "footer_link_url": "/",
    "footer_image_url": "",
    "footer_image_height": "50px",
    "tracking_code": "",
    "timezone": "UTC",
    "favicon_url": "favicon.ico",
    "meta_description": "A minimalist RSS river reader",
    "meta_image_url": "",
    "site_url": "",
}
