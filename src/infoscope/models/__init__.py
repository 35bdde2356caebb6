"""数据模型."""

from infoscope.models.click_stat import ClickStat
from infoscope.models.database import init_db
from infoscope.models.feed import Feed
from infoscope.models.filter import EntryFilter, FilterGroup, FilterGroupRule
from infoscope.models.settings import SettingItem
from infoscope.models.tag import FeedTag, Tag

__all__ = [
    "ClickStat",
    "EntryFilter",
    "Feed",
    "FeedTag",
    "FilterGroup",
    "FilterGroupRule",
    "SettingItem",
    "Tag",
    "init_db",
]
