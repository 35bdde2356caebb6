"""核心业务逻辑."""

from infoscope.core.refresh import FeedRefreshDispatcher, RefreshHandler

__all__ = [
    "FeedRefreshDispatcher",
    "RefreshHandler",
]
