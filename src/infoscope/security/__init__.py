"""安全相关工具."""

from infoscope.security.tracking import validate_tracking_code

__all__ = ["validate_tracking_code"]
