"""测试统计代码校验."""

import pytest

from infoscope.security.tracking import validate_tracking_code


class TestValidateTrackingCode:
    """测试 validate_tracking_code."""

    def test_empty_code_is_allowed(self) -> None:
        """空统计代码直接通过."""
        assert validate_tracking_code("  ") == ""

    def test_external_script_is_rebuilt(self) -> None:
        """外部脚本保留白名单属性."""
        code = '<script defer data-domain="river.example" src="https://stats.example/js" onload="x()"></script>'

        assert validate_tracking_code(code) == (
            '<script defer="" data-domain="river.example" src="https://stats.example/js"></script>'
        )

    def test_noscript_image_pixel(self) -> None:
        """noscript 中的统计像素被保留."""
        code = '<noscript><img src="https://stats.example/p.gif" alt=""></noscript>'

        assert validate_tracking_code(code) == code

    @pytest.mark.parametrize(
        "code",
        [
            "<script>alert(1)</script>",
            '<script src="https://stats.example/js">alert(1)</script>',
            '<script src="javascript:alert(1)"></script>',
            '<img src="data:image/png;base64,AAAA">',
            '<a href="https://evil.example">x</a>',
            "<style>body{}</style>",
        ],
    )
    def test_rejects_unsafe_code(self, code: str) -> None:
        """内联脚本、非法 URL 和不允许的元素被拒绝."""
        with pytest.raises(ValueError):
            validate_tracking_code(code)
