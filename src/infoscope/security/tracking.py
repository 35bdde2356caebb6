"""统计代码 (tracking code) 校验.

只允许少量用于统计的元素，script 必须是外部脚本，输出按白名单重建。
"""

import re
from html import escape
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

_SAFE_VALUE = re.compile(r"^[\w\s\-.:/?=&%#,@+]*$")
_SAFE_STYLE = re.compile(r"^[\w\s\-.:;%#,]*$")

# 元素 -> 允许的属性
_ALLOWED_ATTRS: dict[str, frozenset[str]] = {
    "script": frozenset({"src", "async", "defer", "crossorigin", "integrity", "type", "id", "class"}),
    "img": frozenset({"src", "width", "height", "alt", "loading", "style"}),
    "meta": frozenset({"name", "content", "property"}),
    "iframe": frozenset({"src", "width", "height", "style", "title"}),
    "noscript": frozenset({"id", "class"}),
    "div": frozenset({"id", "class", "style"}),
    "span": frozenset({"id", "class", "style"}),
}

_VOID_ELEMENTS = frozenset({"img", "meta"})


def validate_tracking_code(code: str) -> str:
    """校验并重建统计代码.

    Returns:
        清理后的 HTML

    Raises:
        ValueError: 含有不允许的元素、内联脚本或非法 URL
    """
    if not code.strip():
        return ""

    soup = BeautifulSoup(code, "html.parser")
    return "".join(_rebuild(node) for node in soup.contents)


def _rebuild(node: object) -> str:
    if isinstance(node, Comment):
        return f"<!--{escape(str(node))}-->"
    if isinstance(node, NavigableString):
        return escape(str(node))
    if not isinstance(node, Tag):
        return ""

    name = node.name.lower()
    allowed = _ALLOWED_ATTRS.get(name)
    if allowed is None:
        msg = f"统计代码中不允许使用 <{name}> 元素"
        raise ValueError(msg)

    attrs = []
    for key, value in node.attrs.items():
        key = key.lower()
        if isinstance(value, list):
            value = " ".join(value)
        if key not in allowed and not key.startswith("data-"):
            continue
        if key == "src":
            _check_url(value)
        elif key == "style":
            if not _SAFE_STYLE.match(value):
                continue
        elif not _SAFE_VALUE.match(value or ""):
            continue
        attrs.append(f' {key}="{escape(value or "")}"')

    if name == "script":
        if not node.get("src"):
            raise ValueError("script 必须通过 src 引用外部脚本，不允许内联 JavaScript")
        if node.get_text().strip():
            raise ValueError("script 元素不能包含内联 JavaScript")
        return f"<script{''.join(attrs)}></script>"

    if name in _VOID_ELEMENTS:
        return f"<{name}{''.join(attrs)}>"

    inner = "".join(_rebuild(child) for child in node.contents)
    return f"<{name}{''.join(attrs)}>{inner}</{name}>"


def _check_url(value: str) -> None:
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        msg = f"不允许的 URL: {value}"
        raise ValueError(msg)
