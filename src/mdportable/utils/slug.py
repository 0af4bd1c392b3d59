"""Anchor ids for headings."""

from __future__ import annotations

import re

# Latin letters, digits and CJK ideographs survive; everything else collapses
# into single hyphens.
_NON_SLUG_RE = re.compile(r"[^a-z0-9\u4e00-\u9fff]+")


def slugify(text: str, max_length: int = 96) -> str:
    """Lower-case *text* and reduce it to a hyphen-separated anchor id.

    >>> slugify("Hello, World!")
    'hello-world'
    >>> slugify("  开发 日志 ")
    '开发-日志'
    """
    slug = _NON_SLUG_RE.sub("-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-")
