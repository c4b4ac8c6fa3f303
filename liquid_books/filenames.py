from __future__ import annotations

import re


_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
SLUG_LIMIT = 50


def title_to_slug(title: str) -> str:
    slug = _NON_SLUG_RE.sub("-", (title or "").lower()).strip("-")
    return slug[:SLUG_LIMIT]


def chapter_stem(index: int, title: str) -> str:
    return f"chapter-{index + 1:02d}-{title_to_slug(title)}"


def chapter_filename(index: int, title: str) -> str:
    return f"{chapter_stem(index, title)}.md"
