from __future__ import annotations

import json
import re
from typing import Any, List, Optional

from liquid_books.features import FALLBACK_PARSED_FEATURES, Feature
from liquid_books.models import Chapter


JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
SHORT_JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*?\]")
NUMBERED_CHAPTER_PATTERN = re.compile(r"^(?:Chapter\s+)?(\d+)[.:)]\s*(.+)", re.IGNORECASE)
DESCRIPTION_SKIP_PATTERN = re.compile(r"^(?:Chapter|---)", re.IGNORECASE)


def _strip_markdown(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("**") and stripped.endswith("**"):
        stripped = stripped[2:-2].strip()
    if stripped.startswith("*") and stripped.endswith("*"):
        stripped = stripped[1:-1].strip()
    return stripped


def chapter_id(index: int) -> str:
    return f"chapter-{index + 1}"


def _load_json_array(content: str, pattern: re.Pattern[str]) -> Optional[list[Any]]:
    match = pattern.search(content)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    return parsed


def _chapters_from_json(items: list[Any]) -> List[Chapter]:
    chapters: List[Chapter] = []
    for index, item in enumerate(items):
        data = item if isinstance(item, dict) else {}
        title = str(data.get("title") or "").strip() or f"Chapter {index + 1}"
        chapters.append(
            Chapter(
                id=chapter_id(index),
                title=title,
                description=str(data.get("description") or ""),
            )
        )
    return chapters


def _chapters_from_numbered_list(content: str) -> List[Chapter]:
    chapters: List[Chapter] = []
    current_title: Optional[str] = None
    description_parts: list[str] = []

    def flush() -> None:
        if current_title is None:
            return
        chapters.append(
            Chapter(
                id=chapter_id(len(chapters)),
                title=current_title,
                description=" ".join(description_parts).strip(),
            )
        )

    for line in content.splitlines():
        match = NUMBERED_CHAPTER_PATTERN.match(line)
        if match:
            flush()
            current_title = _strip_markdown(match.group(2))
            description_parts = []
            continue
        stripped = line.strip()
        if current_title is None or not stripped:
            continue
        if DESCRIPTION_SKIP_PATTERN.match(line):
            continue
        description_parts.append(stripped)
    flush()
    return chapters


def parse_chapters_from_response(content: str) -> List[Chapter]:
    """Read a chapter outline from model output.

    A JSON array of ``{"title", "description"}`` objects is preferred. When the
    model answered with a numbered list instead ("1. Title", "Chapter 2: Title"),
    each numbered line starts a chapter and the following non-empty lines are
    joined into its description.
    """
    items = _load_json_array(content, JSON_ARRAY_PATTERN)
    if items is not None:
        return _chapters_from_json(items)
    return _chapters_from_numbered_list(content)


def parse_recommended_features(content: str) -> List[Feature]:
    items = _load_json_array(content, SHORT_JSON_ARRAY_PATTERN)
    if items is not None:
        recommended: List[Feature] = []
        for item in items:
            feature = Feature.lookup(str(item))
            if feature is not None and feature not in recommended:
                recommended.append(feature)
        return recommended
    lowered = content.lower()
    found = [feature for feature in Feature if feature.value.lower() in lowered]
    return found or list(FALLBACK_PARSED_FEATURES)
