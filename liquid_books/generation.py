from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from liquid_books.config import Settings
from liquid_books.features import DEFAULT_RECOMMENDED_FEATURES, Feature, FeatureSet
from liquid_books.models import AIConfig, BookConfig, Chapter
from liquid_books.outline import parse_chapters_from_response, parse_recommended_features
from liquid_books.prompts import (
    DEFAULT_CHAPTER_COUNT,
    build_chapter_prompt,
    build_outline_prompt,
    build_recommendation_prompt,
)
from liquid_books.providers import (
    MissingCredentialError,
    ProviderClient,
    ProviderError,
)


CONTENT_MAX_TOKENS = 8192
OUTLINE_MAX_TOKENS = 2048
RECOMMENDATION_MAX_TOKENS = 1024


@dataclass(frozen=True)
class ChapterResult:
    index: int
    title: str
    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"index": self.index, "title": self.title}
        if self.ok:
            payload["content"] = self.content
        else:
            payload["error"] = self.error
        return payload


def generate_chapter_content(
    book: BookConfig,
    chapter_index: int,
    features: FeatureSet,
    client: ProviderClient,
    instructions: Optional[str] = None,
) -> str:
    if chapter_index < 0 or chapter_index >= len(book.chapters):
        raise IndexError("Chapter not found")
    chapter = book.chapters[chapter_index]
    prompt = build_chapter_prompt(book, chapter, chapter_index, features, instructions)
    return client.generate(prompt, max_tokens=CONTENT_MAX_TOKENS)


def generate_book_content(
    book: BookConfig,
    features: FeatureSet,
    client: ProviderClient,
    verbose: bool = False,
) -> List[str]:
    """Write every chapter in order; the first failure aborts the whole book."""
    contents: List[str] = []
    total = len(book.chapters)
    for index, chapter in enumerate(book.chapters):
        if verbose:
            print(f"[generate] Writing chapter {index + 1}/{total}: {chapter.title}")
        contents.append(generate_chapter_content(book, index, features, client))
    return contents


def generate_book_content_report(
    book: BookConfig,
    features: FeatureSet,
    client: ProviderClient,
    verbose: bool = False,
) -> List[ChapterResult]:
    """Write every chapter in order, recording failures per chapter instead of aborting."""
    results: List[ChapterResult] = []
    total = len(book.chapters)
    for index, chapter in enumerate(book.chapters):
        if verbose:
            print(f"[generate] Writing chapter {index + 1}/{total}: {chapter.title}")
        try:
            content = generate_chapter_content(book, index, features, client)
        except ProviderError as exc:
            print(f"[generate] Chapter {index + 1} failed: {exc}")
            results.append(ChapterResult(index=index, title=chapter.title, error=str(exc)))
            continue
        results.append(ChapterResult(index=index, title=chapter.title, content=content))
    return results


def generate_chapter_outline(
    title: str,
    description: str,
    client: ProviderClient,
    target_audience: Optional[str] = None,
    chapter_count: int = DEFAULT_CHAPTER_COUNT,
) -> List[Chapter]:
    prompt = build_outline_prompt(title, description, target_audience, chapter_count)
    response = client.generate(prompt, max_tokens=OUTLINE_MAX_TOKENS)
    return parse_chapters_from_response(response)


def recommend_features(
    chapter_title: str,
    chapter_description: str,
    ai_config: AIConfig,
    settings: Settings,
) -> List[Feature]:
    """Ask the provider which features suit a chapter.

    Any missing key or provider failure yields the default recommendation
    rather than an error.
    """
    try:
        client = ProviderClient.from_config(ai_config, settings)
    except MissingCredentialError:
        return list(DEFAULT_RECOMMENDED_FEATURES)
    prompt = build_recommendation_prompt(chapter_title, chapter_description)
    try:
        response = client.generate(prompt, max_tokens=RECOMMENDATION_MAX_TOKENS)
    except ProviderError as exc:
        print(f"[recommend] Error getting feature recommendations: {exc}")
        return list(DEFAULT_RECOMMENDED_FEATURES)
    return parse_recommended_features(response)
