"""Book, chapter and provider configuration records plus JSON payload parsing."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional


class PayloadError(ValueError):
    """Raised when a request payload cannot be turned into a record."""


class Provider(str, Enum):
    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENAI = "openai"

    @property
    def display_name(self) -> str:
        return {
            Provider.CLAUDE: "Claude",
            Provider.GEMINI: "Gemini",
            Provider.OPENAI: "OpenAI",
        }[self]

    @classmethod
    def parse(cls, value: Any, default: Optional["Provider"] = None) -> "Provider":
        if value is None or value == "":
            if default is None:
                raise PayloadError("provider is required")
            return default
        if isinstance(value, Provider):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise PayloadError(f"Unknown provider: {value}") from None


@dataclass
class Chapter:
    id: str
    title: str
    description: str = ""
    target_word_count: Optional[int] = None
    content: Optional[str] = None
    generated_content: Optional[str] = None
    is_generated: bool = False

    @property
    def body(self) -> str:
        return self.generated_content or self.content or ""

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
        }
        if self.target_word_count is not None:
            payload["targetWordCount"] = self.target_word_count
        if self.content is not None:
            payload["content"] = self.content
        if self.generated_content is not None:
            payload["generatedContent"] = self.generated_content
        if self.is_generated:
            payload["isGenerated"] = True
        return payload


@dataclass
class BookConfig:
    title: str
    description: str = ""
    author: str = ""
    chapters: List[Chapter] = field(default_factory=list)
    target_word_count: Optional[int] = None


@dataclass(frozen=True)
class AIConfig:
    provider: Provider
    model: str = ""
    api_key: Optional[str] = None


@dataclass(frozen=True)
class Model:
    id: str
    name: str
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description:
            payload["description"] = self.description
        return payload


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _optional_text(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    text = str(value)
    return text or None


def parse_word_count(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise PayloadError(f"Invalid word count: {value}")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise PayloadError(f"Invalid word count: {value}") from None
    if count <= 0:
        return None
    return count


def parse_chapter(data: Any, index: int) -> Chapter:
    if not isinstance(data, Mapping):
        raise PayloadError(f"Chapter {index + 1} must be an object")
    title = _text(data, "title").strip()
    if not title:
        raise PayloadError(f"Chapter {index + 1} title is required")
    return Chapter(
        id=_text(data, "id") or f"chapter-{index + 1}",
        title=title,
        description=_text(data, "description"),
        target_word_count=parse_word_count(data.get("targetWordCount")),
        content=_optional_text(data, "content"),
        generated_content=_optional_text(data, "generatedContent"),
        is_generated=bool(data.get("isGenerated", False)),
    )


def parse_book_config(data: Any) -> BookConfig:
    if not isinstance(data, Mapping):
        raise PayloadError("Book configuration is required")
    title = _text(data, "title").strip()
    if not title:
        raise PayloadError("Book title is required")
    chapters_value = data.get("chapters") or []
    if not isinstance(chapters_value, list):
        raise PayloadError("Book chapters must be a list")
    return BookConfig(
        title=title,
        description=_text(data, "description"),
        author=_text(data, "author"),
        chapters=[
            parse_chapter(chapter, index)
            for index, chapter in enumerate(chapters_value)
        ],
        target_word_count=parse_word_count(data.get("targetWordCount")),
    )


def parse_ai_config(data: Any, default_provider: Provider = Provider.CLAUDE) -> AIConfig:
    if data is None:
        return AIConfig(provider=default_provider)
    if not isinstance(data, Mapping):
        raise PayloadError("AI configuration must be an object")
    return AIConfig(
        provider=Provider.parse(data.get("provider"), default=default_provider),
        model=_text(data, "model").strip(),
        api_key=_optional_text(data, "apiKey"),
    )
