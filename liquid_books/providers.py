"""Single-request clients for the Claude, Gemini and OpenAI HTTP APIs."""
from __future__ import annotations

import json
import re
from typing import Any, List, Optional
from urllib import request
from urllib.error import HTTPError, URLError
from urllib.parse import quote

from liquid_books.config import Settings
from liquid_books.models import AIConfig, Model, Provider


ANTHROPIC_VERSION = "2023-06-01"
CLAUDE_BASE_URL = "https://api.anthropic.com/v1"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"
MAX_LISTED_MODELS = 10

DEFAULT_MODELS = {
    Provider.CLAUDE: "claude-sonnet-4-20250514",
    Provider.GEMINI: "gemini-pro",
    Provider.OPENAI: "gpt-4o",
}

FALLBACK_MODELS: dict[Provider, tuple[Model, ...]] = {
    Provider.CLAUDE: (
        Model("claude-sonnet-4-20250514", "Claude Sonnet 4"),
        Model("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
        Model("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
        Model("claude-3-opus-20240229", "Claude 3 Opus"),
    ),
    Provider.GEMINI: (
        Model("gemini-2.0-flash-exp", "Gemini 2.0 Flash"),
        Model("gemini-1.5-pro-latest", "Gemini 1.5 Pro"),
        Model("gemini-1.5-flash-latest", "Gemini 1.5 Flash"),
        Model("gemini-pro", "Gemini Pro"),
    ),
    Provider.OPENAI: (
        Model("gpt-4o", "GPT-4o"),
        Model("gpt-4o-mini", "GPT-4o Mini"),
        Model("gpt-4-turbo", "GPT-4 Turbo"),
        Model("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ),
}

OPENAI_EXCLUDED_MARKERS = ("instruct", "vision", "realtime", "audio")
DATE_PATTERN = re.compile(r"(\d{4})(\d{2})(\d{2})")


class ProviderError(RuntimeError):
    """Raised when a provider answers with a non-success status."""

    def __init__(self, provider: Provider, body: str, status: Optional[int] = None):
        self.provider = provider
        self.body = body
        self.status = status
        super().__init__(f"{provider.display_name} API error: {body}")


class MissingCredentialError(ValueError):
    """Raised when neither the caller nor the server supplies an API key."""

    def __init__(self, provider: Provider):
        self.provider = provider
        super().__init__(
            f"No API key found for {provider.value}. Please provide your own key "
            "or configure the server."
        )


def resolve_credential(
    provider: Provider,
    settings: Settings,
    api_key: Optional[str] = None,
) -> Optional[str]:
    if api_key and api_key.strip():
        return api_key.strip()
    return settings.provider_key(provider)


def require_credential(
    provider: Provider,
    settings: Settings,
    api_key: Optional[str] = None,
) -> str:
    credential = resolve_credential(provider, settings, api_key)
    if not credential:
        raise MissingCredentialError(provider)
    return credential


def _open(req: request.Request, timeout: Optional[float]) -> Any:
    if timeout is None:
        response_context = request.urlopen(req)
    else:
        response_context = request.urlopen(req, timeout=timeout)
    with response_context as response:
        body = response.read().decode("utf-8")
    return json.loads(body) if body else {}


def _error_body(exc: HTTPError) -> str:
    try:
        raw = exc.read()
    except OSError:
        raw = b""
    if not raw:
        return f"HTTP {exc.code}"
    return raw.decode("utf-8", errors="replace")


class ProviderClient:
    def __init__(
        self,
        provider: Provider,
        api_key: str,
        model: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        self.provider = provider
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[provider]
        self.timeout = timeout

    @classmethod
    def from_config(cls, ai_config: AIConfig, settings: Settings) -> "ProviderClient":
        return cls(
            provider=ai_config.provider,
            api_key=require_credential(ai_config.provider, settings, ai_config.api_key),
            model=ai_config.model,
            timeout=settings.request_timeout,
        )

    def generate(self, prompt: str, max_tokens: int = 8192) -> str:
        if not prompt.strip():
            raise ValueError("Prompt must not be empty.")
        url, headers, payload = self._completion_request(prompt, max_tokens)
        req = request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", **headers},
            method="POST",
        )
        try:
            parsed = _open(req, self.timeout)
        except HTTPError as exc:
            raise ProviderError(self.provider, _error_body(exc), exc.code) from exc
        except URLError as exc:
            raise ProviderError(self.provider, str(exc.reason)) from exc
        except (OSError, ValueError) as exc:
            raise ProviderError(self.provider, str(exc) or type(exc).__name__) from exc
        try:
            return self._extract_text(parsed)
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                self.provider, f"Unexpected response shape: {json.dumps(parsed)[:500]}"
            ) from exc

    def _completion_request(
        self, prompt: str, max_tokens: int
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        if self.provider is Provider.CLAUDE:
            return (
                f"{CLAUDE_BASE_URL}/messages",
                {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
                {
                    "model": self.model,
                    "max_tokens": max_tokens,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
        if self.provider is Provider.GEMINI:
            return (
                f"{GEMINI_BASE_URL}/models/{quote(self.model, safe='.-_')}:generateContent"
                f"?key={quote(self.api_key, safe='')}",
                {},
                {
                    "contents": [{"parts": [{"text": prompt}]}],
                    "generationConfig": {"maxOutputTokens": max_tokens},
                },
            )
        return (
            f"{OPENAI_BASE_URL}/chat/completions",
            {"Authorization": f"Bearer {self.api_key}"},
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": max_tokens,
            },
        )

    def _extract_text(self, parsed: dict[str, Any]) -> str:
        if self.provider is Provider.CLAUDE:
            return parsed["content"][0]["text"]
        if self.provider is Provider.GEMINI:
            return parsed["candidates"][0]["content"]["parts"][0]["text"]
        return parsed["choices"][0]["message"]["content"]


def format_model_name(model_id: str) -> str:
    """Turn ``claude-3-opus-20240229`` into ``Claude 3 Opus 2024-02-29``."""
    text = model_id.replace("models/", "", 1).replace("-", " ")
    text = DATE_PATTERN.sub(r"\1-\2-\3", text, count=1)
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def _claude_models(data: dict[str, Any]) -> List[Model]:
    models = [
        Model(
            id=item["id"],
            name=item.get("display_name") or format_model_name(item["id"]),
        )
        for item in data.get("data") or []
        if "claude" in item["id"] and "instant" not in item["id"]
    ]
    return sorted(models, key=lambda model: model.id, reverse=True)


def _gemini_models(data: dict[str, Any]) -> List[Model]:
    models = [
        Model(
            id=item["name"].replace("models/", "", 1),
            name=item.get("displayName") or format_model_name(item["name"]),
            description=item.get("description"),
        )
        for item in data.get("models") or []
        if "generateContent" in (item.get("supportedGenerationMethods") or [])
        and "gemini" in item["name"]
    ]
    return sorted(
        models,
        key=lambda model: ("2.0" not in model.id, "pro" not in model.id, model.id),
    )


def _openai_models(data: dict[str, Any]) -> List[Model]:
    models = [
        Model(id=item["id"], name=format_model_name(item["id"]))
        for item in data.get("data") or []
        if ("gpt-4" in item["id"] or "gpt-3.5" in item["id"])
        and not any(marker in item["id"] for marker in OPENAI_EXCLUDED_MARKERS)
    ]
    # Newest ids first, then stable-sort the gpt-4o and gpt-4 families ahead.
    models.sort(key=lambda model: model.id, reverse=True)
    models.sort(key=lambda model: ("gpt-4o" not in model.id, "gpt-4" not in model.id))
    return models


def _models_request(provider: Provider, api_key: str) -> request.Request:
    if provider is Provider.CLAUDE:
        return request.Request(
            f"{CLAUDE_BASE_URL}/models",
            headers={"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
        )
    if provider is Provider.GEMINI:
        return request.Request(f"{GEMINI_BASE_URL}/models?key={quote(api_key, safe='')}")
    return request.Request(
        f"{OPENAI_BASE_URL}/models",
        headers={"Authorization": f"Bearer {api_key}"},
    )


_MODEL_PARSERS = {
    Provider.CLAUDE: _claude_models,
    Provider.GEMINI: _gemini_models,
    Provider.OPENAI: _openai_models,
}


def fetch_models(
    provider: Provider,
    api_key: str,
    timeout: Optional[float] = None,
) -> List[Model]:
    """Query the provider's model list, falling back to the static table on failure."""
    label = provider.display_name
    try:
        data = _open(_models_request(provider, api_key), timeout)
        models = _MODEL_PARSERS[provider](data)[:MAX_LISTED_MODELS]
    except HTTPError as exc:
        print(f"[models] {label} models API error: {_error_body(exc)}")
        return list(FALLBACK_MODELS[provider])
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        print(f"[models] Error fetching {label} models: {exc}")
        return list(FALLBACK_MODELS[provider])
    return models or list(FALLBACK_MODELS[provider])


def list_models(
    provider: Provider,
    settings: Settings,
    api_key: Optional[str] = None,
) -> List[Model]:
    credential = resolve_credential(provider, settings, api_key)
    if not credential:
        return list(FALLBACK_MODELS[provider])
    return fetch_models(provider, credential, timeout=settings.request_timeout)


def list_all_models(
    settings: Settings,
    api_key: Optional[str] = None,
) -> list[tuple[Provider, List[Model]]]:
    return [
        (provider, list_models(provider, settings, api_key))
        for provider in Provider
    ]
