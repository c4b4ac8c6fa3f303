from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from liquid_books.models import Provider


PROVIDER_ENV_VARS = {
    Provider.CLAUDE: "ANTHROPIC_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
    Provider.OPENAI: "OPENAI_API_KEY",
}
GITHUB_TOKEN_ENV_VARS = ("GITHUB_PAT", "Github_PAT")
DEFAULT_SERVER_OWNER = "fenago"


@dataclass(frozen=True)
class Settings:
    """Process-wide credentials, passed explicitly to each operation."""

    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    github_token: Optional[str] = None
    server_owner: str = DEFAULT_SERVER_OWNER
    request_timeout: Optional[float] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def read(name: str) -> Optional[str]:
            value = env.get(name, "").strip()
            return value or None

        github_token = None
        for name in GITHUB_TOKEN_ENV_VARS:
            github_token = read(name)
            if github_token:
                break
        timeout_value = read("LIQUIDBOOKS_REQUEST_TIMEOUT")
        try:
            timeout = float(timeout_value) if timeout_value else None
        except ValueError:
            print(
                f"[config] Invalid LIQUIDBOOKS_REQUEST_TIMEOUT '{timeout_value}', "
                "leaving unset."
            )
            timeout = None
        return cls(
            anthropic_api_key=read(PROVIDER_ENV_VARS[Provider.CLAUDE]),
            gemini_api_key=read(PROVIDER_ENV_VARS[Provider.GEMINI]),
            openai_api_key=read(PROVIDER_ENV_VARS[Provider.OPENAI]),
            github_token=github_token,
            server_owner=read("LIQUIDBOOKS_GITHUB_OWNER") or DEFAULT_SERVER_OWNER,
            request_timeout=timeout,
        )

    def provider_key(self, provider: Provider) -> Optional[str]:
        if provider is Provider.CLAUDE:
            return self.anthropic_api_key
        if provider is Provider.GEMINI:
            return self.gemini_api_key
        return self.openai_api_key

