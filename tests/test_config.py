import unittest

from liquid_books.config import DEFAULT_SERVER_OWNER, Settings
from liquid_books.models import Provider


class TestSettings(unittest.TestCase):
    def test_from_env_reads_provider_keys(self) -> None:
        settings = Settings.from_env(
            {
                "ANTHROPIC_API_KEY": "anthropic",
                "GEMINI_API_KEY": " gemini ",
                "OPENAI_API_KEY": "",
            }
        )

        self.assertEqual(settings.provider_key(Provider.CLAUDE), "anthropic")
        self.assertEqual(settings.provider_key(Provider.GEMINI), "gemini")
        self.assertIsNone(settings.provider_key(Provider.OPENAI))

    def test_from_env_accepts_legacy_github_variable(self) -> None:
        settings = Settings.from_env({"Github_PAT": "legacy"})

        self.assertEqual(settings.github_token, "legacy")

    def test_from_env_prefers_uppercase_github_variable(self) -> None:
        settings = Settings.from_env({"GITHUB_PAT": "upper", "Github_PAT": "legacy"})

        self.assertEqual(settings.github_token, "upper")

    def test_from_env_defaults(self) -> None:
        settings = Settings.from_env({})

        self.assertEqual(settings.server_owner, DEFAULT_SERVER_OWNER)
        self.assertIsNone(settings.github_token)
        self.assertIsNone(settings.request_timeout)

    def test_from_env_ignores_invalid_timeout(self) -> None:
        settings = Settings.from_env({"LIQUIDBOOKS_REQUEST_TIMEOUT": "soon"})

        self.assertIsNone(settings.request_timeout)

    def test_from_env_reads_timeout_and_owner(self) -> None:
        settings = Settings.from_env(
            {"LIQUIDBOOKS_REQUEST_TIMEOUT": "12.5", "LIQUIDBOOKS_GITHUB_OWNER": "acme"}
        )

        self.assertEqual(settings.request_timeout, 12.5)
        self.assertEqual(settings.server_owner, "acme")


if __name__ == "__main__":
    unittest.main()
