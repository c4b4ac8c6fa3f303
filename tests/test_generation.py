import unittest
from unittest.mock import Mock, patch

from liquid_books.config import Settings
from liquid_books.features import DEFAULT_RECOMMENDED_FEATURES, Feature, FeatureSet
from liquid_books.generation import (
    CONTENT_MAX_TOKENS,
    OUTLINE_MAX_TOKENS,
    RECOMMENDATION_MAX_TOKENS,
    generate_book_content,
    generate_book_content_report,
    generate_chapter_content,
    generate_chapter_outline,
    recommend_features,
)
from liquid_books.models import AIConfig, BookConfig, Chapter, Provider
from liquid_books.providers import ProviderError


def _book(count: int = 3) -> BookConfig:
    return BookConfig(
        title="Book",
        description="About",
        author="Ada",
        chapters=[
            Chapter(id=f"chapter-{index + 1}", title=f"Chapter {index + 1}")
            for index in range(count)
        ],
    )


class TestGenerateContent(unittest.TestCase):
    def test_chapter_content_uses_content_token_budget(self) -> None:
        client = Mock()
        client.generate.return_value = "# Chapter 2\n\nText"

        content = generate_chapter_content(_book(), 1, FeatureSet(), client)

        self.assertEqual(content, "# Chapter 2\n\nText")
        prompt = client.generate.call_args[0][0]
        self.assertIn("Chapter 2: Chapter 2", prompt)
        self.assertEqual(client.generate.call_args[1]["max_tokens"], CONTENT_MAX_TOKENS)

    def test_chapter_content_rejects_bad_index(self) -> None:
        with self.assertRaises(IndexError):
            generate_chapter_content(_book(), 3, FeatureSet(), Mock())

    def test_book_content_is_ordered(self) -> None:
        client = Mock()
        client.generate.side_effect = ["one", "two", "three"]

        contents = generate_book_content(_book(), FeatureSet(), client)

        self.assertEqual(contents, ["one", "two", "three"])

    def test_book_content_aborts_on_first_failure(self) -> None:
        client = Mock()
        client.generate.side_effect = [
            "one",
            ProviderError(Provider.CLAUDE, "overloaded", 529),
            "three",
        ]

        with self.assertRaises(ProviderError):
            generate_book_content(_book(), FeatureSet(), client)

        self.assertEqual(client.generate.call_count, 2)

    def test_report_records_each_chapter(self) -> None:
        client = Mock()
        client.generate.side_effect = [
            "one",
            ProviderError(Provider.CLAUDE, "overloaded", 529),
            "three",
        ]

        results = generate_book_content_report(_book(), FeatureSet(), client)

        self.assertEqual([result.ok for result in results], [True, False, True])
        self.assertEqual(results[2].content, "three")
        self.assertEqual(
            results[1].to_dict(),
            {"index": 1, "title": "Chapter 2", "error": "Claude API error: overloaded"},
        )


class TestOutlineGeneration(unittest.TestCase):
    def test_outline_parses_response(self) -> None:
        client = Mock()
        client.generate.return_value = '[{"title": "A", "description": "a"}]'

        chapters = generate_chapter_outline("Book", "About", client, chapter_count=1)

        self.assertEqual([chapter.title for chapter in chapters], ["A"])
        self.assertEqual(client.generate.call_args[1]["max_tokens"], OUTLINE_MAX_TOKENS)


class TestRecommendFeatures(unittest.TestCase):
    def test_missing_key_returns_defaults(self) -> None:
        features = recommend_features("Stats", "", AIConfig(Provider.CLAUDE), Settings())

        self.assertEqual(features, list(DEFAULT_RECOMMENDED_FEATURES))

    def test_provider_error_returns_defaults(self) -> None:
        with patch(
            "liquid_books.generation.ProviderClient.generate",
            side_effect=ProviderError(Provider.OPENAI, "down", 503),
        ):
            features = recommend_features(
                "Stats", "", AIConfig(Provider.OPENAI, api_key="key"), Settings()
            )

        self.assertEqual(features, list(DEFAULT_RECOMMENDED_FEATURES))

    def test_timeout_returns_defaults(self) -> None:
        urlopen_mock = Mock(side_effect=TimeoutError)

        with patch("liquid_books.providers.request.urlopen", urlopen_mock):
            features = recommend_features(
                "Stats", "", AIConfig(Provider.CLAUDE, api_key="key"), Settings()
            )

        self.assertEqual(features, list(DEFAULT_RECOMMENDED_FEATURES))
        urlopen_mock.assert_called_once()

    def test_parses_provider_answer(self) -> None:
        with patch(
            "liquid_books.generation.ProviderClient.generate",
            return_value='["tabs", "figures"]',
        ) as generate_mock:
            features = recommend_features(
                "Stats", "Numbers", AIConfig(Provider.GEMINI, api_key="key"), Settings()
            )

        self.assertEqual(features, [Feature.TABS, Feature.FIGURES])
        self.assertEqual(generate_mock.call_args[1]["max_tokens"], RECOMMENDATION_MAX_TOKENS)


if __name__ == "__main__":
    unittest.main()
