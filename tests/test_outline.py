import unittest

from liquid_books.features import FALLBACK_PARSED_FEATURES, Feature
from liquid_books.outline import parse_chapters_from_response, parse_recommended_features


class TestParseChapters(unittest.TestCase):
    def test_json_array_maps_one_to_one(self) -> None:
        content = """Here is your outline:
[
  {"title": "Getting Started", "description": "Install the tools."},
  {"title": "Core Ideas", "description": "The main concepts."},
  {"title": "Next Steps"}
]
Enjoy!"""

        chapters = parse_chapters_from_response(content)

        self.assertEqual([chapter.title for chapter in chapters], [
            "Getting Started",
            "Core Ideas",
            "Next Steps",
        ])
        self.assertEqual([chapter.id for chapter in chapters], [
            "chapter-1",
            "chapter-2",
            "chapter-3",
        ])
        self.assertEqual(chapters[0].description, "Install the tools.")
        self.assertEqual(chapters[2].description, "")

    def test_json_entry_without_title_gets_placeholder(self) -> None:
        chapters = parse_chapters_from_response('[{"description": "Only text"}]')

        self.assertEqual(chapters[0].title, "Chapter 1")

    def test_numbered_list_fallback_collects_descriptions(self) -> None:
        content = """1. **Foundations**
The basics of the field.
Why it matters.

Chapter 2: Tools of the Trade
Editors and terminals.
---
3) Practice
"""

        chapters = parse_chapters_from_response(content)

        self.assertEqual(len(chapters), 3)
        self.assertEqual(chapters[0].title, "Foundations")
        self.assertEqual(chapters[0].description, "The basics of the field. Why it matters.")
        self.assertEqual(chapters[1].title, "Tools of the Trade")
        self.assertEqual(chapters[1].description, "Editors and terminals.")
        self.assertEqual(chapters[2].title, "Practice")
        self.assertEqual(chapters[2].description, "")

    def test_invalid_json_falls_back_to_numbered_list(self) -> None:
        content = "[not json]\n1. Only Chapter\nDetails"

        chapters = parse_chapters_from_response(content)

        self.assertEqual([chapter.title for chapter in chapters], ["Only Chapter"])
        self.assertEqual(chapters[0].description, "Details")

    def test_unparseable_response_returns_no_chapters(self) -> None:
        self.assertEqual(parse_chapters_from_response("I cannot help with that."), [])


class TestParseRecommendedFeatures(unittest.TestCase):
    def test_json_array_keeps_known_features_once(self) -> None:
        features = parse_recommended_features(
            'Sure: ["codeBlocks", "holograms", "exercises", "codeBlocks"]'
        )

        self.assertEqual(features, [Feature.CODE_BLOCKS, Feature.EXERCISES])

    def test_plain_text_scan_finds_features(self) -> None:
        features = parse_recommended_features("I suggest tabs and mathEquations here.")

        self.assertEqual(features, [Feature.MATH_EQUATIONS, Feature.TABS])

    def test_nothing_recognised_returns_fallback(self) -> None:
        self.assertEqual(
            parse_recommended_features("No idea."), list(FALLBACK_PARSED_FEATURES)
        )


if __name__ == "__main__":
    unittest.main()
