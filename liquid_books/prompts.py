from __future__ import annotations

from typing import Optional

from liquid_books.features import (
    FEATURE_DESCRIPTIONS,
    Feature,
    FeatureSet,
    get_enabled_features,
)
from liquid_books.models import BookConfig, Chapter


DEFAULT_WORD_TARGET = 3000
DEFAULT_CHAPTER_COUNT = 8

SYNTAX_EXAMPLES: dict[Feature, str] = {
    Feature.ADMONITIONS: """Admonitions:
:::{note}
This is a note.
:::

:::{tip}
This is a tip.
:::

:::{warning}
This is a warning.
:::""",
    Feature.CODE_BLOCKS: """Code blocks:
```python
def example():
    return "Hello, World!"
```""",
    Feature.MATH_EQUATIONS: """Math equations:
Inline: $E = mc^2$
Block:
$$
\\frac{d}{dx}e^x = e^x
$$""",
    Feature.MERMAID_DIAGRAMS: """Mermaid diagrams:
```{mermaid}
flowchart LR
    A[Start] --> B[Process]
    B --> C[End]
```""",
    Feature.FIGURES: """Figures:
:::{figure} image.png
:name: fig-example
:align: center

Caption for the figure.
:::""",
    Feature.EXERCISES: """Exercises:
:::{exercise}
:label: ex-1

Write a function that...
:::

:::{solution} ex-1
:class: dropdown

Here is the solution...
:::""",
    Feature.DROPDOWNS: """Dropdowns:
:::{dropdown} Click to expand
Hidden content here.
:::""",
    Feature.TABS: """Tabs:
::::{tab-set}
:::{tab-item} Python
Python code here.
:::
:::{tab-item} JavaScript
JavaScript code here.
:::
::::""",
}


def build_syntax_examples(features: FeatureSet) -> str:
    examples = [
        example
        for feature, example in SYNTAX_EXAMPLES.items()
        if features.is_enabled(feature)
    ]
    return "\n\n".join(examples)


def chapter_word_target(chapter: Chapter) -> int:
    return chapter.target_word_count or DEFAULT_WORD_TARGET


def build_chapter_prompt(
    book: BookConfig,
    chapter: Chapter,
    chapter_index: int,
    features: FeatureSet,
    instructions: Optional[str] = None,
) -> str:
    word_target = chapter_word_target(chapter)
    enabled_lines = "\n".join(f"- {label}" for label in get_enabled_features(features))
    instruction_line = (
        f"- Additional Instructions: {instructions.strip()}\n"
        if instructions and instructions.strip()
        else ""
    )
    return (
        "You are an expert technical writer creating content for an interactive "
        "eBook using MyST Markdown syntax.\n\n"
        "BOOK CONTEXT:\n"
        f"- Title: {book.title}\n"
        f"- Description: {book.description}\n"
        f"- Author: {book.author}\n\n"
        "CHAPTER TO WRITE:\n"
        f"- Chapter {chapter_index + 1}: {chapter.title}\n"
        f"- Chapter Description: {chapter.description}\n"
        f"{instruction_line}"
        f"- Target Word Count: {word_target} words\n\n"
        "ENABLED FEATURES TO USE:\n"
        f"{enabled_lines}\n\n"
        "MYST MARKDOWN SYNTAX EXAMPLES:\n"
        f"{build_syntax_examples(features)}\n\n"
        "REQUIREMENTS:\n"
        "1. Write the COMPLETE chapter content in valid MyST Markdown\n"
        f"2. Start with a level-1 heading: # {chapter.title}\n"
        "3. Use the enabled MyST features appropriately throughout the content\n"
        "4. Include code examples where relevant (use Python unless otherwise specified)\n"
        "5. Add exercises or practice problems if exercises feature is enabled\n"
        "6. Use admonitions to highlight important information\n"
        f"7. Target approximately {word_target} words\n"
        "8. Make the content educational, engaging, and practical\n"
        "9. Include cross-references to figures and sections using MyST syntax\n"
        "10. Structure the chapter with clear sections (##) and subsections (###)\n\n"
        "Write ONLY the MyST Markdown content, no explanations or meta-commentary."
    )


def build_outline_prompt(
    title: str,
    description: str,
    target_audience: Optional[str] = None,
    chapter_count: int = DEFAULT_CHAPTER_COUNT,
) -> str:
    audience_line = f"Target Audience: {target_audience}\n" if target_audience else ""
    return (
        "You are an expert book author and curriculum designer. "
        "Generate a chapter outline for an interactive eBook.\n\n"
        f"Book Title: {title}\n"
        f"Book Description: {description}\n"
        f"{audience_line}"
        f"Number of Chapters: {chapter_count}\n\n"
        f"Generate exactly {chapter_count} chapters with clear, descriptive titles "
        "and brief descriptions (1-2 sentences each) explaining what each chapter "
        "will cover.\n\n"
        "Return the chapters as a JSON array in this exact format:\n"
        "[\n"
        '  {"title": "Chapter Title", "description": "Brief description of what '
        'this chapter covers"},\n'
        "  ...\n"
        "]\n\n"
        "Make sure the chapters:\n"
        "1. Flow logically from beginner concepts to more advanced topics\n"
        "2. Have clear, engaging titles\n"
        "3. Include practical, hands-on content descriptions\n"
        "4. Build upon each other progressively\n\n"
        "Return ONLY the JSON array, no other text."
    )


def build_recommendation_prompt(chapter_title: str, chapter_description: str) -> str:
    feature_list = "\n".join(
        f"- {feature.value}: {FEATURE_DESCRIPTIONS[feature]}" for feature in Feature
    )
    return (
        "You are an expert eBook designer. Based on the chapter information below, "
        "recommend the most appropriate features to enhance the content.\n\n"
        f"CHAPTER TITLE: {chapter_title}\n"
        f"CHAPTER DESCRIPTION: {chapter_description or 'No description provided'}\n\n"
        "AVAILABLE FEATURES:\n"
        f"{feature_list}\n\n"
        "Analyze the chapter topic and recommend 5-10 features that would be most "
        "useful. Consider:\n"
        "1. The subject matter (technical, academic, tutorial, etc.)\n"
        "2. What types of content would enhance learning\n"
        "3. Interactive elements that fit the topic\n"
        "4. Visual elements that would help explain concepts\n\n"
        "Return ONLY a JSON array of feature keys, like:\n"
        '["codeBlocks", "admonitions", "exercises", "figures", "dropdowns"]\n\n'
        "Return the JSON array only, no other text."
    )
