"""Closed catalogue of MyST content features a book can request."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Mapping

from liquid_books.models import PayloadError


class Feature(str, Enum):
    ADMONITIONS = "admonitions"
    CODE_BLOCKS = "codeBlocks"
    MATH_EQUATIONS = "mathEquations"
    MERMAID_DIAGRAMS = "mermaidDiagrams"
    FIGURES = "figures"
    TABLES = "tables"
    BLOCKQUOTES = "blockquotes"
    CARDS = "cards"
    GRIDS = "grids"
    ASIDES = "asides"
    FOOTNOTES = "footnotes"
    ABBREVIATIONS = "abbreviations"
    SMALLCAPS = "smallcaps"
    SUBSCRIPT_SUPERSCRIPT = "subscriptSuperscript"
    UNDERLINE_STRIKETHROUGH = "underlineStrikethrough"
    KEYBOARD = "keyboard"
    VIDEOS = "videos"
    IMAGES = "images"
    EXERCISES = "exercises"
    DROPDOWNS = "dropdowns"
    TABS = "tabs"
    GLOSSARY = "glossary"
    BUTTONS = "buttons"
    PROOFS = "proofs"
    SI_UNITS = "siUnits"
    CHEMICAL_FORMULAS = "chemicalFormulas"
    WIKIPEDIA_LINKS = "wikipediaLinks"
    GITHUB_LINKS = "githubLinks"
    DOI_LINKS = "doiLinks"
    RRID_LINKS = "rridLinks"
    ROR_LINKS = "rorLinks"
    INTERSPHINX = "intersphinx"
    EMBED_DIRECTIVE = "embedDirective"
    INCLUDE_FILES = "includeFiles"
    EVAL_EXPRESSIONS = "evalExpressions"
    EXECUTABLE_CODE = "executableCode"
    JUPYTER_LITE = "jupyterLite"
    BINDER_INTEGRATION = "binderIntegration"
    THEBE = "thebe"
    COLAB_LINKS = "colabLinks"
    PDF_EXPORT = "pdfExport"
    WORD_EXPORT = "wordExport"
    TEX_EXPORT = "texExport"
    JATS_EXPORT = "jatsExport"
    TYPST_EXPORT = "typstExport"
    MARKDOWN_EXPORT = "markdownExport"
    TABLE_OF_CONTENTS = "tableOfContents"
    CROSS_REFERENCES = "crossReferences"
    CITATIONS = "citations"
    INDEX_ENTRIES = "indexEntries"
    NUMBERED_REFERENCES = "numberedReferences"

    @classmethod
    def lookup(cls, key: str) -> "Feature | None":
        try:
            return cls(key)
        except ValueError:
            return None


# Labels used when listing enabled features in a content prompt.
FEATURE_LABELS: dict[Feature, str] = {
    Feature.ADMONITIONS: "Admonitions (note, tip, warning, danger boxes)",
    Feature.CODE_BLOCKS: "Syntax-highlighted code blocks",
    Feature.MATH_EQUATIONS: "LaTeX math equations",
    Feature.MERMAID_DIAGRAMS: "Mermaid diagrams",
    Feature.FIGURES: "Figures with captions",
    Feature.TABLES: "Tables",
    Feature.BLOCKQUOTES: "Blockquotes and epigraphs",
    Feature.CARDS: "Content cards",
    Feature.GRIDS: "Grid layouts",
    Feature.ASIDES: "Sidenotes and margin notes",
    Feature.FOOTNOTES: "Footnotes",
    Feature.ABBREVIATIONS: "Abbreviations with tooltips",
    Feature.SMALLCAPS: "Small caps",
    Feature.SUBSCRIPT_SUPERSCRIPT: "Subscript and superscript",
    Feature.UNDERLINE_STRIKETHROUGH: "Underline and strikethrough",
    Feature.KEYBOARD: "Keyboard key styling",
    Feature.VIDEOS: "Embedded videos",
    Feature.IMAGES: "Images",
    Feature.EXERCISES: "Exercises with solutions",
    Feature.DROPDOWNS: "Collapsible dropdown sections",
    Feature.TABS: "Tabbed content panels",
    Feature.GLOSSARY: "Glossary terms",
    Feature.BUTTONS: "Button links",
    Feature.PROOFS: "Proofs and theorems",
    Feature.SI_UNITS: "SI units",
    Feature.CHEMICAL_FORMULAS: "Chemical formulas",
    Feature.WIKIPEDIA_LINKS: "Wikipedia links",
    Feature.GITHUB_LINKS: "GitHub links",
    Feature.DOI_LINKS: "DOI links",
    Feature.RRID_LINKS: "RRID links",
    Feature.ROR_LINKS: "ROR links",
    Feature.INTERSPHINX: "Intersphinx cross-references",
    Feature.EMBED_DIRECTIVE: "Embed directive",
    Feature.INCLUDE_FILES: "Include files",
    Feature.EVAL_EXPRESSIONS: "Eval expressions",
    Feature.EXECUTABLE_CODE: "Executable code cells",
    Feature.JUPYTER_LITE: "JupyterLite (browser-based Python)",
    Feature.BINDER_INTEGRATION: "Binder integration",
    Feature.THEBE: "Thebe live code",
    Feature.COLAB_LINKS: "Google Colab links",
    Feature.PDF_EXPORT: "PDF export",
    Feature.WORD_EXPORT: "Word export",
    Feature.TEX_EXPORT: "LaTeX export",
    Feature.JATS_EXPORT: "JATS XML export",
    Feature.TYPST_EXPORT: "Typst export",
    Feature.MARKDOWN_EXPORT: "Markdown export",
    Feature.TABLE_OF_CONTENTS: "Table of contents",
    Feature.CROSS_REFERENCES: "Cross-references",
    Feature.CITATIONS: "Citations and bibliography",
    Feature.INDEX_ENTRIES: "Index entries",
    Feature.NUMBERED_REFERENCES: "Numbered references",
}

# Short descriptions offered to the model when it recommends features.
FEATURE_DESCRIPTIONS: dict[Feature, str] = {
    Feature.ADMONITIONS: "Note, tip, warning, danger callout boxes",
    Feature.CODE_BLOCKS: "Syntax-highlighted code examples",
    Feature.MATH_EQUATIONS: "LaTeX mathematical equations",
    Feature.MERMAID_DIAGRAMS: "Flowcharts, sequence diagrams, graphs",
    Feature.FIGURES: "Images with captions and references",
    Feature.TABLES: "Data tables",
    Feature.BLOCKQUOTES: "Quoted text and epigraphs",
    Feature.CARDS: "Content cards for highlights",
    Feature.GRIDS: "Multi-column layouts",
    Feature.ASIDES: "Sidenotes and margin notes",
    Feature.FOOTNOTES: "Bottom-of-page references",
    Feature.ABBREVIATIONS: "Terms with tooltip definitions",
    Feature.SMALLCAPS: "Stylized small capital text",
    Feature.SUBSCRIPT_SUPERSCRIPT: "H₂O or E=mc² formatting",
    Feature.UNDERLINE_STRIKETHROUGH: "Text decoration",
    Feature.KEYBOARD: "Keyboard shortcut styling (Ctrl+C)",
    Feature.VIDEOS: "Embedded video content",
    Feature.IMAGES: "Standalone images",
    Feature.EXERCISES: "Practice problems with solutions",
    Feature.DROPDOWNS: "Collapsible content sections",
    Feature.TABS: "Tabbed content panels",
    Feature.GLOSSARY: "Term definitions with links",
    Feature.BUTTONS: "Call-to-action buttons",
    Feature.PROOFS: "Mathematical proofs and theorems",
    Feature.SI_UNITS: "Scientific units formatting",
    Feature.CHEMICAL_FORMULAS: "Chemical notation",
    Feature.WIKIPEDIA_LINKS: "Wikipedia references",
    Feature.GITHUB_LINKS: "GitHub repository links",
    Feature.DOI_LINKS: "Academic paper DOI links",
    Feature.RRID_LINKS: "Research resource identifiers",
    Feature.ROR_LINKS: "Research organization links",
    Feature.INTERSPHINX: "Python documentation cross-refs",
    Feature.EMBED_DIRECTIVE: "Embed external MyST content",
    Feature.INCLUDE_FILES: "Include external files",
    Feature.EVAL_EXPRESSIONS: "Dynamic computed values",
    Feature.EXECUTABLE_CODE: "Run code during build",
    Feature.JUPYTER_LITE: "Browser-based Python execution",
    Feature.BINDER_INTEGRATION: "Cloud Jupyter notebooks",
    Feature.THEBE: "In-page live code execution",
    Feature.COLAB_LINKS: "Google Colab notebook links",
    Feature.PDF_EXPORT: "PDF generation",
    Feature.WORD_EXPORT: "Word document export",
    Feature.TEX_EXPORT: "LaTeX source export",
    Feature.JATS_EXPORT: "Academic XML export",
    Feature.TYPST_EXPORT: "Typst PDF export",
    Feature.MARKDOWN_EXPORT: "Plain Markdown export",
    Feature.TABLE_OF_CONTENTS: "Navigation sidebar",
    Feature.CROSS_REFERENCES: "Section and figure links",
    Feature.CITATIONS: "Bibliography and citations",
    Feature.INDEX_ENTRIES: "Searchable index",
    Feature.NUMBERED_REFERENCES: "Auto-numbered elements",
}

DEFAULT_RECOMMENDED_FEATURES = (
    Feature.ADMONITIONS,
    Feature.CODE_BLOCKS,
    Feature.FIGURES,
    Feature.EXERCISES,
    Feature.DROPDOWNS,
)
FALLBACK_PARSED_FEATURES = (
    Feature.ADMONITIONS,
    Feature.CODE_BLOCKS,
    Feature.FIGURES,
)


@dataclass(frozen=True)
class FeatureSet:
    enabled: FrozenSet[Feature] = frozenset()

    @classmethod
    def of(cls, features: Iterable[Feature]) -> "FeatureSet":
        return cls(frozenset(features))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "FeatureSet":
        """Build a set from a ``{featureKey: bool}`` payload, ignoring unknown keys."""
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise PayloadError("features must be an object")
        enabled = set()
        for key, value in data.items():
            feature = Feature.lookup(str(key))
            if feature is not None and value is True:
                enabled.add(feature)
        return cls(frozenset(enabled))

    def is_enabled(self, feature: Feature) -> bool:
        return feature in self.enabled

    def to_dict(self) -> dict[str, bool]:
        return {feature.value: feature in self.enabled for feature in Feature}


def get_enabled_features(features: FeatureSet) -> List[str]:
    """Return prompt labels for enabled features, in catalogue order."""
    return [FEATURE_LABELS[feature] for feature in Feature if features.is_enabled(feature)]
