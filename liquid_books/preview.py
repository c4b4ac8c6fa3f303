"""Render the MyST-flavoured Markdown used for chapters into preview HTML.

The source is split into block nodes first (headings, fenced code,
admonitions, dropdowns, math blocks, lists, paragraphs) and each node is
rendered by its own function. Inline markup (code spans, inline math, links,
bold, italic) is only applied to text that belongs to a heading, list item or
paragraph, so fenced code and math keep their characters verbatim.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from html import escape as html_escape
from typing import Iterable, List, Optional, Sequence, Union

from liquid_books.models import BookConfig


HEADING_PATTERN = re.compile(r"^(#{1,3}) (.+)$")
FENCE_OPEN_PATTERN = re.compile(r"^```\s*([^\s`]*).*$")
DIRECTIVE_OPEN_PATTERN = re.compile(r"^(:{3,})\{([\w-]+)\}\s*(.*)$")
DIRECTIVE_CLOSE_PATTERN = re.compile(r"^(:{3,})\s*$")
BULLET_PATTERN = re.compile(r"^- (.+)$")
NUMBERED_PATTERN = re.compile(r"^\d+\. (.+)$")
INLINE_TOKEN_PATTERN = re.compile(r"`(?P<code>[^`]+)`|\$(?P<math>[^$\n]+)\$")
LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)\s\ue000]+)\)")
BOLD_PATTERN = re.compile(r"\*\*([^*]+)\*\*")
ITALIC_PATTERN = re.compile(r"\*([^*]+)\*")
PLACEHOLDER_OPEN = "\ue000"
PLACEHOLDER_CLOSE = "\ue001"
PLACEHOLDER_PATTERN = re.compile(PLACEHOLDER_OPEN + r"(\d+)" + PLACEHOLDER_CLOSE)

ADMONITION_STYLES = {
    "note": ("Note", "blue"),
    "tip": ("Tip", "green"),
    "warning": ("Warning", "yellow"),
    "danger": ("Danger", "red"),
}
DROPDOWN_KIND = "dropdown"

HEADING_CLASSES = {
    1: "text-2xl font-bold mb-4 text-primary",
    2: "text-xl font-bold mt-6 mb-3",
    3: "text-lg font-semibold mt-4 mb-2",
}
PARAGRAPH_CLASS = "my-3"
LIST_ITEM_CLASS = "ml-4"
CODE_BLOCK_CLASS = "bg-gray-900 text-gray-100 p-4 rounded-lg my-4 overflow-x-auto"
INLINE_CODE_CLASS = "bg-gray-100 px-1 rounded text-sm"
MATH_BLOCK_CLASS = "bg-gray-50 p-4 my-4 text-center font-mono"
INLINE_MATH_CLASS = "font-mono bg-gray-50 px-1"
LINK_CLASS = "text-blue-600 hover:underline"


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class CodeBlock:
    language: str
    code: str


@dataclass(frozen=True)
class MathBlock:
    tex: str


@dataclass(frozen=True)
class ListBlock:
    ordered: bool
    items: tuple[str, ...]


@dataclass(frozen=True)
class Paragraph:
    text: str


@dataclass(frozen=True)
class Literal:
    """Directive we do not style; shown escaped, as written."""

    text: str


@dataclass(frozen=True)
class Admonition:
    kind: str
    children: tuple["Block", ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Dropdown:
    title: str
    children: tuple["Block", ...] = field(default_factory=tuple)


Block = Union[Heading, CodeBlock, MathBlock, ListBlock, Paragraph, Literal, Admonition, Dropdown]


def _starts_block(line: str) -> bool:
    stripped = line.strip()
    return bool(
        HEADING_PATTERN.match(line)
        or FENCE_OPEN_PATTERN.match(stripped)
        or DIRECTIVE_OPEN_PATTERN.match(stripped)
        or stripped.startswith("$$")
        or BULLET_PATTERN.match(line)
        or NUMBERED_PATTERN.match(line)
    )


def _read_fence(lines: Sequence[str], start: int) -> tuple[int, List[str]]:
    body: List[str] = []
    index = start
    while index < len(lines):
        if lines[index].strip().startswith("```"):
            return index + 1, body
        body.append(lines[index])
        index += 1
    return index, body


def _read_directive(lines: Sequence[str], start: int, colons: str) -> tuple[int, List[str]]:
    """Collect lines up to the ``:::`` that closes the directive opened before ``start``."""
    body: List[str] = []
    depth = 0
    index = start
    while index < len(lines):
        stripped = lines[index].strip()
        if stripped.startswith("```"):
            next_index, _ = _read_fence(lines, index + 1)
            body.extend(lines[index:next_index])
            index = next_index
            continue
        opening = DIRECTIVE_OPEN_PATTERN.match(stripped)
        if opening:
            depth += 1
        else:
            closing = DIRECTIVE_CLOSE_PATTERN.match(stripped)
            if closing:
                if depth == 0 and len(closing.group(1)) >= len(colons):
                    return index + 1, body
                depth = max(depth - 1, 0)
        body.append(lines[index])
        index += 1
    return index, body


def _read_math(lines: Sequence[str], start: int) -> tuple[int, str]:
    first = lines[start].strip()[2:]
    if first.rstrip().endswith("$$"):
        return start + 1, first.rstrip()[:-2].strip()
    body = [first] if first.strip() else []
    index = start + 1
    while index < len(lines):
        stripped = lines[index].rstrip()
        if stripped.endswith("$$"):
            tail = stripped[:-2]
            if tail.strip():
                body.append(tail)
            return index + 1, "\n".join(body)
        body.append(lines[index])
        index += 1
    return index, "\n".join(body)


def parse_blocks(text: str) -> List[Block]:
    lines = text.replace("\r\n", "\n").split("\n")
    blocks: List[Block] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        stripped = line.strip()
        if not stripped:
            index += 1
            continue

        fence = FENCE_OPEN_PATTERN.match(stripped)
        if fence:
            index, body = _read_fence(lines, index + 1)
            blocks.append(CodeBlock(language=fence.group(1), code="\n".join(body)))
            continue

        directive = DIRECTIVE_OPEN_PATTERN.match(stripped)
        if directive:
            colons, kind, argument = directive.groups()
            end, body = _read_directive(lines, index + 1, colons)
            inner = "\n".join(body)
            if kind in ADMONITION_STYLES:
                blocks.append(Admonition(kind=kind, children=tuple(parse_blocks(inner))))
            elif kind == DROPDOWN_KIND:
                blocks.append(
                    Dropdown(
                        title=argument.strip() or "Details",
                        children=tuple(parse_blocks(inner)),
                    )
                )
            else:
                blocks.append(Literal(text="\n".join(lines[index:end])))
            index = end
            continue

        if stripped.startswith("$$"):
            index, tex = _read_math(lines, index)
            blocks.append(MathBlock(tex=tex))
            continue

        heading = HEADING_PATTERN.match(line)
        if heading:
            blocks.append(Heading(level=len(heading.group(1)), text=heading.group(2).strip()))
            index += 1
            continue

        for ordered, pattern in ((False, BULLET_PATTERN), (True, NUMBERED_PATTERN)):
            if pattern.match(line):
                items: List[str] = []
                while index < len(lines):
                    item = pattern.match(lines[index])
                    if not item:
                        break
                    items.append(item.group(1).strip())
                    index += 1
                blocks.append(ListBlock(ordered=ordered, items=tuple(items)))
                break
        else:
            paragraph = [stripped]
            index += 1
            while index < len(lines) and lines[index].strip() and not _starts_block(lines[index]):
                paragraph.append(lines[index].strip())
                index += 1
            blocks.append(Paragraph(text="\n".join(paragraph)))
    return blocks


def _render_emphasis(escaped: str) -> str:
    # Bold first: the italic pattern would otherwise split "**text**".
    escaped = BOLD_PATTERN.sub(r"<strong>\1</strong>", escaped)
    return ITALIC_PATTERN.sub(r"<em>\1</em>", escaped)


def _render_text(text: str) -> str:
    parts: List[str] = []
    position = 0
    for match in LINK_PATTERN.finditer(text):
        parts.append(_render_emphasis(html_escape(text[position:match.start()], quote=False)))
        label = _render_emphasis(html_escape(match.group(1), quote=False))
        href = html_escape(match.group(2), quote=True)
        parts.append(
            f'<a href="{href}" class="{LINK_CLASS}" target="_blank" '
            f'rel="noopener noreferrer">{label}</a>'
        )
        position = match.end()
    parts.append(_render_emphasis(html_escape(text[position:], quote=False)))
    return "".join(parts)


def _render_token(match: re.Match[str]) -> str:
    code = match.group("code")
    if code is not None:
        return f'<code class="{INLINE_CODE_CLASS}">{html_escape(code, quote=False)}</code>'
    return (
        f'<span class="{INLINE_MATH_CLASS}">'
        f"{html_escape(match.group('math'), quote=False)}</span>"
    )


def render_inline(text: str) -> str:
    """Render one block's inline markup.

    Code spans and inline math are swapped for placeholders first, so emphasis
    and links can wrap them while their own characters stay verbatim.
    """
    tokens: List[str] = []

    def stash(match: re.Match[str]) -> str:
        tokens.append(_render_token(match))
        return f"{PLACEHOLDER_OPEN}{len(tokens) - 1}{PLACEHOLDER_CLOSE}"

    cleaned = text.replace(PLACEHOLDER_OPEN, "").replace(PLACEHOLDER_CLOSE, "")
    rendered = _render_text(INLINE_TOKEN_PATTERN.sub(stash, cleaned))
    return PLACEHOLDER_PATTERN.sub(lambda match: tokens[int(match.group(1))], rendered)


def _render_heading(block: Heading) -> str:
    tag = f"h{block.level}"
    return f'<{tag} class="{HEADING_CLASSES[block.level]}">{render_inline(block.text)}</{tag}>'


def _render_code(block: CodeBlock) -> str:
    language = block.language.strip("{}")
    code_attr = f' class="language-{html_escape(language)}"' if language else ""
    return (
        f'<pre class="{CODE_BLOCK_CLASS}"><code{code_attr}>'
        f"{html_escape(block.code, quote=False)}</code></pre>"
    )


def _render_math(block: MathBlock) -> str:
    return f'<div class="{MATH_BLOCK_CLASS}">{html_escape(block.tex, quote=False)}</div>'


def _render_list(block: ListBlock) -> str:
    if block.ordered:
        items = "".join(
            f'<li class="{LIST_ITEM_CLASS} list-decimal">{render_inline(item)}</li>'
            for item in block.items
        )
        return f'<ol class="list-decimal my-4">{items}</ol>'
    items = "".join(
        f'<li class="{LIST_ITEM_CLASS}">{render_inline(item)}</li>' for item in block.items
    )
    return f'<ul class="list-disc my-4">{items}</ul>'


def _render_paragraph(block: Paragraph) -> str:
    content = render_inline(block.text).strip()
    if not content:
        return ""
    return f'<p class="{PARAGRAPH_CLASS}">{content}</p>'


def _render_admonition(block: Admonition) -> str:
    label, color = ADMONITION_STYLES[block.kind]
    return (
        f'<div class="bg-{color}-50 border-l-4 border-{color}-500 p-4 my-4">'
        f'<strong class="text-{color}-700">{label}:</strong>'
        f'<div class="text-{color}-900">{render_blocks(block.children)}</div></div>'
    )


def _render_dropdown(block: Dropdown) -> str:
    return (
        '<details class="my-4 border rounded-lg">'
        '<summary class="p-3 bg-gray-100 cursor-pointer font-medium">'
        f"{render_inline(block.title)}</summary>"
        f'<div class="p-4">{render_blocks(block.children)}</div></details>'
    )


def _render_literal(block: Literal) -> str:
    return html_escape(block.text, quote=False)


_RENDERERS = {
    Heading: _render_heading,
    CodeBlock: _render_code,
    MathBlock: _render_math,
    ListBlock: _render_list,
    Paragraph: _render_paragraph,
    Literal: _render_literal,
    Admonition: _render_admonition,
    Dropdown: _render_dropdown,
}


def render_blocks(blocks: Iterable[Block]) -> str:
    rendered = (_RENDERERS[type(block)](block) for block in blocks)
    return "\n".join(html for html in rendered if html)


def myst_to_html(content: str) -> str:
    """Convert chapter Markdown into an HTML fragment for the preview pane."""
    return render_blocks(parse_blocks(content))


def count_words(content: str) -> int:
    return len(content.split())


def _render_chapter_section(index: int, title: str, content: str) -> str:
    if not content:
        return (
            '<div class="border-l-4 border-gray-300 pl-4 py-2 my-6">'
            f'<h2 class="text-xl font-bold text-gray-400">Chapter {index + 1}: '
            f"{html_escape(title)}</h2>"
            '<p class="text-gray-400 italic">Content not yet generated</p>'
            "</div>"
        )
    return (
        '<article class="chapter my-8 pb-8 border-b border-gray-200">'
        '<div class="flex justify-between items-center mb-4">'
        f'<span class="text-sm text-gray-500">Chapter {index + 1}</span>'
        f'<span class="text-sm text-gray-500">{count_words(content):,} words</span>'
        "</div>"
        f'<div class="prose max-w-none">\n{myst_to_html(content)}\n</div>'
        "</article>"
    )


def render_book_preview(book: BookConfig, footer_url: Optional[str] = None) -> str:
    """Render the full preview page: header, table of contents, chapters, footer."""
    total_words = sum(count_words(chapter.body) for chapter in book.chapters)
    toc_items = "".join(
        f'<li class="text-gray-700 hover:text-blue-600 cursor-pointer">'
        f"{html_escape(chapter.title)}</li>"
        for chapter in book.chapters
    )
    chapters = "\n".join(
        _render_chapter_section(index, chapter.title, chapter.body)
        for index, chapter in enumerate(book.chapters)
    )
    footer_link = html_escape(footer_url or "https://liquidbooks.tech")
    return (
        '<div class="book-preview font-sans">\n'
        '<header class="text-center py-8 border-b border-gray-200 mb-8">'
        f'<h1 class="text-3xl font-bold text-gray-900">{html_escape(book.title)}</h1>'
        f'<p class="text-lg text-gray-600 mt-2">by {html_escape(book.author)}</p>'
        f'<p class="text-gray-500 mt-4 max-w-2xl mx-auto">{html_escape(book.description)}</p>'
        f'<div class="mt-4 text-sm text-gray-400">{len(book.chapters)} chapters '
        f"· {total_words:,} words</div>"
        "</header>\n"
        '<nav class="mb-8 p-4 bg-gray-50 rounded-lg">'
        '<h2 class="text-lg font-bold mb-3">Table of Contents</h2>'
        f'<ol class="list-decimal list-inside space-y-1">{toc_items}</ol>'
        "</nav>\n"
        f"<main>\n{chapters}\n</main>\n"
        '<footer class="text-center py-8 text-gray-400 text-sm">'
        f'<p>Built with <a href="{footer_link}" class="text-blue-400 hover:text-blue-300">'
        "LiquidBooks</a></p>"
        "</footer>\n"
        "</div>"
    )
