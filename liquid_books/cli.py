from __future__ import annotations

import argparse
import importlib
import json
from pathlib import Path
from typing import Optional, Sequence

from liquid_books.config import Settings
from liquid_books.generation import generate_chapter_outline
from liquid_books.models import AIConfig, Chapter, Provider
from liquid_books.preview import myst_to_html
from liquid_books.prompts import DEFAULT_CHAPTER_COUNT
from liquid_books.providers import (
    MissingCredentialError,
    ProviderClient,
    ProviderError,
    list_all_models,
    list_models,
)


def _questionary():
    return importlib.import_module("questionary")


def _print_chapters(chapters: Sequence[Chapter]) -> None:
    for index, chapter in enumerate(chapters, start=1):
        print(f"{index}. {chapter.title}")
        if chapter.description:
            print(f"   {chapter.description}")


def _print_models(settings: Settings, provider: Optional[Provider], api_key: Optional[str]) -> None:
    if provider is None:
        groups = list_all_models(settings, api_key)
    else:
        groups = [(provider, list_models(provider, settings, api_key))]
    for group_provider, models in groups:
        print(f"{group_provider.display_name}:")
        for model in models:
            print(f"  {model.id}  ({model.name})")


def render_preview_file(source: Path, output: Optional[Path] = None) -> str:
    html = myst_to_html(source.read_text(encoding="utf-8"))
    if output is not None:
        output.write_text(html + "\n", encoding="utf-8")
    return html


def outline_book(
    settings: Settings,
    title: str,
    description: str,
    provider: Provider,
    model: str = "",
    api_key: Optional[str] = None,
    audience: Optional[str] = None,
    chapter_count: int = DEFAULT_CHAPTER_COUNT,
) -> list[Chapter]:
    client = ProviderClient.from_config(
        AIConfig(provider=provider, model=model, api_key=api_key), settings
    )
    return generate_chapter_outline(
        title,
        description,
        client,
        target_audience=audience,
        chapter_count=chapter_count,
    )


def _prompt_for_action() -> str:
    questionary = _questionary()
    response = questionary.select(
        "What would you like to do?",
        choices=[
            questionary.Choice("Outline a new book", value="outline"),
            questionary.Choice("List provider models", value="models"),
            questionary.Choice("Launch API server", value="serve"),
        ],
    ).ask()
    return response or "outline"


def _prompt_for_provider(default: Provider) -> Provider:
    questionary = _questionary()
    response = questionary.select(
        "Which AI provider?",
        choices=[
            questionary.Choice(provider.display_name, value=provider.value)
            for provider in Provider
        ],
        default=default.value,
    ).ask()
    return Provider.parse(response, default=default)


def _prompt_for_chapter_count(default: int) -> int:
    questionary = _questionary()
    response = questionary.text("Number of chapters:", default=str(default)).ask()
    try:
        value = int(response)
    except (TypeError, ValueError):
        print(f"Invalid number '{response}', using {default}.")
        return default
    if value < 1:
        print(f"Invalid number '{response}', using {default}.")
        return default
    return value


def _run_prompt(args: argparse.Namespace, settings: Settings) -> int:
    from liquid_books.server import run_server

    questionary = _questionary()
    action = _prompt_for_action()
    if action == "serve":
        run_server(host=args.host, port=args.port, settings=settings)
        return 0
    provider = _prompt_for_provider(args.provider)
    if action == "models":
        _print_models(settings, provider, args.api_key)
        return 0
    title = (questionary.text("Book title:").ask() or "").strip()
    description = (questionary.text("Book description:").ask() or "").strip()
    if not title or not description:
        print("Book title and description are required.")
        return 1
    audience = (questionary.text("Target audience (optional):").ask() or "").strip()
    chapter_count = _prompt_for_chapter_count(args.chapters)
    chapters = outline_book(
        settings,
        title,
        description,
        provider,
        model=args.model,
        api_key=args.api_key,
        audience=audience or None,
        chapter_count=chapter_count,
    )
    _print_chapters(chapters)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Outline, write and preview LiquidBooks chapters."
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Launch the LiquidBooks API server.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the API server (default: 8080).",
    )
    parser.add_argument(
        "--preview",
        type=Path,
        help="Render a MyST markdown file to preview HTML.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write preview HTML to this file instead of stdout.",
    )
    parser.add_argument(
        "--models",
        action="store_true",
        help="List models for --provider, or for every provider when omitted.",
    )
    parser.add_argument(
        "--outline",
        action="store_true",
        help="Generate a chapter outline from --title and --description.",
    )
    parser.add_argument("--title", default="", help="Book title for --outline.")
    parser.add_argument("--description", default="", help="Book description for --outline.")
    parser.add_argument("--audience", help="Target audience for --outline.")
    parser.add_argument(
        "--chapters",
        type=int,
        default=DEFAULT_CHAPTER_COUNT,
        help=f"Number of chapters for --outline (default: {DEFAULT_CHAPTER_COUNT}).",
    )
    parser.add_argument(
        "--provider",
        type=Provider.parse,
        default=None,
        help="AI provider: claude, gemini or openai.",
    )
    parser.add_argument("--model", default="", help="Provider model identifier.")
    parser.add_argument(
        "--api-key",
        help="API key for the provider (defaults to the provider's environment variable).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print --outline results as JSON.",
    )
    parser.add_argument(
        "--prompt",
        action="store_true",
        help="Use interactive prompts to choose what to do.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()

    if args.serve:
        from liquid_books.server import run_server

        run_server(host=args.host, port=args.port, settings=settings)
        return 0

    if args.prompt:
        if args.provider is None:
            args.provider = Provider.CLAUDE
        return _run_prompt(args, settings)

    if args.preview:
        try:
            html = render_preview_file(args.preview, args.output)
        except (OSError, UnicodeDecodeError) as exc:
            parser.error(f"Unable to read {args.preview}: {exc}")
        if args.output is None:
            print(html)
        else:
            print(f"Saved preview to {args.output}.")
        return 0

    if args.models:
        _print_models(settings, args.provider, args.api_key)
        return 0

    if args.outline:
        if not args.title.strip() or not args.description.strip():
            parser.error("--outline requires --title and --description.")
        if args.chapters < 1:
            parser.error("--chapters must be at least 1.")
        try:
            chapters = outline_book(
                settings,
                args.title.strip(),
                args.description.strip(),
                args.provider or Provider.CLAUDE,
                model=args.model,
                api_key=args.api_key,
                audience=args.audience,
                chapter_count=args.chapters,
            )
        except MissingCredentialError as exc:
            parser.error(str(exc))
        except ProviderError as exc:
            print(str(exc))
            return 1
        if args.json:
            print(json.dumps([chapter.to_dict() for chapter in chapters], indent=2))
        else:
            _print_chapters(chapters)
        return 0

    parser.print_help()
    return 0
