"""HTTP server exposing the LiquidBooks generation, preview and publishing API."""
from __future__ import annotations

import json
import traceback
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

from liquid_books.config import Settings
from liquid_books.features import FeatureSet
from liquid_books.generation import (
    generate_book_content,
    generate_book_content_report,
    generate_chapter_content,
    generate_chapter_outline,
    recommend_features,
)
from liquid_books.github import (
    GitHubClient,
    GitHubError,
    deploy_status,
    pages_url,
    push_book_content,
    resolve_delete_token,
    resolve_github_token,
    simplify_repo,
    update_readme,
)
from liquid_books.models import (
    AIConfig,
    PayloadError,
    Provider,
    parse_ai_config,
    parse_book_config,
)
from liquid_books.preview import render_book_preview
from liquid_books.prompts import DEFAULT_CHAPTER_COUNT
from liquid_books.providers import (
    MissingCredentialError,
    ProviderClient,
    ProviderError,
    list_all_models,
    list_models,
)


class ApiError(ValueError):
    """Raised when API input is invalid."""


MAX_CHAPTER_COUNT = 50

Handler = Callable[[dict[str, Any], Settings], Any]


def _get_value(data: dict[str, Any], key: str, default: Any = None) -> Any:
    value = data.get(key, default)
    if value is None:
        return default
    return value


def _get_text(data: dict[str, Any], key: str) -> str:
    return str(_get_value(data, key, "")).strip()


def _parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ApiError(f"{name} must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiError(f"{name} must be a whole number") from None


def list_models_api(payload: dict[str, Any], settings: Settings) -> Any:
    api_key = _get_text(payload, "apiKey") or None
    provider_value = _get_text(payload, "provider")
    if not provider_value:
        return [
            {"provider": provider.value, "models": [model.to_dict() for model in models]}
            for provider, models in list_all_models(settings, api_key)
        ]
    provider = Provider.parse(provider_value)
    models = list_models(provider, settings, api_key)
    return {"provider": provider.value, "models": [model.to_dict() for model in models]}


def generate_chapters_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    title = _get_text(payload, "bookTitle")
    description = _get_text(payload, "bookDescription")
    if not title or not description:
        raise ApiError("Book title and description are required")
    chapter_count = _parse_int(
        _get_value(payload, "numberOfChapters", DEFAULT_CHAPTER_COUNT), "numberOfChapters"
    )
    if not 1 <= chapter_count <= MAX_CHAPTER_COUNT:
        raise ApiError(f"numberOfChapters must be between 1 and {MAX_CHAPTER_COUNT}")
    ai_config = AIConfig(
        provider=Provider.parse(payload.get("provider"), default=Provider.CLAUDE),
        model=_get_text(payload, "model"),
        api_key=_get_text(payload, "apiKey") or None,
    )
    client = ProviderClient.from_config(ai_config, settings)
    chapters = generate_chapter_outline(
        title,
        description,
        client,
        target_audience=_get_text(payload, "targetAudience") or None,
        chapter_count=chapter_count,
    )
    return {"chapters": [chapter.to_dict() for chapter in chapters]}


def generate_content_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    mode = _get_text(payload, "mode")
    if mode not in {"full", "chapter"}:
        raise ApiError("Invalid mode. Use 'full' or 'chapter'")
    book = parse_book_config(payload.get("bookConfig"))
    features = FeatureSet.from_mapping(payload.get("features"))
    ai_config = parse_ai_config(payload.get("aiConfig"))

    if mode == "chapter":
        index_value = payload.get("chapterIndex")
        if index_value is None:
            raise ApiError("Chapter index is required for chapter mode")
        chapter_index = _parse_int(index_value, "chapterIndex")
        if not 0 <= chapter_index < len(book.chapters):
            raise ApiError("Chapter not found")
        client = ProviderClient.from_config(ai_config, settings)
        content = generate_chapter_content(
            book,
            chapter_index,
            features,
            client,
            instructions=_get_text(payload, "chapterInstructions") or None,
        )
        return {"content": content}

    client = ProviderClient.from_config(ai_config, settings)
    if payload.get("partial"):
        results = generate_book_content_report(book, features, client)
        return {
            "success": all(result.ok for result in results),
            "chapters": [result.to_dict() for result in results],
        }
    contents = generate_book_content(book, features, client)
    return {"chapters": [{"content": content} for content in contents]}


def recommend_features_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    chapter_title = _get_text(payload, "chapterTitle")
    if not chapter_title:
        raise ApiError("Chapter title is required")
    try:
        ai_config = parse_ai_config(payload.get("aiConfig"))
    except PayloadError as exc:
        print(f"[recommend] {exc}; using default features.")
        ai_config = AIConfig(provider=Provider.CLAUDE)
    features = recommend_features(
        chapter_title,
        _get_text(payload, "chapterDescription"),
        ai_config,
        settings,
    )
    return {"features": [feature.value for feature in features]}


def preview_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    book = parse_book_config(payload.get("bookConfig"))
    return {"html": render_book_preview(book)}


def update_readme_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    owner = _get_text(payload, "owner")
    repo = _get_text(payload, "repo")
    token = _get_text(payload, "token")
    if not payload.get("bookConfig") or not owner or not repo or not token:
        raise ApiError("Missing required fields: bookConfig, owner, repo, token")
    book = parse_book_config(payload.get("bookConfig"))
    client = GitHubClient(token, timeout=settings.request_timeout)
    update_readme(book, owner, repo, client)
    return {"success": True, "message": "README updated successfully"}


def push_content_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    github_config = _get_value(payload, "githubConfig", {})
    if not isinstance(github_config, dict):
        raise ApiError("githubConfig must be an object")
    token = resolve_github_token(settings, _get_text(github_config, "token") or None)
    if not token:
        raise ApiError("GitHub token is required")
    owner = _get_text(github_config, "username") or settings.server_owner
    repo = _get_text(github_config, "repoName")
    if not repo:
        raise ApiError("Repository name is required")
    book = parse_book_config(payload.get("bookConfig"))
    client = GitHubClient(token, timeout=settings.request_timeout)
    results = push_book_content(book, owner, repo, client)
    success = all(result.ok for result in results)
    return {
        "success": success,
        "message": (
            "Content pushed successfully! GitHub Actions will rebuild your book."
            if success
            else "Some files failed to push"
        ),
        "results": [result.to_dict() for result in results],
        "deployUrl": pages_url(owner, repo),
        "repoUrl": f"https://github.com/{owner}/{repo}",
    }


def list_repos_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    username = _get_text(payload, "username") or settings.server_owner
    token = resolve_github_token(settings, _get_text(payload, "token") or None)
    if not token:
        raise ApiError("GitHub token is required")
    client = GitHubClient(token, timeout=settings.request_timeout)
    repos = client.list_repos(username)
    return {"repos": [simplify_repo(repo, username) for repo in repos]}


def delete_repo_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    repo = _get_text(payload, "repo")
    if not repo:
        raise ApiError("Repository name is required")
    username = _get_text(payload, "username") or settings.server_owner
    token = resolve_delete_token(settings, username, _get_text(payload, "token") or None)
    if not token:
        raise ApiError(
            f"GitHub token required for non-{settings.server_owner} repositories"
        )
    client = GitHubClient(token, timeout=settings.request_timeout)
    deleted = client.delete_repo(username, repo)
    if not deleted:
        return {"success": True, "message": "Repository not found or already deleted"}
    return {"success": True, "message": f"Repository {repo} deleted successfully"}


def deploy_status_api(payload: dict[str, Any], settings: Settings) -> dict[str, Any]:
    token = resolve_github_token(settings, _get_text(payload, "token") or None)
    if not token:
        raise ApiError("GitHub token is required")
    repo = _get_text(payload, "repo")
    if not repo:
        raise ApiError("Repository name is required")
    username = _get_text(payload, "username") or settings.server_owner
    client = GitHubClient(token, timeout=settings.request_timeout)
    return deploy_status(username, repo, client)


GET_ROUTES: dict[str, Handler] = {
    "/api/ai/models": list_models_api,
    "/api/github/repos": list_repos_api,
    "/api/github/deploy-status": deploy_status_api,
}
POST_ROUTES: dict[str, Handler] = {
    "/api/book/generate-chapters": generate_chapters_api,
    "/api/book/generate-content": generate_content_api,
    "/api/book/recommend-features": recommend_features_api,
    "/api/book/preview": preview_api,
    "/api/book/update-readme": update_readme_api,
    "/api/book/push-content": push_content_api,
}
DELETE_ROUTES: dict[str, Handler] = {
    "/api/github/repos": delete_repo_api,
    "/api/github/delete-repo": delete_repo_api,
}
ROUTES = {"GET": GET_ROUTES, "POST": POST_ROUTES, "DELETE": DELETE_ROUTES}


def _read_json(handler: BaseHTTPRequestHandler) -> dict[str, Any]:
    try:
        length = int(handler.headers.get("Content-Length", "0"))
    except ValueError:
        raise ApiError("Invalid Content-Length header.") from None
    if length < 0:
        raise ApiError("Invalid Content-Length header.")
    if length == 0:
        return {}
    raw = handler.rfile.read(length)
    if not raw:
        return {}
    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ApiError("JSON payload must be an object.")
    return payload


def _send_json(handler: BaseHTTPRequestHandler, payload: Any, status: int) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    try:
        handler.wfile.write(body)
    except (BrokenPipeError, ConnectionResetError):
        return


def _parse_query(handler: BaseHTTPRequestHandler) -> dict[str, Any]:
    query = parse_qs(urlparse(handler.path).query)
    return {key: values[0] for key, values in query.items() if values}


def _error_status(exc: Exception) -> int:
    if isinstance(exc, (ApiError, PayloadError, MissingCredentialError)):
        return HTTPStatus.BAD_REQUEST
    if isinstance(exc, GitHubError) and exc.status and exc.status >= 400:
        return exc.status
    return HTTPStatus.INTERNAL_SERVER_ERROR


def dispatch(method: str, path: str, payload: dict[str, Any], settings: Settings) -> tuple[int, Any]:
    """Run the handler for ``method path`` and return ``(status, body)``."""
    handler_fn = ROUTES.get(method, {}).get(path)
    if handler_fn is None:
        return HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"}
    try:
        return HTTPStatus.OK, handler_fn(payload, settings)
    except (ApiError, PayloadError, MissingCredentialError, ProviderError, GitHubError) as exc:
        if not isinstance(exc, (ApiError, PayloadError)):
            print(f"[server] {method} {path} failed: {exc}")
        return _error_status(exc), {"error": str(exc)}
    except Exception as exc:  # noqa: BLE001 - every failure becomes a JSON error body
        traceback.print_exc()
        return HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc) or type(exc).__name__}


def _handle_api(handler: "LiquidBooksRequestHandler", method: str) -> None:
    path = urlparse(handler.path).path
    try:
        payload = _parse_query(handler)
        if method in ("POST", "DELETE"):
            payload = {**payload, **_read_json(handler)}
    except ApiError as exc:
        _send_json(handler, {"error": str(exc)}, HTTPStatus.BAD_REQUEST)
        return
    except (json.JSONDecodeError, UnicodeDecodeError):
        _send_json(handler, {"error": "Invalid JSON payload."}, HTTPStatus.BAD_REQUEST)
        return
    status, body = dispatch(method, path, payload, handler.server.settings)
    _send_json(handler, body, status)


class LiquidBooksServer(ThreadingHTTPServer):
    def __init__(self, address: tuple[str, int], settings: Settings) -> None:
        super().__init__(address, LiquidBooksRequestHandler)
        self.settings = settings


class LiquidBooksRequestHandler(BaseHTTPRequestHandler):
    """Serve the JSON API; every request is independent of the others."""

    server: LiquidBooksServer

    def do_GET(self) -> None:  # noqa: N802 - required by BaseHTTPRequestHandler
        _handle_api(self, "GET")

    def do_POST(self) -> None:  # noqa: N802 - required by BaseHTTPRequestHandler
        _handle_api(self, "POST")

    def do_DELETE(self) -> None:  # noqa: N802 - required by BaseHTTPRequestHandler
        _handle_api(self, "DELETE")


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    settings: Optional[Settings] = None,
) -> LiquidBooksServer:
    """Run the LiquidBooks HTTP server."""
    server = LiquidBooksServer((host, port), settings or Settings.from_env())
    print(f"[server] LiquidBooks API available at http://{host}:{port}")
    server.serve_forever()
    return server
