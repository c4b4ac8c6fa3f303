"""Publish book files through the GitHub REST API."""
from __future__ import annotations

import base64
import datetime
import json
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib import request
from urllib.error import HTTPError, URLError
from urllib.parse import quote

from liquid_books.config import Settings
from liquid_books.filenames import chapter_filename, chapter_stem
from liquid_books.models import BookConfig, Chapter


GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
LIQUIDBOOKS_URL = "https://liquidbooks.tech"
README_PATH = "README.md"
INTRO_PATH = "intro.md"
TOC_PATH = "_toc.yml"
DEPLOY_WORKFLOW_MARKERS = ("myst", "deploy", "pages")


class GitHubError(RuntimeError):
    """Raised when the GitHub API rejects a request."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


def _error_message(exc: HTTPError) -> str:
    try:
        raw = exc.read()
    except OSError:
        raw = b""
    try:
        parsed = json.loads(raw.decode("utf-8")) if raw else {}
    except ValueError:
        parsed = {}
    if isinstance(parsed, dict) and parsed.get("message"):
        return str(parsed["message"])
    return f"HTTP {exc.code}"


class GitHubClient:
    def __init__(self, token: str, timeout: Optional[float] = None) -> None:
        self.token = token
        self.timeout = timeout

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if data is not None:
            headers["Content-Type"] = "application/json"
        req = request.Request(
            f"{GITHUB_API_URL}{path}", data=data, headers=headers, method=method
        )
        try:
            if self.timeout is None:
                response_context = request.urlopen(req)
            else:
                response_context = request.urlopen(req, timeout=self.timeout)
            with response_context as response:
                body = response.read().decode("utf-8")
            return json.loads(body) if body else None
        except HTTPError as exc:
            raise GitHubError(_error_message(exc), exc.code) from exc
        except URLError as exc:
            raise GitHubError(str(exc.reason)) from exc
        except (OSError, ValueError) as exc:
            raise GitHubError(str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _contents_path(owner: str, repo: str, path: str) -> str:
        return f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}"

    def get_file_sha(self, owner: str, repo: str, path: str) -> Optional[str]:
        """Return the blob SHA of ``path``, or ``None`` when it cannot be read."""
        try:
            data = self._request("GET", self._contents_path(owner, repo, path))
        except GitHubError:
            return None
        if isinstance(data, dict):
            return data.get("sha")
        return None

    def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: Optional[str] = None,
    ) -> None:
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha:
            payload["sha"] = sha
        self._request("PUT", self._contents_path(owner, repo, path), payload)

    def upsert_file(self, owner: str, repo: str, path: str, content: str, message: str) -> None:
        sha = self.get_file_sha(owner, repo, path)
        self.put_file(owner, repo, path, content, message, sha=sha)

    def list_repos(self, username: str) -> list[dict[str, Any]]:
        data = self._request(
            "GET", f"/users/{quote(username)}/repos?sort=updated&per_page=100"
        )
        return data or []

    def delete_repo(self, owner: str, repo: str) -> bool:
        """Delete ``owner/repo``; returns False when it did not exist."""
        try:
            self._request("DELETE", f"/repos/{quote(owner)}/{quote(repo)}")
        except GitHubError as exc:
            if exc.status == 404:
                return False
            raise
        return True

    def workflow_runs(self, owner: str, repo: str, limit: int = 5) -> list[dict[str, Any]]:
        data = self._request(
            "GET", f"/repos/{quote(owner)}/{quote(repo)}/actions/runs?per_page={limit}"
        )
        if not isinstance(data, dict):
            return []
        return data.get("workflow_runs") or []


def resolve_github_token(settings: Settings, token: Optional[str] = None) -> Optional[str]:
    if token and token.strip():
        return token.strip()
    return settings.github_token


def resolve_delete_token(
    settings: Settings, username: str, token: Optional[str] = None
) -> Optional[str]:
    """The server token may only delete repositories of the server owner."""
    if token and token.strip():
        return token.strip()
    if username.lower() == settings.server_owner.lower():
        return settings.github_token
    return None


def pages_url(owner: str, repo: str) -> str:
    return f"https://{owner}.github.io/{repo}"


def _chapter_summary_lines(book: BookConfig) -> str:
    return "\n".join(
        f"{index + 1}. **{chapter.title}** - {chapter.description}"
        for index, chapter in enumerate(book.chapters)
    )


def build_readme(book: BookConfig) -> str:
    return (
        f"# {book.title}\n\n"
        f"{book.description}\n\n"
        f"**Author:** {book.author}\n\n"
        "## Chapters\n\n"
        f"{_chapter_summary_lines(book)}\n\n"
        "## Building Locally\n\n"
        "```bash\n"
        "# Install MyST\n"
        "npm install -g mystmd\n\n"
        "# Start development server\n"
        "myst start\n\n"
        "# Build for production\n"
        "myst build --html\n"
        "```\n\n"
        "---\n\n"
        f"Built with [LiquidBooks]({LIQUIDBOOKS_URL}) - Create beautiful, "
        "interactive eBooks with AI.\n"
    )


def build_intro(book: BookConfig) -> str:
    return (
        f"# {book.title}\n\n"
        f"{book.description}\n\n"
        "## About This Book\n\n"
        f"**Author:** {book.author}\n\n"
        f"This book contains {len(book.chapters)} chapters covering the following "
        "topics:\n\n"
        f"{_chapter_summary_lines(book)}\n\n"
        "---\n\n"
        f"*Built with [LiquidBooks]({LIQUIDBOOKS_URL}) - Create beautiful, "
        "interactive eBooks with AI.*\n"
    )


def build_toc_yaml(book: BookConfig) -> str:
    entries = "\n".join(
        f"  - file: {chapter_stem(index, chapter.title)}"
        for index, chapter in enumerate(book.chapters)
    )
    return f"format: jb-book\nroot: intro\nchapters:\n{entries}\n"


def chapter_file_content(chapter: Chapter) -> str:
    content = chapter.body
    if content.strip().startswith("# "):
        return content
    return f"# {chapter.title}\n\n{content}\n"


def update_readme(book: BookConfig, owner: str, repo: str, client: GitHubClient) -> None:
    client.upsert_file(
        owner,
        repo,
        README_PATH,
        build_readme(book),
        "Update README with latest book information",
    )


@dataclass(frozen=True)
class FileResult:
    file: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "file": self.file,
            "status": "success" if self.ok else "error",
        }
        if self.error:
            payload["error"] = self.error
        return payload


def push_book_content(
    book: BookConfig, owner: str, repo: str, client: GitHubClient
) -> List[FileResult]:
    """Push every chapter, then the table of contents and intro page.

    Each file is attempted even when an earlier one failed; the per-file
    results say which ones made it.
    """
    files: list[tuple[str, str, str]] = [
        (
            chapter_filename(index, chapter.title),
            chapter_file_content(chapter),
            f"Update {chapter.title}",
        )
        for index, chapter in enumerate(book.chapters)
    ]
    files.append((TOC_PATH, build_toc_yaml(book), "Update table of contents"))
    files.append((INTRO_PATH, build_intro(book), "Update introduction"))

    results: List[FileResult] = []
    for path, content, message in files:
        try:
            client.upsert_file(owner, repo, path, content, message)
        except GitHubError as exc:
            print(f"[github] Failed to push {path}: {exc}")
            results.append(FileResult(file=path, error=str(exc)))
            continue
        results.append(FileResult(file=path))
    return results


def simplify_repo(repo: dict[str, Any], username: str) -> dict[str, Any]:
    has_pages = bool(repo.get("has_pages"))
    return {
        "id": repo.get("id"),
        "name": repo.get("name"),
        "fullName": repo.get("full_name"),
        "url": repo.get("html_url"),
        "description": repo.get("description"),
        "createdAt": repo.get("created_at"),
        "updatedAt": repo.get("updated_at"),
        "pagesUrl": pages_url(username, repo.get("name", "")) if has_pages else None,
        "hasPages": has_pages,
    }


def _parse_timestamp(value: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_elapsed(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds} seconds"
    return f"{seconds // 60} min {seconds % 60} sec"


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def deploy_status(
    owner: str,
    repo: str,
    client: GitHubClient,
    now: Optional[datetime.datetime] = None,
) -> dict[str, Any]:
    """Summarise the latest Pages build workflow run for ``owner/repo``."""
    current = now or _utc_now()
    try:
        runs = client.workflow_runs(owner, repo)
    except GitHubError as exc:
        if exc.status == 404:
            return {
                "pushStatus": "unknown",
                "buildStatus": "not_started",
                "message": "Repository not found or no workflows configured yet",
                "lastUpdated": current.isoformat(),
            }
        raise

    run = next(
        (
            item
            for item in runs
            if any(marker in str(item.get("name", "")).lower() for marker in DEPLOY_WORKFLOW_MARKERS)
        ),
        None,
    )
    if run is None:
        return {
            "pushStatus": "success",
            "buildStatus": "not_started",
            "message": (
                "Content pushed successfully. No build workflow found yet - "
                "it may take a moment to trigger."
            ),
            "lastUpdated": current.isoformat(),
            "pagesUrl": pages_url(owner, repo),
        }

    status = run.get("status")
    conclusion = run.get("conclusion")
    estimated: Optional[str] = None
    if status == "queued":
        build_status, message, estimated = (
            "queued", "Build is queued and waiting to start...", "2-3 minutes"
        )
    elif status == "in_progress":
        build_status, message, estimated = (
            "building", "Building your book...", "1-2 minutes"
        )
    elif status == "waiting":
        build_status, message, estimated = (
            "queued", "Waiting for resources to become available...", "2-3 minutes"
        )
    elif status == "completed":
        if conclusion == "success":
            build_status = "success"
            message = "Your book has been built and deployed successfully!"
        elif conclusion == "failure":
            build_status = "failed"
            message = "Build failed. Check the workflow logs for details."
        else:
            build_status = "failed"
            message = f"Build {conclusion or 'ended'}."
    else:
        build_status, message = "queued", "Checking build status..."

    result: dict[str, Any] = {
        "pushStatus": "success",
        "buildStatus": build_status,
        "buildUrl": run.get("html_url"),
        "pagesUrl": pages_url(owner, repo),
        "lastUpdated": run.get("updated_at") or current.isoformat(),
        "message": message,
    }
    started_at = run.get("run_started_at")
    if started_at:
        try:
            elapsed = int((current - _parse_timestamp(started_at)).total_seconds())
        except ValueError:
            elapsed = None
        if elapsed is not None:
            result["buildProgress"] = _format_elapsed(max(elapsed, 0))
    if estimated:
        result["estimatedTimeRemaining"] = estimated
    return result
