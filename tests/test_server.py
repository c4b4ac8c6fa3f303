import io
import json
import unittest
from http import HTTPStatus
from unittest.mock import MagicMock, Mock, patch

from liquid_books import server
from liquid_books.config import Settings
from liquid_books.github import FileResult
from liquid_books.models import Chapter, Provider
from liquid_books.providers import FALLBACK_MODELS, ProviderError


def _book_payload(chapter_count: int = 2) -> dict:
    return {
        "title": "Data Science",
        "description": "Learn data",
        "author": "Ada",
        "chapters": [
            {"id": f"chapter-{index + 1}", "title": f"Chapter {index + 1}"}
            for index in range(chapter_count)
        ],
    }


class TestDispatch(unittest.TestCase):
    def test_unknown_route_returns_404(self) -> None:
        status, body = server.dispatch("GET", "/api/nope", {}, Settings())

        self.assertEqual(status, HTTPStatus.NOT_FOUND)
        self.assertIn("error", body)

    def test_wrong_method_returns_404(self) -> None:
        status, _ = server.dispatch("GET", "/api/book/preview", {}, Settings())

        self.assertEqual(status, HTTPStatus.NOT_FOUND)

    def test_unexpected_exception_returns_500(self) -> None:
        with patch.dict(
            server.POST_ROUTES,
            {"/api/book/preview": Mock(side_effect=RuntimeError("kaboom"))},
        ):
            with patch("liquid_books.server.traceback.print_exc"):
                status, body = server.dispatch("POST", "/api/book/preview", {}, Settings())

        self.assertEqual(status, HTTPStatus.INTERNAL_SERVER_ERROR)
        self.assertEqual(body, {"error": "kaboom"})


class TestModelsApi(unittest.TestCase):
    def test_all_providers_without_keys(self) -> None:
        status, body = server.dispatch("GET", "/api/ai/models", {}, Settings())

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual([group["provider"] for group in body], ["claude", "gemini", "openai"])
        self.assertEqual(len(body[2]["models"]), len(FALLBACK_MODELS[Provider.OPENAI]))

    def test_single_provider(self) -> None:
        status, body = server.dispatch(
            "GET", "/api/ai/models", {"provider": "gemini"}, Settings()
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(body["provider"], "gemini")
        self.assertEqual(body["models"][0]["id"], "gemini-2.0-flash-exp")

    def test_unknown_provider_is_rejected(self) -> None:
        status, body = server.dispatch(
            "GET", "/api/ai/models", {"provider": "mistral"}, Settings()
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertIn("Unknown provider", body["error"])


class TestGenerateChaptersApi(unittest.TestCase):
    def test_requires_title_and_description(self) -> None:
        status, body = server.dispatch(
            "POST", "/api/book/generate-chapters", {"bookTitle": "Only"}, Settings()
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body["error"], "Book title and description are required")

    def test_missing_key_is_a_client_error(self) -> None:
        status, body = server.dispatch(
            "POST",
            "/api/book/generate-chapters",
            {"bookTitle": "T", "bookDescription": "D", "provider": "openai"},
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertIn("No API key found for openai", body["error"])

    def test_rejects_chapter_count_out_of_range(self) -> None:
        status, _ = server.dispatch(
            "POST",
            "/api/book/generate-chapters",
            {"bookTitle": "T", "bookDescription": "D", "numberOfChapters": 0},
            Settings(anthropic_api_key="key"),
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)

    @patch("liquid_books.server.generate_chapter_outline")
    def test_returns_outline(self, outline_mock: MagicMock) -> None:
        outline_mock.return_value = [Chapter(id="chapter-1", title="Intro", description="Start")]

        status, body = server.dispatch(
            "POST",
            "/api/book/generate-chapters",
            {
                "bookTitle": "T",
                "bookDescription": "D",
                "targetAudience": "Students",
                "numberOfChapters": "4",
                "apiKey": "user-key",
            },
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(
            body, {"chapters": [{"id": "chapter-1", "title": "Intro", "description": "Start"}]}
        )
        client = outline_mock.call_args[0][2]
        self.assertEqual(client.api_key, "user-key")
        self.assertEqual(outline_mock.call_args[1]["chapter_count"], 4)
        self.assertEqual(outline_mock.call_args[1]["target_audience"], "Students")


class TestGenerateContentApi(unittest.TestCase):
    def _payload(self, **extra: object) -> dict:
        payload = {
            "bookConfig": _book_payload(3),
            "features": {"admonitions": True, "unknownThing": True},
            "aiConfig": {"provider": "claude", "apiKey": "key"},
        }
        payload.update(extra)
        return payload

    def test_rejects_unknown_mode(self) -> None:
        status, body = server.dispatch(
            "POST", "/api/book/generate-content", self._payload(mode="draft"), Settings()
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertIn("Invalid mode", body["error"])

    def test_chapter_mode_requires_index(self) -> None:
        status, body = server.dispatch(
            "POST", "/api/book/generate-content", self._payload(mode="chapter"), Settings()
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body["error"], "Chapter index is required for chapter mode")

    def test_chapter_mode_rejects_out_of_range_index(self) -> None:
        status, body = server.dispatch(
            "POST",
            "/api/book/generate-content",
            self._payload(mode="chapter", chapterIndex=3),
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body["error"], "Chapter not found")

    def test_full_mode_with_no_chapters_returns_empty_list(self) -> None:
        payload = self._payload(mode="full")
        payload["bookConfig"] = _book_payload(0)

        status, body = server.dispatch("POST", "/api/book/generate-content", payload, Settings())

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(body, {"chapters": []})

    @patch("liquid_books.server.ProviderClient.generate")
    def test_chapter_mode_returns_content(self, generate_mock: MagicMock) -> None:
        generate_mock.return_value = "# Chapter 2\n\nText"

        status, body = server.dispatch(
            "POST",
            "/api/book/generate-content",
            self._payload(mode="chapter", chapterIndex=1, chapterInstructions="Be brief"),
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(body, {"content": "# Chapter 2\n\nText"})
        self.assertIn("Additional Instructions: Be brief", generate_mock.call_args[0][0])

    @patch("liquid_books.server.ProviderClient.generate")
    def test_full_mode_failure_is_atomic(self, generate_mock: MagicMock) -> None:
        generate_mock.side_effect = ["one", ProviderError(Provider.CLAUDE, "overloaded", 529)]

        status, body = server.dispatch(
            "POST", "/api/book/generate-content", self._payload(mode="full"), Settings()
        )

        self.assertEqual(status, HTTPStatus.INTERNAL_SERVER_ERROR)
        self.assertEqual(body, {"error": "Claude API error: overloaded"})
        self.assertEqual(generate_mock.call_count, 2)

    @patch("liquid_books.server.ProviderClient.generate")
    def test_full_mode_partial_reports_each_chapter(self, generate_mock: MagicMock) -> None:
        generate_mock.side_effect = [
            "one",
            ProviderError(Provider.CLAUDE, "overloaded", 529),
            "three",
        ]

        status, body = server.dispatch(
            "POST",
            "/api/book/generate-content",
            self._payload(mode="full", partial=True),
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertFalse(body["success"])
        self.assertEqual(
            [chapter.get("content") for chapter in body["chapters"]], ["one", None, "three"]
        )
        self.assertEqual(body["chapters"][1]["error"], "Claude API error: overloaded")

    def test_full_mode_partial_records_timeouts(self) -> None:
        response = MagicMock()
        response.read.return_value = json.dumps({"content": [{"text": "three"}]}).encode("utf-8")
        response.__enter__.return_value = response
        urlopen_mock = Mock(side_effect=[TimeoutError, TimeoutError, response])

        with patch("liquid_books.providers.request.urlopen", urlopen_mock):
            status, body = server.dispatch(
                "POST",
                "/api/book/generate-content",
                self._payload(mode="full", partial=True),
                Settings(),
            )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertFalse(body["success"])
        self.assertEqual(body["chapters"][0]["error"], "Claude API error: TimeoutError")
        self.assertEqual(body["chapters"][2]["content"], "three")

    def test_full_mode_timeout_names_provider(self) -> None:
        with patch("liquid_books.providers.request.urlopen", Mock(side_effect=TimeoutError)):
            status, body = server.dispatch(
                "POST", "/api/book/generate-content", self._payload(mode="full"), Settings()
            )

        self.assertEqual(status, HTTPStatus.INTERNAL_SERVER_ERROR)
        self.assertEqual(body, {"error": "Claude API error: TimeoutError"})

    def test_features_must_be_an_object(self) -> None:
        status, body = server.dispatch(
            "POST",
            "/api/book/generate-content",
            self._payload(mode="full", features=["codeBlocks"]),
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body, {"error": "features must be an object"})


class TestRecommendFeaturesApi(unittest.TestCase):
    def test_requires_chapter_title(self) -> None:
        status, _ = server.dispatch("POST", "/api/book/recommend-features", {}, Settings())

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)

    def test_without_key_returns_defaults(self) -> None:
        status, body = server.dispatch(
            "POST",
            "/api/book/recommend-features",
            {"chapterTitle": "Statistics"},
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(
            body,
            {"features": ["admonitions", "codeBlocks", "figures", "exercises", "dropdowns"]},
        )


class TestPreviewApi(unittest.TestCase):
    def test_renders_book(self) -> None:
        payload = {"bookConfig": _book_payload(1)}
        payload["bookConfig"]["chapters"][0]["generatedContent"] = "# Chapter 1\n\nHello"

        status, body = server.dispatch("POST", "/api/book/preview", payload, Settings())

        self.assertEqual(status, HTTPStatus.OK)
        self.assertIn("Data Science", body["html"])
        self.assertIn('<p class="my-3">Hello</p>', body["html"])

    def test_requires_book_title(self) -> None:
        status, body = server.dispatch(
            "POST", "/api/book/preview", {"bookConfig": {"chapters": []}}, Settings()
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body["error"], "Book title is required")


class TestGitHubApis(unittest.TestCase):
    def test_update_readme_requires_fields(self) -> None:
        status, body = server.dispatch(
            "POST", "/api/book/update-readme", {"owner": "fenago"}, Settings()
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertIn("Missing required fields", body["error"])

    @patch("liquid_books.server.update_readme")
    def test_update_readme_success(self, update_mock: MagicMock) -> None:
        status, body = server.dispatch(
            "POST",
            "/api/book/update-readme",
            {"bookConfig": _book_payload(), "owner": "fenago", "repo": "book", "token": "t"},
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertTrue(body["success"])
        self.assertEqual(update_mock.call_args[0][1:3], ("fenago", "book"))

    @patch("liquid_books.server.update_readme")
    def test_update_readme_github_error_uses_its_status(self, update_mock: MagicMock) -> None:
        update_mock.side_effect = server.GitHubError("Bad credentials", 401)

        status, body = server.dispatch(
            "POST",
            "/api/book/update-readme",
            {"bookConfig": _book_payload(), "owner": "fenago", "repo": "book", "token": "t"},
            Settings(),
        )

        self.assertEqual(status, 401)
        self.assertEqual(body, {"error": "Bad credentials"})

    def test_push_content_requires_token(self) -> None:
        status, body = server.dispatch(
            "POST",
            "/api/book/push-content",
            {"bookConfig": _book_payload(), "githubConfig": {"repoName": "book"}},
            Settings(),
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body["error"], "GitHub token is required")

    @patch("liquid_books.server.push_book_content")
    def test_push_content_uses_server_token_and_owner(self, push_mock: MagicMock) -> None:
        push_mock.return_value = [FileResult("intro.md")]

        status, body = server.dispatch(
            "POST",
            "/api/book/push-content",
            {"bookConfig": _book_payload(), "githubConfig": {"repoName": "book"}},
            Settings(github_token="server-token"),
        )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertTrue(body["success"])
        self.assertEqual(body["deployUrl"], "https://fenago.github.io/book")
        client = push_mock.call_args[0][3]
        self.assertEqual(client.token, "server-token")

    def test_delete_repo_requires_token_for_other_owners(self) -> None:
        status, body = server.dispatch(
            "DELETE",
            "/api/github/repos",
            {"repo": "book", "username": "someone"},
            Settings(github_token="server-token"),
        )

        self.assertEqual(status, HTTPStatus.BAD_REQUEST)
        self.assertEqual(body["error"], "GitHub token required for non-fenago repositories")

    def test_delete_missing_repo_succeeds(self) -> None:
        with patch("liquid_books.server.GitHubClient.delete_repo", return_value=False):
            status, body = server.dispatch(
                "DELETE",
                "/api/github/delete-repo",
                {"repo": "gone"},
                Settings(github_token="server-token"),
            )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(
            body, {"success": True, "message": "Repository not found or already deleted"}
        )

    def test_list_repos(self) -> None:
        with patch(
            "liquid_books.server.GitHubClient.list_repos",
            return_value=[{"id": 1, "name": "book", "has_pages": False}],
        ) as list_mock:
            status, body = server.dispatch(
                "GET", "/api/github/repos", {"username": "ada", "token": "t"}, Settings()
            )

        self.assertEqual(status, HTTPStatus.OK)
        self.assertEqual(body["repos"][0]["name"], "book")
        list_mock.assert_called_once_with("ada")


class TestRequestHelpers(unittest.TestCase):
    def test_read_json_rejects_non_object(self) -> None:
        handler = MagicMock()
        handler.headers = {"Content-Length": "2"}
        handler.rfile = io.BytesIO(b"[]")

        with self.assertRaises(server.ApiError):
            server._read_json(handler)

    def test_read_json_empty_body(self) -> None:
        handler = MagicMock()
        handler.headers = {}

        self.assertEqual(server._read_json(handler), {})

    def test_handle_api_reports_bad_content_length(self) -> None:
        handler = MagicMock()
        handler.path = "/api/book/preview"
        handler.headers = {"Content-Length": "lots"}

        server._handle_api(handler, "POST")

        handler.send_response.assert_called_once_with(HTTPStatus.BAD_REQUEST)
        written = handler.wfile.write.call_args[0][0]
        self.assertEqual(
            json.loads(written.decode("utf-8")), {"error": "Invalid Content-Length header."}
        )

    def test_handle_api_merges_query_and_body(self) -> None:
        body = json.dumps({"bookConfig": _book_payload(0)}).encode("utf-8")
        handler = MagicMock()
        handler.path = "/api/book/preview?ignored=1"
        handler.headers = {"Content-Length": str(len(body))}
        handler.rfile = io.BytesIO(body)
        handler.server.settings = Settings()

        server._handle_api(handler, "POST")

        handler.send_response.assert_called_once_with(HTTPStatus.OK)
        written = handler.wfile.write.call_args[0][0]
        self.assertIn("Data Science", json.loads(written.decode("utf-8"))["html"])

    def test_handle_api_reports_bad_json(self) -> None:
        handler = MagicMock()
        handler.path = "/api/book/preview"
        handler.headers = {"Content-Length": "5"}
        handler.rfile = io.BytesIO(b"{oops")

        server._handle_api(handler, "POST")

        handler.send_response.assert_called_once_with(HTTPStatus.BAD_REQUEST)

    def test_send_json_handles_client_disconnect(self) -> None:
        handler = MagicMock()
        handler.wfile.write.side_effect = BrokenPipeError()

        server._send_json(handler, {"ok": True}, HTTPStatus.OK)

        handler.send_response.assert_called_once_with(HTTPStatus.OK)


if __name__ == "__main__":
    unittest.main()
