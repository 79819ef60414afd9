"""Tests for the ``fetch`` command over a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest
from click.testing import CliRunner

from querystate.cli import cli
from querystate.commands._context import AppContext
from querystate.services.inspector import QueryStateService


@pytest.fixture
def requests(monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
    """Route every CLI fetch through a MockTransport and record the requests."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/missing"):
            return httpx.Response(404, json={"message": "Test not found"})
        return httpx.Response(200, json={"path": request.url.path})

    def service(self: AppContext, session=None) -> QueryStateService:
        return QueryStateService(
            self.settings,
            session=session,
            plugin_manager=self.plugin_manager,
            transport=httpx.MockTransport(handler),
        )

    monkeypatch.setattr(AppContext, "service", service)
    return seen


@pytest.mark.usefixtures("_isolated_cwd")
class TestFetch:
    def test_fetch_with_filters(self, cli_runner: CliRunner, requests: list[httpx.Request]) -> None:
        result = cli_runner.invoke(
            cli,
            ["--json", "fetch", "/test", "--kind", "tests/list", "--schema", "tests", "--url", "/tests?search=x"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["data"]["key"] == "tests/list?search=x"
        assert data["data"]["body"] == {"path": "/api/v1/test"}
        assert requests[0].url.params["search"] == "x"

    def test_token_from_env(
        self,
        cli_runner: CliRunner,
        requests: list[httpx.Request],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("QUERYSTATE_TOKEN", "secret")
        result = cli_runner.invoke(cli, ["-q", "fetch", "/user/me", "--kind", "user"])
        assert result.exit_code == 0, result.output
        assert requests[0].headers["authorization"] == "Bearer secret"

    def test_not_found_is_not_retried(self, cli_runner: CliRunner, requests: list[httpx.Request]) -> None:
        result = cli_runner.invoke(cli, ["--json", "fetch", "/test/missing"])
        assert result.exit_code == 1
        assert len(requests) == 1
        assert "Test not found" in result.output
        assert "FETCH_FAILED" in result.output
