"""Tests for the evalrun CLI commands."""

import httpx
import pytest
from typer.testing import CliRunner

from evalrun.cli import main as cli_main
from evalrun.client import EvalRunClient
from evalrun.config.domain.settings import ClientSettings

runner = CliRunner()

_ENV_VARS = ("EVALRUN_BASE_URL", "EVALRUN_API_KEY", "EVALRUN_WORKSPACE_ID")


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/sdk/v1/test-run/status":
        return httpx.Response(
            200,
            json={
                "data": {
                    "entryStatus": {"total": 3, "completed": 2, "failed": 1},
                    "testRunStatus": "COMPLETE",
                }
            },
        )
    if request.url.path == "/api/sdk/v1/test-run/result":
        return httpx.Response(
            200,
            json={
                "data": {
                    "link": "/workspace/ws-1/testrun/run-1",
                    "result": [
                        {
                            "name": "nightly",
                            "individualEvaluatorMeanScore": {
                                "bias": {"score": 0.9, "pass": True}
                            },
                        }
                    ],
                }
            },
        )
    return httpx.Response(404, json={"error": {"message": "not found"}})


@pytest.fixture
def platform(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("EVALRUN_API_KEY", "secret")
    monkeypatch.setenv("EVALRUN_BASE_URL", "https://app.example.com")

    def make_client(settings: ClientSettings) -> EvalRunClient:
        return EvalRunClient.from_settings(settings, transport=httpx.MockTransport(_handler))

    monkeypatch.setattr(cli_main, "_make_client", make_client)


class TestIntervalCommand:
    """`evalrun interval` prints the polling interval in seconds."""

    def test_default_timeout(self) -> None:
        result = runner.invoke(cli_main.app, ["interval"])

        assert result.exit_code == 0
        assert result.output.strip() == "5"

    def test_ai_floor(self) -> None:
        result = runner.invoke(cli_main.app, ["interval", "--timeout", "30", "--ai"])

        assert result.exit_code == 0
        assert result.output.strip() == "15"

    def test_non_positive_timeout_exits_with_error(self) -> None:
        result = runner.invoke(cli_main.app, ["interval", "--timeout", "0"])

        assert result.exit_code == 1
        assert "Invalid timeout" in result.output


class TestStatusCommand:
    """`evalrun status` fetches the run status once."""

    def test_prints_state_and_breakdown(self, platform: None) -> None:
        result = runner.invoke(cli_main.app, ["status", "run-1", "--log-format", "json"])

        assert result.exit_code == 0
        assert "Test run is COMPLETE" in result.output
        assert "Completed" in result.output

    def test_invalid_log_format_exits(self, platform: None) -> None:
        result = runner.invoke(cli_main.app, ["status", "run-1", "--log-format", "xml"])

        assert result.exit_code == 1
        assert "Invalid log format" in result.output

    def test_missing_api_key_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in _ENV_VARS:
            monkeypatch.delenv(var, raising=False)

        result = runner.invoke(cli_main.app, ["status", "run-1"])

        assert result.exit_code == 1
        assert "EVALRUN_API_KEY" in result.output

    def test_remote_error_exits(
        self, platform: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error": {"message": "unknown run"}})
        )
        monkeypatch.setattr(
            cli_main,
            "_make_client",
            lambda settings: EvalRunClient.from_settings(settings, transport=transport),
        )

        result = runner.invoke(cli_main.app, ["status", "run-404", "--log-format", "json"])

        assert result.exit_code == 1
        assert "unknown run" in result.output


class TestWaitCommand:
    """`evalrun wait` polls to completion and prints the report."""

    def test_prints_link_and_scores(self, platform: None) -> None:
        result = runner.invoke(
            cli_main.app,
            ["wait", "run-1", "--workspace", "ws-1", "--timeout", "5", "--log-format", "json"],
        )

        assert result.exit_code == 0
        assert (
            "View the report here: https://app.example.com/workspace/ws-1/testrun/run-1"
            in result.output
        )
        assert "bias: score=0.9, pass=True" in result.output

    def test_requires_workspace(self, platform: None) -> None:
        result = runner.invoke(cli_main.app, ["wait", "run-1", "--log-format", "json"])

        assert result.exit_code == 1
        assert "No workspace id given" in result.output
