"""End-to-end tests for the ``resilio`` CLI.

Commands run through :class:`typer.testing.CliRunner` against an
:class:`httpx.MockTransport`, with config and the on-disk response cache
isolated under ``tmp_path``.
"""

from __future__ import annotations

import functools
import json
import sys
from pathlib import Path

import httpx
import pytest

from resilio import __version__
from resilio.app import app, main
from resilio.client import ResilientClient
from resilio.config import load_global_config
from resilio.exceptions import InvalidUsageError
from resilio.exit_codes import EXIT_NOT_FOUND

BASE_URL = "https://api.example.com/console/v1"
PREFIX = "/console/v1"


@pytest.fixture()
def mock_api(router, isolated_config, monkeypatch):
    """Route every client the CLI opens through *router*."""
    router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": [
        {"id": "new_checkout", "name": "new_checkout", "isEnabled": True},
    ]}))
    router.add("GET", f"{PREFIX}/experiments", httpx.Response(200, json={"data": [
        {"id": "pricing", "name": "pricing", "status": "active"},
    ]}))
    router.add("GET", f"{PREFIX}/dynamic_configs", httpx.Response(200, json={"data": []}))
    monkeypatch.setattr(
        "resilio.commands.session.ResilientClient",
        functools.partial(ResilientClient, transport=httpx.MockTransport(router)),
    )
    monkeypatch.setenv("RESILIO_BASE_URL", BASE_URL)
    return router


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("get", "configs", "cache", "config"):
            assert name in result.output


class TestGet:
    def test_get_prints_payload(self, cli_runner, mock_api, tmp_path) -> None:
        out = tmp_path / "out.json"
        result = cli_runner.invoke(app, ["--json", "-q", "-o", str(out), "get", "/gates"])
        assert result.exit_code == 0, result.output
        assert _read_json(out) == [{"id": "new_checkout", "name": "new_checkout", "isEnabled": True}]

    def test_second_get_is_served_from_disk_cache(self, cli_runner, mock_api) -> None:
        for _ in range(2):
            result = cli_runner.invoke(app, ["-q", "get", "/gates"])
            assert result.exit_code == 0, result.output
        assert mock_api.calls("GET", f"{PREFIX}/gates") == 1

    def test_refresh_bypasses_cache(self, cli_runner, mock_api) -> None:
        cli_runner.invoke(app, ["-q", "get", "/gates"])
        result = cli_runner.invoke(app, ["-q", "get", "/gates", "--refresh"])
        assert result.exit_code == 0, result.output
        assert mock_api.calls("GET", f"{PREFIX}/gates") == 2

    def test_query_params(self, cli_runner, mock_api) -> None:
        result = cli_runner.invoke(app, ["-q", "get", "/gates", "-P", "limit=5", "-P", "page=2"])
        assert result.exit_code == 0, result.output
        params = mock_api.requests[0].url.params
        assert params["limit"] == "5"
        assert params["page"] == "2"

    def test_malformed_param_is_usage_error(self, cli_runner, mock_api) -> None:
        result = cli_runner.invoke(app, ["get", "/gates", "-P", "limit"])
        assert isinstance(result.exception, InvalidUsageError)
        assert mock_api.requests == []

    def test_base_url_flag(self, cli_runner, mock_api) -> None:
        mock_api.add("GET", "/v2/gates", httpx.Response(200, json={"data": []}))
        result = cli_runner.invoke(
            app, ["-q", "--base-url", "https://other.example.com/v2", "get", "/gates"]
        )
        assert result.exit_code == 0, result.output
        assert mock_api.requests[0].url.host == "other.example.com"


class TestConfigs:
    def test_configs_table_as_json(self, cli_runner, mock_api, tmp_path) -> None:
        out = tmp_path / "configs.json"
        result = cli_runner.invoke(app, ["--json", "-q", "-o", str(out), "configs"])
        assert result.exit_code == 0, result.output
        assert _read_json(out) == [
            {"Type": "gate", "Name": "new_checkout", "Status": "True"},
            {"Type": "experiment", "Name": "pricing", "Status": "active"},
        ]


class TestCacheCommands:
    def test_stats_after_get(self, cli_runner, mock_api, tmp_path) -> None:
        cli_runner.invoke(app, ["-q", "get", "/gates"])
        out = tmp_path / "stats.json"
        result = cli_runner.invoke(app, ["--json", "-o", str(out), "cache", "stats"])
        assert result.exit_code == 0, result.output
        stats = _read_json(out)
        assert stats["size"] == 1
        assert stats["entries"][0]["ttl"] == 3600

    def test_clear(self, cli_runner, mock_api) -> None:
        cli_runner.invoke(app, ["-q", "get", "/gates"])
        result = cli_runner.invoke(app, ["--no-color", "cache", "clear"])
        assert result.exit_code == 0, result.output
        assert "Removed 1 cached responses" in result.output

        cli_runner.invoke(app, ["-q", "get", "/gates"])
        assert mock_api.calls("GET", f"{PREFIX}/gates") == 2

    def test_clear_by_kind(self, cli_runner, mock_api) -> None:
        cli_runner.invoke(app, ["-q", "get", "/gates"])
        cli_runner.invoke(app, ["-q", "get", "/experiments"])
        result = cli_runner.invoke(app, ["--no-color", "cache", "clear", "--kind", "gates"])
        assert "Removed 1 cached responses" in result.output

        cli_runner.invoke(app, ["-q", "get", "/experiments"])
        assert mock_api.calls("GET", f"{PREFIX}/experiments") == 1

    def test_clear_unknown_kind(self, cli_runner, mock_api) -> None:
        result = cli_runner.invoke(app, ["cache", "clear", "--kind", "segments"])
        assert isinstance(result.exception, InvalidUsageError)


class TestConfigCommands:
    def test_show(self, cli_runner, isolated_config, tmp_path) -> None:
        out = tmp_path / "config.json"
        result = cli_runner.invoke(app, ["--json", "-q", "-o", str(out), "config", "show"])
        assert result.exit_code == 0, result.output
        data = _read_json(out)
        assert data["retry"]["max_retries"] == 3
        assert data["cache"]["default_ttl"] == 300

    @pytest.mark.parametrize(
        "key, value, check",
        [
            ("retry.max_retries", "5", lambda c: c.retry.max_retries == 5),
            ("retry.base_delay", "0.25", lambda c: c.retry.base_delay == 0.25),
            ("cache.persist", "true", lambda c: c.cache.persist is True),
            ("api.api_key_source", "env:CONSOLE_KEY", lambda c: c.api.api_key_source == "env:CONSOLE_KEY"),
            ("cache.long_ttl_paths", "/gates,/segments", lambda c: c.cache.long_ttl_paths == ["/gates", "/segments"]),
        ],
    )
    def test_set(self, cli_runner, isolated_config, key, value, check) -> None:
        result = cli_runner.invoke(app, ["config", "set", key, value])
        assert result.exit_code == 0, result.output
        assert check(load_global_config())

    def test_set_unknown_key(self, cli_runner, isolated_config) -> None:
        result = cli_runner.invoke(app, ["config", "set", "retry.nope", "1"])
        assert result.exit_code == 2

    def test_set_invalid_value(self, cli_runner, isolated_config) -> None:
        result = cli_runner.invoke(app, ["config", "set", "retry.max_retries", "many"])
        assert result.exit_code == 2

    def test_set_value_failing_validation(self, cli_runner, isolated_config) -> None:
        result = cli_runner.invoke(app, ["config", "set", "retry.max_retries", "-1"])
        assert result.exit_code == 2

    def test_reset(self, cli_runner, isolated_config) -> None:
        cli_runner.invoke(app, ["config", "set", "retry.max_retries", "7"])
        result = cli_runner.invoke(app, ["config", "reset", "--force"])
        assert result.exit_code == 0, result.output
        assert load_global_config().retry.max_retries == 3

    def test_reset_declined(self, cli_runner, isolated_config) -> None:
        cli_runner.invoke(app, ["config", "set", "retry.max_retries", "7"])
        result = cli_runner.invoke(app, ["config", "reset"], input="n\n")
        assert result.exit_code == 0
        assert load_global_config().retry.max_retries == 7

    def test_unknown_output_format_is_rejected(self, cli_runner, isolated_config) -> None:
        result = cli_runner.invoke(app, ["config", "set", "output.format", "xml"])
        assert result.exit_code == 2


class TestConfiguredOutputFormat:
    def test_configured_json_is_the_default(self, cli_runner, isolated_config) -> None:
        cli_runner.invoke(app, ["config", "set", "output.format", "json"])
        result = cli_runner.invoke(app, ["-q", "config", "show"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["output"]["format"] == "json"

    def test_plain_flag_beats_configured_format(self, cli_runner, isolated_config) -> None:
        cli_runner.invoke(app, ["config", "set", "output.format", "json"])
        result = cli_runner.invoke(app, ["-q", "--plain", "config", "show"])
        assert result.exit_code == 0, result.output
        assert "api\t" in result.output

    def test_broken_config_falls_back_with_warning(self, cli_runner, isolated_config) -> None:
        path = isolated_config / "config" / "resilio" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json")
        result = cli_runner.invoke(app, ["--no-color", "config", "reset", "--force"])
        assert result.exit_code == 0, result.output
        assert "using the default output format" in result.output
        assert load_global_config().retry.max_retries == 3


class TestMainEntryPoint:
    def test_resilio_error_exits_with_its_code(self, mock_api, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["resilio", "-q", "get", "/missing"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_NOT_FOUND

    def test_unexpected_error_writes_crash_log(self, mock_api, monkeypatch, isolated_config) -> None:
        def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr("resilio.commands.session.resolve_config", boom)
        monkeypatch.setattr(sys, "argv", ["resilio", "get", "/gates"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        logs = list((isolated_config / "data" / "resilio" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "kaboom" in logs[0].read_text()
