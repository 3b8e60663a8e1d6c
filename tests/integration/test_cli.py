"""Integration tests for the postcheck CLI.

Invokes the Typer application end to end with an isolated configuration
directory. HTTP traffic goes to the in-memory server from conftest.py.
"""

import json

import pytest
from typer.testing import CliRunner

from postcheck import __version__
from postcheck.app import app, register_commands, ENV_CONFIG_DIR
from postcheck.config import ENV_BASE_URL, ENV_SEED, ENV_TIMEOUT, ENV_WORKERS
from postcheck.report import EXIT_CONFIGURATION_ERROR, EXIT_FAILED, EXIT_OK

register_commands()


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the CLI at an empty configuration directory."""
    monkeypatch.setenv(ENV_CONFIG_DIR, str(tmp_path / ".postcheck"))
    for var in (ENV_BASE_URL, ENV_SEED, ENV_TIMEOUT, ENV_WORKERS, "POSTCHECK_OUTPUT_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path / ".postcheck"


def run_json(cli_runner, *args):
    result = cli_runner.invoke(app, ["run", "--output", "json", *args])
    return result, json.loads(result.stdout) if result.stdout.strip().startswith("{") else None


class TestRunCommand:
    """Test cases for the run command."""

    def test_all_scenarios_pass(self, cli_runner, patched_http_client):
        result, report = run_json(cli_runner, "--base-url", "http://localhost:3000", "--seed", "5")

        assert result.exit_code == EXIT_OK
        assert report["summary"]["scenarios"] == 10
        assert report["summary"]["passed"] == 10
        assert report["summary"]["seed"] == 5

    def test_seed_is_always_reported(self, cli_runner, patched_http_client):
        result, report = run_json(cli_runner, "--base-url", "http://localhost:3000", "-s", "list-posts")

        assert result.exit_code == EXIT_OK
        assert isinstance(report["summary"]["seed"], int)

    def test_selected_scenarios(self, cli_runner, patched_http_client, fake_server):
        result, report = run_json(
            cli_runner,
            "--base-url", "http://localhost:3000",
            "-s", "delete-missing",
            "-s", "list-posts",
        )

        assert result.exit_code == EXIT_OK
        assert [s["name"] for s in report["scenarios"]] == ["list-posts", "delete-missing"]
        assert len(fake_server.requests) == 2

    def test_violation_exits_one(self, cli_runner, patched_http_client, fake_server):
        fake_server.reverse_listing = True

        result, report = run_json(cli_runner, "--base-url", "http://localhost:3000", "-s", "first-ten-posts")

        assert result.exit_code == EXIT_FAILED
        violation = report["scenarios"][0]["steps"][0]["violations"][0]
        assert violation["kind"] == "ordering_mismatch"

    def test_infrastructure_error_exits_one(self, cli_runner, patched_http_client, fake_server):
        fake_server.unreachable_paths = ["/"]

        result, report = run_json(cli_runner, "--base-url", "http://localhost:3000", "-s", "list-posts")

        assert result.exit_code == EXIT_FAILED
        assert report["summary"]["infrastructure_errors"] == 1
        assert report["summary"]["violations"] == 0

    def test_unknown_scenario(self, cli_runner, patched_http_client):
        result = cli_runner.invoke(app, ["run", "--base-url", "http://localhost:3000", "-s", "nope"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR
        assert "Unknown scenario" in result.output

    def test_unknown_output_format_sends_nothing(self, cli_runner, patched_http_client, fake_server):
        result = cli_runner.invoke(app, ["run", "--base-url", "http://localhost:3000", "--output", "xml"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR
        assert "Unknown output format" in result.output
        assert fake_server.requests == []
        patched_http_client.from_profile.assert_not_called()

    def test_unknown_output_format_from_environment(self, cli_runner, patched_http_client, fake_server, monkeypatch):
        monkeypatch.setenv("POSTCHECK_OUTPUT_FORMAT", "csv")

        result = cli_runner.invoke(app, ["run", "--base-url", "http://localhost:3000"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR
        assert fake_server.requests == []

    def test_no_target_configured(self, cli_runner, patched_http_client):
        result = cli_runner.invoke(app, ["run"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR
        assert "No target server configured" in result.output
        patched_http_client.from_profile.assert_not_called()

    def test_environment_base_url(self, cli_runner, patched_http_client, monkeypatch):
        monkeypatch.setenv(ENV_BASE_URL, "http://ci:3000")

        result, report = run_json(cli_runner, "-s", "list-posts")

        assert result.exit_code == EXIT_OK
        profile = patched_http_client.from_profile.call_args.args[0]
        assert profile.model_dump()["base_url"] == "http://ci:3000"

    def test_uses_active_profile(self, cli_runner, patched_http_client):
        cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000", "--timeout", "7"])

        result, report = run_json(cli_runner, "-s", "list-posts")

        assert result.exit_code == EXIT_OK
        profile = patched_http_client.from_profile.call_args.args[0]
        assert profile.name == "local"
        assert profile.timeout == 7

    def test_unknown_profile(self, cli_runner, patched_http_client):
        result = cli_runner.invoke(app, ["--profile", "missing", "run"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR
        assert "not found" in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestScenariosCommand:
    """Test cases for the scenarios command."""

    def test_lists_catalog(self, cli_runner):
        result = cli_runner.invoke(app, ["scenarios"])

        assert result.exit_code == 0
        assert "post-lifecycle" in result.output
        assert "create-unauthorized" in result.output


class TestConfigCommands:
    """Test cases for the config command group."""

    def test_add_and_list(self, cli_runner, isolated_config):
        result = cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000"])

        assert result.exit_code == 0
        assert "set as active" in result.output
        assert (isolated_config / "profiles" / "local.json").exists()

        result = cli_runner.invoke(app, ["config", "list"])
        assert result.exit_code == 0
        assert "local" in result.output

    def test_list_empty(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "list"])

        assert result.exit_code == 0
        assert "No profiles configured" in result.output

    def test_add_duplicate(self, cli_runner):
        cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000"])

        result = cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR
        assert "already exists" in result.output

    def test_use(self, cli_runner):
        cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000"])
        cli_runner.invoke(app, ["config", "add", "staging", "--base-url", "https://staging.example.com"])

        result = cli_runner.invoke(app, ["config", "use", "staging"])

        assert result.exit_code == 0
        assert "now active" in result.output

        result = cli_runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "staging" in result.output

    def test_use_unknown(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "use", "missing"])

        assert result.exit_code == EXIT_CONFIGURATION_ERROR

    def test_show_named_profile(self, cli_runner):
        cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000", "--seed", "11"])

        result = cli_runner.invoke(app, ["config", "show", "local"])

        assert result.exit_code == 0
        assert "http://localhost:3000" in result.output
        assert "11" in result.output

    def test_remove_with_force(self, cli_runner, isolated_config):
        cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000"])

        result = cli_runner.invoke(app, ["config", "remove", "local", "--force"])

        assert result.exit_code == 0
        assert not (isolated_config / "profiles" / "local.json").exists()

    def test_remove_cancelled(self, cli_runner, isolated_config):
        cli_runner.invoke(app, ["config", "add", "local", "--base-url", "http://localhost:3000"])

        result = cli_runner.invoke(app, ["config", "remove", "local"], input="n\n")

        assert result.exit_code == 0
        assert "Remove cancelled" in result.output
        assert (isolated_config / "profiles" / "local.json").exists()
