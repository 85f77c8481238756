"""Tests for the plugins, hooks, apply and fire commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from posplug.cli import cli

_PLUGIN_SRC = """\
import pluggy

hookimpl = pluggy.HookimplMarker("posplug")


class InvoiceStampPlugin:
    @hookimpl
    def metafields(self):
        return {
            "debug": {"type": "yesorno", "size": "10"},
            "teststring": {"type": "string", "size": "20"},
        }

    @hookimpl
    def register_extensions(self, registrar):
        def after_invoice(res, params):
            return res + registrar.get_meta("teststring") + str(params["model"]["id"])

        def shout(params):
            print("ACTION", params["model"]["id"])

        registrar.register_filter("after_invoice", after_invoice)
        registrar.register_action("after_invoice", shout)
"""

_FAILING_SRC = """\
import pluggy

hookimpl = pluggy.HookimplMarker("posplug")


class FailingPlugin:
    @hookimpl
    def register_extensions(self, registrar):
        def explode(res, params):
            raise RuntimeError("kaboom")

        registrar.register_filter("after_receipt", explode)
"""


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    directory = tmp_path / ".posplug" / "plugins"
    directory.mkdir(parents=True)
    (directory / "stamp.py").write_text(_PLUGIN_SRC, encoding="utf-8")
    (directory / "failing.py").write_text(_FAILING_SRC, encoding="utf-8")
    (tmp_path / "posplug.toml").write_text('[meta.stamp]\nteststring = " #"\n', encoding="utf-8")
    return directory


@pytest.mark.usefixtures("_isolated_cwd", "plugins_dir")
class TestInspectCommands:
    def test_plugins_lists_local_plugins(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "plugins"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["op"] == "list_plugins"
        by_name = {row["name"]: row for row in data["data"]["plugins"]}
        assert by_name["stamp"]["metafields"] == {"debug": "yesorno", "teststring": "string"}
        assert by_name["stamp"]["registrations"] == 2
        assert by_name["failing"]["registrations"] == 1

    def test_plugins_human_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["plugins"])
        assert result.exit_code == 0
        assert "OK: list_plugins" in result.output
        assert "stamp" in result.output

    def test_hooks_lists_registrations(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "hooks", "--hook", "after_invoice"])
        assert result.exit_code == 0
        rows = json.loads(result.output)["data"]["registrations"]
        assert [(r["kind"], r["plugin"]) for r in rows] == [
            ("filter", "stamp"),
            ("action", "stamp"),
        ]


@pytest.mark.usefixtures("_isolated_cwd", "plugins_dir")
class TestDispatchCommands:
    def test_apply_runs_filter_chain(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli,
            ["--json", "apply", "after_invoice", "Total", "--params", '{"model": {"id": 42}}'],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data == {"hook": "after_invoice", "filters": 1, "value": "Total #42"}

    def test_apply_unknown_hook_is_identity(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "apply", "nobody_listens", "same"])
        assert result.exit_code == 0
        assert json.loads(result.output)["data"]["value"] == "same"

    def test_apply_failure_exits_nonzero(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "apply", "after_receipt", "x"])
        assert result.exit_code == 1
        payload = json.loads(result.stderr)
        assert payload["ok"] is False
        assert payload["error"]["code"] == "CallableFailure"
        assert payload["error"]["detail"]["plugin"] == "failing"
        assert "kaboom" in payload["error"]["message"]

    def test_fire_runs_actions(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["fire", "after_invoice", "--params", '{"model": {"id": 7}}']
        )
        assert result.exit_code == 0, result.output
        assert "ACTION 7" in result.output
        assert "OK: do_actions" in result.output

    def test_invalid_params_rejected(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["fire", "after_invoice", "--params", "[1, 2]"])
        assert result.exit_code == 2
        assert "expected a JSON object" in result.output
