"""CLI smoke tests (no network)."""

import json

from typer.testing import CliRunner

from dvmbot import __version__
from dvmbot.cli.commands import app
from dvmbot.config.loader import load_config

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_onboard_then_whoami_and_status(tmp_path):
    path = tmp_path / "config.json"

    result = runner.invoke(app, ["onboard", "--config", str(path)])
    assert result.exit_code == 0
    config = load_config(path)
    assert config.package.nsec and config.package.random_id

    result = runner.invoke(app, ["whoami", "--config", str(path)])
    assert result.exit_code == 0
    assert result.stdout.strip().startswith("npub1")

    result = runner.invoke(app, ["status", "--config", str(path)])
    assert result.exit_code == 0
    assert "Announced" in result.stdout


def test_whoami_without_identity(tmp_path):
    result = runner.invoke(app, ["whoami", "--config", str(tmp_path / "none.json")])
    assert result.exit_code == 1


def test_run_refuses_to_touch_unreadable_config(tmp_path, keys):
    """
    INVARIANT: `run` exits with an error on a config it cannot validate and
    leaves the file (and the identity stored in it) exactly as it was.
    """
    path = tmp_path / "config.json"
    original = json.dumps({
        "package": {"nsec": keys.nsec, "randomId": "1abc", "announced": True},
        "comms": {"relays": ["wss://mine.example"]},
        "agent": {"historyCapacity": 0},
    })
    path.write_text(original)

    result = runner.invoke(app, ["run", "--config", str(path)])

    assert result.exit_code == 1
    assert path.read_text() == original


def test_status_reports_unreadable_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    result = runner.invoke(app, ["status", "--config", str(path)])

    assert result.exit_code == 1
    assert path.read_text() == "{not json"
