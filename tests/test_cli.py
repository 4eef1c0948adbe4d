"""Tests for the command line interface."""

import pytest
import yaml
from click.testing import CliRunner

from eventfabric import cli as cli_module
from eventfabric.__main__ import main
from eventfabric.cli import cli


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr(cli_module, "init_logging", lambda **kwargs: None)


@pytest.fixture
def runner():
    return CliRunner()


def test_help_lists_commands(runner):
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("aggregator", "listen", "peers", "publish"):
        assert command in result.output


def test_peers_with_empty_table(runner, tmp_path):
    result = runner.invoke(cli, ["--config-dir", str(tmp_path), "peers"])

    assert result.exit_code == 0
    assert "Publishers" in result.output


def test_publish_rejects_unknown_action(runner, tmp_path):
    result = runner.invoke(cli, ["--config-dir", str(tmp_path), "publish", "port", "p1", "explode"])

    assert result.exit_code == 2


def test_publish_rejects_invalid_value(runner, tmp_path):
    result = runner.invoke(
        cli, ["--config-dir", str(tmp_path), "publish", "port", "p1", "set", "--value", "{oops"]
    )

    assert result.exit_code == 1
    assert "Error" in result.output


def test_publish_reports_bad_transport(runner, tmp_path):
    (tmp_path / "eventfabric.yaml").write_text(
        yaml.safe_dump({"pubsub": {"publisher_transport": "udp"}})
    )

    result = runner.invoke(cli, ["--config-dir", str(tmp_path), "publish", "port", "p1", "set"])

    assert result.exit_code == 1
    assert "udp" in result.output


def test_invalid_configuration_fails(runner, tmp_path):
    (tmp_path / "eventfabric.yaml").write_text(yaml.safe_dump({"db": {"backend": "nope"}}))

    result = runner.invoke(cli, ["--config-dir", str(tmp_path), "peers"])

    assert result.exit_code != 0


def test_main_returns_exit_code(tmp_path):
    assert main(["--config-dir", str(tmp_path), "peers"]) == 0
    assert main(["--config-dir", str(tmp_path), "publish", "port", "p1", "explode"]) == 2
