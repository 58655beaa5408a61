"""Tests for CLI main module."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import typer
from typer.testing import CliRunner

from lxcspawn.cli.main import _run_cli_command, app
from lxcspawn.errors import InputCancelled
from lxcspawn.models.config import AppConfig
from lxcspawn.pipeline.checkpoints import Checkpoint, CheckpointStore


runner = CliRunner()

SCRIPT = """\
#!/bin/bash
apt-get install -y git
docker compose up -d
cd /opt/freidntl && git pull
"""


@patch("lxcspawn.cli.main.setup_logging")
@patch("lxcspawn.cli.main.ConfigManager")
@patch("lxcspawn.cli.main.console")
def test_run_cli_command_success(mock_console, mock_config_manager, mock_setup_logging):
    """Test the CLI command runner on a successful execution."""
    config = AppConfig()
    mock_config_manager.return_value.load = AsyncMock(return_value=config)
    mock_handler = MagicMock()

    _run_cli_command(mock_handler, None, log_level="debug", arg1="value1")

    mock_config_manager.assert_called_once_with(None)
    mock_config_manager.return_value.load.assert_awaited_once_with({"general": {"log_level": "debug"}})
    mock_setup_logging.assert_called_once_with("INFO")
    mock_handler.assert_called_once_with(config, arg1="value1")
    mock_console.print.assert_not_called()


@patch("lxcspawn.cli.main.setup_logging")
@patch("lxcspawn.cli.main.ConfigManager")
@patch("lxcspawn.cli.main.console")
def test_run_cli_command_error(mock_console, mock_config_manager, mock_setup_logging):
    """Test the CLI command runner when the handler fails."""
    mock_config_manager.return_value.load = AsyncMock(return_value=AppConfig())
    mock_handler = MagicMock(side_effect=InputCancelled("Deployment declined; no changes were made"))

    with pytest.raises(typer.Exit) as exc_info:
        _run_cli_command(mock_handler, None)

    mock_config_manager.return_value.load.assert_awaited_once_with(None)
    mock_console.print.assert_called_once_with(
        "[red]Cancelled error:[/red] Deployment declined; no changes were made"
    )
    assert exc_info.value.exit_code == 1


def test_missing_config_file(tmp_path):
    result = runner.invoke(app, ["status", "100", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_status_without_record(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"general:\n  state_dir: {tmp_path / 'state'}\n")

    result = runner.invoke(app, ["status", "100", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "No deployment recorded for container 100" in result.output


def test_status_with_record(tmp_path):
    state_dir = tmp_path / "state"
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"general:\n  state_dir: {state_dir}\n")
    store = CheckpointStore(state_dir)
    asyncio.run(store.mark(100, Checkpoint.CREATED, config={"ctid": 100, "hostname": "app01"}))

    result = runner.invoke(app, ["status", "100", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "created" in result.output
    assert "registered" in result.output
    assert "app01" in result.output


def test_sanitize_local_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("installer:\n  min_size: 10\n")
    source = tmp_path / "install.sh"
    source.write_text(SCRIPT)
    output = tmp_path / "patched.sh"

    result = runner.invoke(
        app, ["sanitize", str(source), "--output", str(output), "--config", str(config_file)]
    )

    assert result.exit_code == 0
    assert output.read_text() == (
        "#!/bin/bash\n"
        "apt-get install -y git\n"
        "cd /opt/mikrowizard && git pull\n"
    )


def test_sanitize_rejects_tiny_script(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("general:\n  log_level: ERROR\n")
    source = tmp_path / "install.sh"
    source.write_text("#!/bin/bash\n")

    result = runner.invoke(app, ["sanitize", str(source), "--config", str(config_file)])

    assert result.exit_code == 1
    assert "too small" in result.output
