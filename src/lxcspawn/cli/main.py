"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import Optional, Callable, Any

import typer
from rich.console import Console

from lxcspawn.cli.commands import (
    deploy,
    resolve_resources,
    sanitize_script,
    show_status,
)
from lxcspawn.errors import LxcSpawnError
from lxcspawn.models.deployment import NetworkMode
from lxcspawn.pipeline.config import ConfigManager
from lxcspawn.utils.logging import setup_logging


# Create Typer app
app = typer.Typer(
    name="lxcspawn",
    help="Provision a Proxmox LXC container and bootstrap an application inside it",
    add_completion=False,
)

# Console for rich output
console = Console(stderr=True)

CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Config file (default /etc/lxcspawn/config.yaml)"
)
LOG_LEVEL_OPTION = typer.Option(None, "--log-level", help="Override the configured log level")


def _run_cli_command(
    handler: Callable[..., Any],
    config_path: Optional[Path],
    log_level: Optional[str] = None,
    **kwargs: Any,
):
    """Helper to load configuration and run a command with error handling."""
    try:
        overrides = {"general": {"log_level": log_level}} if log_level else None
        config = asyncio.run(ConfigManager(config_path).load(overrides))
        setup_logging(config.general.log_level)
        handler(config, **kwargs)
    except LxcSpawnError as e:
        console.print(f"[red]{e.kind.capitalize()} error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("deploy")
def deploy_command(
    config: Optional[Path] = CONFIG_OPTION,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Use options and defaults without prompting"
    ),
    resume: Optional[int] = typer.Option(
        None, "--resume", help="Resume an interrupted deployment of this container ID"
    ),
    ctid: Optional[int] = typer.Option(None, "--ctid", help="Container ID (default: next free)"),
    hostname: Optional[str] = typer.Option(None, "--hostname"),
    password: Optional[str] = typer.Option(
        None, "--password", envvar="LXCSPAWN_PASSWORD", help="Root password (non-interactive)"
    ),
    storage: Optional[str] = typer.Option(None, "--storage", help="Root filesystem storage"),
    template_storage: Optional[str] = typer.Option(None, "--template-storage"),
    disk_size: Optional[int] = typer.Option(None, "--disk-size", help="Disk size in GB"),
    memory: Optional[int] = typer.Option(None, "--memory", help="Memory in MB"),
    cores: Optional[int] = typer.Option(None, "--cores"),
    network: Optional[NetworkMode] = typer.Option(None, "--network"),
    bridge: Optional[str] = typer.Option(None, "--bridge"),
    vlan: Optional[str] = typer.Option(None, "--vlan"),
    ip: Optional[str] = typer.Option(None, "--ip", help="Static address in CIDR form"),
    gateway: Optional[str] = typer.Option(None, "--gateway"),
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """Create the container and install the application."""
    options = {
        "ctid": ctid,
        "hostname": hostname,
        "password": password,
        "storage": storage,
        "template_storage": template_storage,
        "disk_size": disk_size,
        "memory": memory,
        "cores": cores,
        "network": network.value if network else None,
        "bridge": bridge,
        "vlan": vlan,
        "ip": ip,
        "gateway": gateway,
    }
    _run_cli_command(
        deploy, config, log_level=log_level, options=options, yes=yes, resume=resume
    )


@app.command("resolve")
def resolve_command(
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """Show usable storages and the template a deployment would use."""
    _run_cli_command(resolve_resources, config, log_level=log_level)


@app.command("sanitize")
def sanitize_command(
    source: Optional[str] = typer.Argument(
        None, help="Installer URL or local file (default: configured URL)"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the patched script here"),
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """Patch an installer script without deploying and show the changes."""
    _run_cli_command(sanitize_script, config, log_level=log_level, source=source, output=output)


@app.command("status")
def status_command(
    ctid: int = typer.Argument(..., help="Container ID"),
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """Show recorded deployment checkpoints for a container."""
    _run_cli_command(show_status, config, log_level=log_level, ctid=ctid)


def main():
    """Main entry point for CLI."""
    app()
