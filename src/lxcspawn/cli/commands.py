"""Command implementations for CLI."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from lxcspawn.errors import PreconditionError
from lxcspawn.models.config import AppConfig
from lxcspawn.models.deployment import DeploymentConfig
from lxcspawn.models.installer import InstallerArtifact, PatchReport
from lxcspawn.pipeline.checkpoints import Checkpoint, CheckpointStore
from lxcspawn.pipeline.collector import ParameterCollector, summarize
from lxcspawn.pipeline.engine import DeploymentEngine, DeploymentResult, Stage
from lxcspawn.providers import ProviderRegistry
from lxcspawn.utils.proxmox import ProxmoxHost
from lxcspawn.cli.prompts import TyperPrompter, summary_table


console = Console()
stderr_console = Console(stderr=True)

STAGE_MESSAGES = {
    Stage.COLLECTING: "Collecting deployment settings",
    Stage.RESOLVING: "Resolving storage and template",
    Stage.PROVISIONING: "Creating and starting container",
    Stage.FETCHING: "Downloading installer",
    Stage.PATCHING: "Patching installer for LXC",
    Stage.BOOTSTRAPPING: "Running installer",
    Stage.REGISTERING: "Creating systemd service",
    Stage.SKIPPED: "Skipping systemd service",
}


def _print_stage(stage: Stage) -> None:
    """Print a progress line for a pipeline stage."""
    message = STAGE_MESSAGES.get(stage)
    if message:
        console.print(f"[cyan][INFO][/cyan] {message}")


def _run_with_progress(description: str, coro) -> Any:
    """Run a coroutine to completion behind a progress spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=stderr_console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        return asyncio.run(coro)


def _build(config: AppConfig):
    host = ProxmoxHost(config.host.storage_config)
    registry = ProviderRegistry(host)
    checkpoints = CheckpointStore(Path(config.general.state_dir))
    return host, registry, checkpoints


def _prompt_for_deployment(
    collector: ParameterCollector,
    checkpoints: CheckpointStore,
    options: Dict[str, Any],
    resume: Optional[int] = None,
) -> DeploymentConfig:
    """Prompt for and confirm the deployment before the pipeline starts."""
    initial = {k: v for k, v in options.items() if k != "password"}
    if resume is not None:
        record = asyncio.run(checkpoints.load(resume))
        if record is None:
            raise PreconditionError(f"No checkpoint found for container {resume}")
        initial = {**record.config, **{k: v for k, v in initial.items() if v is not None}}
        initial["ctid"] = resume

    suggested_id = None if initial.get("ctid") else asyncio.run(collector.suggest_id())
    deployment = collector.collect(initial, suggested_id)
    collector.confirm(deployment)
    return deployment


def deploy(
    config: AppConfig,
    options: Dict[str, Any],
    yes: bool = False,
    resume: Optional[int] = None,
) -> DeploymentResult:
    """Run the full deployment pipeline."""
    host, registry, checkpoints = _build(config)
    collector = ParameterCollector(TyperPrompter(console), host, config.defaults)

    prompted = None
    if not yes:
        host.check_environment()
        prompted = _prompt_for_deployment(collector, checkpoints, options, resume)

    async def collect():
        if prompted is not None:
            return prompted
        deployment = await collector.from_options(options)
        console.print(summary_table(summarize(deployment)))
        return deployment

    async def run():
        await registry.initialize(config)
        engine = DeploymentEngine(
            config, registry, checkpoints, on_stage=_print_stage, resume=resume is not None
        )
        return await engine.run(collect)

    result = asyncio.run(run())
    _print_deploy_result(result, config)
    return result


def resolve_resources(config: AppConfig) -> None:
    """Show the storages and template a deployment would use."""
    host, registry, _ = _build(config)

    async def run():
        host.check_environment()
        await registry.initialize(config)
        storage = registry.get_provider("storage")
        rootdir = await storage.candidates("rootdir")
        vztmpl = await storage.candidates("vztmpl")
        template_storage = await storage.resolve(config.defaults.template_storage, content="vztmpl")
        template = await registry.get_provider("template").resolve(template_storage.name)
        return rootdir, vztmpl, template

    rootdir, vztmpl, template = _run_with_progress("Resolving storage and template...", run())

    table = Table(title="Storage")
    table.add_column("Name", style="cyan")
    table.add_column("Container disks")
    table.add_column("Templates")
    for name in dict.fromkeys([t.name for t in rootdir] + [t.name for t in vztmpl]):
        table.add_row(
            name,
            "✓" if any(t.name == name for t in rootdir) else "✗",
            "✓" if any(t.name == name for t in vztmpl) else "✗",
        )
    console.print(table)
    console.print(f"Template: [magenta]{template.volid}[/magenta] (version {template.version})")


def sanitize_script(config: AppConfig, source: Optional[str], output: Optional[Path]) -> PatchReport:
    """Fetch or read an installer and show how it would be patched."""
    registry = ProviderRegistry()

    async def run() -> InstallerArtifact:
        await registry.initialize(config)
        installer = registry.get_provider("installer")
        if source and not source.startswith(("https://", "http://")):
            path = Path(source)
            if not await asyncio.to_thread(path.exists):
                raise PreconditionError(f"Installer file not found: {path}")
            content = await asyncio.to_thread(path.read_text)
            artifact = InstallerArtifact(url=str(path), content=content)
        else:
            artifact = await installer.fetch(source)
        installer.verify(artifact)
        return installer.patch(artifact)

    artifact = _run_with_progress("Preparing installer...", run())
    _print_patch_report(artifact.report)

    if output:
        output.write_text(artifact.content)
        stderr_console.print(f"[green][OK][/green] Patched installer written to {output}")
    else:
        sys.stdout.write(artifact.content)
    return artifact.report


def show_status(config: AppConfig, ctid: int) -> None:
    """Show recorded checkpoints for a container."""
    checkpoints = CheckpointStore(Path(config.general.state_dir))
    record = asyncio.run(checkpoints.load(ctid))
    if record is None:
        console.print(f"No deployment recorded for container {ctid}")
        return

    table = Table(title=f"Container {ctid}")
    table.add_column("Checkpoint", style="cyan")
    table.add_column("Done")
    completed = {c.value for c in record.completed}
    for checkpoint in Checkpoint:
        done = checkpoint.value in completed
        table.add_row(checkpoint.value, "[green]✓[/green]" if done else "[red]✗[/red]")
    console.print(table)
    if record.updated_at:
        console.print(f"Last updated: {record.updated_at:%Y-%m-%d %H:%M:%S}")
    if record.config:
        console.print(summary_table(record.config))


def _print_patch_report(report: PatchReport) -> None:
    """Print the audit trail of a patch run to stderr."""
    table = Table(title="Installer changes")
    table.add_column("Line", justify="right")
    table.add_column("Rule", style="magenta")
    table.add_column("Before", style="dim")
    table.add_column("After")
    for change in report.changes:
        table.add_row(
            str(change.line_number),
            change.rule,
            change.before.strip(),
            "[red]removed[/red]" if change.removed else change.after.strip(),
        )
    stderr_console.print(table)
    for warning in report.warnings:
        stderr_console.print(f"[yellow]Warning:[/yellow] {warning}")


def _print_deploy_result(result: DeploymentResult, config: AppConfig) -> None:
    """Print the deployment summary."""
    unit = result.unit
    console.print()
    console.print(f"[green][OK][/green] {config.application.title} installation complete")

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Container ID", str(unit.ctid))
    table.add_row("Hostname", unit.hostname)
    table.add_row("Address", unit.display_address)
    if result.registration:
        state = "active" if result.registration.active else "inactive"
        table.add_row("Service", f"{result.registration.name} ({state})")
    elif Checkpoint.REGISTERED in result.resumed:
        table.add_row("Service", f"{config.application.service_name} (registered earlier)")
    else:
        table.add_row("Service", "not registered")
    console.print(table)
    console.print(
        f"[green]Access {config.application.title} via the container's IP "
        f"({unit.display_address}) on its configured port.[/green]"
    )
