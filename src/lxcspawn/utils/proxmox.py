"""Proxmox VE host command wrapper."""

import asyncio
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from lxcspawn.errors import PreconditionError
from lxcspawn.utils.systemd import CommandResult, run_command


logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("pct", "pveam", "pvesh")


class ProxmoxHost:
    """Thin async wrapper over the pct/pveam/pvesh command line tools.

    Every method maps to exactly one host command. Failures surface as
    ``subprocess.CalledProcessError``; callers classify them.
    """

    def __init__(self, storage_config: str = "/etc/pve/storage.cfg"):
        """Initialize host wrapper."""
        self.storage_config = Path(storage_config)

    def check_environment(self) -> None:
        """Verify the tool runs as root on a Proxmox VE host."""
        missing = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
        if missing:
            raise PreconditionError(
                f"Not a Proxmox VE host: missing {', '.join(missing)}"
            )
        if hasattr(os, "geteuid") and os.geteuid() != 0:
            raise PreconditionError("Please run as root on the Proxmox host")

    async def next_id(self) -> int:
        """Ask the cluster for the next free guest ID."""
        result = await run_command(["pvesh", "get", "/cluster/nextid"])
        return int(result.stdout.strip().strip('"'))

    async def read_storage_config(self) -> str:
        """Read the storage registry."""
        if not await asyncio.to_thread(self.storage_config.exists):
            raise PreconditionError(f"Storage registry not found: {self.storage_config}")
        return await asyncio.to_thread(self.storage_config.read_text)

    async def update_templates(self) -> CommandResult:
        """Refresh the available template index."""
        return await run_command(["pveam", "update"], timeout=120)

    async def available_templates(self, section: str = "system") -> List[str]:
        """List downloadable template names."""
        result = await run_command(["pveam", "available", "--section", section])
        templates = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                templates.append(parts[-1])
        return templates

    async def stored_templates(self, storage: str) -> List[str]:
        """List template names already present on a storage."""
        result = await run_command(["pveam", "list", storage])
        templates = []
        for line in result.stdout.splitlines():
            parts = line.split()
            # volid format: "local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst"
            if parts and ":vztmpl/" in parts[0]:
                templates.append(parts[0].split("/")[-1])
        return templates

    async def download_template(self, storage: str, template: str) -> CommandResult:
        """Download a template to a storage."""
        return await run_command(["pveam", "download", storage, template], timeout=1800)

    async def create_container(
        self,
        ctid: int,
        ostemplate: str,
        options: List[str],
        redact: Iterable[str] = (),
    ) -> CommandResult:
        """Create a container from a template."""
        return await run_command(
            ["pct", "create", str(ctid), ostemplate, *options], redact=redact
        )

    async def start_container(self, ctid: int) -> CommandResult:
        """Start a container."""
        return await run_command(["pct", "start", str(ctid)])

    async def container_status(self, ctid: int) -> Optional[str]:
        """Return the container state, or None if it does not exist."""
        result = await run_command(["pct", "status", str(ctid)], check=False)
        if result.returncode != 0:
            return None
        # Output format: "status: running"
        _, _, state = result.stdout.partition(":")
        return state.strip() or None

    async def exec(
        self,
        ctid: int,
        command: str,
        check: bool = True,
        timeout: Optional[float] = None,
        capture_output: bool = True,
    ) -> CommandResult:
        """Run a shell command inside a container as root."""
        return await run_command(
            ["pct", "exec", str(ctid), "--", "bash", "-c", command],
            check=check,
            capture_output=capture_output,
            timeout=timeout,
        )

    async def push(self, ctid: int, source: Path, destination: str, perms: str = "0644") -> CommandResult:
        """Copy a host file into a container."""
        return await run_command(
            ["pct", "push", str(ctid), str(source), destination, "--perms", perms]
        )

    async def accepts_commands(self, ctid: int, timeout: float = 10) -> bool:
        """Check whether a container accepts commands."""
        try:
            result = await run_command(
                ["pct", "exec", str(ctid), "--", "true"], check=False, timeout=timeout
            )
        except subprocess.TimeoutExpired:
            return False
        return result.returncode == 0
