"""Container provider for managing Proxmox LXC containers."""

import asyncio
import logging
import subprocess
import time
from typing import List, Optional

from lxcspawn.errors import ExecutionError, ReadinessTimeout
from lxcspawn.models.deployment import DeploymentConfig, NetworkMode
from lxcspawn.models.resources import StorageTarget, TemplateDescriptor
from lxcspawn.models.unit import ProvisionedUnit, UnitState
from lxcspawn.providers.base import BaseProvider, ProviderStatus
from lxcspawn.utils.proxmox import ProxmoxHost
from lxcspawn.utils.systemd import CommandResult


logger = logging.getLogger(__name__)


def build_net_config(config: DeploymentConfig, interface: str = "eth0") -> str:
    """Build the net0 descriptor for a deployment."""
    parts = [f"name={interface}", f"bridge={config.bridge}"]
    if config.vlan:
        parts.append(f"tag={config.vlan}")
    if config.network == NetworkMode.STATIC:
        parts.append(f"ip={config.ip}")
        parts.append(f"gw={config.gateway}")
    else:
        parts.append("ip=dhcp")
    return ",".join(parts)


class ContainerProvider(BaseProvider):
    """Provider for creating and starting LXC containers."""

    def __init__(self):
        """Initialize container provider."""
        self.host: Optional[ProxmoxHost] = None
        self.os_type = "debian"
        self.ready_timeout = 60.0
        self.ready_initial_delay = 1.0
        self.ready_max_delay = 8.0

    async def initialize(self, config, registry) -> None:
        """Initialize provider with configuration and registry."""
        self.host = registry.host
        self.os_type = config.host.os_family
        self.ready_timeout = config.host.ready_timeout
        self.ready_initial_delay = config.host.ready_initial_delay
        self.ready_max_delay = config.host.ready_max_delay

    async def status(self, ctid: int) -> ProviderStatus:
        """Check if a container exists."""
        try:
            state = await self.host.container_status(ctid)
        except Exception as e:
            logger.error(f"Error checking container {ctid}: {e}")
            return ProviderStatus.ERROR

        return ProviderStatus.PRESENT if state else ProviderStatus.ABSENT

    async def is_running(self, ctid: int) -> bool:
        """Check if a container is running."""
        return await self.host.container_status(ctid) == "running"

    def create_options(
        self,
        config: DeploymentConfig,
        storage: StorageTarget,
    ) -> List[str]:
        """Build the pct create options for a deployment."""
        features = "nesting=1" if config.nesting else "nesting=0"
        return [
            "--hostname", config.hostname,
            "--password", config.password.get_secret_value(),
            "--rootfs", f"{storage.name}:{config.disk_size}",
            "--memory", str(config.memory),
            "--cores", str(config.cores),
            "--net0", build_net_config(config),
            "--features", features,
            "--ostype", self.os_type,
            "--unprivileged", "1" if config.unprivileged else "0",
        ]

    async def create(
        self,
        config: DeploymentConfig,
        storage: StorageTarget,
        template: TemplateDescriptor,
    ) -> ProvisionedUnit:
        """Create the container with a single pct create request."""
        logger.info(f"Creating container {config.ctid} ({config.hostname})")

        try:
            await self.host.create_container(
                config.ctid,
                template.volid,
                self.create_options(config, storage),
                redact=[config.password.get_secret_value()],
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to create container {config.ctid}. Stderr: {e.stderr}")
            raise ExecutionError(
                f"Container {config.ctid} creation failed: {(e.stderr or '').strip() or e}"
            ) from e

        logger.info(f"Container {config.ctid} created")
        return ProvisionedUnit(ctid=config.ctid, hostname=config.hostname)

    async def start(self, unit: ProvisionedUnit) -> ProvisionedUnit:
        """Start the container and wait until it accepts commands."""
        if await self.is_running(unit.ctid):
            logger.debug(f"Container {unit.ctid} already running")
        else:
            logger.info(f"Starting container {unit.ctid}")
            try:
                await self.host.start_container(unit.ctid)
            except subprocess.CalledProcessError as e:
                logger.error(f"Failed to start container {unit.ctid}. Stderr: {e.stderr}")
                raise ExecutionError(
                    f"Container {unit.ctid} failed to start: {(e.stderr or '').strip() or e}"
                ) from e

        await self.wait_for_ready(unit.ctid)
        return unit.model_copy(update={"state": UnitState.RUNNING})

    async def wait_for_ready(self, ctid: int) -> None:
        """Poll the container with a trivial command until it responds.

        Delay between attempts doubles from ``ready_initial_delay`` up to
        ``ready_max_delay``; ``ReadinessTimeout`` is raised once
        ``ready_timeout`` seconds have passed.
        """
        deadline = time.monotonic() + self.ready_timeout
        delay = self.ready_initial_delay
        attempt = 0

        while True:
            attempt += 1
            if await self.host.accepts_commands(ctid):
                logger.debug(f"Container {ctid} is ready after {attempt} attempt(s)")
                return

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadinessTimeout(
                    f"Container {ctid} did not become ready in {self.ready_timeout:g}s"
                )

            await asyncio.sleep(min(delay, remaining))
            delay = min(delay * 2, self.ready_max_delay)

    async def execute(
        self,
        unit: ProvisionedUnit,
        command: str,
        check: bool = True,
        capture_output: bool = True,
    ) -> CommandResult:
        """Execute a shell command in the container as root."""
        return await self.host.exec(
            unit.ctid, command, check=check, capture_output=capture_output
        )

    async def address(self, unit: ProvisionedUnit, config: Optional[DeploymentConfig] = None) -> Optional[str]:
        """Best-effort lookup of the container's IP address."""
        try:
            result = await self.host.exec(unit.ctid, "hostname -I", check=False, timeout=10)
            if result.returncode == 0 and result.stdout.split():
                return result.stdout.split()[0]
        except Exception as e:
            logger.debug(f"Could not query address of container {unit.ctid}: {e}")

        if config is not None and config.network == NetworkMode.STATIC:
            return config.address
        return None
