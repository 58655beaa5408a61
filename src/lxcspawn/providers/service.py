"""Service provider: run the bootstrap script and register the application."""

import asyncio
import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, TYPE_CHECKING

from lxcspawn.errors import ExecutionError, PreconditionError
from lxcspawn.models.installer import InstallerArtifact
from lxcspawn.models.service import ServiceRegistration
from lxcspawn.models.unit import ProvisionedUnit
from lxcspawn.providers.base import ResourceProvider, ProviderStatus
from lxcspawn.utils.proxmox import ProxmoxHost
from lxcspawn.utils.systemd import render_unit

if TYPE_CHECKING:
    from lxcspawn.providers.container import ContainerProvider

logger = logging.getLogger(__name__)

INSTALLER_NAME = "installer.sh"


class ServiceProvider(ResourceProvider):
    """Provider for the application bootstrap and its systemd unit."""

    def __init__(self):
        """Initialize service provider."""
        self.host: Optional[ProxmoxHost] = None
        self.application = None
        self._container_provider: Optional["ContainerProvider"] = None

    async def initialize(self, config, registry) -> None:
        """Initialize provider with configuration and registry."""
        self.host = registry.host
        self.application = config.application
        self._container_provider = registry.get_provider("container")

    @property
    def container_provider(self) -> "ContainerProvider":
        """Get container provider."""
        return self._container_provider

    async def _run(self, unit: ProvisionedUnit, command: str, action: str, capture_output: bool = True):
        """Run a guest command, raising ExecutionError on failure."""
        try:
            return await self.container_provider.execute(
                unit, command, capture_output=capture_output
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            logger.error(f"Failed to {action} in container {unit.ctid}: {stderr}")
            raise ExecutionError(f"Failed to {action}: {stderr or e}") from e

    async def _has_command(self, unit: ProvisionedUnit, name: str) -> bool:
        result = await self.container_provider.execute(
            unit, f"command -v {shlex.quote(name)} >/dev/null 2>&1", check=False
        )
        return result.returncode == 0

    async def _path_exists(self, unit: ProvisionedUnit, path: str) -> bool:
        result = await self.container_provider.execute(
            unit, f"test -f {shlex.quote(path)}", check=False
        )
        return result.returncode == 0

    async def _push_text(self, unit: ProvisionedUnit, text: str, destination: str, perms: str) -> None:
        """Write text to a temporary host file and push it into the container."""
        fd, tmp_name = await asyncio.to_thread(tempfile.mkstemp, prefix="lxcspawn-")
        tmp_path = Path(tmp_name)
        try:
            await asyncio.to_thread(os.close, fd)
            await asyncio.to_thread(tmp_path.write_text, text)
            await self.host.push(unit.ctid, tmp_path, destination, perms=perms)
        except subprocess.CalledProcessError as e:
            raise ExecutionError(f"Failed to copy {destination} into container {unit.ctid}") from e
        finally:
            await asyncio.to_thread(tmp_path.unlink, True)

    async def prepare_guest(self, unit: ProvisionedUnit, dependencies: Optional[List[str]] = None) -> None:
        """Check the guest is Debian-based and install the base packages."""
        if not await self._has_command(unit, "apt-get"):
            raise PreconditionError(
                f"Container {unit.ctid} is not Debian/Ubuntu-based (apt not found)"
            )

        packages = dependencies if dependencies is not None else self.application.dependencies
        env = "DEBIAN_FRONTEND=noninteractive"

        logger.info(f"Updating container {unit.ctid}")
        await self._run(unit, f"{env} apt-get update && {env} apt-get -y upgrade", "update packages")

        if packages:
            logger.info(f"Installing dependencies: {' '.join(packages)}")
            await self._run(
                unit,
                f"{env} apt-get install -y {shlex.join(packages)}",
                "install dependencies",
            )

        await self._run(
            unit, f"mkdir -p {shlex.quote(self.application.app_dir)}", "create application directory"
        )

    async def bootstrap(self, unit: ProvisionedUnit, artifact: InstallerArtifact) -> None:
        """Copy the sanitized installer into the container and run it as root."""
        app_dir = self.application.app_dir.rstrip("/")
        destination = f"{app_dir}/{INSTALLER_NAME}"

        await self._push_text(unit, artifact.content, destination, perms="0755")

        logger.info(f"Running installer in container {unit.ctid}")
        await self._run(
            unit,
            f"cd {shlex.quote(app_dir)} && bash {INSTALLER_NAME}",
            "run installer script",
            capture_output=False,
        )
        logger.info(f"{self.application.title} installed")

    def registration_for(self, unit: ProvisionedUnit) -> ServiceRegistration:
        """Build the service registration for the configured application."""
        return ServiceRegistration(
            ctid=unit.ctid,
            name=self.application.service_name,
            description=f"{self.application.title} Service",
            working_directory=self.application.app_dir,
            exec_start=self.application.start_command,
        )

    async def status(self, spec: ServiceRegistration) -> ProviderStatus:
        """Check if the unit is active."""
        unit = ProvisionedUnit(ctid=spec.ctid, hostname="")
        result = await self.container_provider.execute(
            unit, f"systemctl is-active {shlex.quote(spec.name)}", check=False
        )
        if result.stdout.strip() == "active":
            return ProviderStatus.PRESENT
        return ProviderStatus.ABSENT

    async def present(self, spec: ServiceRegistration) -> None:
        """Write, enable and start the unit."""
        unit = ProvisionedUnit(ctid=spec.ctid, hostname="")
        await self._push_text(unit, render_unit(spec), spec.unit_path, perms="0644")
        logger.debug(f"Created unit file {spec.unit_path}")

        name = shlex.quote(spec.name)
        await self._run(unit, "systemctl daemon-reload", "reload systemd")
        await self._run(unit, f"systemctl enable {name}", f"enable {spec.name}")
        await self._run(unit, f"systemctl start {name}", f"start {spec.name}")

    async def skip_reason(self, unit: ProvisionedUnit) -> Optional[str]:
        """Explain why registration does not apply, or None when it does."""
        if not await self._has_command(unit, "systemctl"):
            return "systemd not available in this container; skipping service creation"

        entrypoint = self.application.entrypoint_path
        if not await self._path_exists(unit, entrypoint):
            return f"No {entrypoint} found; skipping systemd unit creation"
        return None

    async def activate(self, unit: ProvisionedUnit) -> ServiceRegistration:
        """Create and start the unit, then verify it is active."""
        registration = self.registration_for(unit)
        await self.present(registration)

        active = await self.status(registration) == ProviderStatus.PRESENT
        if active:
            logger.info(f"Service {registration.name} created and started")
        else:
            logger.warning(f"Service {registration.name} was started but is not active")
        return registration.model_copy(update={"active": active})

    async def register(self, unit: ProvisionedUnit) -> Optional[ServiceRegistration]:
        """Register the application as a service when its entrypoint exists.

        Returns None when registration is skipped: systemd missing in the
        guest, or no entrypoint after the installer ran.
        """
        reason = await self.skip_reason(unit)
        if reason:
            logger.info(reason)
            return None
        return await self.activate(unit)
