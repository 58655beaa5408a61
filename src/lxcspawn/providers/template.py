"""Template provider for container OS templates."""

import logging
import re
import subprocess
from typing import List, Optional

from lxcspawn.errors import ExecutionError, ResolutionError
from lxcspawn.models.resources import TemplateDescriptor
from lxcspawn.providers.base import ResourceProvider, ProviderStatus
from lxcspawn.utils.proxmox import ProxmoxHost
from lxcspawn.utils.versions import version_key


logger = logging.getLogger(__name__)


def template_pattern(os_family: str, arch: str) -> re.Pattern:
    """Build the name pattern for a base OS and architecture.

    Matches names such as ``debian-12-standard_12.7-1_amd64.tar.zst``; the
    first group captures the template version.
    """
    return re.compile(
        rf"^{re.escape(os_family)}-\d+(?:\.\d+)?-standard_(.+)_{re.escape(arch)}"
        r"\.tar\.(?:zst|xz|gz)$"
    )


def select_latest(names: List[str], pattern: re.Pattern) -> Optional[TemplateDescriptor]:
    """Pick the highest version among names matching the pattern."""
    matches = []
    for name in names:
        match = pattern.match(name)
        if match:
            matches.append((match.group(1), name))

    if not matches:
        return None

    version, name = max(matches, key=lambda m: (version_key(m[0]), version_key(m[1])))
    return TemplateDescriptor(name=name, storage="", version=version)


class TemplateProvider(ResourceProvider):
    """Provider for Proxmox LXC templates."""

    def __init__(self):
        """Initialize template provider."""
        self.host: Optional[ProxmoxHost] = None
        self.pattern: Optional[re.Pattern] = None
        self.section = "system"

    async def initialize(self, config, registry) -> None:
        """Initialize provider with configuration."""
        self.host = registry.host
        self.pattern = template_pattern(config.host.os_family, config.host.arch)
        self.section = config.host.template_section

    async def refresh(self) -> bool:
        """Refresh the template index; failure keeps the cached index."""
        try:
            await self.host.update_templates()
            logger.debug("Template index updated")
            return True
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Could not update template index, using cached list: {e}")
            return False

    async def resolve(self, storage: str) -> TemplateDescriptor:
        """Resolve the latest matching template for a storage."""
        await self.refresh()

        try:
            names = await self.host.available_templates(self.section)
        except subprocess.CalledProcessError as e:
            raise ResolutionError(f"Failed to list available templates: {e.stderr or e}") from e

        selected = select_latest(names, self.pattern)
        if selected is None:
            raise ResolutionError(
                f"No template matching '{self.pattern.pattern}' found "
                f"({len(names)} templates available)"
            )

        template = selected.model_copy(update={"storage": storage})
        logger.info(f"Selected template {template.name}")
        return template

    async def status(self, spec: TemplateDescriptor) -> ProviderStatus:
        """Check if the template is stored on its storage."""
        try:
            stored = await self.host.stored_templates(spec.storage)
        except subprocess.CalledProcessError as e:
            logger.error(f"Error checking template {spec.name}: {e}")
            return ProviderStatus.ERROR

        if spec.name in stored:
            return ProviderStatus.PRESENT
        return ProviderStatus.ABSENT

    async def present(self, spec: TemplateDescriptor) -> None:
        """Ensure the template is stored, downloading it when absent."""
        current_status = await self.status(spec)

        if current_status == ProviderStatus.PRESENT:
            logger.debug(f"Template {spec.name} already present on {spec.storage}")
            return

        logger.info(f"Downloading template {spec.name} to {spec.storage}")

        try:
            await self.host.download_template(spec.storage, spec.name)
            logger.info(f"Template {spec.name} downloaded successfully")
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to download template {spec.name}: {e}")
            raise ExecutionError(f"Failed to download template {spec.name}") from e
