"""Storage pool resolution."""

import logging
from typing import List, Optional

from lxcspawn.errors import ResolutionError
from lxcspawn.models.resources import StorageTarget
from lxcspawn.providers.base import BaseProvider
from lxcspawn.utils.proxmox import ProxmoxHost


logger = logging.getLogger(__name__)


def parse_storage_registry(text: str, content: str = "rootdir") -> List[StorageTarget]:
    """Return storages whose content list includes ``content``.

    The registry is a sequence of sections: an unindented ``<type>: <name>``
    header followed by indented ``<key> <value>`` property lines. The most
    recent header names every property line that follows it.
    """
    targets: List[StorageTarget] = []
    current: Optional[str] = None

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].rstrip()
        if not line.strip():
            continue

        if not raw_line[0].isspace() and ":" in line:
            _, _, name = line.partition(":")
            current = name.strip() or None
            continue

        key, _, value = line.strip().partition(" ")
        if key != "content" or current is None:
            continue

        capabilities = [c.strip() for c in value.split(",") if c.strip()]
        if content in capabilities and all(t.name != current for t in targets):
            targets.append(StorageTarget(name=current, content=capabilities))

    return targets


class StorageResolver(BaseProvider):
    """Resolve storage pools from the host storage registry."""

    def __init__(self):
        """Initialize storage resolver."""
        self.host: Optional[ProxmoxHost] = None

    async def initialize(self, config, registry) -> None:
        """Initialize resolver with configuration and registry."""
        self.host = registry.host

    async def candidates(self, content: str = "rootdir") -> List[StorageTarget]:
        """List storages advertising a content type."""
        text = await self.host.read_storage_config()
        targets = parse_storage_registry(text, content)
        logger.debug(f"{content}-capable storages: {[t.name for t in targets]}")
        return targets

    async def resolve(self, name: Optional[str] = None, content: str = "rootdir") -> StorageTarget:
        """Resolve a storage by name, or the first candidate when no name is given."""
        targets = await self.candidates(content)

        if not targets:
            raise ResolutionError(f"No {content}-capable storage found on this host")

        if name is None:
            logger.info(f"Using storage {targets[0].name} for {content}")
            return targets[0]

        for target in targets:
            if target.name == name:
                return target

        available = ", ".join(t.name for t in targets)
        raise ResolutionError(
            f"Storage '{name}' does not support {content}. Available: {available}"
        )
