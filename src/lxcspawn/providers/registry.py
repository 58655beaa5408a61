"""Provider registry for managing resource providers."""

import logging
from typing import Dict, Optional, Type

from lxcspawn.providers.base import BaseProvider
from lxcspawn.providers.storage import StorageResolver
from lxcspawn.providers.template import TemplateProvider
from lxcspawn.providers.container import ContainerProvider
from lxcspawn.providers.installer import InstallerProvider
from lxcspawn.providers.service import ServiceProvider
from lxcspawn.utils.proxmox import ProxmoxHost


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry for managing providers."""

    def __init__(self, host: Optional[ProxmoxHost] = None):
        """Initialize provider registry."""
        self.host = host or ProxmoxHost()
        self._providers: Dict[str, BaseProvider] = {}
        self._provider_classes: Dict[str, Type[BaseProvider]] = {
            "storage": StorageResolver,
            "template": TemplateProvider,
            "container": ContainerProvider,
            "installer": InstallerProvider,
            "service": ServiceProvider,
        }

    async def initialize(self, config):
        """Initialize all providers with two-pass injection."""
        # Phase 1: Instantiate all providers
        for name, provider_class in self._provider_classes.items():
            try:
                self._providers[name] = provider_class()
            except Exception as e:
                logger.error(f"Failed to instantiate provider {name}: {e}")
                raise

        # Phase 2: Initialize and inject registry
        for name, provider in self._providers.items():
            try:
                await provider.initialize(config, self)
                logger.debug(f"Initialized provider: {name}")
            except Exception as e:
                logger.error(f"Failed to initialize provider {name}: {e}")
                raise

    def get_provider(self, name: str) -> Optional[BaseProvider]:
        """Get a provider by name."""
        return self._providers.get(name)

    def list_providers(self) -> list[str]:
        """List available provider names."""
        return list(self._providers.keys())
