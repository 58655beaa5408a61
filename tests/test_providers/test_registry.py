"""Tests for ProviderRegistry."""

import pytest
from unittest.mock import Mock
from lxcspawn.models.config import AppConfig
from lxcspawn.providers.registry import ProviderRegistry
from lxcspawn.providers.base import BaseProvider, ProviderStatus
from lxcspawn.providers.container import ContainerProvider
from lxcspawn.providers.service import ServiceProvider


class MockProvider(BaseProvider):
    """Mock provider for testing registry."""

    def __init__(self):
        self.initialized = False
        self.registry_ref = None
        self.config_ref = None

    async def initialize(self, config, registry):
        self.initialized = True
        self.config_ref = config
        self.registry_ref = registry

    async def status(self, spec):
        return ProviderStatus.UNKNOWN


class TestProviderRegistry:
    """Test ProviderRegistry initialization and injection."""

    @pytest.mark.asyncio
    async def test_initialization_injection(self):
        """Test that registry injects itself into providers."""
        registry = ProviderRegistry(Mock())
        registry._provider_classes = {"mock": MockProvider}

        mock_config = Mock()
        await registry.initialize(mock_config)

        provider = registry.get_provider("mock")
        assert isinstance(provider, MockProvider)
        assert provider.initialized is True
        assert provider.config_ref == mock_config
        assert provider.registry_ref == registry

    @pytest.mark.asyncio
    async def test_get_provider(self):
        """Test retrieving providers."""
        registry = ProviderRegistry(Mock())
        registry._provider_classes = {"mock": MockProvider}
        await registry.initialize(Mock())

        assert registry.get_provider("mock") is not None
        assert registry.get_provider("nonexistent") is None

    def test_list_providers(self):
        """Providers are only listed after initialization."""
        registry = ProviderRegistry(Mock())
        registry._provider_classes = {"mock1": MockProvider, "mock2": MockProvider}

        assert registry.list_providers() == []

    @pytest.mark.asyncio
    async def test_default_providers_share_host(self):
        """Built-in providers are wired to the registry host and each other."""
        host = Mock()
        registry = ProviderRegistry(host)
        await registry.initialize(AppConfig())

        assert registry.list_providers() == ["storage", "template", "container", "installer", "service"]
        container = registry.get_provider("container")
        service = registry.get_provider("service")
        assert isinstance(container, ContainerProvider)
        assert isinstance(service, ServiceProvider)
        assert container.host is host
        assert service.container_provider is container
