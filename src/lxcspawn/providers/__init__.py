"""Resource providers for lxcspawn."""

from lxcspawn.providers.base import BaseProvider, ProviderStatus, ResourceProvider
from lxcspawn.providers.registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "ProviderStatus",
    "ResourceProvider",
    "ProviderRegistry",
]
