"""Base provider interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, TYPE_CHECKING
from pydantic import BaseModel

if TYPE_CHECKING:
    from lxcspawn.providers.registry import ProviderRegistry


class ProviderStatus(Enum):
    """Provider resource status."""
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"
    ERROR = "error"


class BaseProvider(ABC):
    """Base provider interface that all providers must implement."""

    @abstractmethod
    async def initialize(self, config: Any, registry: "ProviderRegistry") -> None:
        """Initialize the provider with configuration and registry."""
        pass


class ResourceProvider(BaseProvider):
    """Provider for a resource that is checked before it is created."""

    @abstractmethod
    async def status(self, spec: BaseModel) -> ProviderStatus:
        """Check the current status of a resource."""
        pass

    @abstractmethod
    async def present(self, spec: BaseModel) -> None:
        """Ensure the resource is present."""
        pass
