"""Pydantic models for configuration and validation."""

from lxcspawn.models.config import (
    AppConfig,
    ApplicationConfig,
    DefaultsConfig,
    GeneralConfig,
    HostConfig,
    InstallerConfig,
)
from lxcspawn.models.deployment import DeploymentConfig, NetworkMode
from lxcspawn.models.installer import InstallerArtifact, PatchChange, PatchReport, PatchRule
from lxcspawn.models.resources import StorageTarget, TemplateDescriptor
from lxcspawn.models.service import ServiceRegistration
from lxcspawn.models.unit import ProvisionedUnit, UnitState

__all__ = [
    "AppConfig",
    "ApplicationConfig",
    "DefaultsConfig",
    "GeneralConfig",
    "HostConfig",
    "InstallerConfig",
    "DeploymentConfig",
    "NetworkMode",
    "InstallerArtifact",
    "PatchChange",
    "PatchReport",
    "PatchRule",
    "StorageTarget",
    "TemplateDescriptor",
    "ServiceRegistration",
    "ProvisionedUnit",
    "UnitState",
]
