"""
lxc-spawn - Proxmox LXC provisioning and application bootstrap.

Creates a container on a Proxmox VE host, runs a sanitized third-party
installer inside it and registers the installed application as a systemd
service.
"""

__version__ = "1.0.0"

# Re-export key components for easier access
from lxcspawn.models.config import AppConfig
from lxcspawn.models.deployment import DeploymentConfig, NetworkMode
from lxcspawn.pipeline.engine import DeploymentEngine, Stage

__all__ = [
    "AppConfig",
    "DeploymentConfig",
    "NetworkMode",
    "DeploymentEngine",
    "Stage",
]
