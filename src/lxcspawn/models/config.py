"""Configuration models."""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeneralConfig(BaseModel):
    """General tool configuration."""
    model_config = ConfigDict(extra="ignore")

    log_level: str = Field(default="INFO")
    state_dir: str = Field(default="/var/lib/lxcspawn")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class HostConfig(BaseModel):
    """Proxmox host configuration."""
    model_config = ConfigDict(extra="ignore")

    storage_config: str = Field(default="/etc/pve/storage.cfg")
    os_family: str = Field(default="debian")
    arch: str = Field(default="amd64")
    template_section: str = Field(default="system")
    ready_timeout: float = Field(default=60.0, gt=0)
    ready_initial_delay: float = Field(default=1.0, gt=0)
    ready_max_delay: float = Field(default=8.0, gt=0)


class DefaultsConfig(BaseModel):
    """Pre-filled answers for the parameter prompts."""
    model_config = ConfigDict(extra="ignore")

    hostname: str = Field(default="mikrowizard")
    storage: str = Field(default="local-lvm")
    template_storage: str = Field(default="local")
    disk_size: int = Field(default=8, gt=0)
    memory: int = Field(default=2048, gt=0)
    cores: int = Field(default=2, gt=0)
    network: Literal["dhcp", "static"] = Field(default="dhcp")
    bridge: str = Field(default="vmbr0")
    vlan: Optional[str] = None
    unprivileged: bool = Field(default=True)
    nesting: bool = Field(default=True)


class ApplicationConfig(BaseModel):
    """Application installed inside the container."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="mikrowizard")
    title: str = Field(default="Mikrowizard")
    app_dir: str = Field(default="/opt/mikrowizard")
    entrypoint: str = Field(default="main.py")
    exec_start: str = Field(
        default="/usr/bin/env python3 {app_dir}/{entrypoint}",
        description="Start command; {app_dir} and {entrypoint} are substituted",
    )
    dependencies: List[str] = Field(
        default_factory=lambda: [
            "curl", "wget", "git", "python3", "python3-pip", "ffmpeg", "jq", "unzip",
        ]
    )

    @property
    def service_name(self) -> str:
        return f"{self.name}.service"

    @property
    def entrypoint_path(self) -> str:
        return f"{self.app_dir.rstrip('/')}/{self.entrypoint}"

    @property
    def start_command(self) -> str:
        return self.exec_start.format(
            app_dir=self.app_dir.rstrip("/"), entrypoint=self.entrypoint
        )


class InstallerConfig(BaseModel):
    """Remote bootstrap script configuration."""
    model_config = ConfigDict(extra="ignore")

    url: str = Field(
        default=(
            "https://gist.githubusercontent.com/s265925/84f8fdc90c8b330a1501626a50e983a1"
            "/raw/b1fc4e0f283fd48d78861fa1a665fd1cb19b734d/installer.sh"
        )
    )
    timeout: float = Field(default=30.0, gt=0)
    retries: int = Field(default=3, ge=1)
    min_size: int = Field(default=200, ge=1)
    remove_patterns: List[str] = Field(
        default_factory=lambda: ["docker", "compose", "systemctl"]
    )
    legacy_path: str = Field(default="/opt/freidntl")


class AppConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    application: ApplicationConfig = Field(default_factory=ApplicationConfig)
    installer: InstallerConfig = Field(default_factory=InstallerConfig)
