"""Deployment parameter models."""

import ipaddress
import re
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)


HOSTNAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")


class NetworkMode(str, Enum):
    """Container network addressing mode."""
    DHCP = "dhcp"
    STATIC = "static"


class DeploymentConfig(BaseModel):
    """Validated parameters for one container deployment.

    Built once from the collected answers and never mutated afterwards.
    Static addressing needs both ``ip`` (CIDR) and ``gateway``; DHCP takes
    neither.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    ctid: int = Field(..., gt=0, description="Container ID")
    hostname: str = Field(..., description="Container hostname")
    storage: str = Field(..., min_length=1, description="Root filesystem storage")
    template_storage: str = Field(default="local", min_length=1)
    disk_size: int = Field(..., gt=0, description="Root disk size in GB")
    memory: int = Field(..., gt=0, description="Memory in MB")
    cores: int = Field(..., gt=0)
    network: NetworkMode = Field(default=NetworkMode.DHCP)
    bridge: str = Field(default="vmbr0", min_length=1)
    vlan: Optional[str] = None
    ip: Optional[str] = Field(None, description="Static address in CIDR form")
    gateway: Optional[str] = None
    password: SecretStr = Field(..., repr=False)
    unprivileged: bool = Field(default=True)
    nesting: bool = Field(default=True)

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v):
        """Validate hostname as a single DNS label."""
        v = v.strip()
        if not HOSTNAME_RE.match(v):
            raise ValueError(f"Invalid hostname: {v!r}")
        return v

    @field_validator("vlan", mode="before")
    @classmethod
    def validate_vlan(cls, v):
        """Treat blank VLAN tags as no tag."""
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        if not v.isdigit() or not 1 <= int(v) <= 4094:
            raise ValueError(f"Invalid VLAN tag: {v}")
        return v

    @field_validator("ip", "gateway", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if not v.get_secret_value():
            raise ValueError("Root password must not be empty")
        return v

    @model_validator(mode="after")
    def validate_network(self):
        """Check static/dhcp field consistency."""
        if self.network == NetworkMode.STATIC:
            if not self.ip or not self.gateway:
                raise ValueError("Static networking requires both ip and gateway")
            if "/" not in self.ip:
                raise ValueError(f"Static ip must be in CIDR form: {self.ip}")
            try:
                ipaddress.ip_interface(self.ip)
            except ValueError as e:
                raise ValueError(f"Invalid static ip: {self.ip}") from e
            try:
                ipaddress.ip_address(self.gateway)
            except ValueError as e:
                raise ValueError(f"Invalid gateway: {self.gateway}") from e
        elif self.ip or self.gateway:
            raise ValueError("DHCP networking does not take ip or gateway")
        return self

    @property
    def address(self) -> Optional[str]:
        """Static address without prefix length."""
        if self.ip:
            return str(ipaddress.ip_interface(self.ip).ip)
        return None

    def public_dict(self) -> Dict[str, Any]:
        """Serialize every field except the password."""
        return self.model_dump(mode="json", exclude={"password"})
