"""Host resource models."""

from typing import List
from pydantic import BaseModel, Field


class StorageTarget(BaseModel):
    """Storage pool advertising the content type a deployment needs."""
    name: str = Field(..., description="Storage pool name")
    content: List[str] = Field(default_factory=list)


class TemplateDescriptor(BaseModel):
    """OS template selected for the container root filesystem."""
    name: str = Field(..., description="Template file name")
    storage: str = Field(..., description="Storage holding the template")
    version: str = Field(default="")

    @property
    def volid(self) -> str:
        """Proxmox volume identifier of the template."""
        return f"{self.storage}:vztmpl/{self.name}"
