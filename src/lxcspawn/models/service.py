"""Service registration model."""

from pydantic import BaseModel, Field


class ServiceRegistration(BaseModel):
    """systemd unit declared for the installed application."""
    ctid: int = Field(..., gt=0, description="Container the unit lives in")
    name: str = Field(..., description="Unit file name")
    description: str
    working_directory: str
    exec_start: str
    restart: str = Field(default="always")
    user: str = Field(default="root")
    unit_dir: str = Field(default="/etc/systemd/system")
    active: bool = Field(default=False)

    @property
    def unit_path(self) -> str:
        return f"{self.unit_dir.rstrip('/')}/{self.name}"
