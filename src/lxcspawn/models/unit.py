"""Provisioned container model."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class UnitState(str, Enum):
    """Container run state."""
    RUNNING = "running"
    STOPPED = "stopped"


class ProvisionedUnit(BaseModel):
    """Container created by the pipeline."""
    ctid: int = Field(..., gt=0)
    hostname: str
    state: UnitState = Field(default=UnitState.STOPPED)
    address: Optional[str] = None

    @property
    def display_address(self) -> str:
        return self.address or "unknown"
