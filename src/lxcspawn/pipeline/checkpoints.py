"""Durable per-container deployment checkpoints."""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError


logger = logging.getLogger(__name__)


class Checkpoint(str, Enum):
    """Side effects completed for a container."""
    CREATED = "created"
    STARTED = "started"
    BOOTSTRAPPED = "bootstrapped"
    REGISTERED = "registered"


class CheckpointRecord(BaseModel):
    """State persisted between runs for one container."""
    ctid: int
    config: Dict[str, Any] = Field(default_factory=dict, description="Deployment without secrets")
    completed: List[Checkpoint] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    def has(self, checkpoint: Checkpoint) -> bool:
        return checkpoint in self.completed


class CheckpointStore:
    """Stores one JSON checkpoint file per container ID."""

    def __init__(self, state_dir: Path):
        """Initialize checkpoint store."""
        self.state_dir = Path(state_dir)

    def path_for(self, ctid: int) -> Path:
        return self.state_dir / f"{ctid}.json"

    async def load(self, ctid: int) -> Optional[CheckpointRecord]:
        """Load the record for a container, if any."""
        path = self.path_for(ctid)
        if not await asyncio.to_thread(path.exists):
            return None
        try:
            content = await asyncio.to_thread(path.read_text)
            return CheckpointRecord.model_validate_json(content)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable checkpoint {path}: {e}")
            return None

    async def save(self, record: CheckpointRecord) -> None:
        """Write a record atomically."""
        await asyncio.to_thread(lambda: self.state_dir.mkdir(parents=True, exist_ok=True))
        record.updated_at = datetime.now()
        path = self.path_for(record.ctid)
        tmp_path = path.with_suffix(".json.tmp")
        await asyncio.to_thread(tmp_path.write_text, record.model_dump_json(indent=2))
        await asyncio.to_thread(tmp_path.replace, path)

    async def mark(
        self,
        ctid: int,
        checkpoint: Checkpoint,
        config: Optional[Dict[str, Any]] = None,
    ) -> CheckpointRecord:
        """Record a completed checkpoint."""
        record = await self.load(ctid) or CheckpointRecord(ctid=ctid)
        if config is not None:
            record.config = config
        if checkpoint not in record.completed:
            record.completed.append(checkpoint)
        await self.save(record)
        logger.debug(f"Checkpoint {checkpoint.value} recorded for container {ctid}")
        return record

    async def discard(self, ctid: int) -> None:
        """Remove the record for a container, if any."""
        await asyncio.to_thread(self.path_for(ctid).unlink, True)
        logger.debug(f"Checkpoint record for container {ctid} removed")
