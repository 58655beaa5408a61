"""Configuration loading."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from pydantic import ValidationError

from lxcspawn.errors import PreconditionError
from lxcspawn.models.config import AppConfig
from lxcspawn.utils.templates import merge_dicts


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/lxcspawn/config.yaml")
CONFIG_ENV = "LXCSPAWN_CONFIG"


class ConfigManager:
    """Loads the YAML configuration file into an ``AppConfig``."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        An explicit path (argument or ``LXCSPAWN_CONFIG``) must exist; the
        default path is optional and built-in defaults apply without it.
        """
        env_path = os.environ.get(CONFIG_ENV)
        if config_path is not None:
            self.config_path = Path(config_path)
            self.required = True
        elif env_path:
            self.config_path = Path(env_path)
            self.required = True
        else:
            self.config_path = DEFAULT_CONFIG_PATH
            self.required = False
        self.yaml = YAML(typ="safe")
        self.config: Optional[AppConfig] = None

    async def load(self, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
        """Load configuration, applying ``overrides`` on top of the file."""
        data: Dict[str, Any] = {}

        if await asyncio.to_thread(self.config_path.exists):
            logger.debug(f"Loading configuration from {self.config_path}")
            data = await self._read_yaml(self.config_path)
        elif self.required:
            raise PreconditionError(f"Config file not found: {self.config_path}")
        else:
            logger.debug(f"No config file at {self.config_path}, using defaults")

        if overrides:
            data = merge_dicts(data, overrides)

        try:
            self.config = AppConfig(**data)
        except ValidationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise PreconditionError(f"Invalid configuration in {self.config_path}: {e}") from e

        return self.config

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        try:
            content = await asyncio.to_thread(file_path.read_text)
            data = self.yaml.load(content)
        except YAMLError as e:
            raise PreconditionError(f"Invalid YAML in {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise PreconditionError(f"Config file {file_path} must contain a mapping")
        return data
