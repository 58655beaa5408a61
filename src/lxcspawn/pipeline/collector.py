"""Deployment parameter collection."""

import ipaddress
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError

from lxcspawn.errors import InputCancelled, InputError, ExecutionError
from lxcspawn.models.config import DefaultsConfig
from lxcspawn.models.deployment import DeploymentConfig, HOSTNAME_RE, NetworkMode
from lxcspawn.utils.proxmox import ProxmoxHost
from lxcspawn.utils.systemd import REDACTED


logger = logging.getLogger(__name__)


class Prompter(Protocol):
    """Interactive input surface used by the collector.

    Implementations raise ``InputCancelled`` when the operator cancels.
    """

    def ask(self, label: str, default: Optional[str] = None) -> str: ...

    def secret(self, label: str) -> str: ...

    def choose(self, label: str, choices: List[str], default: str) -> str: ...

    def warn(self, message: str) -> None: ...

    def confirm(self, summary: Dict[str, Any]) -> bool: ...


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError("must be a positive integer")
    return number


def _hostname(value: str) -> str:
    value = value.strip()
    if not HOSTNAME_RE.match(value):
        raise ValueError("letters, digits and '-' only, up to 63 characters")
    return value


def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


def _vlan(value: str) -> Optional[str]:
    value = value.strip()
    if not value:
        return None
    if not value.isdigit() or not 1 <= int(value) <= 4094:
        raise ValueError("must be a number between 1 and 4094, or empty")
    return value


def _cidr(value: str) -> str:
    value = value.strip()
    if "/" not in value:
        raise ValueError("use CIDR form, e.g. 192.168.1.50/24")
    ipaddress.ip_interface(value)
    return value


def _address(value: str) -> str:
    value = value.strip()
    ipaddress.ip_address(value)
    return value


def summarize(config: DeploymentConfig) -> Dict[str, Any]:
    """Operator-facing summary of a deployment, password masked."""
    summary = config.public_dict()
    summary["password"] = REDACTED
    if config.network == NetworkMode.DHCP:
        summary.pop("ip", None)
        summary.pop("gateway", None)
    return summary


class ParameterCollector:
    """Collects a ``DeploymentConfig`` from the operator."""

    def __init__(
        self,
        prompter: Prompter,
        host: ProxmoxHost,
        defaults: Optional[DefaultsConfig] = None,
    ):
        """Initialize parameter collector."""
        self.prompter = prompter
        self.host = host
        self.defaults = defaults or DefaultsConfig()

    async def suggest_id(self) -> int:
        """Suggest the next free container ID."""
        try:
            return await self.host.next_id()
        except (subprocess.CalledProcessError, ValueError) as e:
            raise ExecutionError(f"Could not allocate a container ID: {e}") from e

    def _ask(self, label: str, default: Optional[Any], convert: Callable[[str], Any]) -> Any:
        """Ask until the answer converts cleanly."""
        default_text = None if default is None else str(default)
        while True:
            answer = self.prompter.ask(label, default_text)
            try:
                return convert(answer)
            except ValueError as e:
                self.prompter.warn(f"Invalid {label.lower()}: {e}")

    def _ask_password(self) -> str:
        while True:
            password = self.prompter.secret("Root password")
            if password:
                return password
            self.prompter.warn("Root password must not be empty")

    def collect(
        self,
        initial: Optional[Dict[str, Any]] = None,
        suggested_id: Optional[int] = None,
    ) -> DeploymentConfig:
        """Prompt for every field, each pre-filled with a default.

        ``initial`` overrides the configured defaults, e.g. the values of a
        previous run being resumed. ``suggested_id`` pre-fills the container
        ID when ``initial`` does not carry one. Prompting blocks, so this runs
        outside the event loop.
        """
        values = self.defaults.model_dump()
        values.update({k: v for k, v in (initial or {}).items() if v is not None})

        ctid = values.get("ctid") or suggested_id

        answers: Dict[str, Any] = {}
        answers["ctid"] = self._ask("Container ID", ctid, _positive_int)
        answers["hostname"] = self._ask("Hostname", values["hostname"], _hostname)
        answers["password"] = self._ask_password()
        answers["storage"] = self._ask("Storage", values["storage"], _non_empty)
        answers["template_storage"] = self._ask(
            "Template storage", values["template_storage"], _non_empty
        )
        answers["disk_size"] = self._ask("Disk size (GB)", values["disk_size"], _positive_int)
        answers["memory"] = self._ask("Memory (MB)", values["memory"], _positive_int)
        answers["cores"] = self._ask("CPU cores", values["cores"], _positive_int)
        answers["bridge"] = self._ask("Bridge", values["bridge"], _non_empty)
        answers["vlan"] = self._ask("VLAN tag (blank for none)", values.get("vlan") or "", _vlan)

        network = self.prompter.choose(
            "Network mode",
            [mode.value for mode in NetworkMode],
            str(values["network"]),
        )
        answers["network"] = network

        if network == NetworkMode.STATIC.value:
            answers["ip"] = self._ask("IP address (CIDR)", values.get("ip"), _cidr)
            answers["gateway"] = self._ask("Gateway", values.get("gateway"), _address)

        answers["unprivileged"] = values["unprivileged"]
        answers["nesting"] = values["nesting"]

        return self.build(answers)

    def build(self, answers: Dict[str, Any]) -> DeploymentConfig:
        """Validate answers into a ``DeploymentConfig``."""
        try:
            return DeploymentConfig(**answers)
        except ValidationError as e:
            messages = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise InputError(f"Invalid deployment parameters: {messages}") from e

    async def from_options(self, options: Dict[str, Any]) -> DeploymentConfig:
        """Build a configuration without prompting, from defaults and options."""
        values = self.defaults.model_dump()
        values.update({k: v for k, v in options.items() if v is not None})
        if not values.get("ctid"):
            values["ctid"] = await self.suggest_id()
        return self.build(values)

    def confirm(self, config: DeploymentConfig) -> None:
        """Require explicit confirmation of the summary."""
        if not self.prompter.confirm(summarize(config)):
            raise InputCancelled("Deployment declined; no changes were made")
        logger.debug(f"Deployment of container {config.ctid} confirmed")
