"""Command execution and systemd unit helpers."""

import asyncio
import logging
import subprocess
from typing import Iterable, List, Optional
from dataclasses import dataclass

from lxcspawn.models.service import ServiceRegistration
from lxcspawn.utils.templates import render_template


logger = logging.getLogger(__name__)

REDACTED = "********"

UNIT_TEMPLATE = """\
[Unit]
Description={{ registration.description }}
After=network.target

[Service]
WorkingDirectory={{ registration.working_directory }}
ExecStart={{ registration.exec_start }}
Restart={{ registration.restart }}
User={{ registration.user }}

[Install]
WantedBy=multi-user.target
"""


@dataclass
class CommandResult:
    """Result from running a command."""
    returncode: int
    stdout: str = ""
    stderr: str = ""


def redact_command(cmd: List[str], secrets: Iterable[str] = ()) -> str:
    """Render a command for logging with secret values masked."""
    secrets = [s for s in secrets if s]
    parts = []
    for part in cmd:
        for secret in secrets:
            part = part.replace(secret, REDACTED)
        parts.append(part)
    return " ".join(parts)


async def run_command(
    cmd: List[str],
    check: bool = True,
    capture_output: bool = True,
    timeout: Optional[float] = None,
    redact: Iterable[str] = (),
    **kwargs
) -> CommandResult:
    """Run a command asynchronously.

    Values listed in ``redact`` are masked in log output and in the command
    attached to a raised ``CalledProcessError``.
    """
    redact = list(redact)
    logger.debug(f"Running command: {redact_command(cmd, redact)}")

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE if capture_output else None,
        stderr=asyncio.subprocess.PIPE if capture_output else None,
        **kwargs
    )

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise subprocess.TimeoutExpired(redact_command(cmd, redact), timeout)

    result = CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else "",
    )

    if check and process.returncode != 0:
        error = subprocess.CalledProcessError(
            process.returncode, redact_command(cmd, redact)
        )
        error.stdout = result.stdout
        error.stderr = result.stderr
        raise error

    return result


def render_unit(registration: ServiceRegistration) -> str:
    """Render the systemd unit file for a service registration."""
    return render_template(UNIT_TEMPLATE, registration=registration)
