"""Installer provider: fetch and sanitize the remote bootstrap script."""

import logging
from typing import List, Optional, Tuple

import httpx

from lxcspawn.errors import FetchError, IntegrityError
from lxcspawn.models.installer import InstallerArtifact, PatchChange, PatchReport, PatchRule
from lxcspawn.providers.base import BaseProvider


logger = logging.getLogger(__name__)

COMPOUND_TOKENS = ("&&", "||", ";")


def default_rules(
    app_dir: str,
    legacy_path: str = "/opt/freidntl",
    remove_patterns: Tuple[str, ...] = ("docker", "compose", "systemctl"),
) -> List[PatchRule]:
    """Rules making a third-party installer safe to run in an LXC container.

    Line removals come first, in the given order, then the hardcoded install
    path is retargeted to ``app_dir``.
    """
    rules = [
        PatchRule(
            action="remove_line",
            pattern=pattern,
            description=f"remove lines mentioning {pattern}",
        )
        for pattern in remove_patterns
    ]
    rules.append(
        PatchRule(
            action="replace",
            pattern=legacy_path,
            replacement=app_dir,
            description=f"retarget {legacy_path} to {app_dir}",
        )
    )
    return rules


def _is_continued(lines: List[Tuple[int, str]], index: int) -> bool:
    """Check whether the line at ``index`` belongs to a backslash-continued command."""
    if lines[index][1].rstrip().endswith("\\"):
        return True
    return index > 0 and lines[index - 1][1].rstrip().endswith("\\")


def sanitize(content: str, rules: List[PatchRule]) -> Tuple[str, PatchReport]:
    """Apply rules in order to a script, returning the new text and an audit trail.

    A rule that fails is recorded as a warning and skipped; the rules after it
    still run. Removing a line that is part of a continued or compound command
    is done, but flagged as a warning.
    """
    report = PatchReport()
    trailing_newline = content.endswith("\n")
    raw_lines = content.split("\n")
    if trailing_newline:
        raw_lines.pop()
    lines = list(enumerate(raw_lines, start=1))

    for rule in rules:
        try:
            patched: List[Tuple[int, str]] = []
            changes: List[PatchChange] = []
            warnings: List[str] = []

            for index, (line_number, text) in enumerate(lines):
                if not rule.matches(text):
                    patched.append((line_number, text))
                    continue

                after = rule.apply(text)
                changes.append(
                    PatchChange(line_number=line_number, rule=rule.label(), before=text, after=after)
                )
                if after is not None:
                    patched.append((line_number, after))
                    continue

                if _is_continued(lines, index):
                    warnings.append(
                        f"line {line_number}: removed part of a continued command: {text.strip()}"
                    )
                elif any(token in text for token in COMPOUND_TOKENS):
                    warnings.append(
                        f"line {line_number}: removed compound command: {text.strip()}"
                    )

        except Exception as e:
            logger.warning(f"Patch rule '{rule.label()}' failed, skipping: {e}")
            report.warnings.append(f"rule '{rule.label()}' failed: {e}")
            continue

        lines = patched
        report.changes.extend(changes)
        report.warnings.extend(warnings)

    for change in report.changes:
        if change.removed:
            logger.debug(f"Removed line {change.line_number}: {change.before.strip()}")
        else:
            logger.debug(f"Rewrote line {change.line_number}: {change.after.strip()}")
    for warning in report.warnings:
        logger.warning(warning)

    text = "\n".join(line for _, line in lines)
    if trailing_newline and lines:
        text += "\n"
    return text, report


class InstallerProvider(BaseProvider):
    """Provider for the remote bootstrap script."""

    def __init__(self):
        """Initialize installer provider."""
        self.url = ""
        self.timeout = 30.0
        self.retries = 3
        self.min_size = 200
        self.rules: List[PatchRule] = []
        self.transport: Optional[httpx.AsyncBaseTransport] = None

    async def initialize(self, config, registry) -> None:
        """Initialize provider with configuration."""
        installer = config.installer
        self.url = installer.url
        self.timeout = installer.timeout
        self.retries = installer.retries
        self.min_size = installer.min_size
        self.rules = default_rules(
            config.application.app_dir,
            installer.legacy_path,
            tuple(installer.remove_patterns),
        )

    async def fetch(self, url: Optional[str] = None) -> InstallerArtifact:
        """Download the script, retrying up to ``retries`` attempts."""
        url = url or self.url
        if httpx.URL(url).scheme != "https":
            raise FetchError(f"Refusing to fetch installer over non-HTTPS URL: {url}")

        last_error: Optional[Exception] = None
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            for attempt in range(1, self.retries + 1):
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    logger.info(f"Fetched installer from {url} ({len(response.content)} bytes)")
                    return InstallerArtifact(url=url, content=response.text)
                except httpx.HTTPError as e:
                    last_error = e
                    logger.warning(f"Installer fetch attempt {attempt}/{self.retries} failed: {e}")

        raise FetchError(f"Failed to download installer from {url}: {last_error}")

    def verify(self, artifact: InstallerArtifact) -> None:
        """Reject empty or truncated downloads."""
        if not artifact.content.strip():
            raise IntegrityError("Downloaded installer is empty")
        if artifact.size < self.min_size:
            raise IntegrityError(
                f"Downloaded installer looks too small ({artifact.size} bytes, "
                f"minimum {self.min_size})"
            )

    def patch(self, artifact: InstallerArtifact) -> InstallerArtifact:
        """Apply the configured rules to an artifact."""
        content, report = sanitize(artifact.content, self.rules)
        logger.info(
            f"Installer patched: {report.removed_count} line(s) removed, "
            f"{report.replaced_count} line(s) rewritten"
        )
        return artifact.model_copy(update={"content": content, "report": report})
