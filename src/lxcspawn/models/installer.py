"""Installer artifact and patch rule models."""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class PatchRule(BaseModel):
    """One declarative edit applied to the installer script.

    ``remove_line`` drops every line containing ``pattern``
    (case-insensitive); ``replace`` substitutes every literal occurrence of
    ``pattern`` with ``replacement``.
    """
    action: Literal["remove_line", "replace"]
    pattern: str = Field(..., min_length=1)
    replacement: Optional[str] = None
    description: str = ""

    def matches(self, line: str) -> bool:
        """Check whether the rule applies to a line."""
        if self.action == "remove_line":
            return self.pattern.lower() in line.lower()
        return self.pattern in line

    def apply(self, line: str) -> Optional[str]:
        """Return the rewritten line, or None when the line is removed."""
        if self.action == "remove_line":
            return None
        if self.replacement is None:
            raise ValueError(f"Replace rule for {self.pattern!r} has no replacement")
        return line.replace(self.pattern, self.replacement)

    def label(self) -> str:
        return self.description or f"{self.action}:{self.pattern}"


class PatchChange(BaseModel):
    """Audit record of a line altered by a rule."""
    line_number: int
    rule: str
    before: str
    after: Optional[str] = None

    @property
    def removed(self) -> bool:
        return self.after is None


class PatchReport(BaseModel):
    """Audit trail of a sanitize run."""
    changes: List[PatchChange] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return sum(1 for c in self.changes if c.removed)

    @property
    def replaced_count(self) -> int:
        return sum(1 for c in self.changes if not c.removed)


class InstallerArtifact(BaseModel):
    """Fetched bootstrap script and the edits applied to it."""
    url: str
    content: str
    report: PatchReport = Field(default_factory=PatchReport)

    @property
    def size(self) -> int:
        """Content size in bytes."""
        return len(self.content.encode("utf-8"))
