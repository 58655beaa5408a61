"""Interactive prompts for the parameter collector."""

from typing import Any, Dict, List, Optional

import click
import typer
from rich.console import Console
from rich.table import Table

from lxcspawn.errors import InputCancelled


class TyperPrompter:
    """Prompter backed by Typer prompts and rich output.

    Ctrl-C or end of input at any prompt cancels the whole run.
    """

    def __init__(self, console: Optional[Console] = None):
        """Initialize prompter."""
        self.console = console or Console()

    def _prompt(self, label: str, **kwargs: Any) -> Any:
        try:
            return typer.prompt(label, **kwargs)
        except typer.Abort as e:
            raise InputCancelled(f"Cancelled at prompt '{label}'") from e

    def ask(self, label: str, default: Optional[str] = None) -> str:
        return str(self._prompt(label, default=default, show_default=True))

    def secret(self, label: str) -> str:
        return self._prompt(label, hide_input=True, confirmation_prompt=True)

    def choose(self, label: str, choices: List[str], default: str) -> str:
        return self._prompt(
            label,
            default=default,
            type=click.Choice(choices, case_sensitive=False),
            show_choices=True,
        ).lower()

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]")

    def confirm(self, summary: Dict[str, Any]) -> bool:
        """Show the deployment summary and ask for confirmation."""
        self.console.print(summary_table(summary))
        try:
            return typer.confirm("Create the container with these settings?", default=False)
        except typer.Abort as e:
            raise InputCancelled("Cancelled at confirmation") from e


def summary_table(summary: Dict[str, Any]) -> Table:
    """Render a deployment summary."""
    table = Table(title="Deployment settings", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in summary.items():
        table.add_row(key, "-" if value is None else str(value))
    return table
