"""tokenvault inspect — Classify a stored value without decrypting it."""

import json

import typer
from rich.console import Console
from rich.table import Table
from rich import box

from tokenvault.crypto.envelope import describe
from tokenvault.exceptions import MalformedEnvelope

console = Console()


def inspect_value(
    value: str = typer.Argument(..., help="Stored column value (v2:..., v1:..., or legacy plaintext)"),
    raw: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """Show which scheme produced a stored value and its field sizes.

    Legacy plaintext is reported by length only; its content is never printed.
    """
    try:
        info = describe(value)
    except MalformedEnvelope as exc:
        console.print(f"[red]Malformed {exc.version} envelope:[/red] {exc}")
        raise typer.Exit(1)

    if raw:
        console.print_json(json.dumps(info))
        return

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    table.add_column("Field", style="dim", width=18)
    table.add_column("Value")
    for key, val in info.items():
        table.add_row(key, str(val))
    console.print(table)
