"""tokenvault config — Show resolved TokenVault configuration."""

from rich.console import Console
from rich.table import Table
from rich import box

console = Console()

SENSITIVE = {"token_encryption_key", "jwt_secret"}


def _mask(val: str) -> str:
    if not val:
        return "[red](not set)[/red]"
    return f"*** [dim]({len(val)} chars)[/dim]"


def config_show():
    """Show the resolved TokenVault configuration.

    Reads from environment variables and .env file.
    Secrets are masked entirely; only their length is shown.

    Example:
        tokenvault config
    """
    from tokenvault.config import TokenVaultConfig
    cfg = TokenVaultConfig()

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        show_lines=False,
        title="[bold]TokenVault Configuration[/bold]",
    )
    table.add_column("Key", style="cyan", width=26)
    table.add_column("Value", width=50)
    table.add_column("Env Var", style="dim", width=36)

    sections = [
        ("App", ["debug", "log_level"]),
        ("Database", ["database_url"]),
        ("Encryption", ["token_encryption_key", "kdf_iterations"]),
        ("Auth", ["jwt_secret", "jwt_algorithm", "jwt_expiry_minutes"]),
        ("Migration", ["migration_batch_size"]),
        ("Server", ["host", "port", "cors_origins"]),
    ]

    first = True
    for section_name, fields in sections:
        if not first:
            table.add_row("", "", "")
        first = False
        table.add_row(f"[bold dim]── {section_name} ──[/bold dim]", "", "")
        for attr in fields:
            val = getattr(cfg, attr, None)
            display = _mask(str(val or "")) if attr in SENSITIVE else str(val)
            table.add_row(f"  {attr}", display, f"TOKENVAULT_{attr.upper()}")

    console.print()
    console.print(table)
    console.print()
    console.print("[dim]Source: environment variables + .env file (prefix: TOKENVAULT_)[/dim]")
