"""tokenvault migrate — Move every stored secret onto the v2 envelope scheme.

Runs through the same ownership gate as the HTTP endpoint: the tenant named
with ``--as-tenant`` must hold the admin role in ``tenant_roles``.
"""

import asyncio
import typer
from rich.console import Console
from rich.table import Table
from rich import box

from tokenvault.exceptions import MigrationForbidden, TokenVaultError

console = Console()


async def _migrate(as_tenant: str, dry_run: bool):
    from tokenvault.config import TokenVaultConfig
    from tokenvault.crypto.codec import EnvelopeCodec
    from tokenvault.db.database import session_scope
    from tokenvault.db.repository import CredentialStore
    from tokenvault.service import TokenService

    cfg = TokenVaultConfig()
    codec = EnvelopeCodec(cfg.token_encryption_key, kdf_iterations=cfg.kdf_iterations)
    if not codec.enabled:
        console.print("[red]Error:[/red] TOKENVAULT_TOKEN_ENCRYPTION_KEY is not set; refusing to migrate.")
        raise typer.Exit(1)

    async with session_scope(cfg.database_url) as session:
        store = CredentialStore(session)
        before = await store.count_by_version()
        service = TokenService(store, codec, migration_batch_size=cfg.migration_batch_size)
        with console.status("[dim]Migrating...[/dim]"):
            report = await service.migrate_existing(as_tenant, dry_run=dry_run)
        after = await store.count_by_version()
    return before, report, after


def migrate_tokens(
    as_tenant: str = typer.Option(..., "--as-tenant", help="Administrator tenant id performing the migration"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Decode and re-encode without writing"),
):
    """Re-encrypt plaintext and v1 records as v2.

    Safe to interrupt and re-run: each record commits on its own and
    already-migrated records are not scanned again.

    Example:
        tokenvault migrate --as-tenant 7f3c... --dry-run
    """
    try:
        before, report, after = asyncio.run(_migrate(as_tenant, dry_run))
    except MigrationForbidden:
        console.print(f"[red]Forbidden:[/red] tenant {as_tenant} does not hold the admin role.")
        raise typer.Exit(1)
    except TokenVaultError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        title=f"[bold]{'Dry run' if dry_run else 'Migration'}[/bold]",
    )
    table.add_column("Scheme", style="cyan", width=12)
    table.add_column("Before", justify="right", width=8)
    table.add_column("After", justify="right", width=8)
    for version in before:
        table.add_row(version.name, str(before[version]), str(after[version]))
    console.print(table)

    color = "green" if report.error_count == 0 else "yellow"
    console.print(
        f"[{color}]{report.migrated_count} migrated[/{color}], "
        f"{report.error_count} errors, {report.skipped_count} skipped"
    )
    if report.error_count:
        raise typer.Exit(2)
