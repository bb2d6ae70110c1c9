"""tokenvault grant-role — Operator bootstrap for the admin role."""

import asyncio
import typer
from rich.console import Console

from tokenvault.exceptions import StoreUnavailable
from tokenvault.types import TenantRole

console = Console()


async def _grant(tenant_id: str, role: TenantRole) -> None:
    from tokenvault.config import TokenVaultConfig
    from tokenvault.db.database import session_scope
    from tokenvault.db.repository import CredentialStore

    cfg = TokenVaultConfig()
    async with session_scope(cfg.database_url) as session:
        await CredentialStore(session).set_role(tenant_id, role)


def grant_role(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    role: TenantRole = typer.Option(TenantRole.ADMIN, "--role", help="Role to assign"),
):
    """Assign *role* to a tenant. Only admins may run migrations."""
    try:
        asyncio.run(_grant(tenant_id, role))
    except StoreUnavailable as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    console.print(f"[green]Tenant {tenant_id} now has role[/green] [cyan]{role.value}[/cyan]")
