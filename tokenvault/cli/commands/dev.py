"""tokenvault serve / issue-token — Local development helpers."""

import typer
from rich.console import Console

console = Console()


def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to listen on"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the TokenVault API server."""
    import uvicorn
    console.print(f"[green]Starting TokenVault on {host}:{port}[/green]")
    uvicorn.run("tokenvault.api.main:app", host=host, port=port, reload=reload)


def issue_token(
    tenant_id: str = typer.Argument(..., help="Tenant id to place in the sub claim"),
    minutes: int = typer.Option(60, "--minutes", help="Lifetime in minutes"),
):
    """Print a bearer token signed with TOKENVAULT_JWT_SECRET."""
    from tokenvault.auth.jwt import IdentityVerifier
    from tokenvault.config import TokenVaultConfig

    cfg = TokenVaultConfig()
    token = IdentityVerifier(secret=cfg.jwt_secret, algorithm=cfg.jwt_algorithm).issue(tenant_id, expires_minutes=minutes)
    typer.echo(token)
