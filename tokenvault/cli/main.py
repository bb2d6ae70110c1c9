"""TokenVault CLI — Typer application."""

import logging

import typer
from rich.console import Console

from tokenvault.version import __version__

app = typer.Typer(
    name="tokenvault",
    help="TokenVault — encryption at rest for connected-account tokens.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
):
    """TokenVault CLI."""
    if version:
        console.print(f"TokenVault v{__version__}")
        raise typer.Exit()
    from tokenvault.config import TokenVaultConfig
    logging.basicConfig(
        level=TokenVaultConfig().log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ── Operator commands ──────────────────────────────────────────────────────────
from tokenvault.cli.commands import migrate, inspect, roles  # noqa: E402

app.command(name="migrate", help="Re-encrypt every pre-v2 record (administrator only)")(migrate.migrate_tokens)
app.command(name="inspect", help="Show the scheme and layout of a stored value without decrypting")(inspect.inspect_value)
app.command(name="grant-role", help="Set a tenant's role (admin or user)")(roles.grant_role)

# ── Development ────────────────────────────────────────────────────────────────
from tokenvault.cli.commands import config, dev  # noqa: E402

app.command(name="config", help="Show resolved configuration")(config.config_show)
app.command(name="issue-token", help="Mint a bearer token for a tenant")(dev.issue_token)
app.command(name="serve", help="Run the API server")(dev.serve)


if __name__ == "__main__":
    app()
