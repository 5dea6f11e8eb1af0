"""CLI for the payment confirmation service.

Provides schema provisioning, the API server, and a configuration overview.
"""

import asyncio
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from payment_confirmation import __version__
from payment_confirmation.config import get_settings
from payment_confirmation.database.connection import build_engine, close_db, init_db

app = typer.Typer(
    name="payment-confirmation",
    help="Payment confirmation service - webhook ingestion and payment verification",
    add_completion=False,
)

console = Console()


async def _provision_schema() -> None:
    engine = build_engine(get_settings())
    try:
        await init_db(engine)
    finally:
        await close_db(engine)


@app.command("init-db")
def init_db_command() -> None:
    """Create the transactions table if it does not exist."""
    settings = get_settings()
    console.print(f"[blue]Provisioning schema on:[/blue] {settings.database_url.split('@')[-1]}")

    try:
        asyncio.run(_provision_schema())
    except Exception as e:
        console.print(f"[red]Error during provisioning:[/red] {e}")
        raise typer.Exit(1)

    console.print("[green]✓[/green] Schema ready")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (defaults to API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "payment_confirmation.api.main:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        workers=1 if reload or settings.debug else settings.api_workers,
        log_level=settings.log_level.lower(),
    )


@app.command()
def config() -> None:
    """Show the effective configuration."""
    settings = get_settings()

    table = Table(title="Payment Confirmation Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.app_env)
    table.add_row("Database", settings.database_url.split("@")[-1])
    table.add_row("Store timeout", f"{settings.store_timeout_seconds}s")
    table.add_row("Provider", settings.provider_name)
    table.add_row("Signature header", settings.provider_signature_header)
    table.add_row("Default package", settings.default_package_id)
    table.add_row("Analytics sink", settings.analytics_sink_url or "log")
    table.add_row("Client base URL", settings.app_base_url)
    table.add_row("Log level", settings.log_level)

    console.print(table)


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"payment-confirmation v{__version__}")


if __name__ == "__main__":
    app()
