"""Relay CLI."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from relay import __version__
from relay.config import get_settings

app = typer.Typer(
    name="relay",
    help="Relay - OpenAI-compatible gateway for Ollama-hosted models",
    no_args_is_help=True,
)
console = Console()


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload (dev)"),
):
    """Start the Relay gateway."""
    import uvicorn

    from relay.logging_config import intercept_standard_logging, setup_logging

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    setup_logging(settings.log_level, settings.log_dir)
    intercept_standard_logging()

    console.print(f"[green]Relay listening on http://{host}:{port}[/green]")
    console.print(f"OpenAPI docs at http://localhost:{port}/docs")

    uvicorn.run(
        "relay.main:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def openapi(
    output: Path = typer.Option(
        Path("spec/openapi.json"), "--output", "-o", help="Where to write the document"
    ),
):
    """Write the OpenAPI document (with streaming metadata) to a file."""
    from relay.main import create_app
    from relay.openapi import write_openapi_spec

    application = create_app(get_settings())
    try:
        path = write_openapi_spec(application, output)
    finally:
        asyncio.run(application.state.backend.close())
    console.print(f"[green]OpenAPI spec generated: {path}[/green]")


@app.command()
def tiers():
    """Show the tier-to-model table."""
    settings = get_settings()

    table = Table(title="Model Tiers")
    table.add_column("Tier", style="cyan")
    table.add_column("Model", style="green")
    for tier, model_id in settings.tier_table().items():
        table.add_row(tier, model_id)

    console.print(table)
    console.print(f"Backend: {settings.ollama_base_url}")


@app.command()
def version():
    """Show version information."""
    console.print(f"relay {__version__}")


if __name__ == "__main__":
    app()
