"""
vectorpipe CLI - local vector database server

Main entry point for the command-line interface.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

app = typer.Typer(
    name="vectorpipe",
    help="In-memory vector database served over a local line protocol",
    add_completion=False,
)

console = Console()


def setup_logging(verbose: bool = False, log_file: Optional[str] = None, level: str = "INFO"):
    """Configure logging with loguru."""
    logger.remove()  # Remove default handler

    log_level = "DEBUG" if verbose else level.upper()

    # Console logging with colors
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=log_level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
        )


def _apply_channel_overrides(socket: Optional[Path], port: Optional[int]):
    from vectorpipe.config import get_settings

    settings = get_settings()
    updates = {}
    if socket is not None:
        updates["socket_path"] = socket
    if port is not None:
        updates["port"] = port
    return settings.model_copy(update=updates) if updates else settings


@app.command()
def serve(
    threshold: Optional[str] = typer.Argument(
        None, help="Similarity threshold (0 disables filtering)"
    ),
    limit: Optional[str] = typer.Argument(None, help="Maximum results per search (default 5)"),
    source: Optional[str] = typer.Argument(
        None, help="Embedding source: omit for local, http(s) URL, or API key"
    ),
    socket: Optional[Path] = typer.Option(None, "--socket", help="Local socket path"),
    port: Optional[int] = typer.Option(None, "--port", help="Serve on a localhost TCP port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Run the vector database server for one client session.

    The first line from the client initializes the database; then
    "Update" + one payload line adds text, and any other line is a search.
    """
    try:
        from vectorpipe.config import parse_startup_args
        from vectorpipe.exceptions import ConfigurationError
        from vectorpipe.server.transport import VectorPipeServer

        try:
            settings = _apply_channel_overrides(socket, port)
        except ConfigurationError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

        setup_logging(verbose, settings.log_file, settings.log_level)
        startup = parse_startup_args([threshold, limit, source])

        server = VectorPipeServer(startup, settings)
        exit_code = asyncio.run(server.serve())
        raise typer.Exit(exit_code)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except typer.Exit:
        raise
    except OSError as e:
        console.print(f"\n[red]Could not open channel:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def send(
    lines: List[str] = typer.Argument(..., help="Protocol lines to send, in order"),
    socket: Optional[Path] = typer.Option(None, "--socket", help="Local socket path"),
    port: Optional[int] = typer.Option(None, "--port", help="Connect to a localhost TCP port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Send lines to a running server and print each reply.

    A line equal to "Update" sends the following line as its payload.
    """
    setup_logging(verbose, level="WARNING")

    async def _exchange() -> None:
        from vectorpipe.client import UPDATE_TOKEN, VectorPipeClient
        from vectorpipe.server.protocol import INITIALIZED_REPLY

        async with VectorPipeClient(socket_path=socket, port=port) as client:
            pending = list(lines)
            initialized = False
            while pending:
                line = pending.pop(0)
                if not line.strip():
                    continue
                # The first line is always init content, even "Update"
                if initialized and line.strip().lower() == UPDATE_TOKEN.lower() and pending:
                    payload = pending.pop(0)
                    console.print(f"[cyan]> {escape(line)}[/cyan] [dim]{escape(payload)}[/dim]")
                    reply = await client.update(payload)
                else:
                    console.print(f"[cyan]> {escape(line)}[/cyan]")
                    reply = await client.send(line)
                    initialized = initialized or reply == INITIALIZED_REPLY
                console.print(reply, markup=False)

    try:
        asyncio.run(_exchange())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except (ConnectionError, OSError) as e:
        console.print(f"\n[red]Connection error:[/red] {e}")
        raise typer.Exit(1)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
