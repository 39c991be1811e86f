"""Control client (pomidorasctl)."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from pomidoras import __version__
from pomidoras.core.config import ConfigManager
from pomidoras.core.duration import format_remaining
from pomidoras.core.timer import Phase
from pomidoras.daemon.ipc import IPCClient, IPCError
from pomidoras.daemon.protocol import Request, RequestType, Response

console = Console()
error_console = Console(stderr=True)


def build_request(add: Optional[int], reset: bool) -> Request:
    """Build the single request for this invocation."""
    if add is not None:
        return Request(RequestType.ADD_SECONDS, payload=str(add))
    if reset:
        return Request(RequestType.RESET)
    return Request(RequestType.STATUS)


def render_response(request: Request, response: Response) -> str:
    """Render a successful response for the terminal."""
    if request.type == RequestType.STATUS:
        status = response.status
        if status is not None and status.phase == Phase.COUNTING:
            return format_remaining(status.remaining)
        return "Idle"
    return response.message or ""


@click.command()
@click.version_option(version=__version__)
@click.option(
    "-a",
    "--add",
    type=int,
    metavar="SECONDS",
    help="Add SECONDS to the countdown (negative values subtract)",
)
@click.option("-r", "--reset", is_flag=True, help="Reset the timer to its initial duration")
@click.option("--socket", "socket_path", type=click.Path(dir_okay=False), help="Daemon socket path")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file path")
def main(
    add: Optional[int],
    reset: bool,
    socket_path: Optional[str],
    config_path: Optional[str],
) -> None:
    """Query or control the Pomidoras timer daemon.

    Without options, prints the remaining time as MM:SS, or "Idle".

    Example:
        pomidorasctl
        pomidorasctl -a 300
        pomidorasctl -a -60
        pomidorasctl -r
    """
    if add is not None and reset:
        raise click.UsageError("-a and -r cannot be used together")

    try:
        config = ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(1)

    client = IPCClient(
        Path(socket_path) if socket_path else config.socket_path,
        timeout=config.get("ipc.client_timeout"),
    )
    request = build_request(add, reset)

    try:
        response = client.send(request)
    except IPCError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(1)

    if not response.success:
        console.print(f"Server error: {response.message}", markup=False, highlight=False)
        sys.exit(1)

    console.print(render_response(request, response), markup=False, highlight=False)


if __name__ == "__main__":
    main()
