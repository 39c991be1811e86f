"""CLI command that runs the timer daemon (pomidoras-server)."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from pomidoras import __version__
from pomidoras.core.config import ConfigManager
from pomidoras.core.duration import format_remaining, parse_duration
from pomidoras.daemon.daemon import DaemonError, TimerDaemon
from pomidoras.daemon.ipc import IPCClient

console = Console()
error_console = Console(stderr=True)


@click.command()
@click.version_option(version=__version__)
@click.argument("duration", required=False)
@click.option("--socket", "socket_path", type=click.Path(dir_okay=False), help="Socket path")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
def serve(
    duration: Optional[str],
    socket_path: Optional[str],
    config_path: Optional[str],
    log_file: Optional[str],
) -> None:
    """Run the Pomidoras countdown daemon.

    DURATION is a number of seconds or a duration string such as 90s, 25m or
    1h30m. Without it the timer starts idle.

    Example:
        pomidoras-server 25m
        pomidoras-server 1500
    """
    try:
        config = ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(1)

    text = duration if duration is not None else config.get("timer.default_duration", "0s")
    try:
        initial_seconds = parse_duration(text)
    except ValueError as e:
        error_console.print(f"[red]Error parsing initial duration:[/red] {escape(str(e))}")
        sys.exit(1)

    path = Path(socket_path) if socket_path else config.socket_path
    if IPCClient(path, timeout=1.0).is_daemon_running():
        error_console.print(f"[yellow]Daemon is already running on {escape(str(path))}[/yellow]")
        sys.exit(1)

    try:
        daemon_instance = TimerDaemon(initial_seconds, config=config, socket_path=path)
    except DaemonError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    daemon_instance.setup_logging(Path(log_file) if log_file else config.log_file)

    try:
        daemon_instance.start()
    except DaemonError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    if initial_seconds > 0:
        console.print(f"Countdown started: {format_remaining(initial_seconds)}", highlight=False)
    else:
        console.print("Idle", highlight=False)
    console.print(f"Server listening on {escape(str(path))}", highlight=False)

    try:
        daemon_instance.run_forever()
    except KeyboardInterrupt:
        daemon_instance.stop()

    console.print("[yellow]Server stopped[/yellow]")


if __name__ == "__main__":
    serve()
