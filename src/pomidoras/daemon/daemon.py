"""Main daemon implementation."""

import logging
import signal
import threading
from pathlib import Path
from typing import Any, Optional

from pomidoras.automation.notifier import NotificationSink, Notifier
from pomidoras.constants import CONNECTION_TIMEOUT, SIGUSR1_ADD_SECONDS, SIGUSR2_ADD_SECONDS
from pomidoras.core.config import ConfigManager
from pomidoras.core.timer import EXPIRED_MESSAGE, EXPIRED_TITLE, TimerEngine
from pomidoras.daemon.ipc import IPCError, IPCServer
from pomidoras.daemon.platform import is_daemon_supported
from pomidoras.daemon.protocol import Request, RequestType, Response, parse_seconds

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class DaemonError(Exception):
    """Daemon-related error."""

    pass


class TimerDaemon:
    """Pomidoras background daemon.

    Owns the timer engine and exposes it over the IPC server. Also reacts to:
    - SIGTERM / SIGINT: shut down
    - SIGUSR1: add 30 seconds
    - SIGUSR2: add 10 minutes
    - SIGHUP: reset
    """

    def __init__(
        self,
        initial_seconds: int = 0,
        config: Optional[ConfigManager] = None,
        socket_path: Optional[Path] = None,
        notifier: Optional[NotificationSink] = None,
        tick_interval: float = 1.0,
    ):
        """Initialize daemon.

        Args:
            initial_seconds: Countdown length the timer starts and resets to
            config: Configuration manager (default: load from default location)
            socket_path: Socket path (default: from config)
            notifier: Notification sink (default: desktop notifier from config)
            tick_interval: Seconds of wall-clock time per tick

        Raises:
            DaemonError: If daemon is not supported on this platform
        """
        supported, reason = is_daemon_supported()
        if not supported:
            raise DaemonError(reason)

        self.config = config or ConfigManager()

        if notifier is None:
            notifier = Notifier(
                enabled=self.config.get("notifications.enabled", True),
                backend=self.config.get("notifications.backend", "auto"),
                timeout=self.config.get("notifications.timeout", 5),
            )
        self.notifier = notifier

        self.engine = TimerEngine(
            initial_seconds,
            notifier=self.notifier,
            tick_interval=tick_interval,
            title=self.config.get("notifications.title", EXPIRED_TITLE),
            message=self.config.get("notifications.message", EXPIRED_MESSAGE),
        )
        self.ipc_server = IPCServer(
            Path(socket_path) if socket_path else self.config.socket_path,
            connection_timeout=self.config.get("ipc.connection_timeout", CONNECTION_TIMEOUT),
        )
        self._register_ipc_handlers()

        self.running = False
        self._shutdown_event = threading.Event()

    @property
    def socket_path(self) -> Path:
        return self.ipc_server.socket_path

    def setup_logging(self, log_file: Optional[Path] = None) -> None:
        """Setup daemon logging.

        Args:
            log_file: Optional file to log to in addition to stderr
        """
        log_level = getattr(logging, self.config.get("logging.level", "INFO"))
        formatter = logging.Formatter(LOG_FORMAT)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    def start(self) -> None:
        """Start the timer and the IPC server.

        Raises:
            DaemonError: If the IPC server fails to start
        """
        if self.running:
            raise DaemonError("Daemon is already running")

        logger.info("Starting Pomidoras daemon...")
        self.engine.start()

        try:
            self.ipc_server.start()
        except IPCError as e:
            logger.error(f"Failed to start IPC server: {e}")
            self.engine.shutdown()
            raise DaemonError(f"Failed to start IPC server: {e}")

        self.running = True
        self._shutdown_event.clear()
        logger.info(f"Daemon started on {self.socket_path}")

    def run_forever(self) -> None:
        """Start the daemon if needed and block until it is stopped.

        Must be called from the main thread so signal handlers can be installed.
        """
        self._setup_signal_handlers()
        if not self.running:
            self.start()
        self._shutdown_event.wait()

    def stop(self) -> None:
        """Stop the daemon gracefully."""
        if not self.running:
            self._shutdown_event.set()
            return

        logger.info("Stopping daemon...")
        self.running = False

        # Close the listener first; in-flight connections finish on their own
        self.ipc_server.stop()
        self.engine.shutdown()
        self._shutdown_event.set()

        logger.info("Daemon stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the daemon stops.

        Returns:
            True if the daemon stopped within the timeout
        """
        return self._shutdown_event.wait(timeout)

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for shutdown and timer control."""
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)
        for name in ("SIGUSR1", "SIGUSR2", "SIGHUP"):
            signum = getattr(signal, name, None)
            if signum is not None:
                signal.signal(signum, self._signal_handler)

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Handle process signals.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        if signum == getattr(signal, "SIGUSR1", None):
            logger.info(f"Received SIGUSR1, adding {SIGUSR1_ADD_SECONDS} seconds")
            self.engine.add_seconds(SIGUSR1_ADD_SECONDS)
        elif signum == getattr(signal, "SIGUSR2", None):
            logger.info(f"Received SIGUSR2, adding {SIGUSR2_ADD_SECONDS} seconds")
            self.engine.add_seconds(SIGUSR2_ADD_SECONDS)
        elif signum == getattr(signal, "SIGHUP", None):
            logger.info("Received SIGHUP, resetting timer")
            self.engine.reset()
        else:
            logger.info(f"Received signal {signum}, shutting down...")
            self.stop()

    def _register_ipc_handlers(self) -> None:
        """Register IPC request handlers."""
        self.ipc_server.register_handler(RequestType.STATUS, self._handle_status)
        self.ipc_server.register_handler(RequestType.ADD_SECONDS, self._handle_add_seconds)
        self.ipc_server.register_handler(RequestType.RESET, self._handle_reset)

    def _handle_status(self, request: Request) -> Response:
        """Handle status request."""
        return Response.ok(status=self.engine.snapshot())

    def _handle_add_seconds(self, request: Request) -> Response:
        """Handle add_seconds request.

        The payload is validated before the timer is touched.
        """
        try:
            seconds = parse_seconds(request.payload)
        except ValueError as e:
            return Response.error(str(e))

        self.engine.add_seconds(seconds)
        return Response.ok(message=f"Added {seconds} seconds.")

    def _handle_reset(self, request: Request) -> Response:
        """Handle reset request."""
        self.engine.reset()
        return Response.ok(message="Timer reset.")
