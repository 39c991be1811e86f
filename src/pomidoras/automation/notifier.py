"""Desktop notifications for Pomidoras."""

import logging
import shutil
import subprocess
from typing import Any, Protocol

from pomidoras.constants import APP_NAME

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "plyer", "notify-send")


class NotificationSink(Protocol):
    """Anything that can show a titled message to the user."""

    def notify(self, title: str, message: str) -> None: ...


class Notifier:
    """Send desktop notifications.

    Dispatch is fire-and-forget: failures are logged and never raised.
    """

    def __init__(
        self,
        enabled: bool = True,
        backend: str = "auto",
        app_name: str = APP_NAME,
        timeout: int = 5,
    ):
        """Initialize notifier.

        Args:
            enabled: Whether notifications are enabled
            backend: Notification backend ('auto', 'plyer', 'notify-send')
            app_name: Application name shown by the notification daemon
            timeout: Display duration in seconds
        """
        if backend not in BACKENDS:
            raise ValueError(f"Unknown notification backend: {backend}")

        self.enabled = enabled
        self.backend = backend
        self.app_name = app_name
        self.timeout = timeout
        self._notifier = self._init_notifier()

    def _init_notifier(self) -> Any:
        """Initialize the platform notifier.

        Returns:
            plyer notification facade, the notify-send command, or None
        """
        if not self.enabled:
            return None

        if self.backend == "notify-send":
            command = shutil.which("notify-send")
            if command is None:
                logger.warning("notify-send not found, notifications disabled")
            return command

        try:
            from plyer import notification  # type: ignore[import-not-found]

            return notification
        except ImportError:
            logger.warning("plyer is not installed, notifications disabled")
            return None

    @property
    def available(self) -> bool:
        """Whether a notification backend is ready."""
        return self.enabled and self._notifier is not None

    def notify(self, title: str, message: str) -> None:
        """Send a desktop notification.

        Args:
            title: Notification title
            message: Notification message
        """
        if not self.available:
            logger.debug(f"Notification skipped: {title}: {message}")
            return

        try:
            if isinstance(self._notifier, str):
                subprocess.run(
                    [self._notifier, "-a", self.app_name, title, message],
                    check=True,
                    capture_output=True,
                    timeout=self.timeout,
                )
            else:
                self._notifier.notify(
                    title=title,
                    message=message,
                    app_name=self.app_name,
                    timeout=self.timeout,
                )
            logger.debug(f"Notification sent: {title}")
        except Exception as e:
            # Notifications are non-critical
            logger.warning(f"Error sending notification: {e}")
