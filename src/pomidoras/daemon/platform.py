"""Platform-specific utilities for daemon operations."""

import platform
import socket
from enum import Enum
from pathlib import Path
from typing import Tuple

from pomidoras.constants import DEFAULT_SOCKET_PATH


class Platform(Enum):
    """Supported platforms."""

    LINUX = "linux"
    MACOS = "darwin"
    WINDOWS = "windows"
    UNKNOWN = "unknown"


def get_platform() -> Platform:
    """Detect the current platform.

    Returns:
        Platform enum value
    """
    system = platform.system().lower()
    if system == "linux":
        return Platform.LINUX
    elif system == "darwin":
        return Platform.MACOS
    elif system == "windows":
        return Platform.WINDOWS
    else:
        return Platform.UNKNOWN


def get_ipc_socket_path() -> Path:
    """Get the well-known IPC socket path shared by daemon and client."""
    return Path(DEFAULT_SOCKET_PATH)


def is_daemon_supported() -> Tuple[bool, str]:
    """Check if daemon is supported on this platform.

    Returns:
        Tuple of (is_supported, reason)
    """
    plat = get_platform()

    if plat == Platform.UNKNOWN:
        return False, f"Unsupported platform: {platform.system()}"

    if not hasattr(socket, "AF_UNIX"):
        return False, "Unix domain sockets are not available on this platform"

    return True, "Platform supported"
