"""Tests for platform detection utilities."""

import platform
import socket
from pathlib import Path

import pytest  # type: ignore[import-not-found]

from pomidoras.constants import DEFAULT_SOCKET_PATH
from pomidoras.daemon import platform as platform_module
from pomidoras.daemon.platform import (
    Platform,
    get_ipc_socket_path,
    get_platform,
    is_daemon_supported,
)


class TestPlatformDetection:
    """Test platform detection."""

    def test_get_platform(self) -> None:
        """Test platform detection returns valid platform."""
        plat = get_platform()
        assert isinstance(plat, Platform)
        assert plat in (Platform.LINUX, Platform.MACOS, Platform.WINDOWS, Platform.UNKNOWN)

    def test_get_platform_matches_system(self) -> None:
        """Test platform detection matches system platform."""
        plat = get_platform()
        system = platform.system().lower()

        if system == "linux":
            assert plat == Platform.LINUX
        elif system == "darwin":
            assert plat == Platform.MACOS
        elif system == "windows":
            assert plat == Platform.WINDOWS


class TestPaths:
    """Test path utilities."""

    def test_get_ipc_socket_path(self) -> None:
        """Test the socket path is the well-known one."""
        path = get_ipc_socket_path()

        assert isinstance(path, Path)
        assert path == Path(DEFAULT_SOCKET_PATH)
        assert path.suffix == ".sock"


class TestDaemonSupport:
    """Test daemon support detection."""

    def test_is_daemon_supported_returns_tuple(self) -> None:
        """Test daemon support check returns (bool, str) tuple."""
        result = is_daemon_supported()
        assert isinstance(result, tuple)
        assert len(result) == 2
        assert isinstance(result[0], bool)
        assert isinstance(result[1], str)

    def test_is_daemon_supported_on_supported_platforms(self) -> None:
        """Test daemon support on Unix platforms."""
        if get_platform() not in (Platform.LINUX, Platform.MACOS):
            pytest.skip("Unix-only check")

        supported, _ = is_daemon_supported()
        assert supported is True

    def test_is_daemon_supported_unsupported_platform(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test daemon support returns False for unknown platform."""
        monkeypatch.setattr(platform_module, "get_platform", lambda: Platform.UNKNOWN)

        supported, reason = is_daemon_supported()

        assert supported is False
        assert "Unsupported platform" in reason

    def test_is_daemon_supported_without_unix_sockets(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test daemon support requires Unix domain sockets."""
        monkeypatch.setattr(platform_module, "get_platform", lambda: Platform.LINUX)
        monkeypatch.delattr(socket, "AF_UNIX", raising=False)

        supported, reason = is_daemon_supported()

        assert supported is False
        assert "Unix domain sockets" in reason
