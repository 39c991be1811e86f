"""Pytest configuration and shared fixtures."""

import socket
from pathlib import Path
from typing import Any, Callable
from unittest.mock import Mock

import pytest  # type: ignore[import-not-found]
import yaml  # type: ignore[import-untyped]

from pomidoras.core.config import ConfigManager


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ConfigManager]:
    """Create a config manager from a YAML file written with the given sections."""

    def factory(**sections: Any) -> ConfigManager:
        config_path = tmp_path / "config.yml"
        if sections:
            with open(config_path, "w") as f:
                yaml.dump({"version": "1.0", **sections}, f)
        return ConfigManager(config_path)

    return factory


@pytest.fixture
def config(make_config: Callable[..., ConfigManager]) -> ConfigManager:
    """Create a config manager backed by a temporary file."""
    return make_config()


@pytest.fixture
def notifier() -> Mock:
    """Create a stub notification sink."""
    return Mock()


@pytest.fixture
def socket_path(tmp_path: Path) -> Path:
    """Create temporary socket path."""
    if not hasattr(socket, "AF_UNIX"):
        pytest.skip("Unix domain sockets are not available")
    return tmp_path / "test.sock"
