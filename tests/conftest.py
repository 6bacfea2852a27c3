"""Pytest configuration and fixtures for untwine tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from untwine.core.log import ConsoleSink, setup_logger


def console_logger():
    """Console-only logger; nothing is sent to logfire.dev."""
    return setup_logger(
        log_root=Path(tempfile.gettempdir()) / "untwine-tests",
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure logging for console-only mode during tests.

    Gives debug output on failures.
    """
    console_logger()


@pytest.fixture
def restore_console_logger():
    """Put the console logger back after a test installs its own."""
    yield
    console_logger()


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv around State construction."""
    original = sys.argv.copy()
    sys.argv = ["untwine"]
    yield
    sys.argv = original


@pytest.fixture
def project(tmp_path):
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_file():
    """Write text verbatim (no newline translation), creating parent
    directories."""
    def write(path: Path, text: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8", newline="")
        return path
    return write
