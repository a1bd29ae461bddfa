"""Pytest configuration and shared fixtures for dioprobe tests."""

from __future__ import annotations

import contextlib
import logging
import os

import pytest

from dioprobe.config.config import ENV_MAPPINGS
from dioprobe.models import ProbeConfig
from dioprobe.storage import direct_io
from dioprobe.utils.exceptions import ProbeIOError


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("disk", "marks tests as disk I/O tests"),
        ("monitoring", "marks tests as monitoring tests"),
        ("cli", "marks tests as CLI tests"),
        ("config", "marks tests as configuration tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path_factory):
    """Keep host configuration out of tests.

    Clears DIOPROBE_* variables and points HOME at an empty directory so no
    user-level dioprobe.toml is picked up.
    """
    for env_name in ENV_MAPPINGS:
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)

    # setup_logging detaches the namespace logger; reattach it for caplog
    ns_logger = logging.getLogger("dioprobe")
    ns_logger.propagate = True
    ns_logger.setLevel(logging.NOTSET)


@pytest.fixture
def buffered_io(monkeypatch):
    """Open files without O_DIRECT so probe logic runs on any filesystem."""

    def _open(path, flags, mode=0o666):
        return os.open(path, flags, mode)

    monkeypatch.setattr(direct_io, "open_direct", _open)
    return _open


@pytest.fixture
def direct_io_dir(tmp_path):
    """Temporary directory that accepts real direct I/O, or skip."""
    check = tmp_path / "direct-io-check.dat"
    try:
        block = direct_io.allocate_aligned_block(direct_io.BLOCK_SIZE)
        direct_io.write_direct(check, block)
    except ProbeIOError as e:
        pytest.skip(f"Filesystem does not support direct I/O: {e}")
    finally:
        with contextlib.suppress(FileNotFoundError):
            check.unlink()
    return tmp_path


@pytest.fixture
def probe_config(tmp_path):
    """Probe configuration targeting a fresh temporary directory."""
    return ProbeConfig(path=str(tmp_path), listen="127.0.0.1:0")
