"""Shared fixtures: short temporary data directories and fake php-fpm descriptors."""

import shutil
import socket
import tempfile
from pathlib import Path
from typing import Callable

import psutil
import pytest

from fpmctl.local.supervisor import FpmProcess
from tests.helpers.fake_fpm import write_fake_fpm


def _kill_fakes_in(directory: Path) -> None:
    """Kills every fake php-fpm daemon started from `directory`."""
    for proc in psutil.process_iter(["cmdline"]):
        cmdline = proc.info["cmdline"] or []
        if any(str(directory) in part for part in cmdline):
            try:
                proc.kill()
            except psutil.Error:
                pass


@pytest.fixture
def data_dir() -> Path:
    """A short directory path, unix socket paths are limited to ~100 bytes."""
    path = Path(tempfile.mkdtemp(prefix="fpm"))
    yield path
    _kill_fakes_in(path)
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def fake_fpm(data_dir: Path) -> Callable[[str], Path]:
    """Factory writing a fake php-fpm executable for the given mode."""
    def _make(mode: str = "ready") -> Path:
        return write_fake_fpm(data_dir, mode)
    return _make


@pytest.fixture
def make_fpm(data_dir: Path, fake_fpm) -> Callable[..., FpmProcess]:
    """Factory for FpmProcess descriptors pointed at a fake php-fpm, with the config already saved."""
    def _make(mode: str = "ready", listen: str = "", ready_timeout: float = 5.0,
              pid_file_timeout: float = 5.0) -> FpmProcess:
        fpm = FpmProcess(str(fake_fpm(mode)))
        fpm.set_datadir(data_dir)
        if listen:
            fpm.set_listen(listen)
        fpm.ready_timeout = ready_timeout
        fpm.pid_file_timeout = pid_file_timeout
        fpm.poll_interval = 0.002
        fpm.save_config(data_dir / "phpfpm.conf")
        return fpm
    return _make


@pytest.fixture
def free_port() -> int:
    """A tcp port on the loopback interface that nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
