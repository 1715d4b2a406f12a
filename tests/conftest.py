"""Shared fixtures for the installer test suite."""

from pathlib import Path

import pytest

from snakk_installer.config import InstallerConfig


class FakeRunner:
    """CommandRunner double: records commands and replays scripted results."""

    def __init__(self, available=(), responses=None):
        self.available = set(available)
        self.responses = responses or {}
        self.commands = []

    def which(self, name):
        return name in self.available

    def run(self, command, cwd=None):
        command = list(command)
        self.commands.append(command)
        response = self.responses.get(tuple(command), {})
        if callable(response):
            response = response()
        return {
            "ok": response.get("ok", True),
            "command": " ".join(command),
            "stdout": response.get("stdout", ""),
            "stderr": response.get("stderr", ""),
        }


class FakeProxyService:
    def __init__(self, installed=True, restart_ok=True):
        self.installed = installed
        self.restart_ok = restart_ok
        self.log_dirs = []
        self.restarts = 0

    def is_installed(self):
        return self.installed

    def prepare_log_dir(self, log_dir):
        self.log_dirs.append(Path(log_dir))
        return True

    def restart(self):
        self.restarts += 1
        return self.restart_ok


@pytest.fixture
def config(tmp_path):
    return InstallerConfig(
        install_dir=tmp_path / "snakk",
        caddyfile_path=tmp_path / "caddy" / "Caddyfile",
        caddy_log_dir=tmp_path / "log" / "caddy",
    )


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def proxy_service():
    return FakeProxyService()


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def make_proxy_service():
    return FakeProxyService
