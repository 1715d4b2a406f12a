"""
Installer settings.

Defaults match the published one-command installer; every value can be
overridden from the environment (``SNAKK_*``) and the install directory and
Caddyfile location also from CLI flags.
"""

import os
import shutil
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError


DEFAULT_REPO_URL = "https://github.com/snakk-community-platform/snakk.git"
DEFAULT_INSTALL_DIR = "/opt/snakk"
DEFAULT_APP_PORT = 17000
DEFAULT_CADDYFILE = "/etc/caddy/Caddyfile"
DEFAULT_CADDY_LOG_DIR = "/var/log/caddy"
DEFAULT_HEALTH_TIMEOUT = 120
DEFAULT_HEALTH_INTERVAL = 5

# Compose service names for the two logical services
DATABASE_SERVICE = "postgres"
APPLICATION_SERVICE = "snakk"

PACKAGE_MANAGERS = ("apt", "dnf")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _default_package_manager() -> str:
    return "apt" if shutil.which("apt-get") else "dnf"


@dataclass(frozen=True)
class InstallerConfig:
    install_dir: Path = Path(DEFAULT_INSTALL_DIR)
    repo_url: str = DEFAULT_REPO_URL
    app_port: int = DEFAULT_APP_PORT
    caddyfile_path: Path = Path(DEFAULT_CADDYFILE)
    caddy_log_dir: Path = Path(DEFAULT_CADDY_LOG_DIR)
    health_timeout_seconds: int = DEFAULT_HEALTH_TIMEOUT
    health_poll_interval_seconds: int = DEFAULT_HEALTH_INTERVAL
    package_manager: str = "apt"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "InstallerConfig":
        """Build settings from ``SNAKK_*`` environment variables."""
        env = os.environ if env is None else env

        package_manager = env.get("SNAKK_PACKAGE_MANAGER") or _default_package_manager()
        if package_manager not in PACKAGE_MANAGERS:
            raise ConfigError(
                f"SNAKK_PACKAGE_MANAGER must be one of {', '.join(PACKAGE_MANAGERS)}, "
                f"got {package_manager!r}"
            )

        return cls(
            install_dir=Path(env.get("SNAKK_INSTALL_DIR") or DEFAULT_INSTALL_DIR),
            repo_url=env.get("SNAKK_REPO_URL") or DEFAULT_REPO_URL,
            app_port=_env_int(env, "SNAKK_PORT", DEFAULT_APP_PORT),
            caddyfile_path=Path(env.get("SNAKK_CADDYFILE") or DEFAULT_CADDYFILE),
            caddy_log_dir=Path(env.get("SNAKK_CADDY_LOG_DIR") or DEFAULT_CADDY_LOG_DIR),
            health_timeout_seconds=_env_int(
                env, "SNAKK_HEALTH_TIMEOUT", DEFAULT_HEALTH_TIMEOUT
            ),
            package_manager=package_manager,
        )

    def with_overrides(self, **changes) -> "InstallerConfig":
        """Return a copy with the non-None values in ``changes`` applied."""
        applied = {k: v for k, v in changes.items() if v is not None}
        for key in ("install_dir", "caddyfile_path", "caddy_log_dir"):
            if key in applied:
                applied[key] = Path(applied[key])
        return replace(self, **applied)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def docker_dir(self) -> Path:
        return self.install_dir / "docker"

    @property
    def env_path(self) -> Path:
        return self.docker_dir / ".env"

    @property
    def postgresql_conf_path(self) -> Path:
        return self.docker_dir / "postgresql.conf"

    @property
    def compose_override_path(self) -> Path:
        return self.docker_dir / "docker-compose.override.yml"

    @property
    def compose_file(self) -> Path:
        return self.docker_dir / "docker-compose.yml"

    @property
    def lock_path(self) -> Path:
        return self.install_dir.with_name(self.install_dir.name + ".lock")
