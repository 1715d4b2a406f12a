"""
External collaborators of the installer.

Everything that shells out lives here, behind small interfaces, so the
configuration pass itself never starts a process. Each implementation
takes a CommandRunner, which tests replace with a fake.
"""

import json
import logging
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import CheckoutError, PrerequisiteError


logger = logging.getLogger(__name__)


class CommandRunner:
    """Thin wrapper around subprocess.run returning a result dict."""

    def run(self, command: Sequence[str], cwd: Optional[Path] = None) -> Dict[str, Any]:
        command = list(command)
        try:
            proc = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=True,
            )
            return {
                "ok": True,
                "command": " ".join(command),
                "stdout": proc.stdout.strip(),
                "stderr": proc.stderr.strip(),
            }
        except subprocess.CalledProcessError as exc:
            return {
                "ok": False,
                "command": " ".join(command),
                "stdout": (exc.stdout or "").strip(),
                "stderr": (exc.stderr or str(exc)).strip(),
            }
        except FileNotFoundError as exc:
            return {
                "ok": False,
                "command": " ".join(command),
                "stdout": "",
                "stderr": str(exc),
            }

    def which(self, name: str) -> bool:
        return shutil.which(name) is not None


# ------------------------------------------------------------------
# Interfaces
# ------------------------------------------------------------------


class PackageInstaller(ABC):
    @abstractmethod
    def ensure(self, tool: str) -> bool:
        """Make sure ``tool`` is available; returns True when it is."""


class SourceCheckout(ABC):
    @abstractmethod
    def sync(self, repo_url: str, install_dir: Path) -> None:
        """Clone ``repo_url`` into ``install_dir`` or update an existing clone."""


class FirewallManager(ABC):
    @abstractmethod
    def open_web_ports(self) -> bool:
        """Open HTTP/HTTPS; returns False when no active firewall was found."""


class ReverseProxyService(ABC):
    @abstractmethod
    def is_installed(self) -> bool:
        ...

    @abstractmethod
    def prepare_log_dir(self, log_dir: Path) -> bool:
        ...

    @abstractmethod
    def restart(self) -> bool:
        ...


class ContainerRuntime(ABC):
    @abstractmethod
    def build_and_start(self, compose_dir: Path) -> None:
        ...

    @abstractmethod
    def wait_for_healthy(self, compose_file: Path, timeout: int, interval: int) -> bool:
        ...


# ------------------------------------------------------------------
# Implementations
# ------------------------------------------------------------------

# Packages per tool and package manager
TOOL_PACKAGES: Dict[str, Dict[str, List[str]]] = {
    "git": {"apt": ["git"], "dnf": ["git"]},
    "docker": {
        "apt": ["docker-ce", "docker-ce-cli", "containerd.io", "docker-compose-plugin"],
        "dnf": ["docker-ce", "docker-ce-cli", "containerd.io", "docker-compose-plugin"],
    },
    "caddy": {"apt": ["caddy"], "dnf": ["caddy"]},
}

REQUIRED_TOOLS = ("git", "docker")


class SystemPackageInstaller(PackageInstaller):
    def __init__(self, package_manager: str, runner: Optional[CommandRunner] = None):
        self.package_manager = package_manager
        self.runner = runner or CommandRunner()

    def _is_present(self, tool: str) -> bool:
        if not self.runner.which(tool):
            return False
        if tool == "docker":
            return self.runner.run(["docker", "compose", "version"])["ok"]
        return True

    def _install_command(self, packages: List[str]) -> List[List[str]]:
        if self.package_manager == "apt":
            return [
                ["apt-get", "update", "-qq"],
                ["apt-get", "install", "-y", "-qq", *packages],
            ]
        return [["dnf", "install", "-y", "-q", *packages]]

    def ensure(self, tool: str) -> bool:
        """
        Install ``tool`` when missing. Raises PrerequisiteError for git and
        docker; caddy is optional and only reports False.
        """
        if self._is_present(tool):
            logger.info(f"{tool} is already installed")
            return True

        packages = TOOL_PACKAGES[tool][self.package_manager]
        logger.info(f"Installing {tool} ({', '.join(packages)})...")
        for command in self._install_command(packages):
            result = self.runner.run(command)
            if not result["ok"]:
                message = f"Failed to install {tool}: {result['stderr']}"
                if tool in REQUIRED_TOOLS:
                    raise PrerequisiteError(message)
                logger.warning(message)
                return False

        if tool == "docker":
            result = self.runner.run(["systemctl", "enable", "--now", "docker"])
            if not result["ok"]:
                raise PrerequisiteError(f"Failed to start docker: {result['stderr']}")

        logger.info(f"{tool} installed.")
        return True


class GitCheckout(SourceCheckout):
    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def sync(self, repo_url: str, install_dir: Path) -> None:
        install_dir = Path(install_dir)
        try:
            has_clone = (install_dir / ".git").is_dir()
            non_empty = not has_clone and install_dir.is_dir() and any(install_dir.iterdir())
        except OSError as e:
            raise CheckoutError(f"Cannot inspect {install_dir}: {e}") from e

        if has_clone:
            logger.info(f"Snakk repo already exists at {install_dir}. Pulling latest...")
            result = self.runner.run(["git", "-C", str(install_dir), "pull", "--ff-only"])
            if not result["ok"]:
                logger.warning("Could not pull -- continuing with existing code.")
            return

        if non_empty:
            raise CheckoutError(
                f"{install_dir} exists and is not empty. Remove it or set "
                f"SNAKK_INSTALL_DIR to another path."
            )

        logger.info(f"Cloning Snakk to {install_dir}...")
        result = self.runner.run(["git", "clone", repo_url, str(install_dir)])
        if not result["ok"]:
            raise CheckoutError(f"git clone failed: {result['stderr']}")
        logger.info("Repository cloned.")


class HostFirewall(FirewallManager):
    """Opens ports 80/443 in ufw or firewalld, whichever is active."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def _ufw_active(self) -> bool:
        if not self.runner.which("ufw"):
            return False
        result = self.runner.run(["ufw", "status"])
        return result["ok"] and "Status: active" in result["stdout"]

    def _firewalld_active(self) -> bool:
        if not self.runner.which("firewall-cmd"):
            return False
        return self.runner.run(["systemctl", "is-active", "--quiet", "firewalld"])["ok"]

    def open_web_ports(self) -> bool:
        if self._ufw_active():
            commands = [["ufw", "allow", "80/tcp"], ["ufw", "allow", "443/tcp"]]
        elif self._firewalld_active():
            commands = [
                ["firewall-cmd", "--permanent", "--add-service=http"],
                ["firewall-cmd", "--permanent", "--add-service=https"],
                ["firewall-cmd", "--reload"],
            ]
        else:
            logger.info("No active firewall (ufw/firewalld) -- skipping firewall configuration.")
            return False

        for command in commands:
            result = self.runner.run(command)
            if not result["ok"]:
                logger.warning(f"'{result['command']}' failed: {result['stderr']}")
                return False
        logger.info("Firewall ports 80 and 443 opened.")
        return True


class CaddyService(ReverseProxyService):
    def __init__(self, runner: Optional[CommandRunner] = None, user: str = "caddy"):
        self.runner = runner or CommandRunner()
        self.user = user

    def is_installed(self) -> bool:
        return self.runner.which("caddy")

    def prepare_log_dir(self, log_dir: Path) -> bool:
        log_dir = Path(log_dir)
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create {log_dir}: {e}")
            return False

        if not self.runner.run(["chown", f"{self.user}:{self.user}", str(log_dir)])["ok"]:
            return False

        # SELinux hosts (Rocky/RHEL/Alma) need the httpd log context
        if self.runner.which("semanage"):
            logger.info(f"Setting SELinux context on {log_dir}/...")
            self.runner.run(
                ["semanage", "fcontext", "-a", "-t", "httpd_log_t", f"{log_dir}(/.*)?"]
            )
            self.runner.run(["restorecon", "-Rv", str(log_dir)])
        return True

    def restart(self) -> bool:
        for command in (["systemctl", "enable", "caddy"], ["systemctl", "restart", "caddy"]):
            if not self.runner.run(command)["ok"]:
                return False
        return True


class DockerComposeRuntime(ContainerRuntime):
    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.runner = runner or CommandRunner()
        self.sleep = sleep

    def build_and_start(self, compose_dir: Path) -> None:
        logger.info("Building and starting Snakk containers (this may take a few minutes)...")
        result = self.runner.run(["docker", "compose", "up", "-d", "--build"], cwd=compose_dir)
        if not result["ok"]:
            raise PrerequisiteError(f"docker compose up failed: {result['stderr']}")
        logger.info("Containers started.")

    @staticmethod
    def _any_running(ps_output: str) -> bool:
        # Compose prints either a JSON array or one JSON object per line
        text = ps_output.strip()
        if not text:
            return False
        try:
            parsed = json.loads(text)
            entries = parsed if isinstance(parsed, list) else [parsed]
        except json.JSONDecodeError:
            entries = []
            for line in text.splitlines():
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        return any(
            isinstance(entry, dict) and entry.get("State") == "running" for entry in entries
        )

    def wait_for_healthy(self, compose_file: Path, timeout: int, interval: int) -> bool:
        """Poll until a container reports running; False after ``timeout`` seconds."""
        logger.info("Waiting for services to become healthy...")
        elapsed = 0
        while elapsed < timeout:
            result = self.runner.run(
                ["docker", "compose", "-f", str(compose_file), "ps", "--format", "json"]
            )
            if result["ok"] and self._any_running(result["stdout"]):
                logger.info("Snakk is running!")
                return True
            self.sleep(interval)
            elapsed += interval

        logger.warning(
            f"Timed out waiting for containers. Check with: "
            f"docker compose -f {compose_file} logs"
        )
        return False
