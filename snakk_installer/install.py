#!/usr/bin/env python3
"""
CLI entry point for the Snakk installer.

Usage:
    snakk-install [--install-dir DIR] [--memory MB] [--domain DOMAIN]
                  [--total-mb MB] [--plan-only] [--config-only] [--no-start]
                  [--open-firewall] [--json] [--verbose]
"""

import argparse
import contextlib
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from . import allocation_planner, db_tuning
from .collaborators import (
    CaddyService,
    ContainerRuntime,
    DockerComposeRuntime,
    FirewallManager,
    GitCheckout,
    HostFirewall,
    PackageInstaller,
    ReverseProxyService,
    SourceCheckout,
    SystemPackageInstaller,
)
from .config import InstallerConfig
from .errors import InstallLockError, InstallerError
from .generate_config import generate_configuration
from .memory_probe import measure_budget
from .summary import print_allocation, print_artifacts, print_summary, print_tuning


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snakk-install",
        description="Install Snakk on this host and generate memory-tuned configuration.",
    )
    parser.add_argument(
        "--install-dir",
        default=None,
        help="Install directory (default: $SNAKK_INSTALL_DIR or /opt/snakk)",
    )
    parser.add_argument(
        "--memory",
        default=None,
        help="Total MB to allocate for Docker (min 512, split 40/60 between Postgres/app)",
    )
    parser.add_argument(
        "--domain",
        default="",
        help="Domain for HTTPS via Caddy (omit to skip reverse proxy configuration)",
    )
    parser.add_argument(
        "--total-mb",
        type=int,
        default=None,
        help="Use this total RAM in MB instead of measuring the host",
    )
    parser.add_argument(
        "--caddyfile",
        default=None,
        help="Caddyfile path (default: $SNAKK_CADDYFILE or /etc/caddy/Caddyfile)",
    )
    parser.add_argument(
        "--plan-only",
        action="store_true",
        help="Print the memory plan and PostgreSQL tuning without writing files",
    )
    parser.add_argument(
        "--config-only",
        action="store_true",
        help="Only generate configuration files (no packages, clone, or containers)",
    )
    parser.add_argument(
        "--no-start",
        action="store_true",
        help="Do not build and start the containers",
    )
    parser.add_argument(
        "--open-firewall",
        action="store_true",
        help="Open ports 80 and 443 in ufw/firewalld",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Machine-readable JSON output",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


@contextlib.contextmanager
def install_lock(lock_path: Path):
    """Refuse to run while another installation holds ``lock_path``."""
    lock_path = Path(lock_path)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InstallLockError(f"Cannot create {lock_path.parent} for the install lock: {e}") from e
    try:
        fd = os.open(str(lock_path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
    except FileExistsError:
        raise InstallLockError(
            f"An installation is already in progress ({lock_path} exists). "
            f"Remove the lock file if no installer is running."
        )
    except OSError as e:
        raise InstallLockError(f"Cannot create install lock {lock_path}: {e}") from e
    try:
        with os.fdopen(fd, "w") as fh:
            fh.write(f"{os.getpid()}\n")
        yield
    finally:
        with contextlib.suppress(FileNotFoundError):
            lock_path.unlink()


def run_plan_only(total_mb: Optional[int], memory: Optional[str], as_json: bool) -> int:
    """Print the plan without creating any files."""
    try:
        budget = measure_budget(total_mb)
    except InstallerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    plan = allocation_planner.plan(budget, memory)
    tuning = db_tuning.synthesize(plan.db_mem_mb)

    if as_json:
        print(
            json.dumps(
                {
                    "total_mb": budget.total_mb,
                    "available_mb": budget.available_mb,
                    "plan": plan.to_dict(),
                    "tuning": tuning.as_dict(),
                },
                indent=2,
            )
        )
    else:
        print_allocation(budget, plan)
        print_tuning(tuning)
    return 0


def run_install(
    config: InstallerConfig,
    memory: Optional[str] = None,
    domain: str = "",
    total_mb: Optional[int] = None,
    config_only: bool = False,
    no_start: bool = False,
    open_firewall: bool = False,
    as_json: bool = False,
    installer: Optional[PackageInstaller] = None,
    checkout: Optional[SourceCheckout] = None,
    firewall: Optional[FirewallManager] = None,
    proxy: Optional[ReverseProxyService] = None,
    runtime: Optional[ContainerRuntime] = None,
) -> int:
    """Full installation. Returns the process exit code."""
    installer = installer or SystemPackageInstaller(config.package_manager)
    checkout = checkout or GitCheckout()
    firewall = firewall or HostFirewall()
    proxy = proxy or CaddyService()
    runtime = runtime or DockerComposeRuntime()

    healthy = None
    try:
        with install_lock(config.lock_path):
            proxy_service = None
            if not config_only:
                installer.ensure("git")
                installer.ensure("docker")
                installer.ensure("caddy")
                checkout.sync(config.repo_url, config.install_dir)
                proxy_service = proxy

            result = generate_configuration(
                config,
                total_mb=total_mb,
                override=memory,
                domain=domain,
                proxy_service=proxy_service,
            )
            if not result.ok:
                if as_json:
                    print(json.dumps(result.to_dict(), indent=2))
                print(f"Error: {result.error}", file=sys.stderr)
                return 1

            if open_firewall and not config_only:
                firewall.open_web_ports()

            if not config_only and not no_start:
                runtime.build_and_start(config.docker_dir)
                healthy = runtime.wait_for_healthy(
                    config.compose_file,
                    config.health_timeout_seconds,
                    config.health_poll_interval_seconds,
                )
    except InstallerError as e:
        logger.error(str(e))
        if as_json:
            print(json.dumps({"ok": False, "error": str(e)}, indent=2))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if as_json:
        output = result.to_dict()
        output["healthy"] = healthy
        print(json.dumps(output, indent=2))
    elif config_only:
        if result.budget and result.plan:
            print_allocation(result.budget, result.plan)
        print_artifacts(result)
    else:
        print_summary(config, result, domain=domain, healthy=healthy)
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT
    )

    if args.total_mb is not None and args.total_mb < 0:
        parser.error("--total-mb must be non-negative")

    if args.plan_only:
        return run_plan_only(args.total_mb, args.memory, args.json_output)

    try:
        config = InstallerConfig.from_env().with_overrides(
            install_dir=args.install_dir, caddyfile_path=args.caddyfile
        )
    except InstallerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return run_install(
        config,
        memory=args.memory,
        domain=args.domain,
        total_mb=args.total_mb,
        config_only=args.config_only,
        no_start=args.no_start,
        open_firewall=args.open_firewall,
        as_json=args.json_output,
    )


if __name__ == "__main__":
    sys.exit(main())
