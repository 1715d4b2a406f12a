"""Human-readable output for the installer CLI."""

from typing import Optional

from .collaborators import CommandRunner
from .config import InstallerConfig
from .models import AllocationPlan, GenerationResult, MemoryBudget, TuningParameterSet


def print_allocation(budget: MemoryBudget, plan: AllocationPlan):
    """Print the memory allocation table."""
    print("")
    print("  Memory allocation:")
    print(f"    Total system RAM:      {budget.total_gb} GB")
    print(f"    OS reserve:            {budget.reserve_mb} MB")
    print(f"    PostgreSQL container:  {plan.db_mem_mb} MB")
    print(f"    Snakk app container:   {plan.app_mem_mb} MB")
    print(f"    Total for Docker:      {plan.total_mb} MB")
    print(f"    Source:                {plan.source.value}")
    print("")


def print_tuning(tuning: TuningParameterSet):
    print("  PostgreSQL tuning:")
    for key, value in tuning.as_dict().items():
        print(f"    {key:<30} {value}")
    print("")


def print_artifacts(result: GenerationResult):
    print("  Generated files:")
    for report in result.reports:
        print(f"    - [{report.decision.value}] {report.path}")
        print(f"      {report.reason}")
        fragment = report.details.get("manual_fragment")
        if fragment:
            print("      Merge this block manually:")
            for line in fragment.splitlines():
                print(f"        {line}")
    for skip in result.skipped:
        print(f"    - [skipped] {skip.name}: {skip.reason}")
    print("")


def _server_address(runner: Optional[CommandRunner] = None) -> str:
    """First address reported by `hostname -I`."""
    result = (runner or CommandRunner()).run(["hostname", "-I"])
    addresses = result["stdout"].split() if result["ok"] else []
    return addresses[0] if addresses else "<server-ip>"


def print_summary(config: InstallerConfig, result: GenerationResult, domain: str = "",
                  healthy: Optional[bool] = None, runner: Optional[CommandRunner] = None):
    """Print the final installation summary."""
    if domain:
        url = f"https://{domain}"
    else:
        url = f"http://{_server_address(runner)}:{config.app_port}"

    env_report = result.report_for("env_fragment")
    password = env_report.details.get("credential", "(existing)") if env_report else "(unknown)"

    print("\n" + "=" * 52)
    print("  Snakk Installation Complete!")
    print("=" * 52)
    print(f"\n  Install directory:  {config.install_dir}")

    if result.budget and result.plan:
        print_allocation(result.budget, result.plan)
    print_artifacts(result)

    if healthy is False:
        print("  Containers did not report running before the timeout.\n")

    print("  Database credentials (use these in the setup wizard):")
    print("    Host:      postgres")
    print("    Port:      5432")
    print("    Database:  snakk")
    print("    Username:  snakk")
    print(f"    Password:  {password}")
    print("")
    print("  Next step:")
    print(f"    Visit {url}")
    print("    Complete the setup wizard in your browser.")
    print("")
    print("  Useful commands:")
    print(f"    cd {config.docker_dir}")
    print("    docker compose logs -f snakk     # View logs")
    print("    docker compose restart            # Restart services")
    print("    docker compose down               # Stop everything")
    print("    docker compose up -d --build      # Rebuild after updates")
    print("")
