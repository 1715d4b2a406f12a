"""Total physical memory of the host, in megabytes."""

import logging

import psutil

from .errors import MemoryProbeError
from .models import MemoryBudget


logger = logging.getLogger(__name__)

MB = 1024 * 1024


def probe_total_memory_mb() -> int:
    """Return total physical memory in MB.

    Raises MemoryProbeError when the value cannot be read; there is no safe
    default for sizing a database, so callers must abort.
    """
    try:
        total_bytes = psutil.virtual_memory().total
    except (OSError, RuntimeError, AttributeError) as e:
        raise MemoryProbeError(f"Unable to read system memory: {e}") from e

    if not total_bytes or total_bytes < 0:
        raise MemoryProbeError(f"System reported an invalid memory size: {total_bytes!r}")

    total_mb = int(total_bytes // MB)
    logger.debug(f"Detected {total_mb} MB total system RAM")
    return total_mb


def measure_budget(total_mb=None) -> MemoryBudget:
    """Build the run's MemoryBudget, probing the host unless ``total_mb`` is given."""
    if total_mb is None:
        total_mb = probe_total_memory_mb()
    elif total_mb < 0:
        raise MemoryProbeError(f"Total memory must be non-negative, got {total_mb}")

    budget = MemoryBudget(total_mb=total_mb)
    logger.info(
        f"Detected {budget.total_gb} GB total system RAM "
        f"({budget.available_mb} MB available after {budget.reserve_mb} MB OS reserve)"
    )
    return budget
