"""
Allocation planner.

Splits the host's memory between the PostgreSQL and Snakk containers using
fixed tiers. The tiers deliberately favour headroom over utilisation and the
last tier is a ceiling; the values must stay exactly as they are so that
re-running on an existing installation reproduces the same limits.

Zero external dependencies -- Python 3.9+ stdlib only.
"""

import logging
import re
from typing import List, Optional, Tuple, Union

from .models import AllocationPlan, AllocationSource, MemoryBudget


logger = logging.getLogger(__name__)


# (exclusive upper bound on available MB, postgres MB, app MB); None = no bound
RECOMMENDED_TIERS: List[Tuple[Optional[int], int, int]] = [
    (1024, 384, 512),  # < 1.5 GB total -- bare minimum
    (2560, 640, 896),  # 1.5-3 GB total
    (4096, 1024, 1536),  # 3-4.5 GB total
    (8192, 2048, 3072),  # 4.5-8.5 GB total
    (None, 4096, 4096),  # 9+ GB total
]

MIN_OVERRIDE_MB = 512
OVERRIDE_DB_PERCENT = 40
OVERRIDE_APP_PERCENT = 60

_OVERRIDE_PATTERN = re.compile(r"^[0-9]+$")


def recommended_allocation(available_mb: int) -> Tuple[int, int]:
    """Return (db_mem_mb, app_mem_mb) for the first tier whose bound exceeds ``available_mb``."""
    for bound, db_mem, app_mem in RECOMMENDED_TIERS:
        if bound is None or available_mb < bound:
            return db_mem, app_mem
    raise AssertionError("tier table has no ceiling")


def parse_override(raw: Union[str, int, None]) -> Optional[int]:
    """Return the override in MB, or None when it is not an integer >= 512."""
    if raw is None:
        return None
    text = str(raw).strip()
    if not _OVERRIDE_PATTERN.match(text):
        return None
    value = int(text)
    if value < MIN_OVERRIDE_MB:
        return None
    return value


def plan(
    budget: Union[MemoryBudget, int],
    override: Union[str, int, None] = None,
) -> AllocationPlan:
    """
    Compute the memory split for this host.

    Args:
        budget: MemoryBudget (or total MB) of the host
        override: Operator-supplied total MB for containers. Empty / None means
            no override. Invalid values are rejected with a warning and the
            recommended tier is used instead.

    Returns:
        AllocationPlan with strictly positive allocations
    """
    if not isinstance(budget, MemoryBudget):
        budget = MemoryBudget(total_mb=max(int(budget), 0))

    db_mem, app_mem = recommended_allocation(budget.available_mb)

    if override is None or str(override).strip() == "":
        return AllocationPlan(db_mem, app_mem, AllocationSource.RECOMMENDED)

    custom = parse_override(override)
    if custom is None:
        logger.warning(
            f"Invalid memory override {override!r} (expected an integer >= {MIN_OVERRIDE_MB}) "
            f"-- using recommended allocation."
        )
        return AllocationPlan(db_mem, app_mem, AllocationSource.FALLBACK)

    db_mem = custom * OVERRIDE_DB_PERCENT // 100
    app_mem = custom * OVERRIDE_APP_PERCENT // 100
    logger.info(f"Custom allocation: PostgreSQL {db_mem} MB, Snakk {app_mem} MB")
    return AllocationPlan(db_mem, app_mem, AllocationSource.CUSTOM_OVERRIDE)
