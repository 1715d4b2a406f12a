"""
PostgreSQL tuning bands.

Each band is a hand-picked, complete parameter set: shared_buffers is about
25% of the band's memory, effective_cache_size about 75%. No interpolation
between bands.

Zero external dependencies -- Python 3.9+ stdlib only.
"""

import re
from typing import Dict, List, Optional, Tuple

from .models import TuningParameterSet


# (exclusive upper bound on postgres MB, settings); None = no bound
TUNING_BANDS: List[Tuple[Optional[int], Dict[str, str]]] = [
    (
        512,
        {
            "shared_buffers": "96MB",
            "effective_cache_size": "256MB",
            "maintenance_work_mem": "32MB",
            "work_mem": "2MB",
            "wal_buffers": "4MB",
        },
    ),
    (
        1024,
        {
            "shared_buffers": "160MB",
            "effective_cache_size": "480MB",
            "maintenance_work_mem": "64MB",
            "work_mem": "4MB",
            "wal_buffers": "8MB",
        },
    ),
    (
        2048,
        {
            "shared_buffers": "256MB",
            "effective_cache_size": "768MB",
            "maintenance_work_mem": "128MB",
            "work_mem": "4MB",
            "wal_buffers": "8MB",
        },
    ),
    (
        4096,
        {
            "shared_buffers": "512MB",
            "effective_cache_size": "1536MB",
            "maintenance_work_mem": "256MB",
            "work_mem": "8MB",
            "wal_buffers": "16MB",
        },
    ),
    (
        None,
        {
            "shared_buffers": "1GB",
            "effective_cache_size": "3GB",
            "maintenance_work_mem": "512MB",
            "work_mem": "16MB",
            "wal_buffers": "16MB",
        },
    ),
]

# SSD planner costs and checkpoint pacing, independent of memory
FIXED_HINTS: Tuple[Tuple[str, str], ...] = (
    ("random_page_cost", "1.1"),
    ("effective_io_concurrency", "200"),
    ("checkpoint_completion_target", "0.9"),
)

_MEMORY_PATTERN = re.compile(r"^(\d+)\s*(kb|mb|gb|tb)?$", re.IGNORECASE)


def band_for(db_mem_mb: int) -> Dict[str, str]:
    for bound, settings in TUNING_BANDS:
        if bound is None or db_mem_mb < bound:
            return settings
    raise AssertionError("tuning table has no ceiling")


def synthesize(db_mem_mb: int) -> TuningParameterSet:
    """Return the tuning parameter set for a PostgreSQL container of ``db_mem_mb`` MB."""
    settings = band_for(db_mem_mb)
    return TuningParameterSet(db_mem_mb=db_mem_mb, hints=FIXED_HINTS, **settings)


def memory_value_mb(value: str) -> int:
    """Convert a PostgreSQL memory setting ("512MB", "1GB") to MB."""
    match = _MEMORY_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Not a memory value: {value!r}")
    num = int(match.group(1))
    unit = (match.group(2) or "mb").lower()
    if unit == "kb":
        return num // 1024
    if unit == "gb":
        return num * 1024
    if unit == "tb":
        return num * 1024 * 1024
    return num
