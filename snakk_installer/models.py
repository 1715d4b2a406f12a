"""
Value objects shared by the configuration pass.

Everything here is immutable: each stage returns a new value and the next
stage consumes it, so tier tables and renderers can be tested in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


OS_RESERVE_MB = 512


@dataclass(frozen=True)
class MemoryBudget:
    """Host memory measured once per run."""

    total_mb: int
    reserve_mb: int = OS_RESERVE_MB

    @property
    def available_mb(self) -> int:
        return max(self.total_mb - self.reserve_mb, 0)

    @property
    def total_gb(self) -> float:
        return round(self.total_mb / 1024, 1)


class AllocationSource(Enum):
    RECOMMENDED = "recommended"
    CUSTOM_OVERRIDE = "custom_override"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AllocationPlan:
    """Memory split between the database and application containers."""

    db_mem_mb: int
    app_mem_mb: int
    source: AllocationSource

    def __post_init__(self):
        if self.db_mem_mb <= 0 or self.app_mem_mb <= 0:
            raise ValueError(
                f"Allocation must be positive (db={self.db_mem_mb}, app={self.app_mem_mb})"
            )

    @property
    def total_mb(self) -> int:
        return self.db_mem_mb + self.app_mem_mb

    def to_dict(self) -> Dict[str, Any]:
        return {
            "db_mem_mb": self.db_mem_mb,
            "app_mem_mb": self.app_mem_mb,
            "total_mb": self.total_mb,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class TuningParameterSet:
    """PostgreSQL settings derived from the database allocation."""

    db_mem_mb: int
    shared_buffers: str
    effective_cache_size: str
    maintenance_work_mem: str
    work_mem: str
    wal_buffers: str
    # Memory-independent planner / WAL hints, in render order
    hints: Tuple[Tuple[str, str], ...] = ()

    MEMORY_KEYS = (
        "shared_buffers",
        "effective_cache_size",
        "maintenance_work_mem",
        "work_mem",
        "wal_buffers",
    )

    def memory_settings(self) -> Dict[str, str]:
        return {key: getattr(self, key) for key in self.MEMORY_KEYS}

    def hint_settings(self) -> Dict[str, str]:
        return dict(self.hints)

    def as_dict(self) -> Dict[str, str]:
        settings = self.memory_settings()
        settings.update(self.hint_settings())
        return settings


class WriteDecision(Enum):
    WRITE = "write"
    SKIP_EXISTING = "skip_existing"
    SKIP_CUSTOMIZED = "skip_customized"


@dataclass(frozen=True)
class RenderedArtifact:
    path: Path
    content: bytes
    mode: int = 0o644


@dataclass(frozen=True)
class ArtifactReport:
    """Outcome of one artifact, reported to the operator."""

    name: str
    path: Path
    decision: WriteDecision
    reason: str
    details: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "decision": self.decision.value,
            "reason": self.reason,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class SkippedAddon:
    name: str
    reason: str


@dataclass(frozen=True)
class GenerationResult:
    """Result of one configuration pass. ``error`` is set on fatal failure."""

    budget: Optional[MemoryBudget] = None
    plan: Optional[AllocationPlan] = None
    tuning: Optional[TuningParameterSet] = None
    reports: Tuple[ArtifactReport, ...] = ()
    skipped: Tuple[SkippedAddon, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def report_for(self, name: str) -> Optional[ArtifactReport]:
        for report in self.reports:
            if report.name == name:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "error": self.error,
            "total_mb": self.budget.total_mb if self.budget else None,
            "available_mb": self.budget.available_mb if self.budget else None,
            "plan": self.plan.to_dict() if self.plan else None,
            "tuning": self.tuning.as_dict() if self.tuning else None,
            "artifacts": [r.to_dict() for r in self.reports],
            "skipped": [{"name": s.name, "reason": s.reason} for s in self.skipped],
        }
