#!/usr/bin/env python3
"""Snakk installer preview API.

Read-only HTTP API around the sizing core: lets an operator see the memory
plan, PostgreSQL tuning and the generated fragments for any host size
without touching the filesystem.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import __version__, allocation_planner, db_tuning
from .addon_loader import AddonContext, AddonLoader
from .config import InstallerConfig
from .models import MemoryBudget, OS_RESERVE_MB
from .safe_write import CUSTOMIZED_MIN_LINES, DEFAULT_MARKERS


PREVIEW_ADDONS = ("postgresql_conf", "compose_override")

app = FastAPI(title="Snakk Installer Preview API", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://127.0.0.1"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _plan_for(total_mb: int, override: Optional[str]):
    if total_mb < 0:
        raise HTTPException(status_code=400, detail="total_mb must be non-negative")
    budget = MemoryBudget(total_mb=total_mb)
    plan = allocation_planner.plan(budget, override or None)
    tuning = db_tuning.synthesize(plan.db_mem_mb)
    return budget, plan, tuning


@app.get("/api/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/meta")
def meta() -> Dict[str, Any]:
    return {
        "os_reserve_mb": OS_RESERVE_MB,
        "allocation_tiers": [
            {"below_available_mb": bound, "db_mem_mb": db, "app_mem_mb": app_mem}
            for bound, db, app_mem in allocation_planner.RECOMMENDED_TIERS
        ],
        "override": {
            "min_mb": allocation_planner.MIN_OVERRIDE_MB,
            "db_percent": allocation_planner.OVERRIDE_DB_PERCENT,
            "app_percent": allocation_planner.OVERRIDE_APP_PERCENT,
        },
        "tuning_bands": [
            {
                "below_db_mem_mb": bound,
                "settings": settings,
                "settings_mb": {k: db_tuning.memory_value_mb(v) for k, v in settings.items()},
            }
            for bound, settings in db_tuning.TUNING_BANDS
        ],
        "fixed_hints": dict(db_tuning.FIXED_HINTS),
        "proxy_customization": {
            "min_lines": CUSTOMIZED_MIN_LINES,
            "default_markers": list(DEFAULT_MARKERS),
        },
    }


@app.get("/api/plan")
def plan(total_mb: int, override: str = "") -> Dict[str, Any]:
    budget, allocation, tuning = _plan_for(total_mb, override)
    return {
        "total_mb": budget.total_mb,
        "available_mb": budget.available_mb,
        "plan": allocation.to_dict(),
        "tuning": tuning.as_dict(),
    }


@app.get("/api/preview")
def preview(total_mb: int, override: str = "") -> Dict[str, Any]:
    budget, allocation, tuning = _plan_for(total_mb, override)
    config = InstallerConfig()
    context = AddonContext(config=config, budget=budget, plan=allocation, tuning=tuning)
    loader = AddonLoader()

    fragments: Dict[str, Dict[str, str]] = {}
    for spec in loader.discover_addons():
        if spec.name not in PREVIEW_ADDONS:
            continue
        artifact = loader.create_generator(spec, context).render()
        fragments[spec.name] = {
            "path": str(artifact.path),
            "content": artifact.content.decode(),
        }

    return {"plan": allocation.to_dict(), "fragments": fragments}
