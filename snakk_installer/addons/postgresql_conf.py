"""
PostgreSQL tuning addon.

Renders docker/postgresql.conf from the tuning parameter set. The file is
derived, so it is rewritten on every run and must be byte-identical for the
same allocation.
"""

from pathlib import Path
from typing import List, Tuple

from ..models import RenderedArtifact
from ..safe_write import WritePolicy
from ._base import ArtifactGenerator


ADDON_META = {
    "name": "postgresql_conf",
    "version": "1.0",
    "description": "docker/postgresql.conf memory and planner tuning",
    "triggers": {"default": True},
    "policy": WritePolicy.DERIVED,
    "priority": 20,
}

HINT_SECTIONS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Planner (SSD optimizations)", ("random_page_cost", "effective_io_concurrency")),
    ("WAL", ("checkpoint_completion_target",)),
]


class AddonGenerator(ArtifactGenerator):

    @property
    def target(self) -> Path:
        return self.config.postgresql_conf_path

    @property
    def write_reason(self) -> str:
        tuning = self.context.tuning
        return (
            f"Generated postgresql.conf (shared_buffers={tuning.shared_buffers}, "
            f"effective_cache_size={tuning.effective_cache_size})"
        )

    def render(self) -> RenderedArtifact:
        tuning = self.context.tuning
        lines = [
            "# Snakk PostgreSQL tuning",
            f"# Generated by install script for {tuning.db_mem_mb}MB container",
            "",
            "# Memory",
        ]
        lines.extend(f"{key} = {value}" for key, value in tuning.memory_settings().items())

        hints = tuning.hint_settings()
        for title, keys in HINT_SECTIONS:
            present = [key for key in keys if key in hints]
            if not present:
                continue
            lines.extend(["", f"# {title}"])
            lines.extend(f"{key} = {hints[key]}" for key in present)

        content = "\n".join(lines) + "\n"
        return RenderedArtifact(path=self.target, content=content.encode(), mode=0o644)
