"""
Container memory limits addon.

Generates docker-compose.override.yml with a memory ceiling for the database
and application services.
"""

from pathlib import Path

from ..config import APPLICATION_SERVICE, DATABASE_SERVICE
from ..models import RenderedArtifact
from ..safe_write import WritePolicy
from ._base import ArtifactGenerator


ADDON_META = {
    "name": "compose_override",
    "version": "1.0",
    "description": "docker-compose.override.yml container memory limits",
    "triggers": {"default": True},
    "policy": WritePolicy.DERIVED,
    "priority": 30,
}


class AddonGenerator(ArtifactGenerator):

    @property
    def target(self) -> Path:
        return self.config.compose_override_path

    @property
    def write_reason(self) -> str:
        plan = self.context.plan
        return (
            f"Generated docker-compose.override.yml "
            f"({DATABASE_SERVICE}={plan.db_mem_mb}m, {APPLICATION_SERVICE}={plan.app_mem_mb}m)"
        )

    def _service_limit(self, service: str, memory_mb: int) -> str:
        return f"""  {service}:
    deploy:
      resources:
        limits:
          memory: {memory_mb}m
"""

    def render(self) -> RenderedArtifact:
        plan = self.context.plan
        content = (
            "# Generated by Snakk installer -- container memory limits\n"
            f"# Based on {self.context.budget.total_mb}MB total system RAM\n"
            "services:\n"
            + self._service_limit(DATABASE_SERVICE, plan.db_mem_mb)
            + "\n"
            + self._service_limit(APPLICATION_SERVICE, plan.app_mem_mb)
        )
        return RenderedArtifact(path=self.target, content=content.encode(), mode=0o644)
