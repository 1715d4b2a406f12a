"""Shared base for artifact generators."""

from pathlib import Path
from typing import Dict, Optional

from ..models import RenderedArtifact, WriteDecision


class ArtifactGenerator:
    """
    Renders one configuration artifact from the addon context.

    Subclasses set ``target`` and implement ``render()``; the configuration
    pass consults the safe-write guard before calling it.
    """

    write_reason = "Generated"

    def __init__(self, context):
        self.context = context
        self.config = context.config

    @property
    def target(self) -> Path:
        raise NotImplementedError

    def render(self) -> RenderedArtifact:
        raise NotImplementedError

    def after_write(self) -> Dict[str, str]:
        """Follow-up after a successful write; returns report details."""
        return {}

    def on_skip(self, decision: WriteDecision, existing: Optional[str]) -> Dict[str, str]:
        """Called instead of ``render()`` when the guard refuses the write."""
        return {}

    def skip_reason(self, decision: WriteDecision) -> str:
        return f"{self.target} left unchanged"
