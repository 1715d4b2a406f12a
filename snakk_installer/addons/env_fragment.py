"""
Env fragment addon.

Writes docker/.env with the generated PostgreSQL password and the app port.
The file is generated once: an existing .env is authoritative and its
password is only read back for the summary.
"""

import datetime
import logging
import re
import secrets
import string
from pathlib import Path
from typing import Dict, Optional

from ..models import RenderedArtifact, WriteDecision
from ..safe_write import WritePolicy
from ._base import ArtifactGenerator


logger = logging.getLogger(__name__)


ADDON_META = {
    "name": "env_fragment",
    "version": "1.0",
    "description": "docker/.env with generated database credential",
    "triggers": {"default": True},
    "policy": WritePolicy.GENERATE_ONCE,
    "priority": 10,
}

PASSWORD_LENGTH = 32
PASSWORD_ALPHABET = string.ascii_letters + string.digits
UNKNOWN_PASSWORD = "(existing)"

_PASSWORD_LINE = re.compile(r"^POSTGRES_PASSWORD=(.*)$", re.MULTILINE)


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def read_password(content: Optional[str]) -> str:
    """Extract POSTGRES_PASSWORD from existing .env content."""
    if not content:
        return UNKNOWN_PASSWORD
    match = _PASSWORD_LINE.search(content)
    if not match or not match.group(1).strip():
        return UNKNOWN_PASSWORD
    return match.group(1).strip()


class AddonGenerator(ArtifactGenerator):
    write_reason = "Generated .env with random database password."

    def __init__(self, context):
        super().__init__(context)
        self._password: Optional[str] = None

    @property
    def target(self) -> Path:
        return self.config.env_path

    def render(self) -> RenderedArtifact:
        self._password = generate_password()
        timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        content = (
            f"# Generated by Snakk installer on {timestamp}\n"
            f"POSTGRES_PASSWORD={self._password}\n"
            f"SNAKK_PORT={self.config.app_port}\n"
        )
        return RenderedArtifact(path=self.target, content=content.encode(), mode=0o600)

    def after_write(self) -> Dict[str, str]:
        return {"credential": self._password or UNKNOWN_PASSWORD}

    def on_skip(self, decision: WriteDecision, existing: Optional[str]) -> Dict[str, str]:
        return {"credential": read_password(existing)}

    def skip_reason(self, decision: WriteDecision) -> str:
        return ".env file already exists -- keeping existing configuration."
