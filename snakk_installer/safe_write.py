"""
Safe-write guard for generated configuration files.

Decides, per target file, whether a freshly rendered artifact may replace
what is on disk, and performs the write. Three write policies exist:

* ``GENERATE_ONCE``: the file is authoritative once it exists (the .env
  holding the database password).
* ``DERIVED``: the file is fully derived from the current plan and is
  always regenerated (postgresql.conf, compose override).
* ``OPERATOR_EDITABLE``: the file may carry hand edits (Caddyfile); it is
  only replaced when it still looks like a stock or installer-written file.

The customization heuristic is a line-count threshold plus a marker search.
It tolerates false negatives: a short hand-edited file, or a long one that
happens to mention ``localhost``, is treated as default and replaced.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .errors import ArtifactWriteError, ConfigPathError
from .models import RenderedArtifact, WriteDecision


logger = logging.getLogger(__name__)


# Content that only appears in stock or installer-generated Caddyfiles
DEFAULT_MARKERS = ("example.com", ":80", "Welcome to Caddy", "localhost")
CUSTOMIZED_MIN_LINES = 6


class WritePolicy(Enum):
    GENERATE_ONCE = "generate_once"
    DERIVED = "derived"
    OPERATOR_EDITABLE = "operator_editable"


class ProxyConfigState(Enum):
    ABSENT = "absent"
    DEFAULT = "default"
    CUSTOMIZED = "customized"


def classify_proxy_config(content: Optional[str]) -> ProxyConfigState:
    """Classify existing reverse-proxy config content (None = no file)."""
    if content is None:
        return ProxyConfigState.ABSENT
    line_count = len(content.splitlines())
    if line_count < CUSTOMIZED_MIN_LINES:
        return ProxyConfigState.DEFAULT
    if any(marker in content for marker in DEFAULT_MARKERS):
        return ProxyConfigState.DEFAULT
    return ProxyConfigState.CUSTOMIZED


def decide(policy: WritePolicy, existing: Optional[str]) -> WriteDecision:
    """Return the write decision for a target whose current content is ``existing``."""
    if policy is WritePolicy.DERIVED:
        return WriteDecision.WRITE
    if policy is WritePolicy.GENERATE_ONCE:
        return WriteDecision.WRITE if existing is None else WriteDecision.SKIP_EXISTING
    if classify_proxy_config(existing) is ProxyConfigState.CUSTOMIZED:
        return WriteDecision.SKIP_CUSTOMIZED
    return WriteDecision.WRITE


def read_existing(path: Path) -> Optional[str]:
    """Return the file's text, or None when it does not exist."""
    try:
        return Path(path).read_text(errors="replace")
    except FileNotFoundError:
        return None
    except IsADirectoryError:
        raise ConfigPathError(f"{path} is a directory, expected a file")
    except OSError as e:
        raise ConfigPathError(f"Cannot read {path}: {e}") from e


def ensure_writable_dirs(directories: Iterable[Path]) -> None:
    """Create ``directories`` if needed and fail if any is not writable."""
    for directory in directories:
        directory = Path(directory)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigPathError(f"Cannot create {directory}: {e}") from e
        if not os.access(directory, os.W_OK | os.X_OK):
            raise ConfigPathError(f"{directory} is not writable")


def write_artifact(artifact: RenderedArtifact) -> None:
    """Write ``artifact`` to disk with its permission bits. Failures are fatal."""
    path = Path(artifact.path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, artifact.mode)
        with os.fdopen(fd, "wb") as fh:
            fh.write(artifact.content)
        # O_CREAT ignores mode for files that already existed
        os.chmod(str(path), artifact.mode)
    except OSError as e:
        raise ArtifactWriteError(path, e.strerror or str(e)) from e
    logger.debug(f"Wrote {path} ({len(artifact.content)} bytes, mode {artifact.mode:o})")
