"""
Caddy reverse proxy addon.

Writes a Caddyfile routing the operator's domain to the Snakk container,
with fixed security headers and JSON access logging. A Caddyfile that looks
hand-edited is never overwritten; the block to merge is reported instead.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from ..models import RenderedArtifact, WriteDecision
from ..safe_write import WritePolicy
from ._base import ArtifactGenerator


logger = logging.getLogger(__name__)


ADDON_META = {
    "name": "caddyfile",
    "version": "1.0",
    "description": "Caddy reverse proxy with HTTPS for the operator's domain",
    "triggers": {
        "requires": {
            "domain": "No domain provided -- skipping Caddy configuration.",
            "domain_is_valid": "Domain contains whitespace or braces -- skipping Caddy configuration.",
            "proxy_available": "Caddy not installed -- skipping reverse proxy configuration.",
        },
    },
    "policy": WritePolicy.OPERATOR_EDITABLE,
    "priority": 40,
}

LOG_FILE_NAME = "snakk.log"


def manual_fragment(domain: str, port: int) -> str:
    """The minimal block an operator has to merge into a customized Caddyfile."""
    return f"{domain} {{\n    reverse_proxy localhost:{port}\n}}\n"


class AddonGenerator(ArtifactGenerator):

    @property
    def target(self) -> Path:
        return self.config.caddyfile_path

    @property
    def domain(self) -> str:
        return self.context.domain

    @property
    def write_reason(self) -> str:
        return f"Caddyfile written for {self.domain}."

    def render(self) -> RenderedArtifact:
        port = self.config.app_port
        log_file = self.config.caddy_log_dir / LOG_FILE_NAME
        content = f"""# Snakk -- auto-generated by installer
{self.domain} {{
    reverse_proxy localhost:{port}

    # Security headers
    header {{
        X-Content-Type-Options nosniff
        X-Frame-Options SAMEORIGIN
        Referrer-Policy strict-origin-when-cross-origin
        -Server
    }}

    # Logging
    log {{
        output file {log_file}
        format json
    }}
}}
"""
        return RenderedArtifact(path=self.target, content=content.encode(), mode=0o644)

    def after_write(self) -> Dict[str, str]:
        service = self.context.proxy_service
        if service is None:
            return {"follow_up": "skipped (no reverse proxy service)"}

        details = {}
        if service.prepare_log_dir(self.config.caddy_log_dir):
            details["log_dir"] = str(self.config.caddy_log_dir)
        else:
            logger.warning(f"Could not prepare {self.config.caddy_log_dir} for Caddy logs")
            details["log_dir"] = "failed"

        if service.restart():
            details["follow_up"] = f"Caddy started with HTTPS for {self.domain}."
        else:
            logger.warning("Caddy restart failed -- check 'systemctl status caddy'")
            details["follow_up"] = "restart failed"
        return details

    def on_skip(self, decision: WriteDecision, existing: Optional[str]) -> Dict[str, str]:
        fragment = manual_fragment(self.domain, self.config.app_port)
        logger.warning(
            f"Please add a reverse_proxy block for {self.domain} manually:\n\n{fragment}"
        )
        return {"manual_fragment": fragment}

    def skip_reason(self, decision: WriteDecision) -> str:
        return f"Existing Caddyfile at {self.target} appears to be customized -- not overwriting."
