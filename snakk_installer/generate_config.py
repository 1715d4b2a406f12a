#!/usr/bin/env python3
"""
Configuration pass for the Snakk installer.

Measures host memory, plans the container split, derives PostgreSQL tuning
and writes the generated artifacts through the safe-write guard. Returns a
GenerationResult; fatal conditions are reported in ``result.error`` rather
than raised.

Zero external dependencies -- uses only Python stdlib.
"""

import logging
from typing import Any, List, Optional, Tuple, Union

from . import allocation_planner, db_tuning
from .addon_loader import AddonContext, AddonLoader
from .config import InstallerConfig
from .errors import InstallerError
from .memory_probe import measure_budget
from .models import ArtifactReport, GenerationResult, WriteDecision
from .safe_write import WritePolicy, decide, ensure_writable_dirs, read_existing, write_artifact


logger = logging.getLogger(__name__)


def _prepare_addons(
    loader: AddonLoader, matched, context: AddonContext
) -> List[Tuple[Any, Any, Optional[str]]]:
    """
    Instantiate generators and read every existing target before anything is
    written, so an unusable path aborts the pass with no artifact on disk.
    """
    prepared = []
    for spec in matched:
        generator = loader.create_generator(spec, context)
        # Derived files are never read back
        existing = None if spec.policy is WritePolicy.DERIVED else read_existing(generator.target)
        prepared.append((spec, generator, existing))

    target_dirs = []
    for _, generator, _ in prepared:
        if generator.target.parent not in target_dirs:
            target_dirs.append(generator.target.parent)
    ensure_writable_dirs(target_dirs)
    return prepared


def _apply_addon(spec, generator, existing: Optional[str]) -> ArtifactReport:
    target = generator.target
    decision = decide(spec.policy, existing)

    if decision is WriteDecision.WRITE:
        write_artifact(generator.render())
        details = generator.after_write()
        reason = generator.write_reason
        logger.info(reason)
    else:
        details = generator.on_skip(decision, existing)
        reason = generator.skip_reason(decision)
        if decision is WriteDecision.SKIP_CUSTOMIZED:
            logger.warning(reason)
        else:
            logger.info(reason)

    return ArtifactReport(
        name=spec.name, path=target, decision=decision, reason=reason, details=details
    )


def generate_configuration(
    config: InstallerConfig,
    total_mb: Optional[int] = None,
    override: Union[str, int, None] = None,
    domain: str = "",
    proxy_service=None,
    loader: Optional[AddonLoader] = None,
) -> GenerationResult:
    """
    Run the configuration pass once.

    Args:
        config: Installer settings (paths, port)
        total_mb: Host memory in MB; probed when omitted
        override: Operator memory override (MB for both containers)
        domain: Domain for the Caddy reverse proxy; empty skips it
        proxy_service: ReverseProxyService for post-write follow-up, or None
        loader: AddonLoader to use (defaults to the bundled addons)

    Returns:
        GenerationResult with a report per artifact
    """
    loader = loader or AddonLoader()
    domain = (domain or "").strip()
    budget = plan = tuning = None
    reports: List[ArtifactReport] = []
    skipped = []

    try:
        budget = measure_budget(total_mb)
        plan = allocation_planner.plan(budget, override)
        tuning = db_tuning.synthesize(plan.db_mem_mb)
        logger.info(
            f"Memory allocation: PostgreSQL {plan.db_mem_mb} MB, Snakk {plan.app_mem_mb} MB "
            f"({plan.source.value})"
        )

        ensure_writable_dirs([config.docker_dir])

        proxy_available = proxy_service is None or proxy_service.is_installed()
        context = AddonContext(
            config=config,
            budget=budget,
            plan=plan,
            tuning=tuning,
            domain=domain,
            proxy_available=proxy_available,
            proxy_service=proxy_service,
        )

        if domain and not context.domain_is_valid:
            logger.warning(f"Invalid domain {domain!r}: whitespace and braces are not allowed")

        matched, skipped = loader.match_addons(context)
        for skip in skipped:
            logger.info(skip.reason)

        for spec, generator, existing in _prepare_addons(loader, matched, context):
            reports.append(_apply_addon(spec, generator, existing))

    except InstallerError as e:
        logger.error(str(e))
        return GenerationResult(
            budget=budget,
            plan=plan,
            tuning=tuning,
            reports=tuple(reports),
            skipped=tuple(skipped),
            error=str(e),
        )

    return GenerationResult(
        budget=budget,
        plan=plan,
        tuning=tuning,
        reports=tuple(reports),
        skipped=tuple(skipped),
    )
