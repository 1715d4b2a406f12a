#!/usr/bin/env python3
"""
Addon autodiscovery and loading system for the Snakk installer.
Scans the addons package, matches triggers against the run context,
and loads artifact generators in priority order.

Zero external dependencies -- Python 3.9+ stdlib only.
"""

import importlib
import logging
import pkgutil
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .config import InstallerConfig
from .models import AllocationPlan, MemoryBudget, SkippedAddon, TuningParameterSet
from .safe_write import WritePolicy


logger = logging.getLogger(__name__)

ADDONS_PACKAGE = "snakk_installer.addons"

# Characters that would break out of a Caddyfile site address
_UNSAFE_DOMAIN = re.compile(r"[\s{}]")


@dataclass(frozen=True)
class AddonContext:
    """Everything an artifact generator may read."""

    config: InstallerConfig
    budget: MemoryBudget
    plan: AllocationPlan
    tuning: TuningParameterSet
    domain: str = ""
    proxy_available: bool = True
    proxy_service: Optional[Any] = None

    @property
    def domain_is_valid(self) -> bool:
        return bool(self.domain) and not _UNSAFE_DOMAIN.search(self.domain)


class AddonSpec:
    """Metadata for a discovered addon."""

    def __init__(
        self,
        name: str,
        module: Any,
        triggers: Dict[str, Any],
        policy: WritePolicy,
        priority: int = 10,
        description: str = "",
    ):
        self.name = name
        self.module = module
        self.triggers = triggers
        self.policy = policy
        self.priority = priority
        self.description = description

    def __repr__(self) -> str:
        return f"AddonSpec(name={self.name}, priority={self.priority})"


class AddonLoader:
    """
    Discovers and matches artifact addons.

    Usage:
        loader = AddonLoader()
        matched, skipped = loader.match_addons(context)
        generator = loader.create_generator(matched[0], context)
    """

    def __init__(self, package: str = ADDONS_PACKAGE):
        self.package = package

    def discover_addons(self) -> List[AddonSpec]:
        """
        Discover all addons in the addons package.
        Returns list of AddonSpec objects sorted by priority.
        """
        package = importlib.import_module(self.package)
        discovered = []

        for module_info in pkgutil.iter_modules(package.__path__):
            if module_info.name.startswith("_"):
                continue

            module = importlib.import_module(f"{self.package}.{module_info.name}")
            meta = getattr(module, "ADDON_META", None)
            if meta is None or not hasattr(module, "AddonGenerator"):
                logger.warning(f"Addon {module_info.name} has no recognized interface")
                continue

            discovered.append(
                AddonSpec(
                    name=meta.get("name", module_info.name),
                    module=module,
                    triggers=meta.get("triggers", {}),
                    policy=meta.get("policy", WritePolicy.DERIVED),
                    priority=meta.get("priority", 50),
                    description=meta.get("description", ""),
                )
            )

        # Sort by priority (lower = earlier)
        return sorted(discovered, key=lambda x: x.priority)

    def match_addons(
        self, context: AddonContext
    ) -> Tuple[List[AddonSpec], List[SkippedAddon]]:
        """
        Match addons against the run context.

        Returns:
            (matched specs sorted by priority, skipped addons with the reason)
        """
        matched = []
        skipped = []

        for spec in self.discover_addons():
            if spec.triggers.get("default", False):
                matched.append(spec)
                continue

            reason = None
            for attribute, message in spec.triggers.get("requires", {}).items():
                if not getattr(context, attribute, None):
                    reason = message
                    break

            if reason is None:
                matched.append(spec)
            else:
                skipped.append(SkippedAddon(name=spec.name, reason=reason))

        return matched, skipped

    def create_generator(self, spec: AddonSpec, context: AddonContext):
        """Instantiate the addon's generator for this run."""
        return spec.module.AddonGenerator(context)


if __name__ == "__main__":
    # Test addon discovery
    loader = AddonLoader()
    print("Discovered addons:")
    for spec in loader.discover_addons():
        print(f"  - {spec.name} (priority: {spec.priority}, policy: {spec.policy.value})")
        print(f"    Triggers: {spec.triggers}")
