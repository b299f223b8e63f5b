"""Scanner profiles: short names for common selections of optimization scanners."""

from __future__ import annotations

from typing import Dict, Iterable, Set, Tuple

from .scanners import SCANNERS

PROFILE_SCANNER_MAP: Dict[str, Tuple[str, ...]] = {
    "full": ("startup", "ui", "registry", "disk", "network"),
    # Skips the registry, ui and network scanners
    "quick": ("startup", "disk"),
    "performance": ("startup", "ui", "disk"),
}


def expand_profiles(profiles: Iterable[str]) -> Set[str]:
    """Resolve profile names (any case) to the scanners they select.

    >>> sorted(expand_profiles(["Quick"]))
    ['disk', 'startup']
    """

    requested = {name.strip().lower() for name in profiles}
    unknown = sorted(name for name in requested if name not in PROFILE_SCANNER_MAP)
    if unknown:
        raise ValueError(
            f"No such scanner profile: {', '.join(unknown)} "
            f"(choose from {', '.join(sorted(PROFILE_SCANNER_MAP))})"
        )

    selected = {scanner for name in requested for scanner in PROFILE_SCANNER_MAP[name]}
    unregistered = sorted(selected - set(SCANNERS))
    if unregistered:
        # The map is static, so this only happens when a scanner module is renamed or removed
        raise RuntimeError(f"Scanner profile map names unregistered scanner(s): {', '.join(unregistered)}")
    return selected


__all__ = ["PROFILE_SCANNER_MAP", "expand_profiles"]
