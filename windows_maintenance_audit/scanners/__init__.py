"""Optimization scanner entry points and registry helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
import importlib
import logging
import pkgutil
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping

from ..findings import OptimizationOpportunity
from ..host import HostProbe, SourceUnavailable

logger = logging.getLogger(__name__)


@dataclass
class ScannerReport:
    """Opportunities and counters emitted by a single scanner."""

    opportunities: List[OptimizationOpportunity] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=dict)
    skipped_checks: List[str] = field(default_factory=list)

    def run_check(self, name: str, check: Callable[[], None]) -> None:
        """Run ``check``; a data source failure skips only that check."""

        try:
            check()
        except (SourceUnavailable, OSError) as exc:
            logger.warning("Skipping check '%s': %s", name, exc)
            self.skipped_checks.append(name)

    def count(self, name: str, amount: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + amount


Scanner = Callable[[HostProbe], ScannerReport]


class ScannerRegistry:
    """Registry that stores available optimization scanners."""

    def __init__(self) -> None:
        self._scanners: Dict[str, Scanner] = {}

    @staticmethod
    def _normalize(name: str) -> str:
        if not name:
            raise ValueError("Scanner name must be a non-empty string")
        return name.strip().lower()

    def register(self, name: str) -> Callable[[Scanner], Scanner]:
        """Return a decorator that registers *name* for the wrapped scanner."""

        normalized = self._normalize(name)

        def decorator(func: Scanner) -> Scanner:
            if normalized in self._scanners and self._scanners[normalized] is not func:
                raise ValueError(f"Scanner '{name}' is already registered")
            self._scanners[normalized] = func
            return func

        return decorator

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self._normalize(name) in self._scanners

    def __getitem__(self, name: str) -> Scanner:
        return self._scanners[self._normalize(name)]

    def keys(self) -> Iterator[str]:
        return iter(self._scanners)

    def items(self) -> Iterator[tuple[str, Scanner]]:
        return iter(self._scanners.items())

    def as_mapping(self) -> Mapping[str, Scanner]:
        return MappingProxyType(self._scanners)


SCANNER_REGISTRY = ScannerRegistry()
register_scanner = SCANNER_REGISTRY.register


def get_scanners() -> Mapping[str, Scanner]:
    """Return a read-only mapping of registered scanners."""

    return SCANNER_REGISTRY.as_mapping()


def _import_scanner_modules() -> None:
    """Import modules that register scanners via decorators."""

    package_name = __name__
    package_paths = getattr(__spec__, "submodule_search_locations", None)
    if not package_paths:
        return

    for module_info in pkgutil.iter_modules(package_paths):
        module_name = module_info.name
        if module_name.startswith("_"):
            continue
        importlib.import_module(f"{package_name}.{module_name}")


_import_scanner_modules()

SCANNERS: Mapping[str, Scanner] = get_scanners()

__all__ = [
    "SCANNERS",
    "SCANNER_REGISTRY",
    "Scanner",
    "ScannerRegistry",
    "ScannerReport",
    "get_scanners",
    "register_scanner",
]
