"""Core orchestration utilities for the Windows maintenance audit."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .cache import APPS_RESULT_NAME, OPTIMIZATION_RESULT_NAME, ResultCache
from .catalog import AppDefinition, load_catalog
from .config import AuditConfig
from .findings import ImpactTier, OptimizationOpportunity
from .host import HostProbe
from .inventory import collect_installed_records
from .profiles import expand_profiles
from .reconciliation import AuditResult, MissingApp, ReconciliationEngine
from .scanners import SCANNERS, ScannerReport
from .scoring import OptimizationScore, build_recommendations, compute_score
from .utils import AuditError

logger = logging.getLogger(__name__)

IMPACT_ORDER = {
    ImpactTier.HIGH: 0,
    ImpactTier.MEDIUM: 1,
    ImpactTier.LOW: 2,
}


def _opportunity_sort_key(opportunity: OptimizationOpportunity) -> tuple[int, str]:
    """Return a tuple used to order opportunities consistently."""

    return (IMPACT_ORDER.get(ImpactTier(opportunity.impact), len(IMPACT_ORDER)), opportunity.category)


@dataclass
class OptimizationResults:
    """Aggregated opportunities, counters and score from an optimization run."""

    timestamp: str
    scanners: List[str]
    opportunities: List[OptimizationOpportunity]
    score: OptimizationScore
    recommendations: List[str]
    counters: Dict[str, Dict[str, int]] = field(default_factory=dict)
    skipped_checks: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "scanners": list(self.scanners),
            "opportunities": [item.to_dict() for item in self.opportunities],
            "score": self.score.to_dict(),
            "recommendations": list(self.recommendations),
            "counters": {name: dict(values) for name, values in self.counters.items()},
            "skipped_checks": {name: list(checks) for name, checks in self.skipped_checks.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OptimizationResults":
        return cls(
            timestamp=str(data["timestamp"]),
            scanners=[str(name) for name in data.get("scanners") or []],
            opportunities=[OptimizationOpportunity.from_dict(item) for item in data.get("opportunities") or []],
            score=OptimizationScore(**data["score"]),
            recommendations=[str(text) for text in data.get("recommendations") or []],
            counters={name: dict(values) for name, values in (data.get("counters") or {}).items()},
            skipped_checks={name: list(checks) for name, checks in (data.get("skipped_checks") or {}).items()},
        )


def collect_optimization_results(
    host: HostProbe,
    scanners: Iterable[str],
    *,
    clock: Optional[Callable[[], datetime]] = None,
) -> OptimizationResults:
    """Run all requested scanners and return opportunities with a score."""

    normalized_scanners: List[str] = []
    for scanner in scanners:
        key = scanner.lower()
        if key not in SCANNERS:
            valid = ", ".join(sorted(SCANNERS))
            raise ValueError(f"Unknown scanner '{scanner}'. Valid scanners: {valid}")
        normalized_scanners.append(key)

    opportunities: List[OptimizationOpportunity] = []
    counters: Dict[str, Dict[str, int]] = {}
    skipped: Dict[str, List[str]] = {}
    selected = list(dict.fromkeys(normalized_scanners))
    for name in selected:
        logger.info("Running %s optimization scanner", name)
        try:
            report: ScannerReport = SCANNERS[name](host)
        except Exception as exc:
            logger.exception("Optimization scanner '%s' failed", name)
            raise AuditError(f"Optimization scanner '{name}' failed: {exc}") from exc
        opportunities.extend(report.opportunities)
        counters[name] = dict(report.counters)
        if report.skipped_checks:
            skipped[name] = list(report.skipped_checks)
        logger.info("%s scanner found %d opportunit(ies)", name, len(report.opportunities))

    ordered = sorted(opportunities, key=_opportunity_sort_key)
    score = compute_score(ordered)
    now = (clock or (lambda: datetime.now(timezone.utc)))()
    return OptimizationResults(
        timestamp=now.isoformat(),
        scanners=selected,
        opportunities=ordered,
        score=score,
        recommendations=build_recommendations(ordered),
        counters=counters,
        skipped_checks=skipped,
    )


def _cache_for(config: AuditConfig, cache: Optional[ResultCache]) -> ResultCache:
    if cache is not None:
        return cache
    return ResultCache(config.data_dir, config.cache_minutes, enabled=config.use_cache)


def _persist(config: AuditConfig, cache: ResultCache, name: str, payload: Dict[str, Any]) -> None:
    if config.dry_run:
        logger.info("Dry run: not writing %s", cache.path_for(name))
        return
    cache.store(name, payload)


def run_essential_apps_audit(
    config: AuditConfig,
    host: HostProbe,
    *,
    catalog: Optional[Sequence[AppDefinition]] = None,
    cache: Optional[ResultCache] = None,
) -> AuditResult:
    """Run (or reuse a fresh cached) essential-apps audit and persist the result."""

    if catalog is None:
        try:
            catalog = load_catalog(config.catalog_path)
        except (OSError, ValueError) as exc:
            raise AuditError(f"Cannot load essential-apps catalog: {exc}") from exc

    cache = _cache_for(config, cache)
    cache_key = _apps_cache_key(config, catalog)
    cached = cache.load(APPS_RESULT_NAME)
    if cached and cached.get("cache_key") == cache_key:
        try:
            return AuditResult.from_dict(cached)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed cached essential-apps result: %s", exc)

    engine = ReconciliationEngine(
        catalog_provider=lambda: catalog,
        record_collector=lambda: collect_installed_records(host),
        tool_available=host.tool_available,
        registry_probe=host.registry_key_exists,
    )
    result = engine.run(config.category, include_installed=config.include_installed)
    payload = result.to_dict()
    payload["cache_key"] = cache_key
    _persist(config, cache, APPS_RESULT_NAME, payload)
    return result


def _apps_cache_key(config: AuditConfig, catalog: Sequence[AppDefinition]) -> Dict[str, Any]:
    """Everything an essential-apps result depends on besides the host itself."""

    # Lists rather than tuples so the key compares equal after a JSON round trip
    return {
        "category": config.category or "All",
        "include_installed": bool(config.include_installed),
        "catalog": [
            [app.category.value, app.name, app.package_id_a, app.package_id_b] for app in catalog
        ],
    }


def run_optimization_audit(
    config: AuditConfig,
    host: HostProbe,
    *,
    cache: Optional[ResultCache] = None,
) -> OptimizationResults:
    """Run (or reuse a fresh cached) optimization audit and persist the result."""

    selected = expand_profiles(config.profiles)
    scanners = [name for name in SCANNERS if name in selected]

    cache = _cache_for(config, cache)
    cached = cache.load(OPTIMIZATION_RESULT_NAME)
    if cached and cached.get("scanners") == scanners:
        try:
            return OptimizationResults.from_dict(cached)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed cached optimization result: %s", exc)

    results = collect_optimization_results(host, scanners)
    _persist(config, cache, OPTIMIZATION_RESULT_NAME, results.to_dict())
    return results


def print_opportunities(opportunities: Iterable[OptimizationOpportunity]) -> None:
    """Pretty-print opportunities to stdout."""

    opportunities = list(opportunities)
    if not opportunities:
        print("No optimization opportunities detected.")
        return

    header = f"{'Category':<10} {'Impact':<8} {'Target':<40} Description"
    print(header)
    print("-" * len(header))
    for item in opportunities:
        target = (item.target[:37] + "...") if len(item.target) > 40 else item.target
        print(f"{item.category:<10} {ImpactTier(item.impact).value:<8} {target:<40} {item.description}")


def print_app_audit(result: AuditResult) -> None:
    """Pretty-print the essential-apps summary and missing applications to stdout."""

    summary = result.summary
    print(
        f"Essential apps ({result.category}): {summary.installed_count}/{result.total_apps} installed "
        f"({summary.completion_percentage}% complete), {summary.skipped_count} skipped"
    )
    if not result.missing:
        print("All essential applications are installed.")
        return

    header = f"{'Application':<36} {'Category':<12} {'Priority':<8} Method"
    print(header)
    print("-" * len(header))
    for item in result.missing:
        print(f"{item.name[:36]:<36} {item.category:<12} {item.priority:<8} {item.recommended_method}")


def export_opportunities_to_excel(opportunities: Iterable[OptimizationOpportunity], path: str) -> str:
    """Write *opportunities* to an Excel workbook located at *path*."""

    headers = ("Category", "Type", "Impact", "Target", "Description", "Estimated Savings")
    rows = (
        (
            item.category,
            item.type,
            ImpactTier(item.impact).value,
            item.target,
            item.description,
            item.estimated_savings,
        )
        for item in opportunities
    )
    return _export_rows_to_excel(
        rows,
        headers,
        path,
        sheet_title="Optimizations",
        purpose="optimization opportunities",
    )


def export_missing_apps_to_excel(missing: Iterable[MissingApp], path: str) -> str:
    """Write *missing* applications to an Excel workbook located at *path*."""

    headers = ("Application", "Category", "Priority", "Method", "Winget ID", "Chocolatey ID")
    rows = (
        (
            item.name,
            item.category,
            item.priority,
            item.recommended_method,
            item.winget_id or "",
            item.chocolatey_id or "",
        )
        for item in missing
    )
    return _export_rows_to_excel(
        rows,
        headers,
        path,
        sheet_title="Missing Apps",
        purpose="missing applications",
    )


def _export_rows_to_excel(
    rows: Iterable[Sequence[object]],
    headers: Sequence[str],
    path: str,
    *,
    sheet_title: str,
    purpose: str,
) -> str:
    """Write ``rows`` with ``headers`` to an Excel sheet using :mod:`openpyxl`."""

    try:
        from openpyxl import Workbook
        from openpyxl.utils import get_column_letter
    except ImportError as exc:  # pragma: no cover - dependency missing during tests
        raise RuntimeError(
            "The 'openpyxl' package is required to export "
            f"{purpose} to Excel. Install it with 'pip install openpyxl'."
        ) from exc

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title

    sheet.append(list(headers))
    column_widths = [len(header) for header in headers]

    for row in rows:
        values = list(row)
        sheet.append(values)
        for idx, value in enumerate(values):
            column_widths[idx] = max(column_widths[idx], len(str(value)))

    for idx, width in enumerate(column_widths, start=1):
        column_letter = get_column_letter(idx)
        sheet.column_dimensions[column_letter].width = min(width + 2, 60)

    try:
        workbook.save(path)
    except OSError as exc:
        raise RuntimeError(f"Cannot write {purpose} workbook to {path}: {exc}") from exc
    return path


__all__ = [
    "OptimizationResults",
    "collect_optimization_results",
    "export_missing_apps_to_excel",
    "export_opportunities_to_excel",
    "print_app_audit",
    "print_opportunities",
    "run_essential_apps_audit",
    "run_optimization_audit",
]
