"""Registry housekeeping checks."""
from __future__ import annotations

from typing import Tuple

from ..findings import ImpactTier, OptimizationOpportunity
from ..host import HostProbe
from . import ScannerReport, register_scanner

HISTORY_THRESHOLD = 100

# (check name, key path, description of what accumulates there)
HISTORY_COLLECTIONS: Tuple[Tuple[str, str, str], ...] = (
    (
        "recent_documents",
        r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\RecentDocs",
        "recent document history",
    ),
    (
        "user_assist",
        r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\UserAssist",
        "program usage history",
    ),
    (
        "error_reporting",
        r"HKLM\SOFTWARE\Microsoft\Windows\Windows Error Reporting\LocalDumps",
        "error reporting entries",
    ),
)

PREFETCH_KEY = (
    r"HKLM\SYSTEM\CurrentControlSet\Control\Session Manager\Memory Management\PrefetchParameters"
)


@register_scanner("registry")
def scan_registry(host: HostProbe) -> ScannerReport:
    """Flag oversized diagnostic history and a disabled prefetcher."""

    report = ScannerReport()
    for check, key_path, label in HISTORY_COLLECTIONS:
        report.run_check(
            check,
            lambda key_path=key_path, label=label: _check_history(host, report, key_path, label),
        )
    report.run_check("prefetch", lambda: _check_prefetch(host, report))
    return report


def _check_history(host: HostProbe, report: ScannerReport, key_path: str, label: str) -> None:
    entries = len(host.registry_subkeys(key_path)) + len(host.registry_values(key_path))
    report.count("history_entries", entries)
    if entries <= HISTORY_THRESHOLD:
        return
    report.opportunities.append(
        OptimizationOpportunity(
            category="Registry",
            type="History Cleanup",
            description=f"Clear {entries} {label} (threshold {HISTORY_THRESHOLD})",
            impact=ImpactTier.LOW,
            estimated_savings="Smaller registry hives and faster Explorer lookups",
            target=key_path,
        )
    )


def _check_prefetch(host: HostProbe, report: ScannerReport) -> None:
    value = host.registry_value(PREFETCH_KEY, "EnablePrefetcher")
    if value is None or str(value) != "0":
        return
    report.count("prefetch_disabled")
    report.opportunities.append(
        OptimizationOpportunity(
            category="Registry",
            type="Prefetch",
            description="Application prefetching is disabled",
            impact=ImpactTier.MEDIUM,
            estimated_savings="Faster application launch times",
            target=f"{PREFETCH_KEY}\\EnablePrefetcher",
        )
    )


__all__ = ["HISTORY_COLLECTIONS", "HISTORY_THRESHOLD", "scan_registry"]
