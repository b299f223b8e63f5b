"""Startup program and service optimization checks."""
from __future__ import annotations

from typing import Iterable, Tuple

from ..findings import ImpactTier, OptimizationOpportunity
from ..host import HostProbe
from . import ScannerReport, register_scanner

# Startup entries that rarely need to launch at sign-in.
NON_ESSENTIAL_STARTUP: Tuple[str, ...] = (
    "adobe",
    "ccleaner",
    "cortana",
    "discord",
    "dropbox",
    "epic games",
    "googledrivefs",
    "itunes",
    "onedrive",
    "skype",
    "spotify",
    "steam",
    "teams",
    "zoom",
)
# Never flag security, audio or input related entries.
SAFE_STARTUP: Tuple[str, ...] = (
    "antivirus",
    "audio",
    "defender",
    "realtek",
    "securityhealth",
    "synaptics",
    "windows security",
)

NON_ESSENTIAL_SERVICES: Tuple[str, ...] = (
    "diagtrack",
    "dmwappushservice",
    "fax",
    "mapsbroker",
    "remoteregistry",
    "retaildemo",
    "sysmain",
    "wsearch",
    "xblauthmanager",
    "xblgamesave",
    "xboxgipsvc",
    "xboxnetapisvc",
)
PROTECTED_SERVICES: Tuple[str, ...] = (
    "audio",
    "bfe",
    "cryptsvc",
    "defender",
    "eventlog",
    "mpssvc",
    "rpcss",
    "sense",
    "wuauserv",
    "windefend",
)


def _contains_any(value: str, keywords: Iterable[str]) -> bool:
    lowered = value.lower()
    return any(keyword in lowered for keyword in keywords)


@register_scanner("startup")
def scan_startup(host: HostProbe) -> ScannerReport:
    """Flag non-essential startup programs and automatic services."""

    report = ScannerReport()
    report.run_check("startup_programs", lambda: _check_startup_programs(host, report))
    report.run_check("startup_services", lambda: _check_services(host, report))
    return report


def _check_startup_programs(host: HostProbe, report: ScannerReport) -> None:
    for entry in host.startup_commands():
        name = str(entry.get("name") or "")
        if not name:
            continue
        report.count("startup_programs")
        if _contains_any(name, SAFE_STARTUP) or not _contains_any(name, NON_ESSENTIAL_STARTUP):
            continue
        report.count("non_essential_startup_programs")
        location = str(entry.get("location") or "")
        report.opportunities.append(
            OptimizationOpportunity(
                category="Startup",
                type="Startup Program",
                description=f"Disable non-essential startup program '{name}'"
                + (f" ({location})" if location else ""),
                impact=ImpactTier.MEDIUM,
                estimated_savings="2-5 seconds faster sign-in",
                target=name,
            )
        )


def _check_services(host: HostProbe, report: ScannerReport) -> None:
    for service in host.services():
        name = str(service.get("name") or "")
        display_name = str(service.get("display_name") or name)
        if str(service.get("start_type") or "").lower() != "automatic":
            continue
        if str(service.get("status") or "").lower() != "running":
            continue
        report.count("automatic_services")
        label = f"{name} {display_name}"
        if _contains_any(label, PROTECTED_SERVICES) or not _contains_any(label, NON_ESSENTIAL_SERVICES):
            continue
        report.count("non_essential_services")
        report.opportunities.append(
            OptimizationOpportunity(
                category="Startup",
                type="Service",
                description=f"Set non-essential service '{display_name}' to manual start",
                impact=ImpactTier.LOW,
                estimated_savings="Reduced memory use and faster boot",
                target=name,
            )
        )


__all__ = ["NON_ESSENTIAL_SERVICES", "NON_ESSENTIAL_STARTUP", "scan_startup"]
