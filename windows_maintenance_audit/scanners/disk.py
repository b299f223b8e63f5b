"""Disk space, temporary file and fragmentation checks."""
from __future__ import annotations

from typing import Tuple

from ..findings import ImpactTier, OptimizationOpportunity
from ..host import HostProbe
from . import ScannerReport, register_scanner

LOW_FREE_SPACE_PERCENT = 20
TEMP_SIZE_THRESHOLD = 100 * 1024 * 1024

TEMP_DIRECTORIES: Tuple[str, ...] = (
    r"%TEMP%",
    r"%SystemRoot%\Temp",
    r"%SystemRoot%\SoftwareDistribution\Download",
    r"%LOCALAPPDATA%\Microsoft\Windows\INetCache",
)

SOLID_STATE_MEDIA = {"ssd", "scm"}
SOLID_STATE_BUSES = {"nvme"}


def _format_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.0f} MB"


@register_scanner("disk")
def scan_disk(host: HostProbe) -> ScannerReport:
    """Flag low free space, large temp directories and fragmentation candidates."""

    report = ScannerReport()
    report.run_check("free_space", lambda: _check_free_space(host, report))
    for directory in TEMP_DIRECTORIES:
        report.run_check(
            f"temp:{directory}",
            lambda directory=directory: _check_temp_directory(host, report, directory),
        )
    report.run_check("fragmentation", lambda: _check_fragmentation(host, report))
    return report


def _check_free_space(host: HostProbe, report: ScannerReport) -> None:
    drive = host.system_drive()
    total, free = host.disk_usage(drive)
    if total <= 0:
        return
    free_percent = free / total * 100
    report.counters["system_free_percent"] = int(free_percent)
    if free_percent >= LOW_FREE_SPACE_PERCENT:
        return
    report.opportunities.append(
        OptimizationOpportunity(
            category="Disk",
            type="Low Disk Space",
            description=(
                f"System drive {drive} has only {free_percent:.1f}% free space "
                f"(below {LOW_FREE_SPACE_PERCENT}%)"
            ),
            impact=ImpactTier.HIGH,
            estimated_savings="Prevents slowdowns from paging and update failures",
            target=drive,
        )
    )


def _check_temp_directory(host: HostProbe, report: ScannerReport, directory: str) -> None:
    path = host.expand_path(directory)
    if "%" in path:
        # Environment variable not defined on this host
        return
    size = host.directory_size(path)
    report.count("temp_bytes", size)
    if size <= TEMP_SIZE_THRESHOLD:
        return
    report.opportunities.append(
        OptimizationOpportunity(
            category="Disk",
            type="Temporary Files",
            description=f"Temporary directory {path} holds {_format_mb(size)}",
            impact=ImpactTier.MEDIUM,
            estimated_savings=f"Up to {_format_mb(size)} of disk space",
            target=path,
        )
    )


def _check_fragmentation(host: HostProbe, report: ScannerReport) -> None:
    for disk in host.physical_disks():
        media_type = str(disk.get("media_type") or "").lower()
        bus_type = str(disk.get("bus_type") or "").lower()
        if bus_type in {"usb", "sd", "mmc"}:
            continue
        if media_type in SOLID_STATE_MEDIA or bus_type in SOLID_STATE_BUSES:
            continue
        name = str(disk.get("name") or disk.get("device_id") or "disk")
        report.count("rotational_disks")
        report.opportunities.append(
            OptimizationOpportunity(
                category="Disk",
                type="Defragmentation",
                description=f"Fixed drive '{name}' is not solid-state and may benefit from defragmentation",
                impact=ImpactTier.LOW,
                estimated_savings="Faster sequential file access",
                target=name,
            )
        )


__all__ = ["LOW_FREE_SPACE_PERCENT", "TEMP_DIRECTORIES", "TEMP_SIZE_THRESHOLD", "scan_disk"]
