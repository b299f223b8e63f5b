"""Network adapter and DNS checks."""
from __future__ import annotations

from typing import FrozenSet

from ..findings import ImpactTier, OptimizationOpportunity
from ..host import HostProbe, SourceUnavailable
from . import ScannerReport, register_scanner

RSS_SPEED_THRESHOLD_BPS = 1_000_000_000

FAST_PUBLIC_DNS: FrozenSet[str] = frozenset(
    {"1.1.1.1", "1.0.0.1", "8.8.8.8", "8.8.4.4", "9.9.9.9", "149.112.112.112"}
)


@register_scanner("network")
def scan_network(host: HostProbe) -> ScannerReport:
    """Flag fast adapters without receive-side scaling and slow DNS resolvers."""

    report = ScannerReport()
    report.run_check("receive_side_scaling", lambda: _check_rss(host, report))
    report.run_check("dns_servers", lambda: _check_dns(host, report))
    return report


def _check_rss(host: HostProbe, report: ScannerReport) -> None:
    for adapter in host.network_adapters():
        name = str(adapter.get("name") or "")
        speed = int(adapter.get("link_speed_bps") or 0)
        report.count("adapters")
        if not name or speed <= RSS_SPEED_THRESHOLD_BPS:
            continue
        try:
            enabled = host.rss_enabled(name)
        except SourceUnavailable:
            # Virtual and loopback adapters have no RSS settings
            continue
        if enabled is None or enabled:
            continue
        report.count("rss_disabled")
        report.opportunities.append(
            OptimizationOpportunity(
                category="Network",
                type="Receive Side Scaling",
                description=f"Receive-side scaling is disabled on {speed // 1_000_000} Mbps adapter '{name}'",
                impact=ImpactTier.MEDIUM,
                estimated_savings="Better throughput and lower CPU load under network traffic",
                target=name,
            )
        )


def _check_dns(host: HostProbe, report: ScannerReport) -> None:
    servers = [server.strip() for server in host.dns_servers() if server and server.strip()]
    report.counters["dns_servers"] = len(servers)
    if not servers or any(server in FAST_PUBLIC_DNS for server in servers):
        return
    report.opportunities.append(
        OptimizationOpportunity(
            category="Network",
            type="DNS",
            description="No fast public DNS resolver configured (" + ", ".join(servers) + ")",
            impact=ImpactTier.LOW,
            estimated_savings="Faster name resolution",
            target="DNS",
        )
    )


__all__ = ["FAST_PUBLIC_DNS", "RSS_SPEED_THRESHOLD_BPS", "scan_network"]
