"""Windows maintenance auditing toolkit."""

from __future__ import annotations

from .catalog import AppCategory, AppDefinition, load_catalog
from .config import AuditConfig, load_config
from .core import (
    OptimizationResults,
    collect_optimization_results,
    run_essential_apps_audit,
    run_optimization_audit,
)
from .findings import ImpactTier, OptimizationOpportunity
from .host import HostProbe, SourceUnavailable, WindowsHost
from .inventory import InstalledRecord, collect_installed_records
from .reconciliation import AuditResult, ReconciliationEngine
from .reports import write_reports
from .scoring import OptimizationScore, build_recommendations, compute_score
from .utils import AuditError

__all__ = [
    "AppCategory",
    "AppDefinition",
    "AuditConfig",
    "AuditError",
    "AuditResult",
    "HostProbe",
    "ImpactTier",
    "InstalledRecord",
    "OptimizationOpportunity",
    "OptimizationResults",
    "OptimizationScore",
    "ReconciliationEngine",
    "SourceUnavailable",
    "WindowsHost",
    "build_recommendations",
    "collect_installed_records",
    "collect_optimization_results",
    "compute_score",
    "load_catalog",
    "load_config",
    "run_essential_apps_audit",
    "run_optimization_audit",
    "write_reports",
]
