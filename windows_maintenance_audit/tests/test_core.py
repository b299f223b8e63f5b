"""Tests for audit orchestration, profiles and the result cache."""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone

import pytest

from windows_maintenance_audit import core
from windows_maintenance_audit.cache import APPS_RESULT_NAME, OPTIMIZATION_RESULT_NAME, ResultCache
from windows_maintenance_audit.catalog import AppCategory, AppDefinition
from windows_maintenance_audit.config import AuditConfig
from windows_maintenance_audit.findings import ImpactTier, OptimizationOpportunity
from windows_maintenance_audit.inventory import UNINSTALL_ROOTS
from windows_maintenance_audit.profiles import PROFILE_SCANNER_MAP, expand_profiles
from windows_maintenance_audit.scanners import SCANNERS, ScannerReport
from windows_maintenance_audit.utils import AuditError


CATALOG = (
    AppDefinition("7-Zip", AppCategory.SYSTEM, "File archiver", package_id_a="7zip.7zip"),
    AppDefinition("VLC Media Player", AppCategory.MEDIA, "Media player", package_id_a="VideoLAN.VLC"),
)


def _registry_with_7zip():
    return {f"{UNINSTALL_ROOTS[0]}\\7-Zip": {"DisplayName": "7-Zip 23.01 (x64)", "DisplayVersion": "23.01"}}


def test_expand_profiles_unions_scanners() -> None:
    """Profiles are case-insensitive and combine their scanners."""

    assert expand_profiles(["QUICK"]) == {"startup", "disk"}
    assert expand_profiles(["quick", "performance"]) == {"startup", "ui", "disk"}
    assert expand_profiles(["full"]) == set(SCANNERS)


def test_expand_profiles_rejects_unknown_profile() -> None:
    """Unknown profile names are reported with the valid options."""

    with pytest.raises(ValueError) as excinfo:
        expand_profiles(["turbo"])

    assert "turbo" in str(excinfo.value)


def test_expand_profiles_detects_unregistered_scanner(monkeypatch) -> None:
    """A profile referencing an unregistered scanner is a programming error."""

    monkeypatch.setitem(PROFILE_SCANNER_MAP, "broken", ("startup", "gpu"))

    with pytest.raises(RuntimeError):
        expand_profiles(["broken"])


def test_collect_rejects_unknown_scanner(make_host) -> None:
    """Requesting a scanner that does not exist raises ValueError."""

    with pytest.raises(ValueError):
        core.collect_optimization_results(make_host(), ["startup", "gpu"])


def test_collect_orders_by_impact_and_scores(make_host) -> None:
    """Results are sorted high impact first and scored from all scanners."""

    host = make_host(
        startup=[{"name": "OneDrive"}],
        disk_usage={"C:\\": (100, 5)},
        dns=["10.0.0.1"],
    )
    fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)

    results = core.collect_optimization_results(host, ["network", "disk", "startup", "disk"], clock=lambda: fixed)

    impacts = [ImpactTier(item.impact) for item in results.opportunities]
    assert results.scanners == ["network", "disk", "startup"]
    assert impacts == sorted(impacts, key=core.IMPACT_ORDER.__getitem__)
    assert impacts[0] is ImpactTier.HIGH
    assert results.score.overall == 100 - 15 - 8 - 3
    assert results.timestamp == fixed.isoformat()
    assert "receive_side_scaling" not in results.skipped_checks.get("network", [])


def test_scanner_exception_becomes_audit_error(make_host, monkeypatch) -> None:
    """An unexpected scanner failure aborts the optimization audit."""

    def broken(host):
        raise ZeroDivisionError("bad counter")

    monkeypatch.setattr(core, "SCANNERS", {"broken": broken, "startup": SCANNERS["startup"]})

    with pytest.raises(AuditError) as excinfo:
        core.collect_optimization_results(make_host(), ["startup", "broken"])

    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)


def test_skipped_checks_are_reported_per_scanner(make_host, monkeypatch) -> None:
    """Checks skipped by a scanner are carried into the aggregate result."""

    def partial(host):
        report = ScannerReport()
        report.skipped_checks.append("something")
        report.opportunities.append(
            OptimizationOpportunity("Test", "Check", "desc", ImpactTier.LOW, "", "target")
        )
        return report

    monkeypatch.setattr(core, "SCANNERS", {"partial": partial})

    results = core.collect_optimization_results(make_host(), ["partial"])

    assert results.skipped_checks == {"partial": ["something"]}
    assert results.recommendations[0].startswith("Consider 1 low-impact")


def test_apps_audit_persists_and_reuses_cache(make_host, tmp_path) -> None:
    """A fresh cached result is returned without collecting again."""

    config = AuditConfig(data_dir=tmp_path)
    host = make_host(registry=_registry_with_7zip())

    first = core.run_essential_apps_audit(config, host, catalog=CATALOG)
    assert (tmp_path / f"{APPS_RESULT_NAME}.json").exists()
    assert first.summary.installed_count == 1
    assert [item.name for item in first.missing] == ["VLC Media Player"]

    second_host = make_host()
    second = core.run_essential_apps_audit(config, second_host, catalog=CATALOG)

    assert second.summary == first.summary
    assert second_host.calls == []


def test_apps_audit_ignores_cache_for_other_category(make_host, tmp_path) -> None:
    """A cached result for a different category filter is not reused."""

    host = make_host(registry=_registry_with_7zip())
    core.run_essential_apps_audit(AuditConfig(data_dir=tmp_path), host, catalog=CATALOG)

    media = core.run_essential_apps_audit(AuditConfig(data_dir=tmp_path, category="Media"), host, catalog=CATALOG)

    assert media.category == "Media"
    assert media.total_apps == 1


def test_apps_audit_ignores_cache_without_installed_items(make_host, tmp_path) -> None:
    """A result cached with installed items left out is not reused when they are wanted."""

    host = make_host(registry=_registry_with_7zip())
    core.run_essential_apps_audit(AuditConfig(data_dir=tmp_path, include_installed=False), host, catalog=CATALOG)

    second = core.run_essential_apps_audit(AuditConfig(data_dir=tmp_path), host, catalog=CATALOG)

    assert [item.name for item in second.installed] == ["7-Zip"]
    assert second.summary.installed_count == len(second.installed)


def test_apps_audit_ignores_cache_for_other_catalog(make_host, tmp_path) -> None:
    """Changing the catalog invalidates the cached result."""

    host = make_host(registry=_registry_with_7zip())
    config = AuditConfig(data_dir=tmp_path)
    core.run_essential_apps_audit(config, host, catalog=CATALOG[:1])

    second = core.run_essential_apps_audit(config, host, catalog=CATALOG)

    assert second.total_apps == 2
    assert [item.name for item in second.missing] == ["VLC Media Player"]


def test_apps_audit_ignores_cache_for_other_catalog_file(make_host, tmp_path) -> None:
    """A --catalog file with different entries is not answered from the default catalog's cache."""

    host = make_host(registry=_registry_with_7zip())
    core.run_essential_apps_audit(AuditConfig(data_dir=tmp_path / "data"), host)
    catalog_path = tmp_path / "catalog.yaml"
    catalog_path.write_text("apps:\n  - name: 7-Zip\n    category: System\n", encoding="utf-8")

    second = core.run_essential_apps_audit(AuditConfig(data_dir=tmp_path / "data", catalog_path=catalog_path), host)

    assert second.total_apps == 1
    assert second.summary.installed_count == 1


def test_apps_audit_missing_catalog_file_is_audit_error(make_host, tmp_path) -> None:
    """An unreadable catalog aborts the audit with AuditError."""

    config = AuditConfig(data_dir=tmp_path, catalog_path=tmp_path / "absent.yaml")

    with pytest.raises(AuditError):
        core.run_essential_apps_audit(config, make_host())


def test_apps_audit_dry_run_writes_nothing(make_host, tmp_path) -> None:
    """Dry runs never create cache files."""

    config = AuditConfig(data_dir=tmp_path / "session", dry_run=True)

    result = core.run_essential_apps_audit(config, make_host(), catalog=CATALOG)

    assert result.summary.missing_count == 2
    assert not (tmp_path / "session").exists()


def test_optimization_audit_uses_profiles_and_cache(make_host, tmp_path) -> None:
    """The quick profile runs startup and disk scanners and stores the result."""

    config = AuditConfig(data_dir=tmp_path, profiles=("quick",))
    host = make_host(disk_usage={"C:\\": (100, 50)})

    results = core.run_optimization_audit(config, host)

    assert results.scanners == ["disk", "startup"]
    cached = json.loads((tmp_path / f"{OPTIMIZATION_RESULT_NAME}.json").read_text(encoding="utf-8"))
    assert cached["scanners"] == ["disk", "startup"]

    again = core.run_optimization_audit(config, make_host())
    assert again.score == results.score


def test_cache_expires_and_can_be_disabled(tmp_path) -> None:
    """Stale or disabled caches behave as empty."""

    cache = ResultCache(tmp_path, max_age_minutes=1)
    path = cache.store("example", {"value": 1})
    assert cache.load("example") == {"value": 1}

    stale = time.time() - 120
    os.utime(path, (stale, stale))
    assert cache.load("example") is None

    assert ResultCache(tmp_path, enabled=False).load("example") is None
    assert cache.load("missing") is None


def test_cache_ignores_corrupt_file(tmp_path) -> None:
    """Unparseable cache files are ignored rather than raised."""

    (tmp_path / "example.json").write_text("{oops", encoding="utf-8")

    assert ResultCache(tmp_path).load("example") is None


def test_export_missing_apps_to_excel(tmp_path) -> None:
    """Missing applications are written to a workbook with a header row."""

    openpyxl = pytest.importorskip("openpyxl")
    result = core.ReconciliationEngine(
        catalog_provider=lambda: CATALOG,
        record_collector=lambda: [],
        tool_available=lambda name: False,
    ).run()

    path = core.export_missing_apps_to_excel(result.missing, str(tmp_path / "apps.xlsx"))

    sheet = openpyxl.load_workbook(path).active
    assert sheet.title == "Missing Apps"
    assert [cell.value for cell in sheet[1]][:3] == ["Application", "Category", "Priority"]
    assert sheet["A2"].value == "7-Zip"
