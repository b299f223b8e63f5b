"""Tests for HTML, text and JSON report rendering."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from windows_maintenance_audit.catalog import AppCategory, AppDefinition
from windows_maintenance_audit.core import collect_optimization_results
from windows_maintenance_audit.inventory import InstalledRecord
from windows_maintenance_audit.reconciliation import ReconciliationEngine
from windows_maintenance_audit.reports import render_html, render_text, write_reports


def _app_result():
    catalog = [
        AppDefinition("7-Zip", AppCategory.SYSTEM, "File archiver", package_id_a="7zip.7zip"),
        AppDefinition("LibreOffice", AppCategory.OFFICE, "Office suite"),
        AppDefinition("Notepad++", AppCategory.EDITOR, "Text editor <fast> & light", package_id_b="notepadplusplus"),
    ]
    records = [InstalledRecord(display_name="Microsoft 365 Apps for enterprise")]
    return ReconciliationEngine(
        catalog_provider=lambda: catalog,
        record_collector=lambda: records,
        tool_available=lambda name: name == "choco",
    ).run()


def _optimization_result(make_host):
    host = make_host(startup=[{"name": "Spotify <beta>"}], disk_usage={"C:\\": (100, 10)})
    return collect_optimization_results(host, ["startup", "disk"])


def test_write_reports_creates_all_formats(make_host, tmp_path) -> None:
    """One file per format is written next to the base path."""

    base = tmp_path / "reports" / "maintenance"

    paths = write_reports(base, _app_result(), _optimization_result(make_host))

    assert [path.name for path in paths] == ["maintenance.html", "maintenance.txt", "maintenance.json"]
    assert all(path.exists() for path in paths)
    data = json.loads(paths[2].read_text(encoding="utf-8"))
    assert data["essential_apps"]["summary"]["skipped_count"] == 1
    assert data["optimization"]["score"]["overall"] == 100 - 15 - 8


def test_write_reports_dry_run(tmp_path) -> None:
    """Dry runs render nothing to disk."""

    assert write_reports(tmp_path / "report", _app_result(), dry_run=True) == []
    assert list(tmp_path.iterdir()) == []


def test_write_reports_rejects_unknown_format(tmp_path) -> None:
    """Only html, txt and json are supported."""

    with pytest.raises(ValueError):
        write_reports(tmp_path / "report", _app_result(), formats=("pdf",))


def test_write_reports_continues_after_failure(tmp_path, monkeypatch) -> None:
    """A failed write is skipped and the remaining formats are still written."""

    original = Path.write_text

    def flaky_write(self, *args, **kwargs):
        if self.suffix == ".html":
            raise PermissionError("read-only")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Path, "write_text", flaky_write)

    paths = write_reports(tmp_path / "report", _app_result())

    assert [path.suffix for path in paths] == [".txt", ".json"]


def test_html_report_escapes_content(make_host) -> None:
    """Catalog text and scanner targets are HTML-escaped."""

    html = render_html(_app_result(), _optimization_result(make_host))

    assert "Text editor &lt;fast&gt; &amp; light" in html
    assert "Spotify &lt;beta&gt;" in html
    assert "<fast>" not in html
    assert 'class="badge"' in html
    assert "Skipped: LibreOffice" in html


def test_text_report_sections(make_host) -> None:
    """The text report summarises both audits."""

    text = render_text(_app_result(), _optimization_result(make_host))

    assert "ESSENTIAL APPLICATIONS" in text
    assert "SYSTEM OPTIMIZATION" in text
    assert "Skipped: LibreOffice" in text
    assert "[High] 7-Zip (System) via Manual" in text
    assert "[High] Notepad++ (Editor) via Chocolatey" in text
    assert "Score: 77/100 (Good)" in text


def test_text_report_with_single_audit() -> None:
    """Sections for audits that were not run are left out."""

    text = render_text(_app_result())

    assert "ESSENTIAL APPLICATIONS" in text
    assert "SYSTEM OPTIMIZATION" not in text
