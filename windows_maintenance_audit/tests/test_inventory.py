"""Tests for installed-software collection and parsing."""

from __future__ import annotations

import json

import pytest

from windows_maintenance_audit.host import SourceUnavailable
from windows_maintenance_audit.inventory import (
    UNINSTALL_ROOTS,
    collect_installed_records,
    collect_registry,
    parse_appx_json,
    parse_choco_list,
    parse_winget_list,
    registry_entry_from_values,
)


def _winget_row(name: str, package_id: str, version: str, available: str = "", source: str = "") -> str:
    return name.ljust(30) + package_id.ljust(30) + version.ljust(12) + available.ljust(12) + source


WINGET_OUTPUT = "\n".join(
    [
        "   -   \r   \\   \r" + _winget_row("Name", "Id", "Version", "Available", "Source"),
        "-" * 90,
        _winget_row("7-Zip 23.01 (x64)", "7zip.7zip", "23.01", "", "winget"),
        _winget_row("Git", "Git.Git", "2.44.0", "2.45.1", "winget"),
        _winget_row("Some Unpackaged Tool", "ARP\\Machine\\X64\\Tool", "1.0"),
        "",
    ]
)


def test_parse_winget_list_uses_header_columns() -> None:
    """Rows are sliced at the offsets of the header columns."""

    entries = parse_winget_list(WINGET_OUTPUT)

    assert [entry.name for entry in entries] == ["7-Zip 23.01 (x64)", "Git", "Some Unpackaged Tool"]
    assert entries[0].package_id == "7zip.7zip"
    assert entries[0].version == "23.01"
    assert entries[1].version == "2.44.0"
    assert entries[1].origin == "winget"
    assert entries[2].origin is None


def test_parse_winget_list_without_table() -> None:
    """Output without a header (e.g. an error message) yields nothing."""

    assert parse_winget_list("No installed package found matching input criteria.") == []


def test_winget_record_normalisation() -> None:
    """Winget rows keep their package id as identifier."""

    record = parse_winget_list(WINGET_OUTPUT)[1].to_installed_record()

    assert record.display_name == "Git"
    assert record.identifier == "Git.Git"
    assert record.source == "Winget"


def test_parse_appx_json_skips_frameworks() -> None:
    """Framework packages are dropped and Microsoft. prefixes are stripped."""

    payload = json.dumps(
        [
            {
                "Name": "Microsoft.WindowsTerminal",
                "PackageFullName": "Microsoft.WindowsTerminal_1.19.0_x64__8wekyb3d8bbwe",
                "Publisher": "CN=Microsoft Corporation, O=Microsoft Corporation, C=US",
                "Version": "1.19.0.0",
            },
            {"Name": "Microsoft.VCLibs.140.00", "Version": "14.0.0.0"},
        ]
    )

    entries = parse_appx_json(payload)
    record = entries[0].to_installed_record()

    assert len(entries) == 1
    assert record.display_name == "WindowsTerminal"
    assert record.alternate_name == "Microsoft.WindowsTerminal"
    assert record.publisher == "Microsoft Corporation"
    assert record.source == "Appx"


def test_parse_appx_json_single_object_and_errors() -> None:
    """A lone package is returned as a list; invalid JSON marks the source unavailable."""

    assert len(parse_appx_json(json.dumps({"Name": "SpotifyAB.SpotifyMusic"}))) == 1
    assert parse_appx_json("   ") == []
    with pytest.raises(SourceUnavailable):
        parse_appx_json("{not json")


def test_parse_choco_list() -> None:
    """Only ``name|version`` lines are considered."""

    output = "Chocolatey v2.2.2\nchocolatey|2.2.2\nvlc|3.0.20\n2 packages installed.\n"

    entries = parse_choco_list(output)

    assert [(entry.name, entry.version) for entry in entries] == [("chocolatey", "2.2.2"), ("vlc", "3.0.20")]


def test_registry_entry_skips_system_components() -> None:
    """Keys without a display name or flagged as system components are ignored."""

    assert registry_entry_from_values("KB123", {"DisplayName": "Update", "SystemComponent": 1}) is None
    assert registry_entry_from_values("Orphan", {"DisplayVersion": "1.0"}) is None
    entry = registry_entry_from_values("7-Zip", {"DisplayName": "7-Zip 23.01", "DisplayVersion": "23.01"})
    assert entry is not None and entry.version == "23.01"


def test_collect_registry_reads_uninstall_keys(make_host) -> None:
    """Uninstall subkeys become registry records; hidden keys are dropped."""

    root = UNINSTALL_ROOTS[0]
    host = make_host(
        registry={
            f"{root}\\7-Zip": {"DisplayName": "7-Zip 23.01 (x64)", "InstallLocation": "C:\\Program Files\\7-Zip\\"},
            f"{root}\\Hidden": {"DisplayName": "Runtime Helper", "SystemComponent": 1},
        }
    )

    records = collect_registry(host)

    assert [record.display_name for record in records] == ["7-Zip 23.01 (x64)"]
    assert records[0].source == "Registry"
    assert records[0].install_path == "C:\\Program Files\\7-Zip\\"


def test_collect_installed_records_tolerates_failing_source(make_host) -> None:
    """A source raising SourceUnavailable is skipped; the rest are collected in order."""

    host = make_host(
        tool_output={"choco": "vlc|3.0.20\n"},
        appx=[{"Name": "Microsoft.WindowsTerminal"}],
        failing={"run_tool:winget", "registry_subkeys"},
    )

    records = collect_installed_records(host)

    assert [record.source for record in records] == ["Appx", "Chocolatey"]
    assert "run_tool:winget" in host.calls
