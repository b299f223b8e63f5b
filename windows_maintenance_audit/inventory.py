"""Installed-software collection from the registry, winget, Appx and Chocolatey.

Each source produces its own record type which is normalised into a single
:class:`InstalledRecord` shape before reaching the reconciliation engine.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from .host import HostProbe, SourceUnavailable
from .utils import as_list

logger = logging.getLogger(__name__)

UNINSTALL_ROOTS: Tuple[str, ...] = (
    r"HKLM\SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"HKLM\SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
    r"HKCU\SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
)

# Appx packages that are frameworks or OS plumbing rather than applications.
APPX_FRAMEWORK_PREFIXES: Tuple[str, ...] = (
    "Microsoft.NET",
    "Microsoft.VCLibs",
    "Microsoft.UI.Xaml",
    "Microsoft.Services.Store",
    "Microsoft.DirectX",
    "Microsoft.Windows.",
    "Windows.",
)


@dataclass(frozen=True)
class InstalledRecord:
    """An observed installation, normalised across sources."""

    display_name: str
    version: Optional[str] = None
    install_path: Optional[str] = None
    publisher: Optional[str] = None
    source: str = ""
    alternate_name: Optional[str] = None
    identifier: Optional[str] = None


@dataclass(frozen=True)
class RegistryEntry:
    """An ``Uninstall`` registry key."""

    key_name: str
    display_name: str
    version: Optional[str] = None
    publisher: Optional[str] = None
    install_location: Optional[str] = None

    def to_installed_record(self) -> InstalledRecord:
        return InstalledRecord(
            display_name=self.display_name,
            version=self.version,
            install_path=self.install_location,
            publisher=self.publisher,
            source="Registry",
            identifier=self.key_name,
        )


@dataclass(frozen=True)
class WingetEntry:
    """A row of ``winget list`` output."""

    name: str
    package_id: str
    version: Optional[str] = None
    origin: Optional[str] = None

    def to_installed_record(self) -> InstalledRecord:
        return InstalledRecord(
            display_name=self.name,
            version=self.version,
            source="Winget",
            identifier=self.package_id or None,
        )


@dataclass(frozen=True)
class AppxEntry:
    """A platform app package reported by ``Get-AppxPackage``."""

    name: str
    package_full_name: Optional[str] = None
    publisher: Optional[str] = None
    version: Optional[str] = None
    install_location: Optional[str] = None

    @property
    def friendly_name(self) -> str:
        name = self.name
        for prefix in ("Microsoft.", "MicrosoftCorporationII."):
            if name.startswith(prefix):
                return name[len(prefix):]
        return name

    def to_installed_record(self) -> InstalledRecord:
        publisher = self.publisher
        if publisher and publisher.startswith("CN="):
            publisher = publisher[3:].split(",")[0]
        return InstalledRecord(
            display_name=self.friendly_name,
            version=self.version,
            install_path=self.install_location,
            publisher=publisher,
            source="Appx",
            alternate_name=self.name,
            identifier=self.package_full_name,
        )


@dataclass(frozen=True)
class ChocolateyEntry:
    """A package listed by ``choco list --limit-output``."""

    name: str
    version: Optional[str] = None

    def to_installed_record(self) -> InstalledRecord:
        return InstalledRecord(
            display_name=self.name,
            version=self.version,
            source="Chocolatey",
            identifier=self.name,
        )


def _text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def registry_entry_from_values(key_name: str, values: Mapping[str, object]) -> Optional[RegistryEntry]:
    """Return a :class:`RegistryEntry` or ``None`` for hidden/system keys."""

    display_name = _text(values.get("DisplayName"))
    if not display_name:
        return None
    if str(values.get("SystemComponent", 0)) == "1":
        return None
    return RegistryEntry(
        key_name=key_name,
        display_name=display_name,
        version=_text(values.get("DisplayVersion")),
        publisher=_text(values.get("Publisher")),
        install_location=_text(values.get("InstallLocation")),
    )


def parse_winget_list(output: str) -> List[WingetEntry]:
    """Parse the fixed-width table printed by ``winget list``.

    Column offsets are taken from the header row; winget prints progress
    spinners before it, so the header is located by the dashed rule under it.
    """

    lines = [line.split("\r")[-1] for line in output.splitlines()]
    header_index = None
    for index in range(1, len(lines)):
        if lines[index].strip().startswith("---") and "Id" in lines[index - 1]:
            header_index = index - 1
            break
    if header_index is None:
        return []

    header = lines[header_index]
    id_pos = header.find("Id")
    version_pos = header.find("Version")
    available_pos = header.find("Available")
    source_pos = header.find("Source")
    if id_pos < 0 or version_pos < 0:
        return []
    name_start = max(header.find("Name"), 0)
    version_end = next((pos for pos in (available_pos, source_pos) if pos > 0), None)

    entries: List[WingetEntry] = []
    for line in lines[header_index + 2:]:
        if not line.strip() or len(line) < id_pos:
            continue
        name = line[name_start:id_pos].strip()
        package_id = line[id_pos:version_pos].strip()
        version = line[version_pos:version_end].strip() if version_end else line[version_pos:].strip()
        origin = line[source_pos:].strip() if source_pos > 0 else ""
        if not name:
            continue
        entries.append(
            WingetEntry(name=name, package_id=package_id, version=version or None, origin=origin or None)
        )
    return entries


def parse_appx_json(output: str) -> List[AppxEntry]:
    """Parse ``Get-AppxPackage | ConvertTo-Json`` output (single object or list)."""

    if not output.strip():
        return []
    try:
        data = json.loads(output)
    except ValueError as exc:
        raise SourceUnavailable(f"Unparseable Appx package listing: {exc}") from exc
    return appx_entries_from_rows(item for item in as_list(data) if isinstance(item, dict))


def appx_entries_from_rows(rows: Iterable[Mapping[str, object]]) -> List[AppxEntry]:
    entries: List[AppxEntry] = []
    for row in rows:
        name = _text(row.get("Name"))
        if not name or name.startswith(APPX_FRAMEWORK_PREFIXES):
            continue
        entries.append(
            AppxEntry(
                name=name,
                package_full_name=_text(row.get("PackageFullName")),
                publisher=_text(row.get("Publisher")),
                version=_text(row.get("Version")),
                install_location=_text(row.get("InstallLocation")),
            )
        )
    return entries


def parse_choco_list(output: str) -> List[ChocolateyEntry]:
    """Parse ``name|version`` lines from ``choco list --limit-output``."""

    entries: List[ChocolateyEntry] = []
    for line in output.splitlines():
        name, sep, version = line.strip().partition("|")
        if not sep or not name:
            continue
        entries.append(ChocolateyEntry(name=name.strip(), version=version.strip() or None))
    return entries


def collect_registry(host: HostProbe) -> List[InstalledRecord]:
    records: List[InstalledRecord] = []
    for root in UNINSTALL_ROOTS:
        try:
            for key_name in host.registry_subkeys(root):
                entry = registry_entry_from_values(key_name, host.registry_values(f"{root}\\{key_name}"))
                if entry is not None:
                    records.append(entry.to_installed_record())
        except (SourceUnavailable, OSError) as exc:
            logger.warning("Skipping uninstall key %s: %s", root, exc)
    return records


def collect_winget(host: HostProbe) -> List[InstalledRecord]:
    output = host.run_tool(["winget", "list", "--accept-source-agreements", "--disable-interactivity"])
    return [entry.to_installed_record() for entry in parse_winget_list(output)]


def collect_appx(host: HostProbe) -> List[InstalledRecord]:
    return [entry.to_installed_record() for entry in appx_entries_from_rows(host.appx_packages())]


def collect_chocolatey(host: HostProbe) -> List[InstalledRecord]:
    output = host.run_tool(["choco", "list", "--limit-output"])
    return [entry.to_installed_record() for entry in parse_choco_list(output)]


RecordSource = Callable[[HostProbe], List[InstalledRecord]]

DEFAULT_SOURCES: Tuple[Tuple[str, RecordSource], ...] = (
    ("registry", collect_registry),
    ("winget", collect_winget),
    ("appx", collect_appx),
    ("chocolatey", collect_chocolatey),
)


def collect_installed_records(
    host: HostProbe,
    sources: Sequence[Tuple[str, RecordSource]] = DEFAULT_SOURCES,
) -> List[InstalledRecord]:
    """Gather records from every source in order.

    A source that cannot be read contributes nothing; the remaining sources
    are still collected. Duplicates across sources are kept as-is.
    """

    records: List[InstalledRecord] = []
    for name, source in sources:
        try:
            found = source(host)
        except (SourceUnavailable, OSError) as exc:
            logger.warning("Installed-software source '%s' unavailable: %s", name, exc)
            continue
        logger.info("Collected %d installed-software record(s) from %s", len(found), name)
        records.extend(found)
    return records


__all__ = [
    "AppxEntry",
    "ChocolateyEntry",
    "DEFAULT_SOURCES",
    "InstalledRecord",
    "RegistryEntry",
    "UNINSTALL_ROOTS",
    "WingetEntry",
    "collect_appx",
    "collect_chocolatey",
    "collect_installed_records",
    "collect_registry",
    "collect_winget",
    "parse_appx_json",
    "parse_choco_list",
    "parse_winget_list",
    "registry_entry_from_values",
]
