"""Reconcile observed installations against the essential-apps catalog.

For each catalog entry the engine looks for an installed record, decides
whether the entry is suppressed (LibreOffice when Microsoft Office is
present), and classifies the rest into installed and missing buckets with a
priority and a recommended installation method.

Matching is deliberately simple: search terms are tried in a fixed order and
the first record containing a term wins. There is no ranking between several
candidate records, so results depend on collector ordering.
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from fnmatch import fnmatchcase
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .catalog import AppCategory, AppDefinition, filter_catalog
from .host import SourceUnavailable
from .inventory import InstalledRecord
from .utils import AuditError

logger = logging.getLogger(__name__)

LIBREOFFICE = "LibreOffice"
APPX_SOURCE = "Appx"

# Glob patterns (matched case-insensitively) identifying a Microsoft Office install.
OFFICE_NAME_PATTERNS: Tuple[str, ...] = (
    "microsoft office*",
    "microsoft 365*",
    "office 16 click-to-run*",
    "microsoft.office.desktop*",
)
# Office-branded Appx packages preinstalled with Windows; matched against the
# package name and the identifier (winget lists them as MSIX\<name>_<version>).
OS_BUNDLED_OFFICE_APPX: Tuple[str, ...] = (
    "*microsoft.microsoftofficehub*",
    "*microsoft.outlookforwindows*",
    "*microsoft.office.onenote*",
    "*microsoft.microsoft365copilot*",
)
# (display-name pattern, publisher pattern) pairs for records whose name alone is ambiguous.
# Only checked against non-Appx records.
OFFICE_PUBLISHER_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("*word*", "microsoft*"),
    ("*excel*", "microsoft*"),
    ("*powerpoint*", "microsoft*"),
    ("*outlook*", "microsoft*"),
)
OFFICE_REGISTRY_KEYS: Tuple[str, ...] = (
    r"HKLM\SOFTWARE\Microsoft\Office\ClickToRun",
    r"HKLM\SOFTWARE\Microsoft\Office\16.0\Common\InstallRoot",
    r"HKLM\SOFTWARE\WOW6432Node\Microsoft\Office\16.0\Common\InstallRoot",
)

PRIORITY_HIGH = "High"
PRIORITY_MEDIUM = "Medium"
PRIORITY_LOW = "Low"

HIGH_PRIORITY_CATEGORIES = frozenset({"System", "Runtime", "Security"})
MEDIUM_PRIORITY_CATEGORIES = frozenset({"Office", "Editor", "Browsers"})
HIGH_PRIORITY_APPS = frozenset(
    {
        "7-Zip",
        "Adobe Acrobat Reader",
        "Google Chrome",
        "Mozilla Firefox",
        "Microsoft Edge",
        "Notepad++",
    }
)

METHOD_WINGET = "Winget"
METHOD_CHOCOLATEY = "Chocolatey"
METHOD_MANUAL = "Manual"

ToolProbe = Callable[[str], bool]
RegistryProbe = Callable[[str], bool]


@dataclass(frozen=True)
class InstallationStatus:
    """Result of matching one catalog entry against the installed records."""

    is_installed: bool
    version: Optional[str] = None
    source: Optional[str] = None
    install_path: Optional[str] = None


@dataclass
class InstalledApp:
    name: str
    category: str
    description: str
    version: Optional[str] = None
    source: Optional[str] = None
    install_path: Optional[str] = None


@dataclass
class MissingApp:
    name: str
    category: str
    description: str
    priority: str
    recommended_method: str
    winget_id: Optional[str] = None
    chocolatey_id: Optional[str] = None


@dataclass
class AuditSummary:
    installed_count: int
    missing_count: int
    skipped_count: int
    completion_percentage: float
    missing_by_category: Dict[str, int] = field(default_factory=dict)


@dataclass
class AuditResult:
    """Outcome of one essential-apps audit run."""

    timestamp: str
    category: str
    total_apps: int
    installed: List[InstalledApp]
    missing: List[MissingApp]
    recommended_installs: List[MissingApp]
    skipped: List[str]
    summary: AuditSummary

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def to_json(self, *, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "AuditResult":
        summary = dict(data["summary"])  # type: ignore[arg-type]
        return cls(
            timestamp=str(data["timestamp"]),
            category=str(data.get("category") or "All"),
            total_apps=int(data["total_apps"]),  # type: ignore[arg-type]
            installed=[InstalledApp(**item) for item in data.get("installed") or []],  # type: ignore[union-attr]
            missing=[MissingApp(**item) for item in data.get("missing") or []],  # type: ignore[union-attr]
            recommended_installs=[
                MissingApp(**item) for item in data.get("recommended_installs") or []  # type: ignore[union-attr]
            ],
            skipped=[str(name) for name in data.get("skipped") or []],  # type: ignore[union-attr]
            summary=AuditSummary(
                installed_count=int(summary["installed_count"]),
                missing_count=int(summary["missing_count"]),
                skipped_count=int(summary.get("skipped_count", 0)),
                completion_percentage=float(summary["completion_percentage"]),
                missing_by_category=dict(summary.get("missing_by_category") or {}),
            ),
        )


def build_search_terms(app: AppDefinition) -> List[str]:
    """Return the entry name followed by each segment of its winget identifier."""

    terms = [app.name]
    if app.package_id_a:
        terms.extend(segment for segment in app.package_id_a.split(".") if segment)
    return terms


def _record_fields(record: InstalledRecord) -> Iterable[str]:
    for value in (record.display_name, record.alternate_name, record.identifier):
        if value:
            yield value.lower()


def find_installation(app: AppDefinition, records: Sequence[InstalledRecord]) -> InstallationStatus:
    """Return the installation status of ``app``.

    Terms are tried in :func:`build_search_terms` order; for each term the
    first record (in collection order) whose display name, alternate name or
    identifier contains the term is taken.
    """

    for term in build_search_terms(app):
        needle = term.lower()
        for record in records:
            if any(needle in value for value in _record_fields(record)):
                return InstallationStatus(
                    is_installed=True,
                    version=record.version,
                    source=record.source,
                    install_path=record.install_path,
                )
    return InstallationStatus(is_installed=False)


def _matches_any(value: Optional[str], patterns: Iterable[str]) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return any(fnmatchcase(lowered, pattern) for pattern in patterns)


def office_is_installed(
    records: Iterable[InstalledRecord], registry_probe: Optional[RegistryProbe] = None
) -> bool:
    """Return ``True`` when a Microsoft Office product is installed.

    Records are checked against name patterns and, except for Appx packages,
    name/publisher pattern pairs. Office-branded packages that ship with
    Windows (matched by package name or identifier, so winget's MSIX rows
    are caught too) are ignored. When nothing matches, ``registry_probe`` is
    asked whether any known Office registry key exists.
    """

    for record in records:
        if any(_matches_any(value, OS_BUNDLED_OFFICE_APPX) for value in (record.alternate_name, record.identifier)):
            continue
        names = (record.display_name, record.alternate_name)
        if any(_matches_any(name, OFFICE_NAME_PATTERNS) for name in names):
            return True
        if record.source == APPX_SOURCE:
            continue
        for name_pattern, publisher_pattern in OFFICE_PUBLISHER_PATTERNS:
            if _matches_any(record.display_name, (name_pattern,)) and _matches_any(
                record.publisher, (publisher_pattern,)
            ):
                return True

    if registry_probe is not None:
        for key_path in OFFICE_REGISTRY_KEYS:
            try:
                if registry_probe(key_path):
                    return True
            except (SourceUnavailable, OSError) as exc:
                logger.warning("Could not check Office registry key %s: %s", key_path, exc)
    return False


def compute_priority(app: AppDefinition) -> str:
    category = app.category.value if isinstance(app.category, AppCategory) else str(app.category)
    if category in HIGH_PRIORITY_CATEGORIES or app.name in HIGH_PRIORITY_APPS:
        return PRIORITY_HIGH
    if category in MEDIUM_PRIORITY_CATEGORIES:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def recommend_install_method(app: AppDefinition, tool_available: ToolProbe) -> str:
    """Pick winget, then Chocolatey, when the entry has an id and the tool exists."""

    if app.package_id_a and tool_available("winget"):
        return METHOD_WINGET
    if app.package_id_b and tool_available("choco"):
        return METHOD_CHOCOLATEY
    return METHOD_MANUAL


def completion_percentage(installed_count: int, total: int) -> float:
    if total == 0:
        return 0
    return round(installed_count / total * 100, 2)


class ReconciliationEngine:
    """Build :class:`AuditResult` objects from injected collaborators.

    ``catalog_provider`` returns the catalog, ``record_collector`` the
    observed installations, ``tool_available`` answers whether an installer
    command-line tool exists and ``registry_probe`` whether a registry key
    exists (used only for Office detection).
    """

    def __init__(
        self,
        catalog_provider: Callable[[], Sequence[AppDefinition]],
        record_collector: Callable[[], Sequence[InstalledRecord]],
        tool_available: ToolProbe,
        *,
        registry_probe: Optional[RegistryProbe] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.catalog_provider = catalog_provider
        self.record_collector = record_collector
        self.tool_available = tool_available
        self.registry_probe = registry_probe
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self, category: Optional[str] = None, include_installed: bool = True) -> AuditResult:
        label = category or "All"
        try:
            return self._run(category, label, include_installed)
        except AuditError:
            raise
        except Exception as exc:
            logger.exception("Essential apps audit failed (category=%s)", label)
            raise AuditError(f"Essential apps audit failed: {exc}") from exc

    def _run(self, category: Optional[str], label: str, include_installed: bool) -> AuditResult:
        catalog = filter_catalog(self.catalog_provider(), category)
        logger.info("Checking %d essential application(s) (category=%s)", len(catalog), label)
        records = list(self.record_collector())

        suppress_libreoffice = office_is_installed(records, self.registry_probe)
        if suppress_libreoffice:
            logger.info("Microsoft Office detected; LibreOffice will not be recommended")

        installed: List[InstalledApp] = []
        missing: List[MissingApp] = []
        recommended: List[MissingApp] = []
        skipped: List[str] = []
        installed_count = 0

        for app in catalog:
            if suppress_libreoffice and app.name == LIBREOFFICE:
                skipped.append(app.name)
                continue

            status = find_installation(app, records)
            if status.is_installed:
                installed_count += 1
                if include_installed:
                    installed.append(
                        InstalledApp(
                            name=app.name,
                            category=app.category.value,
                            description=app.description,
                            version=status.version,
                            source=status.source,
                            install_path=status.install_path,
                        )
                    )
                continue

            item = MissingApp(
                name=app.name,
                category=app.category.value,
                description=app.description,
                priority=compute_priority(app),
                recommended_method=recommend_install_method(app, self.tool_available),
                winget_id=app.package_id_a,
                chocolatey_id=app.package_id_b,
            )
            missing.append(item)
            if item.priority == PRIORITY_HIGH:
                recommended.append(item)

        summary = AuditSummary(
            installed_count=installed_count,
            missing_count=len(missing),
            skipped_count=len(skipped),
            completion_percentage=completion_percentage(installed_count, len(catalog)),
            missing_by_category=dict(Counter(item.category for item in missing)),
        )
        logger.info(
            "Essential apps: %d installed, %d missing, %d skipped (%.2f%% complete)",
            summary.installed_count,
            summary.missing_count,
            summary.skipped_count,
            summary.completion_percentage,
        )
        return AuditResult(
            timestamp=self.clock().isoformat(),
            category=label,
            total_apps=len(catalog),
            installed=installed,
            missing=missing,
            recommended_installs=recommended,
            skipped=skipped,
            summary=summary,
        )


__all__ = [
    "AuditResult",
    "AuditSummary",
    "HIGH_PRIORITY_APPS",
    "InstallationStatus",
    "InstalledApp",
    "MissingApp",
    "OFFICE_NAME_PATTERNS",
    "OFFICE_REGISTRY_KEYS",
    "OS_BUNDLED_OFFICE_APPX",
    "ReconciliationEngine",
    "build_search_terms",
    "completion_percentage",
    "compute_priority",
    "find_installation",
    "office_is_installed",
    "recommend_install_method",
]
