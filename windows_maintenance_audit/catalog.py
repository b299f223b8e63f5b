"""Catalog of essential applications expected on a maintained workstation."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Set, Tuple, Union

import yaml

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "essential_apps.yaml"


class AppCategory(str, Enum):
    """Fixed set of catalog categories."""

    SYSTEM = "System"
    RUNTIME = "Runtime"
    OFFICE = "Office"
    DOCUMENT = "Document"
    EDITOR = "Editor"
    BROWSERS = "Browsers"
    MEDIA = "Media"
    DEVELOPMENT = "Development"

    @classmethod
    def parse(cls, value: Union[str, "AppCategory"]) -> "AppCategory":
        """Return the member matching ``value`` case-insensitively."""

        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        valid = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown application category '{value}'. Valid categories: {valid}")


@dataclass(frozen=True)
class AppDefinition:
    """A single essential application.

    ``package_id_a`` is the winget identifier and ``package_id_b`` the
    Chocolatey package name; either may be missing when the application has no
    package for that backend.
    """

    name: str
    category: AppCategory
    description: str = ""
    package_id_a: Optional[str] = None
    package_id_b: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "AppDefinition":
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("Catalog entries require a non-empty 'name'")
        return cls(
            name=name,
            category=AppCategory.parse(str(data.get("category") or "")),
            description=str(data.get("description") or ""),
            package_id_a=_optional_str(data.get("winget") or data.get("package_id_a")),
            package_id_b=_optional_str(data.get("chocolatey") or data.get("package_id_b")),
        )


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_catalog(entries: Iterable[Mapping[str, object]]) -> Tuple[AppDefinition, ...]:
    """Build catalog entries, rejecting duplicate names within a category."""

    catalog: List[AppDefinition] = []
    seen: Set[Tuple[AppCategory, str]] = set()
    for entry in entries:
        app = AppDefinition.from_mapping(entry)
        key = (app.category, app.name.lower())
        if key in seen:
            raise ValueError(
                f"Duplicate catalog entry '{app.name}' in category {app.category.value}"
            )
        seen.add(key)
        catalog.append(app)
    return tuple(catalog)


def load_catalog(path: Optional[Union[str, Path]] = None) -> Tuple[AppDefinition, ...]:
    """Load the essential-apps catalog from YAML.

    The document holds an ``apps`` list; each item has ``name``, ``category``,
    ``description`` and optional ``winget``/``chocolatey`` identifiers.
    """

    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    with catalog_path.open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Catalog file {catalog_path} must contain a mapping with an 'apps' list")
    return parse_catalog(data.get("apps") or [])


def filter_catalog(
    catalog: Iterable[AppDefinition], category: Optional[str] = None
) -> List[AppDefinition]:
    """Return the entries of ``category``, or all of them for ``None``/``"All"``."""

    apps = list(catalog)
    if not category or category.strip().lower() == "all":
        return apps
    wanted = AppCategory.parse(category)
    return [app for app in apps if app.category is wanted]


__all__ = [
    "AppCategory",
    "AppDefinition",
    "DEFAULT_CATALOG_PATH",
    "filter_catalog",
    "load_catalog",
    "parse_catalog",
]
