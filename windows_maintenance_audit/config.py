"""Audit configuration threaded through every run."""
from __future__ import annotations

import tempfile
from dataclasses import dataclass, field, fields, replace
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

import yaml

EXECUTION_MODES = ("interactive", "unattended")


def default_data_dir() -> Path:
    """Session-scoped data directory: one folder per calendar day."""

    return Path(tempfile.gettempdir()) / "windows-maintenance-audit" / date.today().strftime("%Y%m%d")


@dataclass(frozen=True)
class AuditConfig:
    """Settings for one audit invocation.

    ``dry_run`` suppresses every file write (cache, results and reports).
    ``cache_minutes`` is the freshness window for cached results.
    """

    execution_mode: str = "interactive"
    dry_run: bool = False
    data_dir: Path = field(default_factory=default_data_dir)
    cache_minutes: int = 15
    use_cache: bool = True
    include_installed: bool = True
    category: Optional[str] = None
    catalog_path: Optional[Path] = None
    profiles: Tuple[str, ...] = ("full",)
    html_report: bool = True
    text_report: bool = True
    json_report: bool = True
    report_base: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.execution_mode not in EXECUTION_MODES:
            raise ValueError(
                f"Unknown execution mode '{self.execution_mode}'. "
                f"Valid modes: {', '.join(EXECUTION_MODES)}"
            )
        if not 1 <= int(self.cache_minutes) <= 1440:
            raise ValueError("cache_minutes must be between 1 and 1440")
        if not self.profiles:
            raise ValueError("At least one scanner profile is required")

    @property
    def report_formats(self) -> Tuple[str, ...]:
        formats = []
        if self.html_report:
            formats.append("html")
        if self.text_report:
            formats.append("txt")
        if self.json_report:
            formats.append("json")
        return tuple(formats)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AuditConfig":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {', '.join(unknown)}")

        values = dict(data)
        for key in ("data_dir", "catalog_path", "report_base"):
            if values.get(key) is not None:
                values[key] = Path(values[key])
        if "profiles" in values:
            profiles = values["profiles"]
            values["profiles"] = (profiles,) if isinstance(profiles, str) else tuple(profiles)
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "AuditConfig":
        """Return a copy with every non-``None`` override applied."""

        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def load_config(path: Optional[Union[str, Path]] = None) -> AuditConfig:
    """Load an :class:`AuditConfig` from a YAML file, or defaults for ``None``."""

    if path is None:
        return AuditConfig()
    with Path(path).open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return AuditConfig.from_mapping(data)


__all__ = ["AuditConfig", "EXECUTION_MODES", "default_data_dir", "load_config"]
