"""Render audit results as HTML, plain text and JSON reports."""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .core import OptimizationResults
from .findings import ImpactTier, OptimizationOpportunity
from .html_utils import (
    IMPACT_COLORS,
    TIER_COLORS,
    build_badge,
    build_list,
    build_section,
    build_table,
    escape_text,
)
from .reconciliation import AuditResult

logger = logging.getLogger(__name__)

REPORT_TITLE = "Windows Maintenance Report"
REPORT_FORMATS = ("html", "txt", "json")

_STYLE = """
body { font-family: Segoe UI, Helvetica, Arial, sans-serif; margin: 2rem; color: #1c2833; }
h1 { margin-bottom: 0.2rem; }
.meta { color: #566573; margin-top: 0; }
section { margin-top: 2rem; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #d5d8dc; padding: 0.4rem 0.6rem; text-align: left; vertical-align: top; }
th { background: #f2f3f4; }
.badge { color: #fff; border-radius: 4px; padding: 0.1rem 0.5rem; font-size: 0.85rem; }
.score { font-size: 2.5rem; font-weight: bold; }
.empty { color: #566573; font-style: italic; }
"""


def _generated_at() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_report_data(
    app_result: Optional[AuditResult] = None,
    optimization_result: Optional[OptimizationResults] = None,
) -> Dict[str, Any]:
    """Return the JSON-serialisable structure shared by all report formats."""

    data: Dict[str, Any] = {"title": REPORT_TITLE, "generated_at": _generated_at()}
    if app_result is not None:
        data["essential_apps"] = app_result.to_dict()
    if optimization_result is not None:
        data["optimization"] = optimization_result.to_dict()
    return data


def render_json(
    app_result: Optional[AuditResult] = None,
    optimization_result: Optional[OptimizationResults] = None,
) -> str:
    return json.dumps(build_report_data(app_result, optimization_result), indent=2, default=str)


def _group_by_category(opportunities: Sequence[OptimizationOpportunity]) -> Dict[str, List[OptimizationOpportunity]]:
    grouped: Dict[str, List[OptimizationOpportunity]] = defaultdict(list)
    for item in opportunities:
        grouped[item.category].append(item)
    return dict(grouped)


def render_text(
    app_result: Optional[AuditResult] = None,
    optimization_result: Optional[OptimizationResults] = None,
) -> str:
    lines = [REPORT_TITLE, "=" * len(REPORT_TITLE), f"Generated: {_generated_at()}", ""]

    if app_result is not None:
        summary = app_result.summary
        lines += [
            "ESSENTIAL APPLICATIONS",
            "-" * 22,
            f"Category filter: {app_result.category}",
            f"Catalog entries: {app_result.total_apps}",
            f"Installed: {summary.installed_count}",
            f"Missing: {summary.missing_count}",
            f"Skipped: {summary.skipped_count}",
            f"Completion: {summary.completion_percentage}%",
        ]
        if summary.missing_by_category:
            lines.append("Missing by category:")
            lines += [f"  {name}: {count}" for name, count in sorted(summary.missing_by_category.items())]
        if app_result.recommended_installs:
            lines.append("Recommended installs:")
            lines += [
                f"  - {item.name} ({item.category}) via {item.recommended_method}"
                for item in app_result.recommended_installs
            ]
        if app_result.missing:
            lines.append("Missing applications:")
            lines += [
                f"  - [{item.priority}] {item.name} ({item.category}) via {item.recommended_method}"
                for item in app_result.missing
            ]
        if app_result.skipped:
            lines.append("Skipped: " + ", ".join(app_result.skipped))
        if app_result.installed:
            lines.append("Installed applications:")
            lines += [
                f"  - {item.name} {item.version or ''} [{item.source or 'unknown'}]".rstrip()
                for item in app_result.installed
            ]
        lines.append("")

    if optimization_result is not None:
        score = optimization_result.score
        lines += [
            "SYSTEM OPTIMIZATION",
            "-" * 19,
            f"Score: {score.overall}/100 ({score.category})",
            f"Opportunities: {score.opportunity_count}",
            "Recommendations:",
        ]
        lines += [f"  * {text}" for text in optimization_result.recommendations]
        for category, items in _group_by_category(optimization_result.opportunities).items():
            lines.append(f"{category}:")
            for item in items:
                lines.append(f"  - [{ImpactTier(item.impact).value}] {item.description}")
                lines.append(f"      Target: {item.target}; expected benefit: {item.estimated_savings}")
        for scanner, checks in optimization_result.skipped_checks.items():
            lines.append(f"Skipped {scanner} checks: {', '.join(checks)}")
        lines.append("")

    return "\n".join(lines)


def _render_apps_html(result: AuditResult) -> str:
    summary = result.summary
    overview = build_table(
        ("Catalog entries", "Installed", "Missing", "Skipped", "Completion"),
        [(
            result.total_apps,
            summary.installed_count,
            summary.missing_count,
            summary.skipped_count,
            f"{summary.completion_percentage}%",
        )],
    )
    by_category = build_table(
        ("Category", "Missing"),
        sorted(summary.missing_by_category.items()),
        empty_message="No applications missing.",
    )
    missing = build_table(
        ("Application", "Category", "Priority", "Method", "Description"),
        (
            (item.name, item.category, build_badge(item.priority, IMPACT_COLORS), item.recommended_method, item.description)
            for item in result.missing
        ),
        empty_message="All essential applications are installed.",
        raw_columns=(2,),
    )
    recommended = build_list(f"{item.name} via {item.recommended_method}" for item in result.recommended_installs)
    installed = build_table(
        ("Application", "Category", "Version", "Source", "Path"),
        ((item.name, item.category, item.version, item.source, item.install_path) for item in result.installed),
        empty_message="Installed applications were not included in this run.",
    )
    skipped = (
        f"<p>Skipped: {escape_text(', '.join(result.skipped))}</p>" if result.skipped else ""
    )
    body = (
        f'<p class="meta">Category filter: {escape_text(result.category)} | Audited: {escape_text(result.timestamp)}</p>'
        + overview
        + "<h3>Missing by category</h3>"
        + by_category
        + ("<h3>Recommended installs</h3>" + recommended if recommended else "")
        + "<h3>Missing applications</h3>"
        + missing
        + skipped
        + "<h3>Installed applications</h3>"
        + installed
    )
    return build_section("Essential Applications", body, section_id="essential-apps")


def _render_optimization_html(result: OptimizationResults) -> str:
    score = result.score
    parts = [
        f'<p><span class="score">{score.overall}</span>/100 {build_badge(score.category, TIER_COLORS)}</p>',
        f'<p class="meta">{score.opportunity_count} opportunit(ies), {score.deductions} point(s) deducted</p>',
        "<h3>Recommendations</h3>",
        build_list(result.recommendations),
    ]
    for category, items in _group_by_category(result.opportunities).items():
        parts.append(f"<h3>{escape_text(category)}</h3>")
        parts.append(
            build_table(
                ("Impact", "Type", "Description", "Target", "Expected benefit"),
                (
                    (
                        build_badge(ImpactTier(item.impact).value, IMPACT_COLORS),
                        item.type,
                        item.description,
                        item.target,
                        item.estimated_savings,
                    )
                    for item in items
                ),
                raw_columns=(0,),
            )
        )
    if result.skipped_checks:
        parts.append("<h3>Skipped checks</h3>")
        parts.append(
            build_list(f"{scanner}: {', '.join(checks)}" for scanner, checks in result.skipped_checks.items())
        )
    return build_section("System Optimization", "".join(parts), section_id="optimization")


def render_html(
    app_result: Optional[AuditResult] = None,
    optimization_result: Optional[OptimizationResults] = None,
) -> str:
    sections = []
    if app_result is not None:
        sections.append(_render_apps_html(app_result))
    if optimization_result is not None:
        sections.append(_render_optimization_html(optimization_result))
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en"><head><meta charset="utf-8">'
        f"<title>{escape_text(REPORT_TITLE)}</title><style>{_STYLE}</style></head>"
        f"<body><h1>{escape_text(REPORT_TITLE)}</h1>"
        f'<p class="meta">Generated {escape_text(_generated_at())}</p>'
        + "".join(sections)
        + "</body></html>\n"
    )


_RENDERERS = {
    "html": render_html,
    "txt": render_text,
    "json": render_json,
}


def write_reports(
    base_path: Union[str, Path],
    app_result: Optional[AuditResult] = None,
    optimization_result: Optional[OptimizationResults] = None,
    *,
    formats: Sequence[str] = REPORT_FORMATS,
    dry_run: bool = False,
) -> List[Path]:
    """Write ``<base_path>.html/.txt/.json`` and return the paths that were written.

    A failed write is logged as a warning and does not stop the other formats.
    """

    base = Path(base_path)
    written: List[Path] = []
    for fmt in formats:
        if fmt not in _RENDERERS:
            raise ValueError(f"Unknown report format '{fmt}'. Valid formats: {', '.join(REPORT_FORMATS)}")
        path = base.with_name(f"{base.name}.{fmt}")
        if dry_run:
            logger.info("Dry run: not writing %s report to %s", fmt, path)
            continue
        content = _RENDERERS[fmt](app_result, optimization_result)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write %s report to %s: %s", fmt, path, exc)
            continue
        logger.info("Wrote %s report to %s", fmt, path)
        written.append(path)
    return written


__all__ = [
    "REPORT_FORMATS",
    "build_report_data",
    "render_html",
    "render_json",
    "render_text",
    "write_reports",
]
