"""Helpers for building the HTML maintenance report."""

from __future__ import annotations

from html import escape as html_escape
from typing import Iterable, List, Mapping, Optional, Sequence

IMPACT_COLORS: Mapping[str, str] = {
    "High": "#c0392b",
    "Medium": "#d68910",
    "Low": "#2471a3",
}

TIER_COLORS: Mapping[str, str] = {
    "Excellent": "#1e8449",
    "Good": "#2471a3",
    "Fair": "#d68910",
    "Needs Improvement": "#c0392b",
}


def escape_text(value: object) -> str:
    """Return ``value`` escaped for HTML text and attribute content.

    ``None`` renders as an empty string. Non-ASCII characters are converted to
    decimal character references so the report is safe regardless of the
    encoding a browser guesses for a file opened from disk.
    """

    if value is None:
        return ""
    escaped = html_escape(str(value), quote=True).replace("&#x27;", "&#39;")
    return escaped.encode("ascii", "xmlcharrefreplace").decode("ascii")


def build_badge(label: str, colors: Mapping[str, str], *, default: str = "#566573") -> str:
    """Return a coloured ``<span>`` badge for ``label``."""

    color = colors.get(label, default)
    return f'<span class="badge" style="background:{color}">{escape_text(label)}</span>'


def build_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[object]],
    *,
    empty_message: str = "Nothing to report.",
    raw_columns: Optional[Iterable[int]] = None,
) -> str:
    """Return an HTML table; cells are escaped unless their index is in ``raw_columns``."""

    raw = set(raw_columns or ())
    body: List[str] = []
    for row in rows:
        cells = []
        for index, value in enumerate(row):
            content = str(value) if index in raw else escape_text(value)
            cells.append(f"<td>{content}</td>")
        body.append("<tr>" + "".join(cells) + "</tr>")

    if not body:
        return f'<p class="empty">{escape_text(empty_message)}</p>'

    head = "".join(f"<th>{escape_text(header)}</th>" for header in headers)
    return f"<table><thead><tr>{head}</tr></thead><tbody>{''.join(body)}</tbody></table>"


def build_list(items: Iterable[object]) -> str:
    entries = "".join(f"<li>{escape_text(item)}</li>" for item in items)
    return f"<ul>{entries}</ul>" if entries else ""


def build_section(title: str, body: str, *, section_id: Optional[str] = None) -> str:
    """Wrap ``body`` in a titled ``<section>``."""

    id_attr = f' id="{escape_text(section_id)}"' if section_id else ""
    return f"<section{id_attr}><h2>{escape_text(title)}</h2>{body}</section>"


__all__ = [
    "IMPACT_COLORS",
    "TIER_COLORS",
    "build_badge",
    "build_list",
    "build_section",
    "build_table",
    "escape_text",
]
