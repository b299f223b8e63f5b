"""Tests for HTML helper utilities."""

from __future__ import annotations

from windows_maintenance_audit.html_utils import (
    IMPACT_COLORS,
    build_badge,
    build_list,
    build_section,
    build_table,
    escape_text,
)


def test_escape_text_handles_markup_and_unicode() -> None:
    """Markup is escaped and non-ASCII characters become character references."""

    assert escape_text("<b>'x' & \"y\"</b>") == "&lt;b&gt;&#39;x&#39; &amp; &quot;y&quot;&lt;/b&gt;"
    assert escape_text("Café") == "Caf&#233;"
    assert escape_text(None) == ""


def test_build_table_escapes_all_but_raw_columns() -> None:
    """Raw columns pass pre-rendered badges through untouched."""

    badge = build_badge("High", IMPACT_COLORS)
    html = build_table(("Impact", "Target"), [(badge, "<script>")], raw_columns=(0,))

    assert badge in html
    assert "&lt;script&gt;" in html
    assert "<script>" not in html


def test_build_table_empty_message() -> None:
    """Tables without rows render the empty message instead."""

    assert build_table(("A",), [], empty_message="Nothing here") == '<p class="empty">Nothing here</p>'


def test_build_badge_uses_default_colour() -> None:
    """Unknown labels fall back to the neutral colour."""

    assert "#566573" in build_badge("Unknown", IMPACT_COLORS)
    assert IMPACT_COLORS["High"] in build_badge("High", IMPACT_COLORS)


def test_build_list_and_section() -> None:
    """Lists drop when empty and sections carry an escaped id."""

    assert build_list([]) == ""
    assert build_list(["a < b"]) == "<ul><li>a &lt; b</li></ul>"
    assert build_section("Title", "<p>x</p>", section_id="apps") == '<section id="apps"><h2>Title</h2><p>x</p></section>'
