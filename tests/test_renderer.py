"""Tests for results email rendering."""

from __future__ import annotations

from types import SimpleNamespace

from autotune_web.services.renderer import render_failure, render_success
from autotune_web.services.results_parser import parse_recommendations
from tests.test_constants import RECOMMENDATIONS_LOG


def test_success_body_lists_recommendations_and_version() -> None:
    result = parse_recommendations(RECOMMENDATIONS_LOG, SimpleNamespace(row_key="job-1"))
    result.version = "3f9d2c1"

    html = render_success(result)

    assert "<html>" in html
    assert "86.000" in html and "81.320" in html
    assert "9.876" in html
    assert "00:30" in html
    assert "job-1" in html
    assert "3f9d2c1" in html


def test_failure_body_mentions_version() -> None:
    html = render_failure("3f9d2c1")
    assert "could not produce recommendations" in html
    assert "3f9d2c1" in html


def test_failure_body_without_version() -> None:
    html = render_failure("")
    assert "version <code>" not in html


def test_values_are_html_escaped() -> None:
    assert "<script>" not in render_failure("<script>alert(1)</script>")


def test_success_body_shows_percent_change() -> None:
    result = parse_recommendations(RECOMMENDATIONS_LOG, SimpleNamespace(row_key="job-1"))

    html = render_success(result)

    assert "-5.4%" in html  # ISF 86.000 -> 81.320
    assert "-1.2%" in html  # carb ratio 10.000 -> 9.876
    assert "+2.8%" in html  # 01:00 basal 0.900 -> 0.925


def test_zero_current_value_has_no_percent_change() -> None:
    text = RECOMMENDATIONS_LOG + "  02:00        | 0.000    | 0.100    | 0\n"
    result = parse_recommendations(text, SimpleNamespace(row_key="job-1"))
    assert result.basal[-1].change_percent is None
    assert "02:00" in render_success(result)
