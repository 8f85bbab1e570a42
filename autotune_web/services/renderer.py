"""Render results email bodies from the Jinja2 templates."""

from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from autotune_web.schemas.results import ParsedResult

_templates_dir = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(_templates_dir))


def render_success(result: ParsedResult) -> str:
    return templates.get_template("results/success.html").render(result=result, commit=result.version)


def render_failure(version_id: str) -> str:
    return templates.get_template("results/failure.html").render(commit=version_id)
