"""Parser for the recommendations table autotune writes on success.

The file is a pipe-delimited table::

    Parameter      | Pump     | Autotune | Days Missing
    ---------------------------------------------------------
    ISF [mg/dL/U]  | 86.000   | 81.320   |
    Carb Ratio[g/U]| 10.000   | 9.876    |
      00:00        | 0.850    | 0.801    | 0

ISF and carb ratio rows are required. Each ``HH:MM`` row is a basal slot.
Anything else (blank lines, separators, unknown parameters) is ignored.
"""

from __future__ import annotations

import re

from autotune_web.schemas.results import BasalRecommendation, ParsedResult, Recommendation

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")
_UNITS_RE = re.compile(r"\[([^\]]+)\]")


class RecommendationsParseError(ValueError):
    """Raised when the recommendations document cannot be read."""


def _to_float(value: str, line_no: int) -> float:
    try:
        return float(value)
    except ValueError:
        raise RecommendationsParseError(
            f"line {line_no}: expected a number, got {value!r}"
        ) from None


def _split_row(line: str) -> list[str]:
    return [cell.strip() for cell in line.split("|")]


def parse_recommendations(text: str, job) -> ParsedResult:
    """Parse the recommendations table for ``job`` into a ParsedResult.

    ``job`` only contributes its row key, which identifies the run in the email.
    """
    lines = text.splitlines()
    header_index = next(
        (i for i, line in enumerate(lines) if line.strip().lower().startswith("parameter")),
        None,
    )
    if header_index is None:
        raise RecommendationsParseError("recommendations header row not found")

    isf: Recommendation | None = None
    isf_units = "mg/dL/U"
    carb_ratio: Recommendation | None = None
    basal: list[BasalRecommendation] = []

    for line_no, line in enumerate(lines[header_index + 1 :], start=header_index + 2):
        if "|" not in line:
            continue
        cells = _split_row(line)
        if len(cells) < 3:
            raise RecommendationsParseError(f"line {line_no}: expected at least 3 columns")
        name, current, recommended = cells[0], cells[1], cells[2]

        if name.upper().startswith("ISF"):
            isf = Recommendation(
                current=_to_float(current, line_no),
                recommended=_to_float(recommended, line_no),
            )
            units = _UNITS_RE.search(name)
            if units:
                isf_units = units.group(1).strip()
        elif name.lower().startswith("carb ratio"):
            carb_ratio = Recommendation(
                current=_to_float(current, line_no),
                recommended=_to_float(recommended, line_no),
            )
        elif _TIME_RE.match(name):
            missing = cells[3] if len(cells) > 3 and cells[3] else "0"
            try:
                days_missing = int(missing)
            except ValueError:
                raise RecommendationsParseError(
                    f"line {line_no}: bad days-missing value {missing!r}"
                ) from None
            basal.append(
                BasalRecommendation(
                    time=name.zfill(5),
                    current=_to_float(current, line_no),
                    recommended=_to_float(recommended, line_no),
                    days_missing=days_missing,
                )
            )

    if isf is None:
        raise RecommendationsParseError("ISF row not found")
    if carb_ratio is None:
        raise RecommendationsParseError("carb ratio row not found")

    return ParsedResult(
        job_id=job.row_key,
        isf=isf,
        isf_units=isf_units,
        carb_ratio=carb_ratio,
        basal=basal,
    )
