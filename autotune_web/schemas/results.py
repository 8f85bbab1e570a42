"""Autotune result schemas used to render the results email."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Recommendation(BaseModel):
    """Current pump value next to the value autotune recommends."""

    current: float
    recommended: float

    @property
    def change_percent(self) -> float | None:
        if self.current == 0:
            return None
        return round((self.recommended - self.current) / self.current * 100, 1)


class BasalRecommendation(Recommendation):
    """Basal rate for the half-hour slot starting at ``time`` (HH:MM)."""

    time: str
    days_missing: int = 0


class ParsedResult(BaseModel):
    """Recommendations parsed from ``autotune_recommendations.log``."""

    job_id: str
    isf: Recommendation
    isf_units: str = "mg/dL/U"
    carb_ratio: Recommendation
    basal: list[BasalRecommendation] = Field(default_factory=list)
    # Filled in by the results callback from the caller's commit hash
    version: str = ""
