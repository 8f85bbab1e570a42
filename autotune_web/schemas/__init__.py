"""Pydantic schemas for request/response validation."""

from autotune_web.schemas.results import BasalRecommendation, ParsedResult, Recommendation

__all__ = ["BasalRecommendation", "ParsedResult", "Recommendation"]
