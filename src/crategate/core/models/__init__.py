"""Pydantic models and service protocols."""

from .gateway_models import AppConfig, ResultType, ScoringWeights
from .release_models import ReleaseDetails, SearchPage

__all__ = [
    "AppConfig",
    "ReleaseDetails",
    "ResultType",
    "ScoringWeights",
    "SearchPage",
]
