"""Pydantic schemas for generation and adaptation requests."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from lifemap.core.adaptation_merge import AdaptationSuggestion
from lifemap.core.schemas_timeline import Age


class LanguageHint(BaseModel):
    """Optional language hint shared by all generation requests."""

    language: str | None = Field(
        default=None, min_length=2, max_length=5, description="Preferred two-letter language code"
    )


class GeneratePredictionsRequest(LanguageHint):
    """Request body for bulk prediction generation."""


class GenerateStepsRequest(LanguageHint):
    """Request body for bulk step generation."""


class AdaptEventRequest(LanguageHint):
    """Request body for an event edit that should re-adapt nearby predictions."""

    year: Age = Field(..., description="Year of the edited event")
    text: str = Field(..., min_length=1, description="New event text")
    event_id: UUID | None = Field(
        default=None, description="Stored event being edited; omitted for a new entry"
    )


class AdaptStepRequest(LanguageHint):
    """Request body for a step edit that should re-adapt nearby steps."""

    text: str = Field(..., min_length=1, description="New step text")
    apply: bool = Field(default=True, description="False returns suggestions without writing")


class AdaptationResponse(BaseModel):
    """Result of an adaptation pass."""

    edited_id: str
    oracle_called: bool
    applied_count: int = 0
    discarded_count: int = 0
    window_start: int
    window_end: int
    suggestions: list[AdaptationSuggestion] = Field(default_factory=list)
    message: str


class PredictionsResponse(BaseModel):
    """Predictions stored by a bulk generation run."""

    predictions: list[dict[str, Any]]
    language: str


class StepsResponse(BaseModel):
    """Steps stored by a bulk generation run."""

    steps: list[dict[str, Any]]
    language: str
