"""Lead qualification API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from app.services.cadence.clock import ensure_utc

# SQLite hands back naive datetimes; the API always speaks UTC.
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class QualificationSubmit(BaseModel):
    """POST body for a questionnaire submission."""

    organization_id: str = Field(min_length=1, max_length=64)
    lead_id: str = Field(min_length=1, max_length=64)
    answers: dict[str, Any]


class QualificationRead(BaseModel):
    """One qualification row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: str
    lead_id: str
    answers: dict[str, Any]
    score: int
    score_components: dict[str, float] | None = None
    classification: str
    classification_override: str | None = None
    override_reason: str | None = None
    effective_classification: str
    is_overridden: bool
    questionnaire_version: int
    source: str
    supersedes_id: int | None = None
    qualified_at: UtcDatetime
    created_at: UtcDatetime


class QualificationHistory(BaseModel):
    """All rows for a lead, newest first."""

    items: list[QualificationRead]


class ClassificationOverride(BaseModel):
    """POST body for a manual override. tier=null clears the override."""

    tier: str | None = None
    reason: str = Field(min_length=1)


class TierStats(BaseModel):
    count: int
    average_score: float | None = None


class LeadScoringStats(BaseModel):
    """Dashboard statistics over current qualifications."""

    organization_id: str
    total_leads: int
    average_score: float | None = None
    overridden_leads: int
    tiers: dict[str, TierStats]
    score_distribution: dict[str, int]
