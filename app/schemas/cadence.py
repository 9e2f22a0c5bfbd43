"""Outreach cadence API schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.qualification import UtcDatetime


class EligibilityRead(BaseModel):
    """Eligibility decision. next_eligible_at is null when eligible or never."""

    lead_id: str
    organization_id: str
    category: str
    eligible: bool
    next_eligible_at: UtcDatetime | None = None
    blocked_by: list[str] = Field(default_factory=list)
    evaluated_at: UtcDatetime


class OutreachAttemptCreate(BaseModel):
    """POST body for recording or admitting an attempt. occurred_at defaults to now."""

    organization_id: str | None = None
    outcome: str = "attempted"
    occurred_at: UtcDatetime | None = None


class OutreachAttemptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    organization_id: str
    lead_id: str
    occurred_at: UtcDatetime
    outcome: str


class OutreachAttemptList(BaseModel):
    items: list[OutreachAttemptRead]


class AdmissionRead(BaseModel):
    """Result of a strict check-and-record admission."""

    admitted: bool
    eligibility: EligibilityRead
    attempt: OutreachAttemptRead | None = None


class CadenceStrategyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    initial_wait_days: int
    cooldown_hours: int
    max_sessions_per_week: int
    enabled: bool


class CadenceStrategyList(BaseModel):
    items: list[CadenceStrategyRead]


class CadenceStrategyUpdate(BaseModel):
    """PATCH body; omitted fields keep their stored values."""

    model_config = ConfigDict(extra="forbid", strict=True)

    initial_wait_days: int | None = None
    cooldown_hours: int | None = None
    max_sessions_per_week: int | None = None
    enabled: bool | None = None

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> CadenceStrategyUpdate:
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"{', '.join(nulls)} must not be null; omit a field to keep its stored value")
        return self
