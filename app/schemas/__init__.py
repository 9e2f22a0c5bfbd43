"""Pydantic schemas for request/response validation."""

from app.schemas.cadence import (
    AdmissionRead,
    CadenceStrategyList,
    CadenceStrategyRead,
    CadenceStrategyUpdate,
    EligibilityRead,
    OutreachAttemptCreate,
    OutreachAttemptList,
    OutreachAttemptRead,
)
from app.schemas.qualification import (
    ClassificationOverride,
    LeadScoringStats,
    QualificationHistory,
    QualificationRead,
    QualificationSubmit,
    TierStats,
)

__all__ = [
    # Qualification
    "QualificationSubmit",
    "QualificationRead",
    "QualificationHistory",
    "ClassificationOverride",
    # Stats
    "TierStats",
    "LeadScoringStats",
    # Cadence
    "EligibilityRead",
    "OutreachAttemptCreate",
    "OutreachAttemptRead",
    "OutreachAttemptList",
    "AdmissionRead",
    # Strategies
    "CadenceStrategyRead",
    "CadenceStrategyList",
    "CadenceStrategyUpdate",
]
