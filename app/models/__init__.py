"""SQLAlchemy models."""

from app.models.cadence_strategy import CadenceStrategy
from app.models.lead_qualification import LeadQualification
from app.models.outreach_attempt import OutreachAttempt

__all__ = [
    "CadenceStrategy",
    "LeadQualification",
    "OutreachAttempt",
]
