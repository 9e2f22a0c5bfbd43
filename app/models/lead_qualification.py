"""LeadQualification model — one qualification result per questionnaire submission."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.db.types import JSONType

# source values
SOURCE_SUBMISSION = "submission"
SOURCE_RESCORE = "rescore"
SOURCE_OVERRIDE = "override"


class LeadQualification(Base):
    """Scored questionnaire response for a lead within an organization.

    Rows are never updated. Re-submission, rescore and override insert a new
    row pointing at the one it supersedes; the newest row per
    (organization_id, lead_id) is the current qualification.
    """

    __tablename__ = "lead_qualifications"

    __table_args__ = (
        Index(
            "ix_lead_qualifications_org_lead_created",
            "organization_id",
            "lead_id",
            "created_at",
        ),
        Index("ix_lead_qualifications_lead_id", "lead_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lead_id: Mapped[str] = mapped_column(String(64), nullable=False)
    answers: Mapped[dict] = mapped_column(JSONType, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    score_components: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    classification: Mapped[str] = mapped_column(String(32), nullable=False)
    # Manual override, recorded separately so classification always equals policy(score)
    classification_override: Mapped[str | None] = mapped_column(String(32), nullable=True)
    override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    questionnaire_version: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default=SOURCE_SUBMISSION)
    supersedes_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("lead_qualifications.id", ondelete="SET NULL"),
        nullable=True,
    )
    qualified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def effective_classification(self) -> str:
        """Category used for cadence: the override when present, else the derived tier."""
        return self.classification_override or self.classification

    @property
    def is_overridden(self) -> bool:
        return self.classification_override is not None
