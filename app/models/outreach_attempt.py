"""OutreachAttempt model — append-only log of outreach attempts per lead."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base

OUTCOME_ATTEMPTED = "attempted"
OUTCOME_SUCCEEDED = "succeeded"
OUTCOME_FAILED = "failed"

OUTREACH_OUTCOMES: frozenset[str] = frozenset(
    {OUTCOME_ATTEMPTED, OUTCOME_SUCCEEDED, OUTCOME_FAILED}
)


class OutreachAttempt(Base):
    """A single outreach attempt. Never updated or deleted."""

    __tablename__ = "outreach_attempts"

    __table_args__ = (
        Index(
            "ix_outreach_attempts_org_lead_occurred",
            "organization_id",
            "lead_id",
            "occurred_at",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lead_id: Mapped[str] = mapped_column(String(64), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
