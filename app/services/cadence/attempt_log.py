"""Outreach attempt log — append-only history that cadence decisions are computed from."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.db.errors import storage_errors
from app.models.lead_qualification import LeadQualification
from app.models.outreach_attempt import OUTREACH_OUTCOMES, OutreachAttempt
from app.services.cadence.clock import ensure_utc
from app.services.errors import ValidationError


def validate_outcome(outcome: str) -> str:
    """Return the normalized outcome or raise ValidationError."""
    normalized = (outcome or "").strip().lower()
    if normalized not in OUTREACH_OUTCOMES:
        raise ValidationError(
            f"Outcome must be one of: {', '.join(sorted(OUTREACH_OUTCOMES))}",
            errors={"outcome": f"unknown outcome {outcome!r}"},
        )
    return normalized


class OutreachAttemptLog(Protocol):
    """Storage interface for a lead's outreach attempts."""

    def latest_attempt_at(self, organization_id: str, lead_id: str, as_of: datetime) -> datetime | None:
        """Most recent occurred_at <= as_of, or None."""
        ...

    def attempt_times(
        self, organization_id: str, lead_id: str, after: datetime, until: datetime
    ) -> list[datetime]:
        """occurred_at values with after < occurred_at <= until, oldest first."""
        ...

    def append(
        self, organization_id: str, lead_id: str, occurred_at: datetime, outcome: str
    ) -> OutreachAttempt:
        """Append an attempt unconditionally and return it."""
        ...

    def lock_lead(self, organization_id: str, lead_id: str) -> None:
        """Serialize concurrent admissions for the lead until the next commit."""
        ...


class SqlOutreachAttemptLog:
    """OutreachAttemptLog backed by the outreach_attempts table."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def latest_attempt_at(self, organization_id: str, lead_id: str, as_of: datetime) -> datetime | None:
        as_of = ensure_utc(as_of)
        with storage_errors("outreach attempt lookup"):
            latest = self._db.scalar(
                select(func.max(OutreachAttempt.occurred_at)).where(
                    OutreachAttempt.organization_id == organization_id,
                    OutreachAttempt.lead_id == lead_id,
                    OutreachAttempt.occurred_at <= as_of,
                )
            )
        return ensure_utc(latest) if latest is not None else None

    def attempt_times(
        self, organization_id: str, lead_id: str, after: datetime, until: datetime
    ) -> list[datetime]:
        after, until = ensure_utc(after), ensure_utc(until)
        with storage_errors("outreach attempt window scan"):
            rows = self._db.scalars(
                select(OutreachAttempt.occurred_at)
                .where(
                    OutreachAttempt.organization_id == organization_id,
                    OutreachAttempt.lead_id == lead_id,
                    OutreachAttempt.occurred_at > after,
                    OutreachAttempt.occurred_at <= until,
                )
                .order_by(OutreachAttempt.occurred_at.asc())
            ).all()
        return [ensure_utc(t) for t in rows]

    def append(
        self, organization_id: str, lead_id: str, occurred_at: datetime, outcome: str
    ) -> OutreachAttempt:
        attempt = OutreachAttempt(
            organization_id=organization_id,
            lead_id=lead_id,
            occurred_at=ensure_utc(occurred_at),
            outcome=validate_outcome(outcome),
        )
        with storage_errors("outreach attempt append"):
            self._db.add(attempt)
            self._db.commit()
            self._db.refresh(attempt)
        return attempt

    def lock_lead(self, organization_id: str, lead_id: str) -> None:
        # Row lock on the lead's qualification rows; a no-op on SQLite.
        with storage_errors("lead lock"):
            self._db.execute(
                select(LeadQualification.id)
                .where(
                    LeadQualification.organization_id == organization_id,
                    LeadQualification.lead_id == lead_id,
                )
                .with_for_update()
            ).all()

    def list_attempts(self, organization_id: str, lead_id: str) -> list[OutreachAttempt]:
        """All attempts for the lead, newest first."""
        with storage_errors("outreach attempt list"):
            return list(
                self._db.scalars(
                    select(OutreachAttempt)
                    .where(
                        OutreachAttempt.organization_id == organization_id,
                        OutreachAttempt.lead_id == lead_id,
                    )
                    .order_by(OutreachAttempt.occurred_at.desc(), OutreachAttempt.id.desc())
                ).all()
            )


@dataclass(frozen=True)
class _Entry:
    organization_id: str
    lead_id: str
    occurred_at: datetime
    outcome: str


class InMemoryOutreachAttemptLog:
    """OutreachAttemptLog kept in process memory (tests, dry runs)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[_Entry] = []

    def _for_lead(self, organization_id: str, lead_id: str) -> list[_Entry]:
        return [
            e for e in self._entries if e.organization_id == organization_id and e.lead_id == lead_id
        ]

    def latest_attempt_at(self, organization_id: str, lead_id: str, as_of: datetime) -> datetime | None:
        as_of = ensure_utc(as_of)
        with self._lock:
            times = [e.occurred_at for e in self._for_lead(organization_id, lead_id) if e.occurred_at <= as_of]
        return max(times) if times else None

    def attempt_times(
        self, organization_id: str, lead_id: str, after: datetime, until: datetime
    ) -> list[datetime]:
        after, until = ensure_utc(after), ensure_utc(until)
        with self._lock:
            return sorted(
                e.occurred_at
                for e in self._for_lead(organization_id, lead_id)
                if after < e.occurred_at <= until
            )

    def append(
        self, organization_id: str, lead_id: str, occurred_at: datetime, outcome: str
    ) -> OutreachAttempt:
        entry = _Entry(organization_id, lead_id, ensure_utc(occurred_at), validate_outcome(outcome))
        with self._lock:
            self._entries.append(entry)
        return OutreachAttempt(
            organization_id=entry.organization_id,
            lead_id=entry.lead_id,
            occurred_at=entry.occurred_at,
            outcome=entry.outcome,
        )

    def lock_lead(self, organization_id: str, lead_id: str) -> None:
        return None
