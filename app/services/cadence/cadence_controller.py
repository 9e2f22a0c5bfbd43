"""Cadence controller — is a lead eligible for another outreach attempt right now?

Three independent gates, evaluated against the append-only attempt log at
the caller-supplied ``now``:

1. initial wait: qualified_at + initial_wait_days
2. cooldown:     last attempt + cooldown_hours
3. weekly cap:   attempts in the trailing window (now - 7d, now] < max_sessions_per_week

A disabled strategy blocks outright with no next time. When several gates
block, next_eligible_at is the latest of their clearance times, since all of
them must clear. A gate that can never clear (cap of 0) yields None.

Storage failures propagate as TransientError; the controller never answers
eligibility from a failed read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.models.outreach_attempt import OutreachAttempt
from app.services.cadence.attempt_log import OutreachAttemptLog, validate_outcome
from app.services.cadence.cadence_constants import (
    BLOCKED_COOLDOWN,
    BLOCKED_DISABLED,
    BLOCKED_INITIAL_WAIT,
    BLOCKED_WEEKLY_CAP,
    WEEKLY_WINDOW,
)
from app.services.cadence.clock import ensure_utc
from app.services.cadence.lead_locks import LeadLockRegistry, lead_locks
from app.services.cadence.strategy_store import CadenceStrategyStore
from app.services.errors import ConcurrencyOveradmission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeadCadenceContext:
    """What the controller needs to know about a lead."""

    organization_id: str
    lead_id: str
    qualified_at: datetime
    category: str


@dataclass(frozen=True)
class EligibilityDecision:
    """Result of an eligibility check.

    next_eligible_at is None when eligible, and also when the lead is blocked
    with no finite clearance time (disabled strategy, cap of 0).
    """

    eligible: bool
    next_eligible_at: datetime | None = None
    blocked_by: tuple[str, ...] = ()


@dataclass(frozen=True)
class AdmissionResult:
    """Result of a strict check-and-record admission."""

    admitted: bool
    decision: EligibilityDecision
    attempt: OutreachAttempt | None = None


def window_reopens_at(window_times: list[datetime], cap: int) -> datetime | None:
    """Return when the trailing window will next hold fewer than cap attempts.

    window_times must be sorted oldest first. With exactly cap attempts this is
    the oldest attempt + 7 days; with more (over-admission) it is the expiry of
    the attempt that brings the count below cap. A cap of 0 never reopens.
    """
    if cap <= 0:
        return None
    if len(window_times) < cap:
        return None
    return window_times[len(window_times) - cap] + WEEKLY_WINDOW


class CadenceController:
    """Admission control for outreach attempts, per lead."""

    def __init__(
        self,
        strategies: CadenceStrategyStore,
        attempts: OutreachAttemptLog,
        locks: LeadLockRegistry | None = None,
    ) -> None:
        self._strategies = strategies
        self._attempts = attempts
        self._locks = locks or lead_locks

    def is_eligible_now(self, lead: LeadCadenceContext, now: datetime) -> EligibilityDecision:
        """Decide whether a new outreach attempt is permitted at now.

        Raises:
            TransientError: If the strategy store or attempt log is unavailable.
        """
        now = ensure_utc(now)
        strategy = self._strategies.get(lead.category)
        if not strategy.enabled:
            logger.debug("Lead %s blocked: strategy %s disabled", lead.lead_id, lead.category)
            return EligibilityDecision(eligible=False, next_eligible_at=None, blocked_by=(BLOCKED_DISABLED,))

        blockers: list[tuple[str, datetime | None]] = []

        earliest_by_initial_wait = ensure_utc(lead.qualified_at) + timedelta(days=strategy.initial_wait_days)
        if now < earliest_by_initial_wait:
            blockers.append((BLOCKED_INITIAL_WAIT, earliest_by_initial_wait))

        last_attempt = self._attempts.latest_attempt_at(lead.organization_id, lead.lead_id, as_of=now)
        if last_attempt is not None:
            earliest_by_cooldown = last_attempt + timedelta(hours=strategy.cooldown_hours)
            if now < earliest_by_cooldown:
                blockers.append((BLOCKED_COOLDOWN, earliest_by_cooldown))

        window = self._attempts.attempt_times(
            lead.organization_id, lead.lead_id, after=now - WEEKLY_WINDOW, until=now
        )
        if len(window) >= strategy.max_sessions_per_week:
            blockers.append((BLOCKED_WEEKLY_CAP, window_reopens_at(window, strategy.max_sessions_per_week)))

        if not blockers:
            return EligibilityDecision(eligible=True)

        times = [t for _, t in blockers]
        next_eligible_at = None if any(t is None for t in times) else max(times)
        blocked_by = tuple(name for name, _ in blockers)
        logger.debug(
            "Lead %s blocked by %s until %s",
            lead.lead_id,
            ",".join(blocked_by),
            next_eligible_at.isoformat() if next_eligible_at else "never",
        )
        return EligibilityDecision(eligible=False, next_eligible_at=next_eligible_at, blocked_by=blocked_by)

    def record_attempt(self, lead: LeadCadenceContext, now: datetime, outcome: str) -> OutreachAttempt:
        """Append an attempt at now without re-checking eligibility.

        The trailing-window count is read before the append; if the new
        attempt pushes the lead over its weekly cap (concurrent callers both
        admitted), a ConcurrencyOveradmission warning is logged.

        Raises:
            ValidationError: If outcome is unknown.
            TransientError: If storage is unavailable (nothing is appended).
        """
        now = ensure_utc(now)
        outcome = validate_outcome(outcome)
        strategy = self._strategies.get(lead.category)
        in_window = len(
            self._attempts.attempt_times(lead.organization_id, lead.lead_id, after=now - WEEKLY_WINDOW, until=now)
        )
        attempt = self._attempts.append(lead.organization_id, lead.lead_id, now, outcome)
        if strategy.enabled and in_window + 1 > strategy.max_sessions_per_week:
            logger.warning(
                "%s",
                ConcurrencyOveradmission(lead.lead_id, in_window + 1, strategy.max_sessions_per_week),
            )
        logger.info(
            "Outreach attempt recorded: org=%s lead=%s outcome=%s at=%s",
            lead.organization_id,
            lead.lead_id,
            outcome,
            now.isoformat(),
        )
        return attempt

    def admit_attempt(self, lead: LeadCadenceContext, now: datetime, outcome: str) -> AdmissionResult:
        """Check eligibility and record the attempt atomically for this lead.

        Serialized per lead (in-process lock plus the log's row lock), so the
        weekly cap holds as a hard limit for callers that use this path.
        """
        outcome = validate_outcome(outcome)
        with self._locks.hold(lead.organization_id, lead.lead_id):
            self._attempts.lock_lead(lead.organization_id, lead.lead_id)
            decision = self.is_eligible_now(lead, now)
            if not decision.eligible:
                return AdmissionResult(admitted=False, decision=decision)
            attempt = self._attempts.append(lead.organization_id, lead.lead_id, ensure_utc(now), outcome)
        logger.info(
            "Outreach attempt admitted: org=%s lead=%s outcome=%s",
            lead.organization_id,
            lead.lead_id,
            outcome,
        )
        return AdmissionResult(admitted=True, decision=decision, attempt=attempt)
