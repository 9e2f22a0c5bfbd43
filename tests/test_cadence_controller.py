"""Tests for cadence admission control (initial wait, cooldown, weekly cap)."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from app.services.cadence.attempt_log import InMemoryOutreachAttemptLog
from app.services.cadence.cadence_controller import (
    CadenceController,
    LeadCadenceContext,
    window_reopens_at,
)
from app.services.cadence.lead_locks import LeadLockRegistry
from app.services.cadence.strategy_store import InMemoryCadenceStrategyStore
from app.services.errors import TransientError, ValidationError

T0 = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)
DAY = timedelta(days=1)
HOUR = timedelta(hours=1)


def _controller(**fields) -> tuple[CadenceController, InMemoryOutreachAttemptLog]:
    strategy = {"initial_wait_days": 0, "cooldown_hours": 0, "max_sessions_per_week": 10, "enabled": True}
    strategy.update(fields)
    log = InMemoryOutreachAttemptLog()
    store = InMemoryCadenceStrategyStore({"warm": strategy})
    return CadenceController(store, log, locks=LeadLockRegistry()), log


def _lead(qualified_at: datetime = T0, category: str = "warm", lead_id: str = "lead-1") -> LeadCadenceContext:
    return LeadCadenceContext(
        organization_id="org-1",
        lead_id=lead_id,
        qualified_at=qualified_at,
        category=category,
    )


class TestDisabledStrategy:
    def test_disabled_is_never_eligible(self) -> None:
        controller, log = _controller(enabled=False)
        decision = controller.is_eligible_now(_lead(), T0 + 30 * DAY)
        assert decision.eligible is False
        assert decision.next_eligible_at is None
        assert decision.blocked_by == ("disabled",)

    def test_disabled_ignores_history(self) -> None:
        controller, log = _controller(enabled=False)
        log.append("org-1", "lead-1", T0 - 30 * DAY, "attempted")
        assert controller.is_eligible_now(_lead(), T0).next_eligible_at is None

    def test_unknown_category_is_disabled(self) -> None:
        controller, _ = _controller()
        decision = controller.is_eligible_now(_lead(category="lukewarm"), T0 + 365 * DAY)
        assert decision.eligible is False
        assert decision.next_eligible_at is None


class TestInitialWait:
    def test_before_wait_reports_wait_end(self) -> None:
        controller, _ = _controller(initial_wait_days=3)
        decision = controller.is_eligible_now(_lead(), T0 + 2 * DAY)
        assert decision.eligible is False
        assert decision.next_eligible_at == T0 + 3 * DAY
        assert decision.blocked_by == ("initial_wait",)

    def test_boundary_is_eligible(self) -> None:
        controller, _ = _controller(initial_wait_days=3)
        decision = controller.is_eligible_now(_lead(), T0 + 3 * DAY)
        assert decision.eligible is True
        assert decision.next_eligible_at is None

    def test_naive_qualified_at_treated_as_utc(self) -> None:
        controller, _ = _controller(initial_wait_days=1)
        lead = _lead(qualified_at=T0.replace(tzinfo=None))
        assert controller.is_eligible_now(lead, T0 + DAY).eligible is True


class TestCooldown:
    def test_within_cooldown_blocked(self) -> None:
        controller, log = _controller(cooldown_hours=24)
        t1 = T0 + DAY
        log.append("org-1", "lead-1", t1, "attempted")
        decision = controller.is_eligible_now(_lead(), t1 + 23 * HOUR)
        assert decision.eligible is False
        assert decision.next_eligible_at == t1 + 24 * HOUR
        assert decision.blocked_by == ("cooldown",)

    def test_cooldown_boundary_is_eligible(self) -> None:
        controller, log = _controller(cooldown_hours=24)
        t1 = T0 + DAY
        log.append("org-1", "lead-1", t1, "failed")
        assert controller.is_eligible_now(_lead(), t1 + 24 * HOUR).eligible is True

    def test_uses_most_recent_attempt(self) -> None:
        controller, log = _controller(cooldown_hours=24)
        log.append("org-1", "lead-1", T0 + 2 * DAY, "attempted")
        log.append("org-1", "lead-1", T0 + DAY, "attempted")  # appended out of order
        decision = controller.is_eligible_now(_lead(), T0 + 2 * DAY + HOUR)
        assert decision.next_eligible_at == T0 + 3 * DAY

    def test_attempts_after_now_are_ignored(self) -> None:
        controller, log = _controller(cooldown_hours=24)
        log.append("org-1", "lead-1", T0 + 5 * DAY, "attempted")
        assert controller.is_eligible_now(_lead(), T0 + DAY).eligible is True

    def test_other_leads_do_not_interfere(self) -> None:
        controller, log = _controller(cooldown_hours=24)
        log.append("org-1", "lead-2", T0 + DAY, "attempted")
        log.append("org-2", "lead-1", T0 + DAY, "attempted")
        assert controller.is_eligible_now(_lead(), T0 + DAY + HOUR).eligible is True


class TestWeeklyCap:
    def test_cap_reached_reports_window_reopening(self) -> None:
        controller, log = _controller(max_sessions_per_week=3)
        for offset in (0, 1, 2):
            log.append("org-1", "lead-1", T0 + offset * DAY, "attempted")
        decision = controller.is_eligible_now(_lead(), T0 + 3 * DAY)
        assert decision.eligible is False
        assert decision.next_eligible_at == T0 + 7 * DAY
        assert decision.blocked_by == ("weekly_cap",)

    def test_window_reopens_exactly_seven_days_after_oldest(self) -> None:
        controller, log = _controller(max_sessions_per_week=3)
        for offset in (0, 1, 2):
            log.append("org-1", "lead-1", T0 + offset * DAY, "attempted")
        assert controller.is_eligible_now(_lead(), T0 + 7 * DAY).eligible is True

    def test_trailing_window_not_calendar_week(self) -> None:
        # Sunday and the following Monday fall in different calendar weeks
        sunday = datetime(2026, 1, 4, 22, 0, tzinfo=UTC)
        controller, log = _controller(max_sessions_per_week=2)
        log.append("org-1", "lead-1", sunday, "attempted")
        log.append("org-1", "lead-1", sunday + 3 * HOUR, "attempted")
        decision = controller.is_eligible_now(_lead(qualified_at=sunday - 10 * DAY), sunday + 5 * HOUR)
        assert decision.eligible is False
        assert decision.next_eligible_at == sunday + 7 * DAY

    def test_single_session_cap_scenario(self) -> None:
        controller, _ = _controller(initial_wait_days=0, cooldown_hours=0, max_sessions_per_week=1)
        lead = _lead()
        assert controller.is_eligible_now(lead, T0).eligible is True

        controller.record_attempt(lead, T0, "attempted")
        decision = controller.is_eligible_now(lead, T0)
        assert decision.eligible is False
        assert decision.next_eligible_at == T0 + 7 * DAY
        assert controller.is_eligible_now(lead, T0 + 7 * DAY - timedelta(seconds=1)).eligible is False
        assert controller.is_eligible_now(lead, T0 + 7 * DAY).eligible is True

    def test_zero_cap_never_reopens(self) -> None:
        controller, _ = _controller(max_sessions_per_week=0)
        decision = controller.is_eligible_now(_lead(), T0 + DAY)
        assert decision.eligible is False
        assert decision.next_eligible_at is None
        assert decision.blocked_by == ("weekly_cap",)

    def test_over_admitted_window_waits_for_enough_expiries(self) -> None:
        times = [T0, T0 + DAY, T0 + 2 * DAY]
        assert window_reopens_at(times, 2) == T0 + DAY + 7 * DAY
        assert window_reopens_at(times, 3) == T0 + 7 * DAY
        assert window_reopens_at(times, 0) is None


class TestCombinedBlockers:
    def test_latest_clearance_time_wins(self) -> None:
        controller, log = _controller(initial_wait_days=3, cooldown_hours=96, max_sessions_per_week=1)
        log.append("org-1", "lead-1", T0 + DAY, "attempted")
        decision = controller.is_eligible_now(_lead(), T0 + 2 * DAY)
        assert decision.eligible is False
        # initial wait T0+3d, cooldown T0+5d, weekly cap T0+8d
        assert decision.next_eligible_at == T0 + 8 * DAY
        assert decision.blocked_by == ("initial_wait", "cooldown", "weekly_cap")

    def test_never_clearing_blocker_dominates(self) -> None:
        controller, _ = _controller(initial_wait_days=3, max_sessions_per_week=0)
        decision = controller.is_eligible_now(_lead(), T0 + DAY)
        assert decision.next_eligible_at is None
        assert set(decision.blocked_by) == {"initial_wait", "weekly_cap"}

    def test_eligible_once_all_clear(self) -> None:
        controller, log = _controller(initial_wait_days=3, cooldown_hours=96, max_sessions_per_week=1)
        log.append("org-1", "lead-1", T0 + DAY, "attempted")
        assert controller.is_eligible_now(_lead(), T0 + 8 * DAY).eligible is True


class TestRecordAttempt:
    def test_record_is_unconditional(self) -> None:
        controller, log = _controller(enabled=False)
        attempt = controller.record_attempt(_lead(), T0, "succeeded")
        assert attempt.outcome == "succeeded"
        assert log.attempt_times("org-1", "lead-1", T0 - DAY, T0) == [T0]

    def test_unknown_outcome_rejected(self) -> None:
        controller, log = _controller()
        with pytest.raises(ValidationError):
            controller.record_attempt(_lead(), T0, "bounced")
        assert log.attempt_times("org-1", "lead-1", T0 - DAY, T0) == []

    def test_overadmission_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        controller, _ = _controller(max_sessions_per_week=1)
        lead = _lead()
        controller.record_attempt(lead, T0, "attempted")
        with caplog.at_level(logging.WARNING, logger="app.services.cadence.cadence_controller"):
            controller.record_attempt(lead, T0 + HOUR, "attempted")
        assert "2 attempts in the trailing 7 days (cap 1)" in caplog.text

    def test_within_cap_no_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        controller, _ = _controller(max_sessions_per_week=2)
        with caplog.at_level(logging.WARNING, logger="app.services.cadence.cadence_controller"):
            controller.record_attempt(_lead(), T0, "attempted")
            controller.record_attempt(_lead(), T0 + HOUR, "attempted")
        assert "trailing 7 days" not in caplog.text


class TestAdmitAttempt:
    def test_admits_when_eligible(self) -> None:
        controller, log = _controller(max_sessions_per_week=1)
        result = controller.admit_attempt(_lead(), T0, "attempted")
        assert result.admitted is True
        assert result.attempt is not None
        assert log.attempt_times("org-1", "lead-1", T0 - DAY, T0) == [T0]

    def test_rejects_without_appending(self) -> None:
        controller, log = _controller(max_sessions_per_week=1)
        controller.admit_attempt(_lead(), T0, "attempted")
        result = controller.admit_attempt(_lead(), T0 + HOUR, "attempted")
        assert result.admitted is False
        assert result.attempt is None
        assert result.decision.next_eligible_at == T0 + 7 * DAY
        assert len(log.attempt_times("org-1", "lead-1", T0 - DAY, T0 + DAY)) == 1

    def test_concurrent_admissions_respect_cap(self) -> None:
        controller, log = _controller(max_sessions_per_week=2)
        lead = _lead()
        barrier = threading.Barrier(8)
        results = []

        def worker() -> None:
            barrier.wait()
            results.append(controller.admit_attempt(lead, T0, "attempted").admitted)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 2
        assert len(log.attempt_times("org-1", "lead-1", T0 - DAY, T0)) == 2

    def test_locks_released_after_admission(self) -> None:
        locks = LeadLockRegistry()
        store = InMemoryCadenceStrategyStore({"warm": {"max_sessions_per_week": 1, "enabled": True}})
        controller = CadenceController(store, InMemoryOutreachAttemptLog(), locks=locks)
        controller.admit_attempt(_lead(), T0, "attempted")
        controller.admit_attempt(_lead(), T0, "attempted")
        assert len(locks) == 0


class TestFailClosed:
    def test_strategy_lookup_failure_propagates(self) -> None:
        store = MagicMock()
        store.get.side_effect = TransientError("Storage unavailable during cadence strategy lookup")
        controller = CadenceController(store, InMemoryOutreachAttemptLog())
        with pytest.raises(TransientError):
            controller.is_eligible_now(_lead(), T0)

    def test_attempt_log_failure_propagates(self) -> None:
        log = MagicMock()
        log.latest_attempt_at.side_effect = TransientError("Storage unavailable")
        store = InMemoryCadenceStrategyStore({"warm": {"enabled": True, "max_sessions_per_week": 1}})
        controller = CadenceController(store, log)
        with pytest.raises(TransientError):
            controller.is_eligible_now(_lead(), T0 + DAY)

    def test_record_does_not_append_when_count_read_fails(self) -> None:
        log = MagicMock()
        log.attempt_times.side_effect = TransientError("Storage unavailable")
        store = InMemoryCadenceStrategyStore({"warm": {"enabled": True, "max_sessions_per_week": 1}})
        controller = CadenceController(store, log)
        with pytest.raises(TransientError):
            controller.record_attempt(_lead(), T0, "attempted")
        log.append.assert_not_called()
