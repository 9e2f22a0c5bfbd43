"""Tests for lead scoring statistics, the stats cache and the scoring signal."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from app.services.lead_cadence import override_classification, submit_qualification
from app.services.lead_stats import (
    LeadScoringEvent,
    LeadScoringSignal,
    LeadStatsCache,
    current_qualifications,
    get_lead_scoring_stats,
    lead_scoring_signal,
    lead_stats_cache,
)
from app.services.qualification.classification_policy import get_classification_policy
from tests.test_constants import COLD_ANSWERS, HOT_ANSWERS, INFO_SEEKER_ANSWERS, TEST_NOW, WARM_ANSWERS


def _event(org: str = "org-1") -> LeadScoringEvent:
    return LeadScoringEvent(organization_id=org, lead_id="lead-1", score=90, classification="hot", source="submission")


class TestLeadScoringSignal:
    def test_listeners_called_in_order(self) -> None:
        signal = LeadScoringSignal()
        calls = []
        signal.connect(lambda e: calls.append(("a", e.lead_id)))
        signal.connect(lambda e: calls.append(("b", e.lead_id)))
        signal.send(_event())
        assert calls == [("a", "lead-1"), ("b", "lead-1")]

    def test_failing_listener_does_not_block_others(self, caplog: pytest.LogCaptureFixture) -> None:
        signal = LeadScoringSignal()
        calls = []

        def broken(event: LeadScoringEvent) -> None:
            raise RuntimeError("boom")

        signal.connect(broken)
        signal.connect(calls.append)
        with caplog.at_level(logging.ERROR, logger="app.services.lead_stats"):
            signal.send(_event())
        assert len(calls) == 1
        assert "Lead scoring listener" in caplog.text

    def test_disconnect(self) -> None:
        signal = LeadScoringSignal()
        calls = []
        signal.connect(calls.append)
        signal.disconnect(calls.append)
        signal.send(_event())
        assert calls == []


class TestLeadStatsCache:
    def test_entries_expire_after_ttl(self) -> None:
        clock = [100.0]
        cache = LeadStatsCache(ttl_seconds=10, timer=lambda: clock[0])
        cache.set("org-1", {"total_leads": 1})
        clock[0] = 109.0
        assert cache.get("org-1") == {"total_leads": 1}
        clock[0] = 110.0
        assert cache.get("org-1") is None

    def test_zero_ttl_disables_caching(self) -> None:
        cache = LeadStatsCache(ttl_seconds=0)
        cache.set("org-1", {"total_leads": 1})
        assert cache.get("org-1") is None

    def test_set_skipped_after_invalidation_since_generation_read(self) -> None:
        cache = LeadStatsCache(ttl_seconds=60)
        generation = cache.generation("org-1")
        cache.invalidate("org-1")
        assert cache.set("org-1", {"total_leads": 1}, generation) is False
        assert cache.get("org-1") is None
        assert cache.set("org-1", {"total_leads": 2}, cache.generation("org-1")) is True
        assert cache.get("org-1") == {"total_leads": 2}

    def test_invalidated_by_scoring_event(self) -> None:
        cache = LeadStatsCache(ttl_seconds=60)
        cache.set("org-1", {"total_leads": 1})
        cache.set("org-2", {"total_leads": 2})
        cache.on_lead_scored(_event("org-1"))
        assert cache.get("org-1") is None
        assert cache.get("org-2") == {"total_leads": 2}


class TestLeadScoringStats:
    def test_aggregates_current_rows(self, db: Session) -> None:
        signal = LeadScoringSignal()
        submit_qualification(db, "org-1", "a", HOT_ANSWERS, TEST_NOW, signal=signal)  # 90
        submit_qualification(db, "org-1", "b", WARM_ANSWERS, TEST_NOW, signal=signal)  # 59
        submit_qualification(db, "org-1", "c", COLD_ANSWERS, TEST_NOW, signal=signal)  # 31
        submit_qualification(db, "org-1", "c", INFO_SEEKER_ANSWERS, TEST_NOW, signal=signal)  # 16, supersedes
        submit_qualification(db, "org-2", "z", HOT_ANSWERS, TEST_NOW, signal=signal)

        stats = get_lead_scoring_stats(db, "org-1", get_classification_policy(), cache=LeadStatsCache(0))
        assert stats["total_leads"] == 3
        assert stats["average_score"] == 55.0
        assert stats["tiers"]["hot"] == {"count": 1, "average_score": 90.0}
        assert stats["tiers"]["cold"] == {"count": 0, "average_score": None}
        assert stats["tiers"]["info_seeker"]["count"] == 1
        assert stats["score_distribution"] == {
            "0-19": 1,
            "20-39": 0,
            "40-59": 1,
            "60-79": 0,
            "80-100": 1,
        }

    def test_overrides_counted_under_effective_tier(self, db: Session) -> None:
        signal = LeadScoringSignal()
        submit_qualification(db, "org-1", "a", COLD_ANSWERS, TEST_NOW, signal=signal)
        override_classification(db, "org-1", "a", "hot", "Referral", TEST_NOW, signal=signal)
        stats = get_lead_scoring_stats(db, "org-1", get_classification_policy(), cache=LeadStatsCache(0))
        assert stats["tiers"]["hot"]["count"] == 1
        assert stats["overridden_leads"] == 1
        assert len(current_qualifications(db, "org-1")) == 1

    def test_empty_organization(self, db: Session) -> None:
        stats = get_lead_scoring_stats(db, "org-9", get_classification_policy(), cache=LeadStatsCache(0))
        assert stats["total_leads"] == 0
        assert stats["average_score"] is None

    def test_cached_until_submission_fires_signal(self, db: Session) -> None:
        policy = get_classification_policy()
        submit_qualification(db, "org-1", "a", HOT_ANSWERS, TEST_NOW, signal=lead_scoring_signal)
        first = get_lead_scoring_stats(db, "org-1", policy)
        assert first["total_leads"] == 1
        assert lead_stats_cache.get("org-1") is first

        submit_qualification(db, "org-1", "b", WARM_ANSWERS, TEST_NOW, signal=lead_scoring_signal)
        assert lead_stats_cache.get("org-1") is None
        assert get_lead_scoring_stats(db, "org-1", policy)["total_leads"] == 2

    def test_submission_during_computation_is_not_cached_stale(self, db: Session) -> None:
        from app.services import lead_stats

        policy = get_classification_policy()
        submit_qualification(db, "org-1", "a", HOT_ANSWERS, TEST_NOW, signal=lead_scoring_signal)
        real_current = lead_stats.current_qualifications

        def read_then_submit(session, organization_id):
            rows = real_current(session, organization_id)
            submit_qualification(db, "org-1", "b", WARM_ANSWERS, TEST_NOW, signal=lead_scoring_signal)
            return rows

        with patch("app.services.lead_stats.current_qualifications", side_effect=read_then_submit):
            assert get_lead_scoring_stats(db, "org-1", policy)["total_leads"] == 1

        assert lead_stats_cache.get("org-1") is None
        assert get_lead_scoring_stats(db, "org-1", policy)["total_leads"] == 2
