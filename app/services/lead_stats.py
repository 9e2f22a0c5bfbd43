"""Lead scoring statistics for dashboard views, with signal-driven invalidation.

The qualification write path fires ``lead_scoring_signal`` after every
submission, rescore and override. The stats cache listens to it and drops the
organization's entry; other listeners (notification dispatch for hot leads)
may connect too.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.errors import storage_errors
from app.models.lead_qualification import LeadQualification
from app.services.qualification.classification_policy import ClassificationPolicy

logger = logging.getLogger(__name__)

SCORE_BUCKET_SIZE = 20


@dataclass(frozen=True)
class LeadScoringEvent:
    """Payload sent when a lead's current qualification changes."""

    organization_id: str
    lead_id: str
    score: int
    classification: str
    source: str
    is_top_tier: bool = False


Listener = Callable[[LeadScoringEvent], None]


class LeadScoringSignal:
    """Synchronous in-process signal. Listeners run in connection order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def connect(self, listener: Listener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def disconnect(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def send(self, event: LeadScoringEvent) -> None:
        """Notify every listener. A failing listener is logged and does not stop the rest."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Lead scoring listener %r failed for org=%s lead=%s",
                    listener,
                    event.organization_id,
                    event.lead_id,
                )


class LeadStatsCache:
    """Per-organization TTL cache of computed statistics."""

    def __init__(self, ttl_seconds: int = 300, timer: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._timer = timer
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}
        self._generations: dict[str, int] = {}

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def get(self, organization_id: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(organization_id)
            if entry is None:
                return None
            stored_at, stats = entry
            if self._timer() - stored_at >= self._ttl:
                del self._entries[organization_id]
                return None
            return stats

    def generation(self, organization_id: str) -> int:
        """Invalidation count for the organization; pass it back to set()."""
        with self._lock:
            return self._generations.get(organization_id, 0)

    def set(self, organization_id: str, stats: dict[str, Any], generation: int | None = None) -> bool:
        """Store stats unless the organization was invalidated since generation was read."""
        if self._ttl <= 0:
            return False
        with self._lock:
            if generation is not None and generation != self._generations.get(organization_id, 0):
                return False
            self._entries[organization_id] = (self._timer(), stats)
            return True

    def invalidate(self, organization_id: str) -> bool:
        with self._lock:
            self._generations[organization_id] = self._generations.get(organization_id, 0) + 1
            return self._entries.pop(organization_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def on_lead_scored(self, event: LeadScoringEvent) -> None:
        if self.invalidate(event.organization_id):
            logger.debug("Lead stats cache invalidated for org=%s", event.organization_id)


def _build_stats_cache() -> LeadStatsCache:
    from app.config import get_settings

    return LeadStatsCache(ttl_seconds=get_settings().lead_stats_cache_ttl_seconds)


lead_scoring_signal = LeadScoringSignal()
lead_stats_cache = _build_stats_cache()
lead_scoring_signal.connect(lead_stats_cache.on_lead_scored)


def current_qualifications(db: Session, organization_id: str) -> list[LeadQualification]:
    """Newest qualification row per lead in the organization."""
    with storage_errors("lead qualification scan"):
        rows = db.scalars(
            select(LeadQualification)
            .where(LeadQualification.organization_id == organization_id)
            .order_by(LeadQualification.id.asc())
        ).all()
    latest: dict[str, LeadQualification] = {}
    for row in rows:
        latest[row.lead_id] = row
    return list(latest.values())


def _bucket_label(score: int) -> str:
    start = min(score // SCORE_BUCKET_SIZE, (100 // SCORE_BUCKET_SIZE) - 1) * SCORE_BUCKET_SIZE
    end = 100 if start + SCORE_BUCKET_SIZE >= 100 else start + SCORE_BUCKET_SIZE - 1
    return f"{start}-{end}"


def compute_lead_scoring_stats(
    rows: list[LeadQualification],
    policy: ClassificationPolicy,
) -> dict[str, Any]:
    """Aggregate current qualification rows.

    Tiers use the effective classification (override when present).
    Buckets: 0-19, 20-39, 40-59, 60-79, 80-100.
    """
    tiers: dict[str, dict[str, Any]] = {
        tier: {"count": 0, "average_score": None} for tier in policy.tier_labels
    }
    tier_totals: dict[str, int] = {tier: 0 for tier in policy.tier_labels}
    distribution = {
        _bucket_label(start): 0 for start in range(0, 100, SCORE_BUCKET_SIZE)
    }
    overridden = 0
    for row in rows:
        tier = row.effective_classification
        if tier not in tiers:
            tiers[tier] = {"count": 0, "average_score": None}
            tier_totals[tier] = 0
        tiers[tier]["count"] += 1
        tier_totals[tier] += row.score
        distribution[_bucket_label(row.score)] += 1
        if row.is_overridden:
            overridden += 1
    for tier, summary in tiers.items():
        if summary["count"]:
            summary["average_score"] = round(tier_totals[tier] / summary["count"], 1)

    total = len(rows)
    return {
        "total_leads": total,
        "average_score": round(sum(r.score for r in rows) / total, 1) if total else None,
        "overridden_leads": overridden,
        "tiers": tiers,
        "score_distribution": distribution,
    }


def get_lead_scoring_stats(
    db: Session,
    organization_id: str,
    policy: ClassificationPolicy,
    cache: LeadStatsCache | None = None,
) -> dict[str, Any]:
    """Return dashboard statistics for the organization, cached until invalidated or expired."""
    cache = lead_stats_cache if cache is None else cache
    cached = cache.get(organization_id)
    if cached is not None:
        return cached
    generation = cache.generation(organization_id)
    stats = compute_lead_scoring_stats(current_qualifications(db, organization_id), policy)
    if not cache.set(organization_id, stats, generation):
        logger.debug("Lead stats for org=%s changed while computing; not cached", organization_id)
    return stats
