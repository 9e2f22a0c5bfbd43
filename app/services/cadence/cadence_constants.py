"""Cadence constants and default strategies.

Defaults follow the questionnaire timing strategy used by the dashboard:
hotter tiers are contacted sooner and more often.
"""

from __future__ import annotations

from datetime import timedelta

# ── Trailing window for the weekly cap ──────────────────────────────────

WEEKLY_WINDOW: timedelta = timedelta(days=7)

# ── Blocking reasons (EligibilityDecision.blocked_by) ───────────────────

BLOCKED_DISABLED = "disabled"
BLOCKED_INITIAL_WAIT = "initial_wait"
BLOCKED_COOLDOWN = "cooldown"
BLOCKED_WEEKLY_CAP = "weekly_cap"

# ── Strategy fields ─────────────────────────────────────────────────────

STRATEGY_INT_FIELDS: tuple[str, ...] = (
    "initial_wait_days",
    "cooldown_hours",
    "max_sessions_per_week",
)
STRATEGY_FIELDS: frozenset[str] = frozenset(STRATEGY_INT_FIELDS + ("enabled",))

# ── Seeded at initialization (missing rows only) ────────────────────────

DEFAULT_CADENCE_STRATEGIES: dict[str, dict[str, int | bool]] = {
    "hot": {"initial_wait_days": 2, "cooldown_hours": 48, "max_sessions_per_week": 3, "enabled": True},
    "warm": {"initial_wait_days": 3, "cooldown_hours": 72, "max_sessions_per_week": 2, "enabled": True},
    "cold": {"initial_wait_days": 7, "cooldown_hours": 120, "max_sessions_per_week": 1, "enabled": True},
    "info_seeker": {"initial_wait_days": 14, "cooldown_hours": 168, "max_sessions_per_week": 1, "enabled": True},
}
