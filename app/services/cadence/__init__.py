"""Outreach cadence: per-tier strategies, attempt log and admission control."""

from app.services.cadence.attempt_log import (
    InMemoryOutreachAttemptLog,
    OutreachAttemptLog,
    SqlOutreachAttemptLog,
)
from app.services.cadence.cadence_controller import (
    AdmissionResult,
    CadenceController,
    EligibilityDecision,
    LeadCadenceContext,
)
from app.services.cadence.strategy_store import (
    CadenceStrategyParams,
    CadenceStrategyStore,
    InMemoryCadenceStrategyStore,
    SqlCadenceStrategyStore,
    seed_default_strategies,
)

__all__ = [
    "AdmissionResult",
    "CadenceController",
    "CadenceStrategyParams",
    "CadenceStrategyStore",
    "EligibilityDecision",
    "InMemoryCadenceStrategyStore",
    "InMemoryOutreachAttemptLog",
    "LeadCadenceContext",
    "OutreachAttemptLog",
    "SqlCadenceStrategyStore",
    "SqlOutreachAttemptLog",
    "seed_default_strategies",
]
