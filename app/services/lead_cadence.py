"""Lead qualification lifecycle and outreach cadence operations.

Entry points used by the HTTP layer and the host outreach scheduler:

- submit / rescore / override a lead's qualification (each inserts a new row
  superseding the current one; prior rows are kept for audit)
- check eligibility, record an attempt, or admit one under a per-lead lock
- read and update cadence strategies

Every operation takes ``now`` from the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.errors import storage_errors
from app.models.lead_qualification import (
    SOURCE_OVERRIDE,
    SOURCE_RESCORE,
    SOURCE_SUBMISSION,
    LeadQualification,
)
from app.models.outreach_attempt import OutreachAttempt
from app.qualification.loader import Questionnaire, load_questionnaire
from app.services.cadence.attempt_log import SqlOutreachAttemptLog
from app.services.cadence.cadence_controller import (
    AdmissionResult,
    CadenceController,
    EligibilityDecision,
    LeadCadenceContext,
)
from app.services.cadence.clock import ensure_utc
from app.services.cadence.strategy_store import CadenceStrategyParams, SqlCadenceStrategyStore
from app.services.errors import (
    AmbiguousLeadError,
    ConfigurationError,
    LeadEngineError,
    QualificationNotFoundError,
    ValidationError,
)
from app.services.lead_stats import (
    LeadScoringEvent,
    LeadScoringSignal,
    current_qualifications,
    lead_scoring_signal,
)
from app.services.qualification.classification_policy import (
    ClassificationPolicy,
    get_classification_policy,
)
from app.services.qualification.score_calculator import compute_score_breakdown

logger = logging.getLogger(__name__)

MAX_ID_LENGTH = 64


def _require_id(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", errors={name: "must be a non-empty string"})
    value = value.strip()
    if len(value) > MAX_ID_LENGTH:
        raise ValidationError(
            f"{name} is too long",
            errors={name: f"must be at most {MAX_ID_LENGTH} characters"},
        )
    return value


def _stored_answers(answers: Mapping[str, Any]) -> dict[str, Any]:
    """JSON-ready copy of answers; multi-select sets become sorted lists."""
    return {
        key: sorted(value) if isinstance(value, (set, frozenset, tuple)) else value
        for key, value in answers.items()
    }


# ── Qualification records ───────────────────────────────────────────────


def get_current_qualification(db: Session, organization_id: str, lead_id: str) -> LeadQualification:
    """Return the newest qualification row for the lead.

    Raises:
        QualificationNotFoundError: If the lead was never qualified in the organization.
    """
    with storage_errors("lead qualification lookup"):
        row = db.scalars(
            select(LeadQualification)
            .where(
                LeadQualification.organization_id == organization_id,
                LeadQualification.lead_id == lead_id,
            )
            .order_by(LeadQualification.id.desc())
            .limit(1)
        ).first()
    if row is None:
        raise QualificationNotFoundError(lead_id, organization_id)
    return row


def list_qualification_history(db: Session, organization_id: str, lead_id: str) -> list[LeadQualification]:
    """All qualification rows for the lead, newest first. Empty if never qualified."""
    with storage_errors("lead qualification history"):
        return list(
            db.scalars(
                select(LeadQualification)
                .where(
                    LeadQualification.organization_id == organization_id,
                    LeadQualification.lead_id == lead_id,
                )
                .order_by(LeadQualification.id.desc())
            ).all()
        )


def resolve_lead(db: Session, lead_id: str, organization_id: str | None = None) -> LeadQualification:
    """Current qualification for lead_id, resolving the organization when omitted.

    Raises:
        QualificationNotFoundError: No qualification for the lead.
        AmbiguousLeadError: organization_id omitted and the lead id exists in
            more than one organization.
    """
    if organization_id:
        return get_current_qualification(db, organization_id, lead_id)
    with storage_errors("lead organization lookup"):
        organization_ids = list(
            db.scalars(
                select(LeadQualification.organization_id)
                .where(LeadQualification.lead_id == lead_id)
                .distinct()
            ).all()
        )
    if not organization_ids:
        raise QualificationNotFoundError(lead_id)
    if len(organization_ids) > 1:
        raise AmbiguousLeadError(lead_id, organization_ids)
    return get_current_qualification(db, organization_ids[0], lead_id)


def _persist(db: Session, row: LeadQualification) -> LeadQualification:
    with storage_errors("lead qualification insert"):
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def _tier_movement(policy: ClassificationPolicy, before: str, after: str) -> str:
    if not (policy.is_known(before) and policy.is_known(after)):
        return "reclassified"
    delta = policy.rank(after) - policy.rank(before)
    if delta > 0:
        return "upgrade"
    if delta < 0:
        return "downgrade"
    return "unchanged"


def _notify(
    row: LeadQualification,
    policy: ClassificationPolicy,
    signal: LeadScoringSignal,
) -> None:
    tier = row.effective_classification
    is_top_tier = tier == policy.highest_tier
    if is_top_tier:
        logger.info(
            "Hot lead detected: org=%s lead=%s score=%d tier=%s",
            row.organization_id,
            row.lead_id,
            row.score,
            tier,
        )
    signal.send(
        LeadScoringEvent(
            organization_id=row.organization_id,
            lead_id=row.lead_id,
            score=row.score,
            classification=tier,
            source=row.source,
            is_top_tier=is_top_tier,
        )
    )


def submit_qualification(
    db: Session,
    organization_id: str,
    lead_id: str,
    answers: Mapping[str, Any],
    now: datetime,
    questionnaire: Questionnaire | None = None,
    policy: ClassificationPolicy | None = None,
    signal: LeadScoringSignal | None = None,
) -> LeadQualification:
    """Score answers, classify, and store a new qualification for the lead.

    A re-submission supersedes the current row: the new row points at it via
    supersedes_id, its qualified_at restarts the initial wait, and any manual
    override is not carried over.

    Raises:
        ValidationError: Missing ids, missing required answers or malformed values.
        TransientError: Storage unavailable.
    """
    organization_id = _require_id("organization_id", organization_id)
    lead_id = _require_id("lead_id", lead_id)
    questionnaire = questionnaire or load_questionnaire()
    policy = policy or get_classification_policy()
    signal = lead_scoring_signal if signal is None else signal

    breakdown = compute_score_breakdown(answers, questionnaire)
    classification = policy.classify(breakdown.score)
    now = ensure_utc(now)

    previous = list_qualification_history(db, organization_id, lead_id)
    row = _persist(
        db,
        LeadQualification(
            organization_id=organization_id,
            lead_id=lead_id,
            answers=_stored_answers(answers),
            score=breakdown.score,
            score_components=breakdown.components,
            classification=classification,
            questionnaire_version=questionnaire.version,
            source=SOURCE_SUBMISSION,
            supersedes_id=previous[0].id if previous else None,
            qualified_at=now,
            created_at=now,
        ),
    )
    logger.info(
        "Qualification submitted: org=%s lead=%s score=%d tier=%s%s",
        organization_id,
        lead_id,
        row.score,
        classification,
        f" (supersedes {row.supersedes_id})" if row.supersedes_id else "",
    )
    _notify(row, policy, signal)
    return row


def rescore_qualification(
    db: Session,
    organization_id: str,
    lead_id: str,
    now: datetime,
    questionnaire: Questionnaire | None = None,
    policy: ClassificationPolicy | None = None,
    signal: LeadScoringSignal | None = None,
) -> LeadQualification:
    """Recompute score and tier from the stored answers with the current configuration.

    qualified_at and any manual override are carried forward.
    """
    questionnaire = questionnaire or load_questionnaire()
    policy = policy or get_classification_policy()
    signal = lead_scoring_signal if signal is None else signal
    current = get_current_qualification(db, organization_id, lead_id)

    breakdown = compute_score_breakdown(current.answers, questionnaire)
    classification = policy.classify(breakdown.score)
    row = _persist(
        db,
        LeadQualification(
            organization_id=organization_id,
            lead_id=lead_id,
            answers=dict(current.answers),
            score=breakdown.score,
            score_components=breakdown.components,
            classification=classification,
            classification_override=current.classification_override,
            override_reason=current.override_reason,
            questionnaire_version=questionnaire.version,
            source=SOURCE_RESCORE,
            supersedes_id=current.id,
            qualified_at=current.qualified_at,
            created_at=ensure_utc(now),
        ),
    )
    logger.info(
        "Qualification rescored: org=%s lead=%s score %d -> %d, tier %s -> %s",
        organization_id,
        lead_id,
        current.score,
        row.score,
        current.classification,
        classification,
    )
    _notify(row, policy, signal)
    return row


def override_classification(
    db: Session,
    organization_id: str,
    lead_id: str,
    tier: str | None,
    reason: str,
    now: datetime,
    policy: ClassificationPolicy | None = None,
    signal: LeadScoringSignal | None = None,
) -> LeadQualification:
    """Record a manual tier override (tier=None clears it).

    The derived classification is left untouched; the override is stored
    beside it with its reason.

    Raises:
        ValidationError: Unknown tier or blank reason.
    """
    policy = policy or get_classification_policy()
    signal = lead_scoring_signal if signal is None else signal
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Override reason is required", errors={"reason": "must be a non-empty string"})
    if tier is not None and not policy.is_known(tier):
        raise ValidationError(
            f"Unknown tier {tier!r}",
            errors={"tier": f"must be one of: {', '.join(policy.tier_labels)}"},
        )
    current = get_current_qualification(db, organization_id, lead_id)

    row = _persist(
        db,
        LeadQualification(
            organization_id=organization_id,
            lead_id=lead_id,
            answers=dict(current.answers),
            score=current.score,
            score_components=current.score_components,
            classification=current.classification,
            classification_override=tier,
            override_reason=reason.strip(),
            questionnaire_version=current.questionnaire_version,
            source=SOURCE_OVERRIDE,
            supersedes_id=current.id,
            qualified_at=current.qualified_at,
            created_at=ensure_utc(now),
        ),
    )
    logger.info(
        "Classification override (%s): org=%s lead=%s %s -> %s (%s)",
        _tier_movement(policy, current.effective_classification, row.effective_classification),
        organization_id,
        lead_id,
        current.effective_classification,
        row.effective_classification,
        row.override_reason,
    )
    _notify(row, policy, signal)
    return row


def rescore_organization(
    db: Session,
    organization_id: str,
    now: datetime,
    questionnaire: Questionnaire | None = None,
    policy: ClassificationPolicy | None = None,
    signal: LeadScoringSignal | None = None,
) -> dict[str, Any]:
    """Rescore every current qualification in the organization.

    A lead whose stored answers no longer validate is logged and skipped; the
    rest of the batch still runs.

    Returns:
        dict with leads_rescored, leads_failed, tier_changes, error
    """
    questionnaire = questionnaire or load_questionnaire()
    policy = policy or get_classification_policy()
    rows = current_qualifications(db, organization_id)
    rescored = 0
    tier_changes = 0
    errors: list[str] = []
    for row in rows:
        try:
            new_row = rescore_qualification(
                db, organization_id, row.lead_id, now, questionnaire, policy, signal
            )
        except LeadEngineError as exc:
            db.rollback()
            logger.warning("Rescore failed for org=%s lead=%s: %s", organization_id, row.lead_id, exc)
            errors.append(f"Lead {row.lead_id}: {exc}")
            continue
        rescored += 1
        if new_row.effective_classification != row.effective_classification:
            tier_changes += 1

    logger.info(
        "Organization rescore completed: org=%s rescored=%d failed=%d tier_changes=%d",
        organization_id,
        rescored,
        len(errors),
        tier_changes,
    )
    return {
        "leads_rescored": rescored,
        "leads_failed": len(errors),
        "tier_changes": tier_changes,
        "error": "; ".join(errors) if errors else None,
    }


# ── Cadence ─────────────────────────────────────────────────────────────


def build_cadence_controller(db: Session) -> CadenceController:
    return CadenceController(SqlCadenceStrategyStore(db), SqlOutreachAttemptLog(db))


def cadence_context(row: LeadQualification) -> LeadCadenceContext:
    return LeadCadenceContext(
        organization_id=row.organization_id,
        lead_id=row.lead_id,
        qualified_at=ensure_utc(row.qualified_at),
        category=row.effective_classification,
    )


def check_eligibility(
    db: Session,
    lead_id: str,
    now: datetime,
    organization_id: str | None = None,
    controller: CadenceController | None = None,
) -> EligibilityDecision:
    """Is a new outreach attempt permitted for the lead at now?"""
    row = resolve_lead(db, lead_id, organization_id)
    controller = controller or build_cadence_controller(db)
    return controller.is_eligible_now(cadence_context(row), now)


def record_outreach_attempt(
    db: Session,
    lead_id: str,
    now: datetime,
    outcome: str,
    organization_id: str | None = None,
    controller: CadenceController | None = None,
) -> OutreachAttempt:
    """Append an attempt for the lead without re-checking eligibility."""
    row = resolve_lead(db, lead_id, organization_id)
    controller = controller or build_cadence_controller(db)
    return controller.record_attempt(cadence_context(row), now, outcome)


def admit_outreach_attempt(
    db: Session,
    lead_id: str,
    now: datetime,
    outcome: str,
    organization_id: str | None = None,
    controller: CadenceController | None = None,
) -> AdmissionResult:
    """Check eligibility and record in one step, serialized per lead."""
    row = resolve_lead(db, lead_id, organization_id)
    controller = controller or build_cadence_controller(db)
    result = controller.admit_attempt(cadence_context(row), now, outcome)
    if not result.admitted:
        # Release the row lock taken for the check.
        db.rollback()
    return result


def list_outreach_attempts(
    db: Session,
    lead_id: str,
    organization_id: str | None = None,
) -> list[OutreachAttempt]:
    row = resolve_lead(db, lead_id, organization_id)
    return SqlOutreachAttemptLog(db).list_attempts(row.organization_id, row.lead_id)


def list_cadence_strategies(
    db: Session,
    policy: ClassificationPolicy | None = None,
) -> list[CadenceStrategyParams]:
    """Effective strategy for every tier, then any stored rows for other categories."""
    policy = policy or get_classification_policy()
    store = SqlCadenceStrategyStore(db)
    stored = {s.category: s for s in store.list_strategies()}
    strategies = [stored.pop(tier, None) or CadenceStrategyParams.disabled(tier) for tier in policy.tier_labels]
    strategies.extend(stored[c] for c in sorted(stored))
    return strategies


def get_cadence_strategy(db: Session, category: str) -> CadenceStrategyParams:
    return SqlCadenceStrategyStore(db).get(category)


def update_cadence_strategy(
    db: Session,
    category: str,
    fields: Mapping[str, Any],
    policy: ClassificationPolicy | None = None,
) -> CadenceStrategyParams:
    """Administrative upsert of a tier's strategy.

    Raises:
        ConfigurationError: Unknown category or invalid fields.
    """
    policy = policy or get_classification_policy()
    if not policy.is_known(category):
        raise ConfigurationError(
            f"Unknown cadence category {category!r}; expected one of: {', '.join(policy.tier_labels)}"
        )
    return SqlCadenceStrategyStore(db).update(category, fields)
