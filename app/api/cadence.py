"""Outreach cadence API: eligibility, attempts, admissions, strategies.

Called by the outreach scheduler (eligibility, admissions) and by admin
automation (strategies). ``now`` defaults to the request clock; schedulers
that evaluate a planned send time may pass it explicitly.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import engine_error_to_http, get_clock, get_db, get_policy, require_internal_token
from app.models.lead_qualification import LeadQualification
from app.schemas.cadence import (
    AdmissionRead,
    CadenceStrategyList,
    CadenceStrategyRead,
    CadenceStrategyUpdate,
    EligibilityRead,
    OutreachAttemptCreate,
    OutreachAttemptList,
    OutreachAttemptRead,
)
from app.services.cadence.cadence_controller import EligibilityDecision
from app.services.errors import LeadEngineError
from app.services.lead_cadence import (
    admit_outreach_attempt,
    build_cadence_controller,
    cadence_context,
    get_cadence_strategy,
    list_cadence_strategies,
    list_outreach_attempts,
    resolve_lead,
    update_cadence_strategy,
)
from app.services.qualification.classification_policy import ClassificationPolicy

router = APIRouter(dependencies=[Depends(require_internal_token)])


def _eligibility(row: LeadQualification, decision: EligibilityDecision, at: datetime) -> EligibilityRead:
    return EligibilityRead(
        lead_id=row.lead_id,
        organization_id=row.organization_id,
        category=row.effective_classification,
        eligible=decision.eligible,
        next_eligible_at=decision.next_eligible_at,
        blocked_by=list(decision.blocked_by),
        evaluated_at=at,
    )


@router.get("/leads/{lead_id}/eligibility", response_model=EligibilityRead)
def eligibility(
    lead_id: str,
    organization_id: str | None = Query(None),
    now: datetime | None = Query(None, description="Evaluate at this time instead of the request time"),
    db: Session = Depends(get_db),
    clock_now: datetime = Depends(get_clock),
) -> EligibilityRead:
    """Is a new outreach attempt permitted for the lead?"""
    at = now or clock_now
    try:
        row = resolve_lead(db, lead_id, organization_id)
        decision = build_cadence_controller(db).is_eligible_now(cadence_context(row), at)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return _eligibility(row, decision, at)


@router.post(
    "/leads/{lead_id}/attempts",
    response_model=OutreachAttemptRead,
    status_code=status.HTTP_201_CREATED,
)
def record_attempt(
    lead_id: str,
    body: OutreachAttemptCreate,
    db: Session = Depends(get_db),
    clock_now: datetime = Depends(get_clock),
) -> OutreachAttemptRead:
    """Append an attempt unconditionally. Callers check eligibility first."""
    try:
        row = resolve_lead(db, lead_id, body.organization_id)
        attempt = build_cadence_controller(db).record_attempt(
            cadence_context(row), body.occurred_at or clock_now, body.outcome
        )
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return OutreachAttemptRead.model_validate(attempt)


@router.post(
    "/leads/{lead_id}/admissions",
    response_model=AdmissionRead,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": AdmissionRead, "description": "Lead not eligible"}},
)
def admit_attempt(
    lead_id: str,
    body: OutreachAttemptCreate,
    db: Session = Depends(get_db),
    clock_now: datetime = Depends(get_clock),
):
    """Check eligibility and record the attempt in one serialized step.

    409 with the blocking decision when the lead is not eligible.
    """
    at = body.occurred_at or clock_now
    try:
        row = resolve_lead(db, lead_id, body.organization_id)
        result = admit_outreach_attempt(db, row.lead_id, at, body.outcome, organization_id=row.organization_id)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    payload = AdmissionRead(
        admitted=result.admitted,
        eligibility=_eligibility(row, result.decision, at),
        attempt=OutreachAttemptRead.model_validate(result.attempt) if result.attempt else None,
    )
    if not result.admitted:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=payload.model_dump(mode="json"))
    return payload


@router.get("/leads/{lead_id}/attempts", response_model=OutreachAttemptList)
def attempts(
    lead_id: str,
    organization_id: str | None = Query(None),
    db: Session = Depends(get_db),
) -> OutreachAttemptList:
    """Attempt history for the lead, newest first."""
    try:
        rows = list_outreach_attempts(db, lead_id, organization_id)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return OutreachAttemptList(items=[OutreachAttemptRead.model_validate(r) for r in rows])


@router.get("/strategies", response_model=CadenceStrategyList)
def strategies(
    db: Session = Depends(get_db),
    policy: ClassificationPolicy = Depends(get_policy),
) -> CadenceStrategyList:
    """Effective strategy per tier (disabled when no row is stored)."""
    try:
        items = list_cadence_strategies(db, policy)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return CadenceStrategyList(items=[CadenceStrategyRead.model_validate(s) for s in items])


@router.get("/strategies/{category}", response_model=CadenceStrategyRead)
def strategy(category: str, db: Session = Depends(get_db)) -> CadenceStrategyRead:
    try:
        params = get_cadence_strategy(db, category)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return CadenceStrategyRead.model_validate(params)


@router.patch("/strategies/{category}", response_model=CadenceStrategyRead)
def patch_strategy(
    category: str,
    body: CadenceStrategyUpdate,
    db: Session = Depends(get_db),
    policy: ClassificationPolicy = Depends(get_policy),
) -> CadenceStrategyRead:
    """Merge the provided fields onto the category's stored strategy."""
    fields = body.model_dump(exclude_unset=True)
    try:
        params = update_cadence_strategy(db, category, fields, policy)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return CadenceStrategyRead.model_validate(params)
