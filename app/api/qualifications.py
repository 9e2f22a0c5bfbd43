"""Lead qualification API: submit, read, rescore, override, stats."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import engine_error_to_http, get_clock, get_db, get_policy, require_internal_token
from app.schemas.qualification import (
    ClassificationOverride,
    LeadScoringStats,
    QualificationHistory,
    QualificationRead,
    QualificationSubmit,
)
from app.services.errors import LeadEngineError
from app.services.lead_cadence import (
    get_current_qualification,
    list_qualification_history,
    override_classification,
    rescore_qualification,
    submit_qualification,
)
from app.services.lead_stats import get_lead_scoring_stats
from app.services.qualification.classification_policy import ClassificationPolicy

router = APIRouter(dependencies=[Depends(require_internal_token)])


@router.post("", response_model=QualificationRead, status_code=201)
def submit(
    body: QualificationSubmit,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
    policy: ClassificationPolicy = Depends(get_policy),
) -> QualificationRead:
    """Score a questionnaire response and store it as the lead's current qualification."""
    try:
        row = submit_qualification(
            db, body.organization_id, body.lead_id, body.answers, now, policy=policy
        )
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return QualificationRead.model_validate(row)


# Declared before /{organization_id}/{lead_id} so "stats" is not read as a lead id.
@router.get("/{organization_id}/stats", response_model=LeadScoringStats)
def stats(
    organization_id: str,
    db: Session = Depends(get_db),
    policy: ClassificationPolicy = Depends(get_policy),
) -> LeadScoringStats:
    """Aggregate scoring statistics over the organization's current qualifications."""
    try:
        data = get_lead_scoring_stats(db, organization_id, policy)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return LeadScoringStats(organization_id=organization_id, **data)


@router.get("/{organization_id}/{lead_id}", response_model=QualificationRead)
def current(
    organization_id: str,
    lead_id: str,
    db: Session = Depends(get_db),
) -> QualificationRead:
    try:
        row = get_current_qualification(db, organization_id, lead_id)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return QualificationRead.model_validate(row)


@router.get("/{organization_id}/{lead_id}/history", response_model=QualificationHistory)
def history(
    organization_id: str,
    lead_id: str,
    db: Session = Depends(get_db),
) -> QualificationHistory:
    """All qualification rows for the lead, newest first."""
    try:
        rows = list_qualification_history(db, organization_id, lead_id)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    if not rows:
        raise HTTPException(status_code=404, detail=f"No qualification record for lead {lead_id}")
    return QualificationHistory(items=[QualificationRead.model_validate(r) for r in rows])


@router.post("/{organization_id}/{lead_id}/rescore", response_model=QualificationRead)
def rescore(
    organization_id: str,
    lead_id: str,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
    policy: ClassificationPolicy = Depends(get_policy),
) -> QualificationRead:
    """Re-run scoring over the stored answers with the current configuration."""
    try:
        row = rescore_qualification(db, organization_id, lead_id, now, policy=policy)
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return QualificationRead.model_validate(row)


@router.post("/{organization_id}/{lead_id}/override", response_model=QualificationRead)
def override(
    organization_id: str,
    lead_id: str,
    body: ClassificationOverride,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
    policy: ClassificationPolicy = Depends(get_policy),
) -> QualificationRead:
    """Set (or clear, with tier=null) a manual classification override."""
    try:
        row = override_classification(
            db, organization_id, lead_id, body.tier, body.reason, now, policy=policy
        )
    except LeadEngineError as exc:
        raise engine_error_to_http(exc) from exc
    return QualificationRead.model_validate(row)
