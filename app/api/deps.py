"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

from fastapi import Header, HTTPException, status

from app.config import get_settings
from app.db.session import get_db  # re-export
from app.services.cadence.clock import system_clock
from app.services.errors import (
    AmbiguousLeadError,
    ConfigurationError,
    LeadEngineError,
    QualificationNotFoundError,
    TransientError,
    ValidationError,
)
from app.services.qualification.classification_policy import (
    ClassificationPolicy,
    get_classification_policy,
)

logger = logging.getLogger(__name__)

__all__ = [
    "engine_error_to_http",
    "get_clock",
    "get_db",
    "get_policy",
    "require_internal_token",
]

# Seconds a client should wait before retrying after a storage outage
RETRY_AFTER_SECONDS = 5


def require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the X-Internal-Token header against INTERNAL_JOB_TOKEN.

    Constant-time comparison. 403 if the token is unset or does not match.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Engine endpoint auth failed: invalid or missing token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid internal token")


def get_clock() -> datetime:
    """Current time for a request. Overridden in tests."""
    return system_clock()


def get_policy() -> ClassificationPolicy:
    return get_classification_policy()


def engine_error_to_http(exc: LeadEngineError) -> HTTPException:
    """Map an engine error onto the HTTP status the caller should see."""
    if isinstance(exc, ValidationError):
        detail: dict | str = {"message": str(exc), "errors": exc.errors} if exc.errors else str(exc)
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, QualificationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AmbiguousLeadError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, TransientError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    logger.error("Unmapped engine error: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
