"""Translate driver/connection failures into the engine's retryable error."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.services.errors import TransientError

logger = logging.getLogger(__name__)

# Failures that mean "storage unavailable", not "bad data".
TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise connection-level database failures as TransientError.

    Integrity and programming errors propagate unchanged.
    """
    try:
        yield
    except TRANSIENT_DB_ERRORS as exc:
        logger.warning("Storage unavailable during %s: %s", operation, exc)
        raise TransientError(f"Storage unavailable during {operation}") from exc
