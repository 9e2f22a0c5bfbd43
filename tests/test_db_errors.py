"""Tests for translating storage failures into TransientError."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.db.errors import storage_errors
from app.services.cadence.attempt_log import SqlOutreachAttemptLog
from app.services.cadence.strategy_store import SqlCadenceStrategyStore
from app.services.errors import TransientError
from tests.test_constants import TEST_NOW


@pytest.mark.parametrize(
    "exc",
    [
        OperationalError("SELECT 1", {}, Exception("connection refused")),
        InterfaceError("SELECT 1", {}, Exception("connection closed")),
        PoolTimeoutError("QueuePool limit reached"),
    ],
)
def test_connection_failures_become_transient(exc: Exception) -> None:
    with pytest.raises(TransientError) as exc_info:
        with storage_errors("lookup"):
            raise exc
    assert exc_info.value.retryable is True
    assert exc_info.value.__cause__ is exc


def test_integrity_errors_propagate_unchanged() -> None:
    exc = IntegrityError("INSERT", {}, Exception("duplicate"))
    with pytest.raises(IntegrityError):
        with storage_errors("insert"):
            raise exc


def test_strategy_store_read_failure(db: Session) -> None:
    with patch.object(db, "get", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        with pytest.raises(TransientError, match="cadence strategy lookup"):
            SqlCadenceStrategyStore(db).get("hot")


def test_attempt_log_append_failure_is_transient(db: Session) -> None:
    log = SqlOutreachAttemptLog(db)
    with patch.object(db, "commit", side_effect=OperationalError("INSERT", {}, Exception("down"))):
        with pytest.raises(TransientError, match="outreach attempt append"):
            log.append("org-1", "lead-1", TEST_NOW, "attempted")


def test_attempt_log_scan_failure_is_transient(db: Session) -> None:
    log = SqlOutreachAttemptLog(db)
    with patch.object(db, "scalars", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        with pytest.raises(TransientError):
            log.attempt_times("org-1", "lead-1", TEST_NOW, TEST_NOW)
