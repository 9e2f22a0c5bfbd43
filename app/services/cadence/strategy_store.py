"""Cadence strategy store — per-category admission parameters.

``get`` never fails for a missing category: it returns a disabled strategy so
an unconfigured category can never permit outreach. ``update`` is a validated
upsert; partial updates merge onto the stored row.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.errors import storage_errors
from app.models.cadence_strategy import CadenceStrategy
from app.services.cadence.cadence_constants import (
    DEFAULT_CADENCE_STRATEGIES,
    STRATEGY_FIELDS,
    STRATEGY_INT_FIELDS,
)
from app.services.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CadenceStrategyParams:
    """Immutable view of a category's admission parameters."""

    category: str
    initial_wait_days: int = 0
    cooldown_hours: int = 0
    max_sessions_per_week: int = 0
    enabled: bool = False

    @classmethod
    def disabled(cls, category: str) -> CadenceStrategyParams:
        """Safe default for categories without a stored row."""
        return cls(category=category)

    def as_fields(self) -> dict[str, int | bool]:
        return {
            "initial_wait_days": self.initial_wait_days,
            "cooldown_hours": self.cooldown_hours,
            "max_sessions_per_week": self.max_sessions_per_week,
            "enabled": self.enabled,
        }


class CadenceStrategyStore(Protocol):
    """Storage interface for cadence strategies."""

    def get(self, category: str) -> CadenceStrategyParams:
        """Return the strategy for category, or a disabled default."""
        ...

    def update(self, category: str, fields: Mapping[str, Any]) -> CadenceStrategyParams:
        """Validate and upsert fields for category. Returns the stored strategy."""
        ...

    def list_strategies(self) -> list[CadenceStrategyParams]:
        """Return all stored strategies ordered by category."""
        ...


def validate_strategy_fields(category: str, fields: Mapping[str, Any]) -> dict[str, int | bool]:
    """Validate a (partial) strategy update.

    Returns:
        Normalized dict containing only the provided fields.

    Raises:
        ConfigurationError: On an empty category, unknown fields, non-integer
            or negative numeric fields, or a non-boolean enabled flag.
    """
    if not isinstance(category, str) or not category.strip():
        raise ConfigurationError("cadence strategy category must be a non-empty string")
    unknown = set(fields) - STRATEGY_FIELDS
    if unknown:
        raise ConfigurationError(
            f"cadence strategy '{category}' has unknown fields: {', '.join(sorted(unknown))}"
        )
    normalized: dict[str, int | bool] = {}
    for name in STRATEGY_INT_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigurationError(
                f"cadence strategy '{category}' {name} must be an integer, got {value!r}"
            )
        if value < 0:
            raise ConfigurationError(
                f"cadence strategy '{category}' {name} must be >= 0, got {value}"
            )
        normalized[name] = value
    if "enabled" in fields:
        if not isinstance(fields["enabled"], bool):
            raise ConfigurationError(
                f"cadence strategy '{category}' enabled must be a boolean, got {fields['enabled']!r}"
            )
        normalized["enabled"] = fields["enabled"]
    return normalized


def _params_from_row(row: CadenceStrategy) -> CadenceStrategyParams:
    return CadenceStrategyParams(
        category=row.category,
        initial_wait_days=row.initial_wait_days,
        cooldown_hours=row.cooldown_hours,
        max_sessions_per_week=row.max_sessions_per_week,
        enabled=row.enabled,
    )


class SqlCadenceStrategyStore:
    """CadenceStrategyStore backed by the cadence_strategies table."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, category: str) -> CadenceStrategyParams:
        with storage_errors("cadence strategy lookup"):
            row = self._db.get(CadenceStrategy, category)
        if row is None:
            return CadenceStrategyParams.disabled(category)
        return _params_from_row(row)

    def update(self, category: str, fields: Mapping[str, Any]) -> CadenceStrategyParams:
        normalized = validate_strategy_fields(category, fields)
        with storage_errors("cadence strategy update"):
            row = self._db.get(CadenceStrategy, category)
            if row is None:
                row = CadenceStrategy(
                    category=category,
                    **CadenceStrategyParams.disabled(category).as_fields(),
                )
                self._db.add(row)
            for name, value in normalized.items():
                setattr(row, name, value)
            row.updated_at = datetime.now(UTC)
            self._db.commit()
            self._db.refresh(row)
        logger.info("Cadence strategy updated: category=%s fields=%s", category, normalized)
        return _params_from_row(row)

    def list_strategies(self) -> list[CadenceStrategyParams]:
        with storage_errors("cadence strategy list"):
            rows = self._db.scalars(select(CadenceStrategy).order_by(CadenceStrategy.category)).all()
        return [_params_from_row(row) for row in rows]


class InMemoryCadenceStrategyStore:
    """CadenceStrategyStore holding fixed strategies in process memory."""

    def __init__(self, strategies: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, CadenceStrategyParams] = {}
        for category, fields in (strategies or {}).items():
            self.update(category, fields)

    def get(self, category: str) -> CadenceStrategyParams:
        with self._lock:
            return self._rows.get(category) or CadenceStrategyParams.disabled(category)

    def update(self, category: str, fields: Mapping[str, Any]) -> CadenceStrategyParams:
        normalized = validate_strategy_fields(category, fields)
        with self._lock:
            current = self._rows.get(category) or CadenceStrategyParams.disabled(category)
            updated = replace(current, **normalized)
            self._rows[category] = updated
        return updated

    def list_strategies(self) -> list[CadenceStrategyParams]:
        with self._lock:
            return [self._rows[c] for c in sorted(self._rows)]


def seed_default_strategies(
    db: Session,
    defaults: Mapping[str, Mapping[str, int | bool]] | None = None,
) -> list[str]:
    """Insert default strategies for categories without a stored row.

    Existing rows are never modified, so administrative edits survive restarts.

    Returns:
        Categories that were inserted.
    """
    defaults = DEFAULT_CADENCE_STRATEGIES if defaults is None else defaults
    inserted: list[str] = []
    with storage_errors("cadence strategy seed"):
        existing = set(db.scalars(select(CadenceStrategy.category)).all())
        for category, fields in defaults.items():
            if category in existing:
                continue
            normalized = validate_strategy_fields(category, fields)
            row_fields = {**CadenceStrategyParams.disabled(category).as_fields(), **normalized}
            db.add(CadenceStrategy(category=category, **row_fields))
            inserted.append(category)
        if inserted:
            db.commit()
    if inserted:
        logger.info("Seeded default cadence strategies: %s", ", ".join(inserted))
    return inserted
