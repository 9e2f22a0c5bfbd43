"""CadenceStrategy model — outreach admission parameters per classification tier."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


class CadenceStrategy(Base):
    """Initial wait, cooldown and weekly cap for one category (tier label)."""

    __tablename__ = "cadence_strategies"

    category: Mapped[str] = mapped_column(String(32), primary_key=True)
    initial_wait_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cooldown_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_sessions_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
