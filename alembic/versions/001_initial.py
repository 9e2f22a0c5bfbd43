"""lead qualification and outreach cadence tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

lead_qualifications: append-only qualification rows (supersede chain).
outreach_attempts: append-only attempt log, indexed for trailing-window scans.
cadence_strategies: per-tier admission parameters.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "lead_qualifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=False),
        sa.Column("answers", JSON_TYPE, nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("score_components", JSON_TYPE, nullable=True),
        sa.Column("classification", sa.String(length=32), nullable=False),
        sa.Column("classification_override", sa.String(length=32), nullable=True),
        sa.Column("override_reason", sa.Text(), nullable=True),
        sa.Column("questionnaire_version", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("supersedes_id", sa.Integer(), nullable=True),
        sa.Column("qualified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("score >= 0 AND score <= 100", name="ck_lead_qualifications_score_range"),
        sa.ForeignKeyConstraint(
            ["supersedes_id"], ["lead_qualifications.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_lead_qualifications_org_lead_created",
        "lead_qualifications",
        ["organization_id", "lead_id", "created_at"],
    )
    op.create_index("ix_lead_qualifications_lead_id", "lead_qualifications", ["lead_id"])

    op.create_table(
        "outreach_attempts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("outcome", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_outreach_attempts_org_lead_occurred",
        "outreach_attempts",
        ["organization_id", "lead_id", "occurred_at"],
    )

    op.create_table(
        "cadence_strategies",
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("initial_wait_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cooldown_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_sessions_per_week", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "initial_wait_days >= 0 AND cooldown_hours >= 0 AND max_sessions_per_week >= 0",
            name="ck_cadence_strategies_non_negative",
        ),
        sa.PrimaryKeyConstraint("category"),
    )


def downgrade() -> None:
    op.drop_table("cadence_strategies")
    op.drop_index("ix_outreach_attempts_org_lead_occurred", table_name="outreach_attempts")
    op.drop_table("outreach_attempts")
    op.drop_index("ix_lead_qualifications_lead_id", table_name="lead_qualifications")
    op.drop_index("ix_lead_qualifications_org_lead_created", table_name="lead_qualifications")
    op.drop_table("lead_qualifications")
