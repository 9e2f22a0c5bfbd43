"""Portable column types."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests and local runs).
JSONType = JSON().with_variant(JSONB(), "postgresql")
