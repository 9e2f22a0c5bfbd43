"""
Database session management. SQLAlchemy 2.x style.
"""

from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings


def build_engine(database_url: str, *, echo: bool = False, connect_timeout: int = 10) -> Engine:
    """Create an engine for database_url.

    SQLite (local runs, tests) gets a single shared connection so in-memory
    databases survive across sessions and threads; PostgreSQL gets a pooled
    psycopg engine pinned to UTC.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=echo,
        connect_args={
            "connect_timeout": connect_timeout,
            "options": "-c timezone=UTC",
        },
    )


settings = get_settings()
engine = build_engine(
    settings.database_url,
    echo=settings.debug,
    connect_timeout=settings.db_connect_timeout,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


def check_db_connection() -> None:
    """
    Verify database connectivity. Raises if unreachable.
    Call during application startup.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
