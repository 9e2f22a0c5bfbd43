"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from pathlib import Path

_DEFAULT_QUESTIONNAIRE_PATH = Path(__file__).parent / "qualification" / "questionnaire.yaml"


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "LeadCadence"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3; sqlite:// for local runs and tests)
    database_url: str = "postgresql+psycopg://localhost:5432/leadcadence_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for /api/* engine endpoints

    # Qualification: questionnaire + tier table (YAML). Thresholds may be overridden
    # with CLASSIFICATION_THRESHOLDS="hot:85,warm:60,cold:30,info_seeker:0".
    questionnaire_path: str = str(_DEFAULT_QUESTIONNAIRE_PATH)
    classification_thresholds: list[tuple[str, int]] = ()

    # Cadence: insert default strategy rows for missing categories at startup
    seed_cadence_strategies: bool = True

    # Dashboard statistics cache (per organization)
    lead_stats_cache_ttl_seconds: int = 300

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'leadcadence_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.questionnaire_path = os.getenv("QUESTIONNAIRE_PATH", "").strip() or self.questionnaire_path
        self.classification_thresholds = parse_thresholds(
            os.getenv("CLASSIFICATION_THRESHOLDS", "")
        )

        self.seed_cadence_strategies = (
            os.getenv("SEED_CADENCE_STRATEGIES", "true").lower() == "true"
        )
        self.lead_stats_cache_ttl_seconds = int(
            os.getenv("LEAD_STATS_CACHE_TTL_SECONDS", str(self.lead_stats_cache_ttl_seconds))
        )


def parse_thresholds(raw: str) -> list[tuple[str, int]]:
    """Parse "tier:threshold,..." into an ordered list of (tier, threshold) pairs.

    Order is preserved as written; ordering rules are enforced by
    ClassificationPolicy, not here. Empty input → [] (use questionnaire YAML).

    Raises:
        ValueError: If an entry is not "label:integer".
    """
    pairs: list[tuple[str, int]] = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        label, sep, value = entry.partition(":")
        if not sep or not label.strip():
            raise ValueError(f"Invalid CLASSIFICATION_THRESHOLDS entry: {entry!r}")
        try:
            threshold = int(value.strip())
        except ValueError:
            raise ValueError(
                f"Invalid CLASSIFICATION_THRESHOLDS threshold for {label.strip()!r}: {value!r}"
            ) from None
        pairs.append((label.strip(), threshold))
    return pairs
