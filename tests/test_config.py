"""
Configuration tests.
"""

import pytest

from app.config import Settings, get_settings, parse_thresholds


def test_get_settings_returns_settings() -> None:
    """get_settings returns a Settings instance."""
    settings = get_settings()
    assert isinstance(settings, Settings)


def test_settings_defaults() -> None:
    """Settings has the engine's configuration with test-safe values."""
    settings = get_settings()
    assert settings.app_name == "LeadCadence"
    assert settings.database_url == "sqlite://"
    assert settings.internal_job_token
    assert settings.classification_thresholds == []
    assert settings.questionnaire_path.endswith("questionnaire.yaml")
    assert settings.seed_cadence_strategies is True
    assert settings.lead_stats_cache_ttl_seconds == 300


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEED_CADENCE_STRATEGIES", "false")
    monkeypatch.setenv("LEAD_STATS_CACHE_TTL_SECONDS", "30")
    monkeypatch.setenv("QUESTIONNAIRE_PATH", "/etc/leadcadence/questionnaire.yaml")
    monkeypatch.setenv("CLASSIFICATION_THRESHOLDS", "hot:85, warm:60 ,cold:30,info_seeker:0")
    settings = get_settings()
    assert settings.seed_cadence_strategies is False
    assert settings.lead_stats_cache_ttl_seconds == 30
    assert settings.questionnaire_path == "/etc/leadcadence/questionnaire.yaml"
    assert settings.classification_thresholds == [
        ("hot", 85),
        ("warm", 60),
        ("cold", 30),
        ("info_seeker", 0),
    ]


def test_generic_postgres_url_gets_psycopg_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/leads")
    assert get_settings().database_url == "postgresql+psycopg://u:p@db:5432/leads"


class TestParseThresholds:
    def test_empty(self) -> None:
        assert parse_thresholds("") == []
        assert parse_thresholds(" , ") == []

    def test_order_preserved(self) -> None:
        assert parse_thresholds("b:10,a:50,c:0") == [("b", 10), ("a", 50), ("c", 0)]

    @pytest.mark.parametrize("raw", ["hot", "hot:", ":80", "hot:eighty"])
    def test_malformed(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_thresholds(raw)
