"""Tests for environment-driven settings and database URL handling."""
import pytest

from radcalc.config import DEFAULT_DATABASE_URL, DEFAULT_RETENTION_DAYS, convert_to_async_url, get_settings


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("RADCALC_DATABASE_URL", "RADCALC_HISTORY_RETENTION_DAYS", "RADCALC_LOG_LEVEL", "RADCALC_ECHO_SQL"):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.history_retention_days == 90
    assert settings.log_level == "INFO"
    assert settings.echo_sql is False


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RADCALC_DATABASE_URL", "sqlite:///other.db")
    monkeypatch.setenv("RADCALC_HISTORY_RETENTION_DAYS", "30")
    monkeypatch.setenv("RADCALC_LOG_LEVEL", "debug")
    monkeypatch.setenv("RADCALC_ECHO_SQL", "yes")

    settings = get_settings()
    assert settings.database_url == "sqlite:///other.db"
    assert settings.history_retention_days == 30
    assert settings.log_level == "DEBUG"
    assert settings.echo_sql is True


def test_convert_to_async_url():
    assert convert_to_async_url("sqlite:///calc.db") == "sqlite+aiosqlite:///calc.db"
    assert convert_to_async_url("sqlite+aiosqlite:///calc.db") == "sqlite+aiosqlite:///calc.db"
    with pytest.raises(ValueError):
        convert_to_async_url("postgresql://localhost/calc")


@pytest.mark.parametrize("raw", ["ninety", "0", "-5", ""])
def test_bad_retention_days_fall_back_to_default(monkeypatch, tmp_path, raw):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RADCALC_HISTORY_RETENTION_DAYS", raw)
    assert get_settings().history_retention_days == DEFAULT_RETENTION_DAYS
