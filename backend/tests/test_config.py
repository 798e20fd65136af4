import os, sys
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from volleyscout import config
from volleyscout.db import _normalise_url
from volleyscout.limits import live_events_rate_limit
from volleyscout.utils import sentry


def test_canon_prefix():
    assert config._canon_prefix(None) == "/api"
    assert config._canon_prefix("v1/") == "/v1"
    assert config._canon_prefix("/") == "/"


def test_allowed_origins(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")
    assert config.allowed_origins() == ["https://a.example", "https://b.example"]
    monkeypatch.setenv("ALLOWED_ORIGINS", "*")
    with pytest.raises(ValueError):
        config.allowed_origins()
    monkeypatch.delenv("ALLOWED_ORIGINS")
    with pytest.raises(ValueError):
        config.allowed_origins()


def test_positive_float_falls_back(monkeypatch):
    monkeypatch.setenv("LIVE_SESSION_TTL_SECONDS", "-5")
    assert config._positive_float("LIVE_SESSION_TTL_SECONDS", 10.0) == 10.0
    monkeypatch.setenv("LIVE_SESSION_TTL_SECONDS", "abc")
    assert config._positive_float("LIVE_SESSION_TTL_SECONDS", 10.0) == 10.0
    monkeypatch.setenv("LIVE_SESSION_TTL_SECONDS", "90")
    assert config._positive_float("LIVE_SESSION_TTL_SECONDS", 10.0) == 90.0


def test_database_url_normalised():
    assert _normalise_url("postgresql://u@h/db") == "postgresql+asyncpg://u@h/db"
    assert _normalise_url("sqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    assert _normalise_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_rate_limit_switch(monkeypatch):
    monkeypatch.setenv("DISABLE_RATE_LIMITS", "true")
    assert live_events_rate_limit() == "1000/second"
    monkeypatch.setenv("DISABLE_RATE_LIMITS", "false")
    assert live_events_rate_limit() == config.LIVE_EVENTS_RATE_LIMIT


def test_sentry_sample_rate_and_disabled(monkeypatch):
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "1.5")
    assert sentry._parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE", 0.1) == 0.1
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "0.25")
    assert sentry._parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE") == 0.25
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    assert sentry.init_sentry() is False
    # no-op without a DSN
    sentry.capture_persistence_failure(RuntimeError("boom"), match_id="m1")
