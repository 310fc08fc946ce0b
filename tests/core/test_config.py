import pytest
from pydantic import ValidationError

from sqlagent.core.config import Settings, parse_cors


def test_parse_cors_comma_separated() -> None:
    assert parse_cors("http://a.com, http://b.com,") == ["http://a.com", "http://b.com"]


def test_parse_cors_list_and_json_string_pass_through() -> None:
    assert parse_cors(["http://a.com"]) == ["http://a.com"]
    assert parse_cors('["http://a.com"]') == '["http://a.com"]'


def test_parse_cors_rejects_other_types() -> None:
    with pytest.raises(ValueError):
        parse_cors(42)


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SQL_AGENT_PORT", raising=False)
    s = Settings(_env_file=None)
    assert s.PORT == 5000
    assert s.POOL_MAX_IDLE_CONNS == 10
    assert s.LDJSON_FLUSH_EVERY == 1000
    assert s.all_cors_origins == []


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQL_AGENT_PORT", "6000")
    monkeypatch.setenv("SQL_AGENT_POOL_CONN_MAX_LIFETIME", "300")
    monkeypatch.setenv("SQL_AGENT_BACKEND_CORS_ORIGINS", "http://localhost:3000/")
    s = Settings(_env_file=None)
    assert s.PORT == 6000
    assert s.POOL_CONN_MAX_LIFETIME == 300.0
    assert s.all_cors_origins == ["http://localhost:3000"]


def test_settings_rejects_zero_idle_connections(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQL_AGENT_POOL_MAX_IDLE_CONNS", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
