import pytest
from pydantic import ValidationError

from deal_harvester.config import PollingBudget, Settings, get_settings


def test_settings_defaults(monkeypatch):
    for name in ("PORTAL_BASE_URL", "PORTAL_PROXY_URL", "MAX_POLLS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    cfg = get_settings()
    assert isinstance(cfg, Settings)
    assert cfg.base_url == "https://www.flightsfinder.com/portal"
    assert cfg.session_cookie_name == "flightsfinder_session"
    assert cfg.max_polls == 15
    assert cfg.max_failed_polls == 10
    assert cfg.proxies is None


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("PORTAL_BASE_URL", "https://mirror.test/portal/")
    monkeypatch.setenv("PORTAL_PROXY_URL", "http://proxy.test:8000")
    monkeypatch.setenv("MAX_POLLS", "5")
    monkeypatch.setenv("POLL_INTERVAL_S", "0.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = get_settings()
    assert cfg.base_url == "https://mirror.test/portal"
    assert cfg.proxies == {"http": "http://proxy.test:8000", "https": "http://proxy.test:8000"}
    assert cfg.max_polls == 5
    assert cfg.poll_interval_s == 0.5
    assert cfg.log_level == "DEBUG"


def test_settings_are_cached():
    assert get_settings() is get_settings()


@pytest.mark.parametrize(
    "name,value",
    [("MAX_POLLS", "0"), ("MAX_POLLING_TIME_S", "-1"), ("NETWORK_BACKOFF_S", "-0.1")],
)
def test_settings_reject_invalid_limits(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings()


def test_polling_budget_from_settings(monkeypatch):
    monkeypatch.setenv("MAX_POLL_RETRIES", "2")
    monkeypatch.setenv("EXCHANGE_ATTEMPTS", "4")
    budget = PollingBudget.from_settings(get_settings())
    assert budget.max_poll_retries == 2
    assert budget.exchange_attempts == 4
