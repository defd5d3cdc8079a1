import pytest

from deal_harvester.airports import AirportDirectory
from deal_harvester.config import PollingBudget, Settings, get_settings


@pytest.fixture
def airports():
    return AirportDirectory.from_timezones(
        {
            "VIE": "Europe/Vienna",
            "WAW": "Europe/Warsaw",
            "FRA": "Europe/Berlin",
            "JFK": "America/New_York",
            "DXB": "Asia/Dubai",
            "SIN": "Asia/Singapore",
            "LHR": "Europe/London",
            "UNK": "\\N",
        }
    )


@pytest.fixture
def settings():
    return Settings(PORTAL_BASE_URL="https://portal.test")


@pytest.fixture
def fast_budget():
    return PollingBudget(
        max_polls=5,
        max_poll_retries=3,
        max_failed_polls=10,
        max_polling_time_s=5.0,
        poll_interval_s=0.0,
        network_backoff_s=0.0,
        exchange_attempts=3,
    )


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
