import json

from deal_harvester.airports import AirportDirectory, DEFAULT_AIRPORT_TZ, default_directory
from deal_harvester.config import get_settings


def test_from_file_accepts_wrapped_layout(tmp_path):
    path = tmp_path / "airports.json"
    path.write_text(
        json.dumps(
            {
                "data": {
                    "VIE": {"name": "Vienna", "timezone": "Europe/Vienna"},
                    "XYZ": {"name": "Unknown", "timezone": "\\N"},
                }
            }
        ),
        encoding="utf-8",
    )
    directory = AirportDirectory.from_file(path)
    assert len(directory) == 2
    assert directory["vie"]["name"] == "Vienna"
    assert directory.timezone_for("VIE") == "Europe/Vienna"
    assert directory.timezone_for("XYZ") == "\\N"
    assert directory.timezone_for("ABC") is None
    assert directory.timezone_for("") is None


def test_from_file_accepts_flat_layout(tmp_path):
    path = tmp_path / "airports.json"
    path.write_text(json.dumps({"SIN": {"tz": "UTC+08:00"}}), encoding="utf-8")
    assert AirportDirectory.from_file(path).timezone_for("SIN") == "UTC+08:00"


def test_default_directory_uses_builtin_table(monkeypatch):
    monkeypatch.delenv("AIRPORTS_FILE", raising=False)
    directory = default_directory(get_settings())
    assert len(directory) == len(DEFAULT_AIRPORT_TZ)
    assert directory.timezone_for("JFK") == "America/New_York"


def test_default_directory_reads_configured_file(monkeypatch, tmp_path):
    path = tmp_path / "airports.json"
    path.write_text(json.dumps({"WAW": {"timezone": "Europe/Warsaw"}}), encoding="utf-8")
    monkeypatch.setenv("AIRPORTS_FILE", str(path))
    directory = default_directory()
    assert list(directory) == ["WAW"]
