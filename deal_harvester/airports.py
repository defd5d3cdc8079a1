"""Airport reference data.

Read-only lookup from a 3-letter airport code to a record carrying at least a
``timezone`` field (IANA name, ``UTC±HH:MM`` offset, or ``\\N`` for unknown).
A full table can be supplied with ``AIRPORTS_FILE``; otherwise a small
built-in table of common airports is used.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

# Extend as needed; a complete table belongs in AIRPORTS_FILE.
DEFAULT_AIRPORT_TZ: dict[str, str] = {
    # Europe
    "AMS": "Europe/Amsterdam",
    "ATH": "Europe/Athens",
    "BCN": "Europe/Madrid",
    "BER": "Europe/Berlin",
    "BUD": "Europe/Budapest",
    "CDG": "Europe/Paris",
    "CPH": "Europe/Copenhagen",
    "DUB": "Europe/Dublin",
    "FCO": "Europe/Rome",
    "FRA": "Europe/Berlin",
    "HEL": "Europe/Helsinki",
    "IST": "Europe/Istanbul",
    "LGW": "Europe/London",
    "LHR": "Europe/London",
    "LIS": "Europe/Lisbon",
    "MAD": "Europe/Madrid",
    "MUC": "Europe/Berlin",
    "MXP": "Europe/Rome",
    "ORY": "Europe/Paris",
    "OSL": "Europe/Oslo",
    "PRG": "Europe/Prague",
    "STN": "Europe/London",
    "VIE": "Europe/Vienna",
    "WAW": "Europe/Warsaw",
    "ZRH": "Europe/Zurich",
    # Middle East / Asia / Oceania
    "AUH": "Asia/Dubai",
    "BKK": "Asia/Bangkok",
    "BOM": "Asia/Kolkata",
    "DEL": "Asia/Kolkata",
    "DOH": "Asia/Qatar",
    "DXB": "Asia/Dubai",
    "HKG": "Asia/Hong_Kong",
    "HND": "Asia/Tokyo",
    "ICN": "Asia/Seoul",
    "NRT": "Asia/Tokyo",
    "PER": "Australia/Perth",
    "SIN": "Asia/Singapore",
    "SYD": "Australia/Sydney",
    # Americas
    "ATL": "America/New_York",
    "BOG": "America/Bogota",
    "GRU": "America/Sao_Paulo",
    "JFK": "America/New_York",
    "LAX": "America/Los_Angeles",
    "MEX": "America/Mexico_City",
    "MIA": "America/New_York",
    "ORD": "America/Chicago",
    "SFO": "America/Los_Angeles",
    "SLP": "America/Mexico_City",
    "YYZ": "America/Toronto",
}


class AirportDirectory(Mapping):
    """Read-only ``code -> record`` map."""

    def __init__(self, records: Mapping[str, Mapping[str, Any]]) -> None:
        self._records = {
            str(code).strip().upper(): dict(rec) for code, rec in records.items()
        }

    @classmethod
    def from_timezones(cls, table: Mapping[str, str]) -> "AirportDirectory":
        return cls({code: {"timezone": tz} for code, tz in table.items()})

    @classmethod
    def from_file(cls, path: str | Path) -> "AirportDirectory":
        """Load ``{code: record}`` or ``{"data": {code: record}}`` JSON."""
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
            raw = raw["data"]
        if not isinstance(raw, dict):
            raise ValueError(f"Unsupported airports file layout: {path}")
        logger.info("Loaded %d airports from %s", len(raw), path)
        return cls(raw)

    def __getitem__(self, code: str) -> dict[str, Any]:
        return self._records[str(code).strip().upper()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def timezone_for(self, code: str | None) -> Optional[str]:
        """Return the timezone field for *code*, or ``None`` if unknown."""
        if not code:
            return None
        rec = self._records.get(str(code).strip().upper())
        if not rec:
            return None
        tz = rec.get("timezone") or rec.get("tz")
        return tz if isinstance(tz, str) and tz.strip() else None


def default_directory(settings: Settings | None = None) -> AirportDirectory:
    """Directory from ``AIRPORTS_FILE`` or the built-in table."""
    cfg = settings or get_settings()
    if cfg.airports_file:
        return AirportDirectory.from_file(cfg.airports_file)
    return AirportDirectory.from_timezones(DEFAULT_AIRPORT_TZ)


__all__ = ["AirportDirectory", "DEFAULT_AIRPORT_TZ", "default_directory"]
