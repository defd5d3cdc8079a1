from __future__ import annotations

import logging
import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .date_utils import format_portal_date, is_past, parse_iso_date

logger = logging.getLogger(__name__)

PORTALS = ("sky", "kiwi")
CABIN_CLASSES = ("Economy", "PremiumEconomy", "First", "Business")

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_AIRPORT_RE = re.compile(r"^[A-Z]{3}$")


class SearchRequest(BaseModel):
    """Validated search parameters shared by every portal pipeline."""

    origin: str
    destination: str
    outbound_date: str
    inbound_date: Optional[str] = None
    trip_type: Literal["oneway", "roundtrip"] = "oneway"
    cabin_class: Literal["Economy", "PremiumEconomy", "First", "Business"] = "Economy"
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    infants: int = Field(0, ge=0)
    currency: str = "EUR"
    portals: list[Literal["sky", "kiwi"]] = Field(default_factory=lambda: list(PORTALS))

    @field_validator("origin", "destination")
    @classmethod
    def _airport_code(cls, v: str) -> str:
        code = (v or "").strip().upper()
        if not _AIRPORT_RE.match(code):
            raise ValueError("airport codes must be 3 letters")
        return code

    @field_validator("outbound_date", "inbound_date")
    @classmethod
    def _iso_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not _ISO_DATE_RE.match(v) or parse_iso_date(v) is None:
            raise ValueError("dates must be in YYYY-MM-DD format")
        return v

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        value = (v or "").strip().upper()
        if not value:
            raise ValueError("currency must be a non-empty string")
        return value

    @field_validator("portals")
    @classmethod
    def _dedupe_portals(cls, v: list[str]) -> list[str]:
        portals = list(dict.fromkeys(v))
        if not portals:
            raise ValueError("At least one portal (kiwi or sky) must be enabled")
        return portals

    @model_validator(mode="after")
    def _check_dates(self) -> "SearchRequest":
        if self.outbound_date is None:
            raise ValueError("outbound_date is required")
        if self.inbound_date is not None:
            if self.inbound_date <= self.outbound_date:
                raise ValueError(
                    f"Inbound date must be after outbound date: "
                    f"{self.inbound_date} <= {self.outbound_date}"
                )
            self.trip_type = "roundtrip"
        if is_past(self.outbound_date):
            logger.warning("Outbound date is in the past: %s", self.outbound_date)
        return self

    def portal_params(self, portal: str | None = None) -> dict[str, str]:
        """Query/form parameters the portal front end expects.

        Landing pages take ISO dates; pass *portal* to get the date style of
        that portal's search endpoint instead.
        """
        if portal is None:
            outbound, inbound = self.outbound_date, self.inbound_date or ""
        else:
            outbound = format_portal_date(self.outbound_date, portal)
            inbound = format_portal_date(self.inbound_date, portal)
        return {
            "originplace": self.origin,
            "destinationplace": self.destination,
            "outbounddate": outbound,
            "inbounddate": inbound,
            "cabinclass": self.cabin_class,
            "adults": str(self.adults),
            "children": str(self.children),
            "infants": str(self.infants),
            "currency": self.currency,
        }


__all__ = ["SearchRequest", "PORTALS", "CABIN_CLASSES"]
