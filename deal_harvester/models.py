"""Data models used throughout the project."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class Flight:
    id: str
    flight_number: str
    departure: datetime
    arrival: datetime
    origin: str
    destination: str
    airline_code: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "flightNumber": self.flight_number,
            "airlineCode": self.airline_code,
            "departure": self.departure.isoformat(),
            "arrival": self.arrival.isoformat(),
            "from": self.origin,
            "to": self.destination,
        }


@dataclass(frozen=True, slots=True)
class Bundle:
    id: str
    flight_ids: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "flightIds": list(self.flight_ids)}


@dataclass(slots=True)
class BookingOption:
    id: str
    target_id: str
    agency: str
    price: Decimal
    link: str
    currency: str
    extracted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "targetId": self.target_id,
            "agency": self.agency,
            "price": str(self.price),
            "link": self.link,
            "currency": self.currency,
            "extractedAt": self.extracted_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class TripSummary:
    departure: Optional[datetime]
    arrival: Optional[datetime]
    stops: int


@dataclass(slots=True)
class Deal:
    """Trip summary plus the cheapest offer seen for one itinerary."""

    id: str
    portal: str
    bundle_id: str
    flight_ids: tuple[str, ...]
    agency: str
    price: Decimal
    link: str
    currency: str
    trip_summary: TripSummary
    extracted_at: datetime
    airline: str = ""

    def to_dict(self) -> dict[str, Any]:
        summary = self.trip_summary
        return {
            "id": self.id,
            "portal": self.portal,
            "airline": self.airline,
            "bundleId": self.bundle_id,
            "flightIds": list(self.flight_ids),
            "agency": self.agency,
            "price": str(self.price),
            "link": self.link,
            "currency": self.currency,
            "tripSummary": {
                "departure": summary.departure.isoformat() if summary.departure else None,
                "arrival": summary.arrival.isoformat() if summary.arrival else None,
                "stops": summary.stops,
            },
            "extractedAt": self.extracted_at.isoformat(),
        }


@dataclass(slots=True)
class FlightData:
    """Per-search accumulator, every collection keyed by identifier."""

    flights: dict[str, Flight] = field(default_factory=dict)
    bundles: dict[str, Bundle] = field(default_factory=dict)
    booking_options: dict[str, BookingOption] = field(default_factory=dict)
    deals: dict[str, Deal] = field(default_factory=dict)

    def counts(self) -> dict[str, int]:
        return {
            "bundles": len(self.bundles),
            "flights": len(self.flights),
            "bookingOptions": len(self.booking_options),
            "deals": len(self.deals),
        }

    @property
    def is_empty(self) -> bool:
        return not (self.flights or self.bundles or self.booking_options or self.deals)

    def to_dict(self) -> dict[str, Any]:
        counts = self.counts()
        return {
            "bundles": [b.to_dict() for b in self.bundles.values()],
            "flights": [f.to_dict() for f in self.flights.values()],
            "bookingOptions": [o.to_dict() for o in self.booking_options.values()],
            "deals": [d.to_dict() for d in self.deals.values()],
            "summary": {
                "totalBundles": counts["bundles"],
                "totalFlights": counts["flights"],
                "totalBookingOptions": counts["bookingOptions"],
                "totalDeals": counts["deals"],
            },
        }


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(slots=True)
class SearchOutcome:
    data: FlightData
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> OutcomeStatus:
        if not self.data.bundles:
            return OutcomeStatus.FAILURE
        if self.errors:
            return OutcomeStatus.PARTIAL
        return OutcomeStatus.SUCCESS

    @property
    def error_message(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        status = self.status
        return {
            "success": status is not OutcomeStatus.FAILURE,
            "status": status.value,
            "data": {"flightData": self.data.to_dict()},
            "error": self.error_message,
        }


__all__ = [
    "Flight",
    "Bundle",
    "BookingOption",
    "TripSummary",
    "Deal",
    "FlightData",
    "OutcomeStatus",
    "SearchOutcome",
]
