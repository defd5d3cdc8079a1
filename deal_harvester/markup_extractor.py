"""Turn a portal result fragment into flights, bundles and offers.

One fragment holds any number of ``.list-item.row`` entries.  Each entry has a
collapsed ``.modal`` detail panel with a ``._heading`` carrying the travel date,
one ``._panel_body`` per flown leg and a ``._similar`` block listing the
agencies selling the itinerary.  A broken entry is logged and skipped; the
rest of the fragment is still extracted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from functools import reduce
from typing import Iterable, Optional

from bs4 import BeautifulSoup, NavigableString, Tag

from . import identifiers
from .airports import AirportDirectory, default_directory
from .date_utils import (
    add_days,
    encode_for_id,
    localize,
    parse_heading_date,
    parse_time,
    strip_day_marker,
)
from .errors import ExtractionError, MissingTimezoneError
from .merge_engine import merge_flight_data
from .models import BookingOption, Bundle, Deal, Flight, FlightData, TripSummary

logger = logging.getLogger(__name__)

# Two-character carrier code with at least one letter, then the number.
FLIGHT_NUMBER_RE = re.compile(r"^(?:[A-Z]{2}|[A-Z]\d|\d[A-Z])[A-Z]?\d{1,4}[A-Z]?$")
AIRPORT_CODE_RE = re.compile(r"^([A-Z]{3})\s")
CURRENCY_SYMBOL_RE = re.compile(r"[€$£¥₹]")
CURRENCY_SYMBOLS = {"€": "EUR", "$": "USD", "£": "GBP", "¥": "JPY", "₹": "INR"}

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_PRICE_CHARS = re.compile(r"[^\d.,]")
_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True, slots=True)
class LegTiming:
    """Wall-clock times of one leg as printed, plus its airport zones."""

    departure: time
    arrival: time
    day_marker: int = 0
    departure_tz: Optional[str] = None
    arrival_tz: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ResolvedLeg:
    departure_date: date
    arrival_date: date
    departure: datetime
    arrival: datetime


@dataclass(frozen=True, slots=True)
class Offer:
    agency: str
    price: Decimal
    link: str


def parse_flight_number(label: str, portal: str) -> str:
    """Carrier code plus number from a leg label.

    Sky prints ``Lufthansa LH1234``, kiwi prints ``Lufthansa LH 1234``.
    Labels that do not yield a plausible flight number fall back to the
    whole label with everything but letters and digits removed.
    """
    tokens = (label or "").split()
    if not tokens:
        return ""
    last = tokens[-1]
    last_two = "".join(tokens[-2:])
    candidates = (last_two, last) if portal == "kiwi" else (last, last_two)
    for candidate in candidates:
        candidate = candidate.upper()
        if FLIGHT_NUMBER_RE.match(candidate):
            return candidate
    return _NON_ALNUM.sub("", label).upper()


def airline_code(flight_number: str) -> str:
    """Two-character carrier designator of a flight number, or ``""``."""
    if FLIGHT_NUMBER_RE.match(flight_number or ""):
        return flight_number[:2]
    return ""


def extract_airport_code(label: str) -> str:
    """``"VIE Vienna International"`` -> ``"VIE"``; else the first token."""
    value = (label or "").strip()
    m = AIRPORT_CODE_RE.match(value)
    if m:
        return m.group(1)
    return value.split()[0] if value else ""


def normalize_price(text: str | None) -> Optional[Decimal]:
    """Parse ``"€1.234,56"``, ``"$1,234.56"``, ``"€1.234"`` or ``"99,99"`` into a Decimal."""
    raw = _PRICE_CHARS.sub("", text or "")
    if not raw:
        return None
    if "," in raw and "." in raw:
        # whichever separator comes last is the decimal point
        if raw.rfind(",") > raw.rfind("."):
            raw = raw.replace(".", "").replace(",", ".")
        else:
            raw = raw.replace(",", "")
    elif "," in raw:
        head, _, tail = raw.rpartition(",")
        if raw.count(",") == 1 and 1 <= len(tail) <= 2:
            raw = f"{head}.{tail}"
        else:
            raw = raw.replace(",", "")
    elif "." in raw:
        # "1.234" and "1.234.567" group thousands; "120.50" keeps its decimals
        _, _, tail = raw.rpartition(".")
        if raw.count(".") > 1 or len(tail) == 3:
            raw = raw.replace(".", "")
    try:
        price = Decimal(raw)
    except InvalidOperation:
        return None
    return price if price.is_finite() else None


def detect_currency(price_text: str | None, default: str) -> str:
    m = CURRENCY_SYMBOL_RE.search(price_text or "")
    return CURRENCY_SYMBOLS[m.group(0)] if m else default


def resolve_leg_dates(
    base_date: Optional[date], legs: Iterable[LegTiming]
) -> list[ResolvedLeg]:
    """Assign calendar dates to consecutive legs of one journey.

    Folds over the legs carrying ``(day_offset, resolved)``.  A ``+N``
    arrival marker, or an arrival that would otherwise land before its
    departure, pushes the offset forward for every later leg.  A missing
    base date degrades to today.
    """
    anchor = base_date or datetime.now(timezone.utc).date()

    def step(
        acc: tuple[int, list[ResolvedLeg]], leg: LegTiming
    ) -> tuple[int, list[ResolvedLeg]]:
        offset, resolved = acc
        dep_date = add_days(anchor, offset)
        arr_date = add_days(dep_date, leg.day_marker)
        departure = localize(dep_date, leg.departure, leg.departure_tz)
        arrival = localize(arr_date, leg.arrival, leg.arrival_tz)
        if leg.day_marker == 0 and arrival <= departure:
            arr_date = add_days(arr_date, 1)
            arrival = arrival + timedelta(days=1)
        new_offset = offset + (arr_date - dep_date).days
        return new_offset, resolved + [
            ResolvedLeg(dep_date, arr_date, departure, arrival)
        ]

    _, resolved = reduce(step, legs, (0, []))
    return resolved


def _text(node: Tag | None) -> str:
    return node.get_text(" ", strip=True) if node is not None else ""


def _text_without_links(node: Tag | None) -> str:
    if node is None:
        return ""
    parts: list[str] = []
    for child in node.children:
        if isinstance(child, NavigableString):
            parts.append(str(child))
        elif isinstance(child, Tag) and child.name != "a":
            parts.append(child.get_text(" "))
    return " ".join(" ".join(parts).split())


@dataclass(slots=True)
class _LegRow:
    flight_number: str
    departure_time: time
    arrival_time: time
    day_marker: int
    origin: str
    destination: str


def _parse_leg_row(panel: Tag, portal: str) -> Optional[_LegRow]:
    label = _text(panel.find("small"))
    if not label:
        return None
    item = panel.select_one("._item")
    if item is None:
        raise ExtractionError("leg row without ._item block")
    times = [_text(p) for p in item.select(".c3 p")]
    airports = [_text(p) for p in item.select(".c4 p")]
    if len(times) < 2 or len(airports) < 2:
        raise ExtractionError(f"incomplete leg row for {label!r}")
    arrival_text, marker = strip_day_marker(times[1])
    departure_text, _ = strip_day_marker(times[0])
    return _LegRow(
        flight_number=parse_flight_number(label, portal),
        departure_time=parse_time(departure_text),
        arrival_time=parse_time(arrival_text),
        day_marker=marker,
        origin=extract_airport_code(airports[0]),
        destination=extract_airport_code(airports[1]),
    )


def _zone(directory: AirportDirectory, code: str, role: str) -> str:
    tz = directory.timezone_for(code)
    if tz is None:
        raise MissingTimezoneError(code, role)
    return tz


def _journeys(modal: Tag, portal: str) -> list[tuple[Optional[date], list[_LegRow]]]:
    """Split the panel into journeys, each starting at a ``._heading``."""
    first_heading = modal.select_one("._heading")
    base = parse_heading_date(_text(first_heading))
    journeys: list[tuple[Optional[date], list[_LegRow]]] = [(base, [])]
    for node in modal.select("._heading, ._panel_body"):
        classes = node.get("class") or []
        if "_heading" in classes:
            heading_date = parse_heading_date(_text(node))
            if journeys[-1][1]:
                journeys.append((heading_date or base, []))
            elif heading_date is not None:
                journeys[-1] = (heading_date, [])
            continue
        row = _parse_leg_row(node, portal)
        if row is None:
            logger.debug("Skipping leg row without flight label")
            continue
        journeys[-1][1].append(row)
    return [j for j in journeys if j[1]]


def _flights_for_journey(
    base: Optional[date], rows: list[_LegRow], directory: AirportDirectory
) -> list[Flight]:
    timings = [
        LegTiming(
            departure=row.departure_time,
            arrival=row.arrival_time,
            day_marker=row.day_marker,
            departure_tz=_zone(directory, row.origin, "departure"),
            arrival_tz=_zone(directory, row.destination, "arrival"),
        )
        for row in rows
    ]
    flights = []
    for row, leg in zip(rows, resolve_leg_dates(base, timings)):
        fid = identifiers.flight_id(
            row.flight_number,
            row.origin,
            row.destination,
            encode_for_id(leg.departure_date, row.departure_time),
        )
        flights.append(
            Flight(
                id=fid,
                flight_number=row.flight_number,
                departure=leg.departure,
                arrival=leg.arrival,
                origin=row.origin,
                destination=row.destination,
                airline_code=airline_code(row.flight_number),
            )
        )
    return flights


def _parse_offers(modal: Tag) -> list[Offer]:
    offers = []
    for block in modal.select("._similar > div"):
        paragraphs = block.find_all("p")
        agency = _text(paragraphs[0]) if paragraphs else ""
        price = None
        if len(paragraphs) > 1:
            price = normalize_price(_text_without_links(paragraphs[1]))
        anchor = block.find("a", href=True)
        link = anchor["href"].strip() if anchor is not None else ""
        if not agency or price is None or not link:
            logger.debug("Skipping incomplete offer (agency=%r, link=%r)", agency, link)
            continue
        offers.append(Offer(agency=agency, price=price, link=link))
    return offers


def _stop_count(item: Tag, flights: list[Flight]) -> int:
    text = _text(item.select_one("._stops .stop"))
    if text:
        m = _DIGITS.search(text)
        if m:
            return int(m.group(0))
        if "direct" in text.lower() or "non" in text.lower():
            return 0
    return max(len(flights) - 1, 0)


def _extract_item(
    item: Tag,
    portal: str,
    directory: AirportDirectory,
    currency: str,
    extracted_at: datetime,
) -> FlightData:
    modal = item.select_one(".modal")
    if modal is None:
        raise ExtractionError("list item without detail panel")

    flights: list[Flight] = []
    for base, rows in _journeys(modal, portal):
        flights.extend(_flights_for_journey(base, rows, directory))
    if not flights:
        raise ExtractionError("list item without flight legs")

    item_currency = detect_currency(_text(item.select_one(".prices")), currency)
    flight_ids = tuple(dict.fromkeys(f.id for f in flights))
    bid = identifiers.bundle_id(flight_ids)

    data = FlightData()
    for flight in flights:
        data.flights.setdefault(flight.id, flight)
    data.bundles[bid] = Bundle(id=bid, flight_ids=flight_ids)

    offers = _parse_offers(modal)
    for offer in offers:
        oid = identifiers.booking_option_id(offer.link, offer.agency, bid)
        data.booking_options[oid] = BookingOption(
            id=oid,
            target_id=bid,
            agency=offer.agency,
            price=offer.price,
            link=offer.link,
            currency=item_currency,
            extracted_at=extracted_at,
        )

    if offers:
        cheapest = min(offers, key=lambda o: o.price)
        did = identifiers.deal_id(bid)
        data.deals[did] = Deal(
            id=did,
            portal=portal,
            bundle_id=bid,
            flight_ids=flight_ids,
            agency=cheapest.agency,
            price=cheapest.price,
            link=cheapest.link,
            currency=item_currency,
            trip_summary=TripSummary(
                departure=flights[0].departure,
                arrival=flights[-1].arrival,
                stops=_stop_count(item, flights),
            ),
            extracted_at=extracted_at,
            airline=_text(item.select_one(".airlines-name")),
        )
    return data


def extract_flight_data(
    fragment: str,
    portal: str,
    directory: AirportDirectory | None = None,
    currency: str = "EUR",
    *,
    extracted_at: datetime | None = None,
) -> FlightData:
    """Extract every well-formed list item of *fragment*. Never raises."""
    result = FlightData()
    if not fragment:
        logger.warning("Empty fragment received from %s", portal)
        return result

    lookup = directory if directory is not None else default_directory()
    stamp = extracted_at or datetime.now(timezone.utc)
    soup = BeautifulSoup(fragment, "html.parser")
    items = soup.select(".list-item.row")

    ok = failed = 0
    for index, item in enumerate(items, start=1):
        try:
            extracted = _extract_item(item, portal, lookup, currency, stamp)
        except Exception as exc:
            failed += 1
            logger.warning("Skipping %s list item %d: %s", portal, index, exc)
            continue
        ok += 1
        merge_flight_data(result, extracted)

    logger.info(
        "%s extraction: %d items ok, %d skipped, %d bundles, %d flights",
        portal,
        ok,
        failed,
        len(result.bundles),
        len(result.flights),
    )
    return result


__all__ = [
    "FLIGHT_NUMBER_RE",
    "CURRENCY_SYMBOLS",
    "LegTiming",
    "ResolvedLeg",
    "Offer",
    "parse_flight_number",
    "airline_code",
    "extract_airport_code",
    "normalize_price",
    "detect_currency",
    "resolve_leg_dates",
    "extract_flight_data",
]
