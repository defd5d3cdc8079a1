from __future__ import annotations

import logging
from typing import Optional, Union

import pandas as pd

from .models import FlightData

logger = logging.getLogger(__name__)

OFFER_COLUMNS = [
    "bundle_id",
    "route",
    "departure",
    "arrival",
    "legs",
    "flight_numbers",
    "agency",
    "price",
    "currency",
    "link",
    "extracted_at",
]
DEAL_COLUMNS = [
    "deal_id",
    "portal",
    "airline",
    "route",
    "departure",
    "arrival",
    "stops",
    "agency",
    "price",
    "currency",
    "link",
]


def _route(data: FlightData, flight_ids) -> tuple[str, list]:
    flights = [data.flights[fid] for fid in flight_ids if fid in data.flights]
    if not flights:
        return "", flights
    codes = [flights[0].origin] + [f.destination for f in flights]
    return "-".join(codes), flights


def offers_frame(data: FlightData) -> pd.DataFrame:
    """One row per booking option, cheapest first."""
    rows = []
    for option in data.booking_options.values():
        bundle = data.bundles.get(option.target_id)
        flight_ids = bundle.flight_ids if bundle else ()
        route, flights = _route(data, flight_ids)
        rows.append(
            {
                "bundle_id": option.target_id,
                "route": route,
                "departure": flights[0].departure if flights else None,
                "arrival": flights[-1].arrival if flights else None,
                "legs": len(flights),
                "flight_numbers": " ".join(f.flight_number for f in flights),
                "agency": option.agency,
                "price": float(option.price),
                "currency": option.currency,
                "link": option.link,
                "extracted_at": option.extracted_at,
            }
        )
    if not rows:
        return pd.DataFrame(columns=OFFER_COLUMNS)
    df = pd.DataFrame(rows, columns=OFFER_COLUMNS)
    return df.sort_values(["price", "bundle_id"]).reset_index(drop=True)


def deals_frame(data: FlightData) -> pd.DataFrame:
    """Cheapest offer per itinerary."""
    rows = []
    for deal in data.deals.values():
        route, _ = _route(data, deal.flight_ids)
        rows.append(
            {
                "deal_id": deal.id,
                "portal": deal.portal,
                "airline": deal.airline,
                "route": route,
                "departure": deal.trip_summary.departure,
                "arrival": deal.trip_summary.arrival,
                "stops": deal.trip_summary.stops,
                "agency": deal.agency,
                "price": float(deal.price),
                "currency": deal.currency,
                "link": deal.link,
            }
        )
    if not rows:
        return pd.DataFrame(columns=DEAL_COLUMNS)
    df = pd.DataFrame(rows, columns=DEAL_COLUMNS)
    return df.sort_values(["price", "deal_id"]).reset_index(drop=True)


def export(
    data: FlightData,
    *,
    output: str = "df",
    path: Optional[str] = None,
    deals: bool = False,
) -> Union[pd.DataFrame, str]:
    """Flatten an accumulator into a table.

    Parameters
    ----------
    data:
        Accumulated search results.
    output:
        ``"df"``     – return ``pandas.DataFrame`` with results.
        ``"csv"``    – write the DataFrame to *path* and return the path.
    deals:
        Export the cheapest-offer deals instead of every booking option.
    """
    if output not in ("df", "csv"):
        raise ValueError(f"Unsupported output: {output!r}")
    if output == "csv" and not path:
        raise ValueError("CSV export needs a target path")
    df = deals_frame(data) if deals else offers_frame(data)
    if output == "df":
        return df
    df.to_csv(path, index=False)
    logger.info("Exported %d rows to %s", len(df), path)
    return path


__all__ = ["OFFER_COLUMNS", "DEAL_COLUMNS", "offers_frame", "deals_frame", "export"]
