from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from .models import BookingOption, Deal, FlightData

logger = logging.getLogger(__name__)

# Near-simultaneous polls see the same offer with jittery timestamps.
REPLACE_AFTER = timedelta(minutes=1)


@dataclass(slots=True)
class MergeStats:
    flights: int = 0
    bundles: int = 0
    booking_options: int = 0
    replaced_options: int = 0
    deals: int = 0
    cheaper_deals: int = 0

    @property
    def changed(self) -> bool:
        return any(
            (
                self.flights,
                self.bundles,
                self.booking_options,
                self.replaced_options,
                self.deals,
                self.cheaper_deals,
            )
        )


def should_replace_option(existing: BookingOption, incoming: BookingOption) -> bool:
    """Newer offer wins only when it is more than a minute newer."""
    if incoming.extracted_at <= existing.extracted_at:
        return False
    return incoming.extracted_at - existing.extracted_at > REPLACE_AFTER


def should_replace_deal(existing: Deal, incoming: Deal) -> bool:
    """Cheapest wins; ties keep what is already there."""
    return incoming.price < existing.price


def merge_with_stats(target: FlightData, source: FlightData) -> MergeStats:
    """Fold *source* into *target* and report what changed."""
    stats = MergeStats()

    for fid, flight in source.flights.items():
        if fid not in target.flights:
            target.flights[fid] = flight
            stats.flights += 1

    for bid, bundle in source.bundles.items():
        if bid not in target.bundles:
            target.bundles[bid] = bundle
            stats.bundles += 1

    for oid, option in source.booking_options.items():
        current = target.booking_options.get(oid)
        if current is None:
            target.booking_options[oid] = option
            stats.booking_options += 1
        elif should_replace_option(current, option):
            target.booking_options[oid] = option
            stats.replaced_options += 1

    for did, deal in source.deals.items():
        current = target.deals.get(did)
        if current is None:
            target.deals[did] = deal
            stats.deals += 1
        elif should_replace_deal(current, deal):
            target.deals[did] = deal
            stats.cheaper_deals += 1

    if stats.changed:
        logger.debug(
            "Merged +%d flights, +%d bundles, +%d options (%d replaced), "
            "+%d deals (%d cheaper)",
            stats.flights,
            stats.bundles,
            stats.booking_options,
            stats.replaced_options,
            stats.deals,
            stats.cheaper_deals,
        )
    return stats


def merge_flight_data(target: FlightData, source: FlightData) -> None:
    """Merge *source* into *target* in place."""
    merge_with_stats(target, source)


__all__ = [
    "REPLACE_AFTER",
    "MergeStats",
    "should_replace_option",
    "should_replace_deal",
    "merge_with_stats",
    "merge_flight_data",
]
