from __future__ import annotations

import asyncio
import logging
import time

from .airports import AirportDirectory, default_directory
from .config import PollingBudget, Settings, get_settings
from .errors import SessionAcquisitionError
from .merge_engine import merge_with_stats
from .models import FlightData, SearchOutcome
from .polling_engine import exchange_portal, poll_portal
from .search_request import SearchRequest
from .session_acquirer import fetch_session

logger = logging.getLogger(__name__)

# Portals that answer through the polling endpoint; the rest use one exchange.
POLLING_PORTALS = {"sky"}


async def fetch_portal_flight_data(
    portal: str,
    request: SearchRequest,
    settings: Settings | None = None,
    budget: PollingBudget | None = None,
    directory: AirportDirectory | None = None,
) -> FlightData:
    """Run one portal pipeline: session, then polling or a single exchange."""
    cfg = settings or get_settings()
    session = await fetch_session(portal, request, cfg)
    if session is None:
        raise SessionAcquisitionError(
            portal, f"Failed to fetch initial page data for {portal}"
        )
    if portal in POLLING_PORTALS:
        return await poll_portal(session, request, cfg, budget, directory)
    return await exchange_portal(session, request, cfg, budget, directory)


async def search(
    request: SearchRequest,
    settings: Settings | None = None,
    budget: PollingBudget | None = None,
    directory: AirportDirectory | None = None,
) -> SearchOutcome:
    """Query every requested portal concurrently and combine the results.

    One portal failing never cancels the others; its error is reported
    alongside whatever the others produced.
    """
    cfg = settings or get_settings()
    lookup = directory if directory is not None else default_directory(cfg)
    started = time.monotonic()
    logger.info(
        "Searching %s -> %s on %s (out %s, in %s)",
        request.origin,
        request.destination,
        ", ".join(request.portals),
        request.outbound_date,
        request.inbound_date or "-",
    )

    results = await asyncio.gather(
        *(
            fetch_portal_flight_data(portal, request, cfg, budget, lookup)
            for portal in request.portals
        ),
        return_exceptions=True,
    )

    combined = FlightData()
    errors: list[str] = []
    for portal, result in zip(request.portals, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            message = str(result) or type(result).__name__
            errors.append(f"{portal.capitalize()} portal error: {message}")
            logger.error("%s portal failed: %s", portal, message)
            continue
        stats = merge_with_stats(combined, result)
        logger.info(
            "%s portal done: %d bundles, %d flights, %d options (+%d new bundles)",
            portal,
            len(result.bundles),
            len(result.flights),
            len(result.booking_options),
            stats.bundles,
        )

    outcome = SearchOutcome(data=combined, errors=errors)
    logger.info(
        "Search finished in %.1fs: %s, %s",
        time.monotonic() - started,
        outcome.status.value,
        combined.counts(),
    )
    return outcome


def run_search(
    request: SearchRequest,
    settings: Settings | None = None,
    budget: PollingBudget | None = None,
    directory: AirportDirectory | None = None,
) -> SearchOutcome:
    """Blocking wrapper around :func:`search`."""
    return asyncio.run(search(request, settings, budget, directory))


__all__ = ["POLLING_PORTALS", "fetch_portal_flight_data", "search", "run_search"]
