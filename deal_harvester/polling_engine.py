"""Result polling against the portal search endpoints.

Both endpoints answer with a pipe-delimited envelope::

    Y|<expected total>|...|...|...|...|<html fragment>

where the first field is ``Y`` once the portal has nothing more to send.
The decision logic lives in small pure transition functions
(:func:`on_envelope`, :func:`on_transport_error`, :func:`budget_exhausted`);
:func:`poll_portal` and :func:`exchange_portal` only do the I/O around them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

import requests

from .airports import AirportDirectory, default_directory
from .config import PollingBudget, Settings, get_settings
from .markup_extractor import extract_flight_data
from .merge_engine import merge_with_stats
from .models import FlightData
from .search_request import SearchRequest
from .session_acquirer import (
    BROWSER_HEADERS,
    SessionData,
    TokenBundle,
    extract_session_cookie,
)

logger = logging.getLogger(__name__)

RESULT_MARKER = "list-item row"
NO_RESULT_MARKERS = ("No flights found", "No results")
ENVELOPE_MIN_PARTS = 7


class FragmentKind(str, Enum):
    RESULTS = "results"
    NO_RESULTS = "no_results"
    PENDING = "pending"


class PollPhase(str, Enum):
    POLLING = "polling"
    MERGING = "merging"
    TERMINAL = "terminal"
    ABORTED = "aborted"


class Action(str, Enum):
    EXTRACT_AND_CONTINUE = "extract_and_continue"
    EXTRACT_AND_FINISH = "extract_and_finish"
    FINISH = "finish"
    RETRY_PENDING = "retry_pending"
    RETRY_MALFORMED = "retry_malformed"
    RETRY_AFTER_BACKOFF = "retry_after_backoff"
    ABORT = "abort"


@dataclass(frozen=True, slots=True)
class Envelope:
    is_last: bool
    expected_total: int
    fragment: str


@dataclass(frozen=True, slots=True)
class PollState:
    cookie: str
    tokens: TokenBundle
    poll_count: int = 0
    failed_polls: int = 0
    started_at: float = 0.0
    phase: PollPhase = PollPhase.POLLING


def parse_envelope(raw: str | None) -> Optional[Envelope]:
    """Split a response body; ``None`` when it has fewer than 7 fields."""
    parts = (raw or "").split("|")
    if len(parts) < ENVELOPE_MIN_PARTS:
        return None
    try:
        expected = int(parts[1])
    except ValueError:
        expected = 0
    return Envelope(is_last=parts[0] == "Y", expected_total=expected, fragment=parts[6])


def classify_fragment(fragment: str) -> FragmentKind:
    if RESULT_MARKER in fragment:
        return FragmentKind.RESULTS
    if any(marker in fragment for marker in NO_RESULT_MARKERS):
        return FragmentKind.NO_RESULTS
    return FragmentKind.PENDING


def count_result_rows(fragment: str) -> int:
    return fragment.count(RESULT_MARKER)


def on_envelope(
    state: PollState, envelope: Optional[Envelope]
) -> tuple[PollState, Action]:
    """Decide what to do with one successfully received response."""
    if envelope is None:
        # Not counted against the failed-poll budget.
        return replace(state, phase=PollPhase.POLLING), Action.RETRY_MALFORMED

    kind = classify_fragment(envelope.fragment)
    if kind is FragmentKind.RESULTS:
        if envelope.is_last:
            return replace(state, phase=PollPhase.TERMINAL), Action.EXTRACT_AND_FINISH
        return replace(state, phase=PollPhase.MERGING), Action.EXTRACT_AND_CONTINUE
    if kind is FragmentKind.NO_RESULTS or envelope.is_last:
        return replace(state, phase=PollPhase.TERMINAL), Action.FINISH
    return replace(state, phase=PollPhase.POLLING), Action.RETRY_PENDING


def on_transport_error(
    state: PollState, budget: PollingBudget
) -> tuple[PollState, Action]:
    failed = state.failed_polls + 1
    if failed > budget.max_failed_polls:
        return replace(state, failed_polls=failed, phase=PollPhase.ABORTED), Action.ABORT
    return (
        replace(state, failed_polls=failed, phase=PollPhase.POLLING),
        Action.RETRY_AFTER_BACKOFF,
    )


def budget_exhausted(state: PollState, budget: PollingBudget, now: float) -> bool:
    if state.poll_count >= budget.max_polls:
        return True
    return now - state.started_at >= budget.max_polling_time_s


def time_left(state: PollState, budget: PollingBudget, now: float) -> float:
    """Seconds of the wall-clock budget still available, never negative."""
    return max(0.0, budget.max_polling_time_s - (now - state.started_at))


_last_nonce = 0


def next_nonce() -> str:
    """Millisecond timestamp that never repeats or goes backwards."""
    global _last_nonce
    now_ms = int(time.time() * 1000)
    _last_nonce = max(now_ms, _last_nonce + 1)
    return str(_last_nonce)


def ajax_headers(referer: str, cookie: str) -> dict[str, str]:
    parts = urlsplit(referer)
    headers = {
        "accept": "*/*",
        "accept-language": "en-GB,en;q=0.9",
        "content-type": "application/x-www-form-urlencoded; charset=UTF-8",
        "origin": f"{parts.scheme}://{parts.netloc}",
        "referer": referer,
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-origin",
        "user-agent": BROWSER_HEADERS["User-Agent"],
        "x-requested-with": "XMLHttpRequest",
    }
    if cookie:
        headers["cookie"] = cookie
    return headers


async def _post(
    url: str,
    form: dict[str, str],
    headers: dict[str, str],
    cfg: Settings,
    timeout: Optional[float] = None,
) -> requests.Response:
    resp = await asyncio.to_thread(
        requests.post,
        url,
        data=form,
        headers=headers,
        timeout=cfg.http_timeout_s if timeout is None else min(cfg.http_timeout_s, timeout),
        proxies=cfg.proxies,
    )
    if not 200 <= resp.status_code < 300:
        raise requests.HTTPError(f"HTTP error! status: {resp.status_code}")
    return resp


async def _pause(delay: float, state: PollState, budget: PollingBudget) -> None:
    # Never sleep past the wall-clock budget.
    await asyncio.sleep(min(delay, time_left(state, budget, time.monotonic())))


def _rotate_cookie(state: PollState, resp: requests.Response, cfg: Settings) -> PollState:
    cookie = extract_session_cookie(resp.headers.get("set-cookie"), cfg.session_cookie_name)
    if cookie and cookie != state.cookie:
        logger.debug("Session cookie rotated")
        return replace(state, cookie=cookie)
    return state


def _merge_fragment(
    data: FlightData,
    fragment: str,
    portal: str,
    directory: AirportDirectory,
    currency: str,
    poll_count: int,
) -> None:
    extracted = extract_flight_data(fragment, portal, directory, currency)
    stats = merge_with_stats(data, extracted)
    if stats.changed:
        logger.info(
            "%s poll %d: +%d bundles, +%d flights, +%d options",
            portal,
            poll_count,
            stats.bundles,
            stats.flights,
            stats.booking_options,
        )
    else:
        logger.debug("%s poll %d: no new results", portal, poll_count)


async def poll_portal(
    session: SessionData,
    request: SearchRequest,
    settings: Settings | None = None,
    budget: PollingBudget | None = None,
    directory: AirportDirectory | None = None,
) -> FlightData:
    """Poll until the portal says it is done or a budget runs out.

    Always returns what has been accumulated, possibly nothing.
    """
    cfg = settings or get_settings()
    budget = budget or PollingBudget.from_settings(cfg)
    directory = directory if directory is not None else default_directory(cfg)
    url = f"{cfg.base_url}/{session.portal}/poll"
    portal = session.portal

    state = PollState(
        cookie=session.cookie, tokens=session.tokens, started_at=time.monotonic()
    )
    data = FlightData()
    logger.info("Starting %s polling at %s", portal, url)

    while not budget_exhausted(state, budget, time.monotonic()):
        state = replace(state, poll_count=state.poll_count + 1, phase=PollPhase.POLLING)
        slot_done = False

        for attempt in range(1, budget.max_poll_retries + 1):
            remaining = time_left(state, budget, time.monotonic())
            if remaining <= 0:
                break
            form = {
                "_token": state.tokens.get("_token"),
                "session": state.tokens.get("session"),
                "suuid": state.tokens.get("suuid"),
                "noc": next_nonce(),
                "deeplink": state.tokens.get("deeplink"),
                "s": "www",
                "adults": str(request.adults),
                "children": str(request.children),
                "infants": str(request.infants),
                "currency": request.currency,
            }
            try:
                resp = await _post(
                    url, form, ajax_headers(session.referer, state.cookie), cfg, remaining
                )
            except requests.RequestException as exc:
                state, action = on_transport_error(state, budget)
                logger.warning(
                    "%s poll %d attempt %d failed: %s", portal, state.poll_count, attempt, exc
                )
                if action is Action.ABORT:
                    logger.error(
                        "%s: too many failed polls (%d), stopping", portal, state.failed_polls
                    )
                    return data
                network = isinstance(exc, (requests.ConnectionError, requests.Timeout))
                await _pause(
                    budget.network_backoff_s if network else budget.poll_interval_s,
                    state,
                    budget,
                )
                continue

            state = _rotate_cookie(state, resp, cfg)
            envelope = parse_envelope(resp.text)
            state, action = on_envelope(state, envelope)

            if action is Action.RETRY_MALFORMED:
                logger.warning("%s poll %d: malformed response", portal, state.poll_count)
                continue
            logger.info(
                "%s poll %d: status=%s expected=%d fragment=%d chars",
                portal,
                state.poll_count,
                "LAST" if envelope.is_last else "MORE",
                envelope.expected_total,
                len(envelope.fragment),
            )
            if action is Action.RETRY_PENDING:
                await _pause(budget.poll_interval_s, state, budget)
                continue
            if action in (Action.EXTRACT_AND_CONTINUE, Action.EXTRACT_AND_FINISH):
                _merge_fragment(
                    data, envelope.fragment, portal, directory, request.currency, state.poll_count
                )
            if action in (Action.EXTRACT_AND_FINISH, Action.FINISH):
                logger.info("%s polling completed after %d polls", portal, state.poll_count)
                return data
            slot_done = True
            break

        if not slot_done:
            logger.warning("%s poll %d gave no usable response", portal, state.poll_count)
        await _pause(budget.poll_interval_s, state, budget)

    logger.warning(
        "%s polling budget exhausted: %d polls, %d failed, %.1fs",
        portal,
        state.poll_count,
        state.failed_polls,
        time.monotonic() - state.started_at,
    )
    return data


async def exchange_portal(
    session: SessionData,
    request: SearchRequest,
    settings: Settings | None = None,
    budget: PollingBudget | None = None,
    directory: AirportDirectory | None = None,
) -> FlightData:
    """Single search exchange, repeated while results are still settling.

    Extraction only runs when the number of result rows changed since the
    previous attempt.  Any unexpected answer ends the exchange.
    """
    cfg = settings or get_settings()
    budget = budget or PollingBudget.from_settings(cfg)
    directory = directory if directory is not None else default_directory(cfg)
    url = f"{cfg.base_url}/{session.portal}/search"
    portal = session.portal

    form = {
        "_token": session.tokens.get("_token"),
        **request.portal_params(portal),
        "type": "",
        "bags-cabin": "0",
        "bags-checked": "0",
    }
    state = PollState(
        cookie=session.cookie, tokens=session.tokens, started_at=time.monotonic()
    )
    data = FlightData()
    previous_rows = 0

    for attempt in range(1, budget.exchange_attempts + 1):
        state = replace(state, poll_count=attempt)
        logger.info("Sending %s search request (attempt %d)", portal, attempt)
        try:
            resp = await _post(url, form, ajax_headers(session.referer, state.cookie), cfg)
        except requests.RequestException as exc:
            logger.error("%s search request failed: %s", portal, exc)
            break

        state = _rotate_cookie(state, resp, cfg)
        envelope = parse_envelope(resp.text)
        state, action = on_envelope(state, envelope)

        if action is Action.RETRY_MALFORMED:
            logger.warning("Invalid %s response format", portal)
            break
        if action is Action.RETRY_PENDING:
            logger.warning("Unexpected %s response content", portal)
            break
        if action is Action.FINISH:
            logger.info("No flights found in %s response", portal)
            break

        rows = count_result_rows(envelope.fragment)
        if rows != previous_rows:
            _merge_fragment(
                data, envelope.fragment, portal, directory, request.currency, attempt
            )
        else:
            logger.debug("%s attempt %d: result count unchanged (%d)", portal, attempt, rows)
        previous_rows = rows

        if action is Action.EXTRACT_AND_FINISH:
            break

    return data


__all__ = [
    "FragmentKind",
    "PollPhase",
    "Action",
    "Envelope",
    "PollState",
    "parse_envelope",
    "classify_fragment",
    "count_result_rows",
    "on_envelope",
    "on_transport_error",
    "budget_exhausted",
    "time_left",
    "next_nonce",
    "ajax_headers",
    "poll_portal",
    "exchange_portal",
]
