"""Landing-page session acquisition.

Each portal hands out a session cookie plus a handful of hidden parameters
embedded in a ``<script>`` block as a JavaScript object literal::

    data: { '_token': 'abc', 'session': '...', 'suuid': '...', ... }

The literal is not JSON, so fields are picked out with targeted patterns.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlencode

import requests

from .config import Settings, get_settings
from .search_request import SearchRequest

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/137.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-GB,en;q=0.7",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

REQUIRED_TOKENS: dict[str, tuple[str, ...]] = {
    "sky": ("_token", "session", "suuid", "deeplink"),
    "kiwi": ("_token",),
}

_SCRIPT_RE = re.compile(
    r"<script[^>]*>[\s\S]*?data:\s*{[\s\S]*?}[\s\S]*?</script>", re.IGNORECASE
)
_DATA_RE = re.compile(r"data:\s*{([\s\S]*?)}")


@dataclass(frozen=True, slots=True)
class TokenBundle:
    """Hidden script fields, keyed by their literal names (``_token`` etc.)."""

    values: dict[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def get(self, key: str, default: str = "") -> str:
        return self.values.get(key, default)


@dataclass(slots=True)
class SessionData:
    portal: str
    cookie: str
    tokens: TokenBundle
    referer: str


def build_portal_url(
    portal: str, request: SearchRequest, base_url: str | None = None
) -> str:
    base = (base_url or get_settings().base_url).rstrip("/")
    return f"{base}/{portal}?{urlencode(request.portal_params())}"


def extract_session_cookie(set_cookie_header: str | None, name: str) -> str:
    """Return ``name=value`` for the named cookie, or ``""`` when absent."""
    if not set_cookie_header:
        return ""
    prefix = f"{name}="
    for cookie in set_cookie_header.split(","):
        cookie = cookie.strip()
        if cookie.startswith(prefix):
            return cookie.split(";")[0]
    return ""


def _field_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"'{re.escape(key)}':\s*'([^']+)'")


def extract_session_tokens(
    html: str, required: tuple[str, ...]
) -> Optional[TokenBundle]:
    """Scan script blocks for a ``data: {...}`` literal holding *required*.

    Returns the first block carrying every required field, else ``None``.
    """
    if not html:
        return None
    patterns = {key: _field_pattern(key) for key in required}
    for script in _SCRIPT_RE.finditer(html):
        data = _DATA_RE.search(script.group(0))
        if not data:
            continue
        body = data.group(1)
        values: dict[str, str] = {}
        for key, pattern in patterns.items():
            m = pattern.search(body)
            if not m:
                break
            values[key] = m.group(1)
        else:
            return TokenBundle(values)
    return None


async def fetch_session(
    portal: str, request: SearchRequest, settings: Settings | None = None
) -> Optional[SessionData]:
    """GET the landing page and pull cookie and tokens out of it.

    Returns ``None`` on HTTP errors, transport errors or missing tokens.
    Never retried here.
    """
    cfg = settings or get_settings()
    url = build_portal_url(portal, request, cfg.base_url)
    logger.info("Fetching landing page for %s: %s", portal, url)

    try:
        resp = await asyncio.to_thread(
            requests.get,
            url,
            headers=BROWSER_HEADERS,
            timeout=cfg.http_timeout_s,
            proxies=cfg.proxies,
        )
    except requests.RequestException as exc:
        logger.error("Landing page request for %s failed: %s", portal, exc)
        return None

    if not 200 <= resp.status_code < 300:
        logger.error("Landing page for %s returned HTTP %s", portal, resp.status_code)
        return None

    html = resp.text or ""
    cookie = extract_session_cookie(
        resp.headers.get("set-cookie"), cfg.session_cookie_name
    )
    logger.info(
        "Landing page for %s: %d chars, cookie %d chars",
        portal,
        len(html),
        len(cookie),
    )

    required = REQUIRED_TOKENS.get(portal, ("_token",))
    tokens = extract_session_tokens(html, required)
    if tokens is None:
        logger.error("Missing session tokens %s on %s landing page", required, portal)
        return None

    return SessionData(portal=portal, cookie=cookie, tokens=tokens, referer=url)


__all__ = [
    "BROWSER_HEADERS",
    "REQUIRED_TOKENS",
    "TokenBundle",
    "SessionData",
    "build_portal_url",
    "extract_session_cookie",
    "extract_session_tokens",
    "fetch_session",
]
