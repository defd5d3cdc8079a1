"""Content-derived identifiers.

The same physical flight seen by different portals or polls must map to the
same id, so ids are built only from normalised content, never from position
or time of discovery.
"""

from __future__ import annotations

import hashlib
import re
from typing import Iterable

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_TARGET_PREFIX = re.compile(r"^(bundle_|flight_|deal_)")


def _clean(value: str) -> str:
    return _NON_ALNUM.sub("", value).lower()


def _short_hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:8]


def generate_id(prefix: str, data: str) -> str:
    return f"{prefix}_{_clean(data)}"


def flight_id(
    flight_number: str, origin: str, destination: str, encoded_departure: str
) -> str:
    """``flight_<number><from><to><YYYYMMDDHHMM>`` in lower case."""
    return generate_id(
        "flight", f"{flight_number}-{origin}-{destination}-{encoded_departure}"
    )


def bundle_id(flight_ids: Iterable[str]) -> str:
    """Order-independent id of a set of flights."""
    joined = "-".join(sorted(flight_ids))
    return f"bundle_{_short_hash(joined)}"


def booking_option_id(link: str, agency: str, target_id: str) -> str:
    target_hash = _TARGET_PREFIX.sub("", target_id)
    return f"booking_{_short_hash(link)}_{_clean(agency)}_{target_hash}"


def deal_id(target_id: str) -> str:
    return f"deal_{_TARGET_PREFIX.sub('', target_id)}"


__all__ = [
    "generate_id",
    "flight_id",
    "bundle_id",
    "booking_option_id",
    "deal_id",
]
