from __future__ import annotations


class PortalError(RuntimeError):
    """A portal pipeline failed and produced no usable session or data."""

    def __init__(self, portal: str, message: str) -> None:
        super().__init__(message)
        self.portal = portal


class SessionAcquisitionError(PortalError):
    """Landing page gave no session (HTTP error or missing script tokens)."""


class ExtractionError(ValueError):
    """One list item could not be turned into entities."""


class MissingTimezoneError(ExtractionError):
    """An airport code has no timezone in the reference data."""

    def __init__(self, code: str, role: str) -> None:
        super().__init__(f"No timezone found for {role} airport: {code}")
        self.code = code
        self.role = role


__all__ = [
    "PortalError",
    "SessionAcquisitionError",
    "ExtractionError",
    "MissingTimezoneError",
]
