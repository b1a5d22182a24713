"""Error taxonomy shared by the booking, payment and wallet services."""

from __future__ import annotations


class BookingCoreError(Exception):
    """Base class for errors surfaced to API callers as a 400 response."""


class InvalidRequest(BookingCoreError):
    """Missing or malformed input."""


class ItemNotFound(BookingCoreError):
    """The requested route or deal does not exist."""


class BookingNotFound(BookingCoreError):
    """The requested booking does not exist."""


class BidNotFound(BookingCoreError):
    """The requested driver bid does not exist."""


class ItemInactive(BookingCoreError):
    """The route or deal is not on sale."""


class InvalidState(BookingCoreError):
    """The record is not in a state that allows the requested transition."""


class CapacityExceeded(BookingCoreError):
    """Selling the requested quantity would oversell the time slot."""

    def __init__(self, message: str = "", *, available: int = 0):
        super().__init__(message or "Not enough seats left for this time slot.")
        self.available = available


class GatewayError(BookingCoreError):
    """The payment gateway failed or timed out."""

    def __init__(self, message: str = "", *, retryable: bool = False):
        super().__init__(message or "Payment gateway error.")
        self.retryable = retryable


class DuplicateEvent(BookingCoreError):
    """An externally keyed event was already applied."""
