"""
Domain-specific exception hierarchy for the studio booking application.
"""


class StudioBookError(Exception):
    """Base class for all application-level errors."""


class InvalidBooking(StudioBookError, ValueError):
    """Raised when a booking does not end strictly after it starts."""


class BillingConfigError(StudioBookError):
    """Raised when a project's billing fields do not match its billing type."""


class SlotUnavailableError(StudioBookError):
    """Raised when a reservation targets a slot that is booked or buffered."""


class EntityNotFoundError(StudioBookError):
    """Raised when a client or project id cannot be resolved."""


class StoreError(StudioBookError):
    """Raised when persisted calendar data cannot be read or parsed."""
