"""
Lifecycle Errors

Typed failures raised by the claim lifecycle. None of them are retried;
callers translate them into user-facing messages.
"""
from typing import Optional


class LifecycleError(Exception):
    """Base class for all claim lifecycle failures."""
    status_code: int = 400

    def __init__(self, message: str, entity_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id


class InvalidTransitionError(LifecycleError):
    """The requested status change is not legal from the current status."""
    status_code = 400


class NotFoundError(LifecycleError):
    """A referenced claim, payment or treatment does not exist."""
    status_code = 404


class DuplicatePaymentError(LifecycleError):
    """The claim already has an active (non-rejected) payment."""
    status_code = 409


class ValidationError(LifecycleError):
    """Malformed input, such as a non-positive cost or a rejection without notes."""
    status_code = 422
