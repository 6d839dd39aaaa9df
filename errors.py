"""
Typed errors raised by the fulfillment services.

Every error carries a machine-readable ``code``, the HTTP ``status_code``
the API answers with, and its structured fields (see ``details()``), so a
client can tell a capacity problem from a missing request without parsing
the message.

    FulfillmentError
    +-- NotFoundError            NOT_FOUND            404
    +-- CapacityExceededError    CAPACITY_EXCEEDED    409
    +-- ValidationError          VALIDATION_FAILED    422
    +-- InvalidTransitionError   INVALID_TRANSITION   409
    +-- InconsistentStateError   INCONSISTENT_STATE   503 (retryable)
"""

from typing import Any, Optional


class FulfillmentError(Exception):
    """Base class for all fulfillment errors."""

    code: str = "FULFILLMENT_ERROR"
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def details(self) -> dict:
        """Structured fields of the error, without the message."""
        return {
            k: v
            for k, v in vars(self).items()
            if not k.startswith("_") and k != "message"
        }


class NotFoundError(FulfillmentError):
    """A referenced request or donation does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class CapacityExceededError(FulfillmentError):
    """A donation is larger than what its request still needs."""

    code = "CAPACITY_EXCEEDED"
    status_code = 409

    def __init__(self, quantity: float, remaining: float, request_id: Optional[int] = None):
        self.quantity = quantity
        self.remaining = remaining
        self.request_id = request_id
        super().__init__(
            "Donation quantity exceeds remaining request amount "
            f"({quantity:g} > {remaining:g})"
        )


class ValidationError(FulfillmentError):
    """Malformed input, e.g. a quantity label without a positive numeral."""

    code = "VALIDATION_FAILED"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidTransitionError(FulfillmentError):
    """A donation cannot move from its current status to the requested one."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, donation_id: int, current: str, target: str):
        self.donation_id = donation_id
        self.current = current
        self.target = target
        super().__init__(
            f"Donation {donation_id} cannot go from '{current}' to '{target}'"
        )


class InconsistentStateError(FulfillmentError):
    """The fulfilled-quantity increment could not be applied after retrying."""

    code = "INCONSISTENT_STATE"
    status_code = 503
    retryable = True

    def __init__(self, request_id: int, amount: float, attempts: int):
        self.request_id = request_id
        self.amount = amount
        self.attempts = attempts
        super().__init__(
            f"Could not record {amount:g} against request {request_id} "
            f"after {attempts} attempts; retry the submission"
        )

    def details(self) -> dict:
        data = super().details()
        data["retryable"] = self.retryable
        return data
