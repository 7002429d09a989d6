"""Domain error taxonomy.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer renders it with. Messages are user-facing and specific enough to
drive client UI.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all expected, user-visible failures."""

    status_code = 400
    code = "DOMAIN_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ── Taxonomy roots ───────────────────────────────────────


class ValidationError(DomainError):
    """Missing or malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(DomainError):
    """Entity absent (or not visible to the caller)."""

    status_code = 404
    code = "NOT_FOUND"


class AuthorizationError(DomainError):
    """Role or ownership mismatch."""

    status_code = 403
    code = "FORBIDDEN"


class StateConflictError(DomainError):
    """Illegal transition, double booking, duplicate redemption."""

    status_code = 400
    code = "STATE_CONFLICT"


class InsufficientFundsError(DomainError):
    status_code = 400
    code = "INSUFFICIENT_FUNDS"


class ExternalServiceError(DomainError):
    """Payment processor or other remote collaborator failed.

    ``recoverable`` tells the caller whether re-requesting may succeed.
    """

    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, *, recoverable: bool = False) -> None:
        self.recoverable = recoverable
        super().__init__(message)


# ── Lookups ──────────────────────────────────────────────


class BookingNotFoundError(NotFoundError):
    code = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: str) -> None:
        self.booking_id = booking_id
        super().__init__("Booking not found")


class OfferNotFoundError(NotFoundError):
    code = "OFFER_NOT_FOUND"

    def __init__(self, offer_id: str) -> None:
        self.offer_id = offer_id
        super().__init__("Promo offer not found")


class AccountNotFoundError(InsufficientFundsError):
    """Debit against an account that has no wallet yet."""

    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__("Wallet not found for this account")


# ── State machine preconditions ──────────────────────────


class InvalidStateError(StateConflictError):
    code = "INVALID_STATE"


class AlreadyCancelledError(StateConflictError):
    code = "ALREADY_CANCELLED"

    def __init__(self) -> None:
        super().__init__("Booking is already cancelled")


class AlreadyApprovedError(StateConflictError):
    code = "ALREADY_APPROVED"

    def __init__(self) -> None:
        super().__init__("Booking is already approved")


class AlreadyStartedError(StateConflictError):
    code = "ALREADY_STARTED"

    def __init__(self) -> None:
        super().__init__("Booking already started")


class NotStartedError(StateConflictError):
    code = "NOT_STARTED"

    def __init__(self) -> None:
        super().__init__("Booking not started")


class WorkerNotAssignedError(StateConflictError):
    code = "WORKER_NOT_ASSIGNED"

    def __init__(self) -> None:
        super().__init__("Worker not assigned yet")


class PaymentIncompleteError(StateConflictError):
    code = "PAYMENT_INCOMPLETE"

    def __init__(self) -> None:
        super().__init__("Payment not completed")


class DuplicateBookingError(StateConflictError):
    status_code = 409
    code = "DUPLICATE_BOOKING"

    def __init__(self) -> None:
        super().__init__("You already have an active booking for this service.")


# ── Worker assignment ────────────────────────────────────


class WorkerNotFoundError(NotFoundError):
    code = "WORKER_NOT_FOUND"

    def __init__(self, worker_id: str) -> None:
        self.worker_id = worker_id
        super().__init__("Worker not found or unauthorized access.")



class CapacityExceededError(StateConflictError):
    code = "CAPACITY_EXCEEDED"

    def __init__(self, remaining: int, assigned: int) -> None:
        self.remaining = remaining
        self.assigned = assigned
        super().__init__(
            f"Only {remaining} worker(s) can be assigned. {assigned} already assigned."
        )


class InvalidWorkerError(ValidationError):
    code = "INVALID_WORKER"

    def __init__(self, worker_ids: list[str]) -> None:
        self.worker_ids = worker_ids
        super().__init__("Some workers are invalid or do not belong to the provider")


class AlreadyAssignedError(StateConflictError):
    code = "ALREADY_ASSIGNED"

    def __init__(self, worker_ids: list[str]) -> None:
        self.worker_ids = worker_ids
        super().__init__("Worker already assigned to this booking")


# ── Promotions ───────────────────────────────────────────


class AlreadyRedeemedError(StateConflictError):
    code = "ALREADY_REDEEMED"

    def __init__(self) -> None:
        super().__init__("You have already used this promo code.")


class OfferExpiredError(ValidationError):
    code = "OFFER_EXPIRED"

    def __init__(self) -> None:
        super().__init__("This promo code has expired.")


# ── Payments ─────────────────────────────────────────────


class PaymentDeclinedError(ExternalServiceError):
    status_code = 402
    code = "PAYMENT_DECLINED"

    def __init__(self, message: str = "Payment was declined") -> None:
        super().__init__(message, recoverable=False)


class PaymentTimeoutError(ExternalServiceError):
    status_code = 504
    code = "PAYMENT_TIMEOUT"

    def __init__(self, message: str = "Payment timed out, please retry") -> None:
        super().__init__(message, recoverable=True)


class RechargeNotCreditedError(ExternalServiceError):
    """Charge captured by the processor but the wallet credit did not commit."""

    code = "RECHARGE_NOT_CREDITED"

    def __init__(self, payment_intent_id: str) -> None:
        self.payment_intent_id = payment_intent_id
        super().__init__(
            "Payment was received but the wallet could not be credited. "
            f"Do not retry; contact support with reference {payment_intent_id}.",
            recoverable=False,
        )
