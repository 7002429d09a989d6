"""Booking state machine.

A booking's lifecycle is the combination of five stored fields. Only some
combinations are reachable; ``BookingState`` rejects the rest on construction
and exposes the reachable ones as a single ``BookingPhase``. Every transition
is a pure function from one valid state to the next, raising a domain error
that names the violated precondition.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from hubcare.domain.errors import (
    AlreadyApprovedError,
    AlreadyCancelledError,
    AlreadyStartedError,
    InvalidStateError,
    NotStartedError,
    PaymentIncompleteError,
    WorkerNotAssignedError,
)


class BookingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkingStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"


class WorkerAssignStatus(str, Enum):
    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    WALLET = "WALLET"
    CASH = "CASH"


class BookingAction(str, Enum):
    START = "START"
    COMPLETE = "COMPLETE"


class BookingPhase(str, Enum):
    """One variant per reachable field combination (``approved`` is orthogonal)."""

    AWAITING_WORKERS_UNPAID = "AWAITING_WORKERS_UNPAID"
    AWAITING_WORKERS = "AWAITING_WORKERS"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


@dataclass(frozen=True)
class BookingState:
    """Immutable snapshot of a booking's status fields."""

    booking_status: BookingStatus
    working_status: WorkingStatus
    worker_assign_status: WorkerAssignStatus
    approved: bool
    payment_status: PaymentStatus
    payment_method: PaymentMethod

    def __post_init__(self) -> None:
        # Coerce raw DB strings into enums.
        object.__setattr__(self, "booking_status", BookingStatus(self.booking_status))
        object.__setattr__(self, "working_status", WorkingStatus(self.working_status))
        object.__setattr__(
            self, "worker_assign_status", WorkerAssignStatus(self.worker_assign_status)
        )
        object.__setattr__(self, "payment_status", PaymentStatus(self.payment_status))
        object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))
        object.__setattr__(self, "approved", bool(self.approved))
        self._phase()

    @classmethod
    def initial(cls, payment_method: PaymentMethod | str, *, paid: bool) -> BookingState:
        """State of a freshly created booking."""
        return cls(
            booking_status=BookingStatus.ACTIVE,
            working_status=WorkingStatus.NOT_STARTED,
            worker_assign_status=WorkerAssignStatus.UNASSIGNED,
            approved=False,
            payment_status=PaymentStatus.COMPLETED if paid else PaymentStatus.PENDING,
            payment_method=PaymentMethod(payment_method),
        )

    @classmethod
    def from_row(cls, row: dict) -> BookingState:
        return cls(
            booking_status=row["booking_status"],
            working_status=row["working_status"],
            worker_assign_status=row["worker_assign_status"],
            approved=row["approved"],
            payment_status=row["payment_status"],
            payment_method=row["payment_method"],
        )

    def _invalid(self) -> InvalidStateError:
        return InvalidStateError(
            "Invalid booking state: "
            f"{self.booking_status.value}/{self.working_status.value}/"
            f"{self.worker_assign_status.value}/{self.payment_status.value}"
        )

    def _phase(self) -> BookingPhase:
        assigned = self.worker_assign_status is WorkerAssignStatus.ASSIGNED
        paid = self.payment_status is PaymentStatus.COMPLETED

        if self.booking_status is BookingStatus.CANCELLED:
            if self.working_status is WorkingStatus.COMPLETED:
                raise self._invalid()
            if self.payment_status is PaymentStatus.REFUNDED and (
                self.payment_method is not PaymentMethod.WALLET
            ):
                raise self._invalid()
            return BookingPhase.CANCELLED

        if self.payment_status is PaymentStatus.REFUNDED:
            raise self._invalid()

        if self.booking_status is BookingStatus.COMPLETED:
            if self.working_status is not WorkingStatus.COMPLETED or not assigned or not paid:
                raise self._invalid()
            return BookingPhase.COMPLETED

        # ACTIVE
        if self.working_status is WorkingStatus.COMPLETED:
            raise self._invalid()
        if self.working_status is WorkingStatus.STARTED:
            if not assigned or not paid:
                raise self._invalid()
            return BookingPhase.IN_PROGRESS
        if assigned:
            return BookingPhase.READY if paid else BookingPhase.AWAITING_PAYMENT
        return BookingPhase.AWAITING_WORKERS if paid else BookingPhase.AWAITING_WORKERS_UNPAID

    @property
    def phase(self) -> BookingPhase:
        return self._phase()

    @property
    def is_terminal(self) -> bool:
        return self.booking_status in TERMINAL_STATUSES

    def ensure_not_terminal(self) -> None:
        """Raise InvalidStateError for COMPLETED or CANCELLED bookings."""
        if self.is_terminal:
            raise InvalidStateError(
                f"Booking is {self.booking_status.value.lower()}. Action not allowed."
            )

    # ── Transitions ──────────────────────────────────────

    def approve(self) -> BookingState:
        self.ensure_not_terminal()
        if self.approved:
            raise AlreadyApprovedError()
        return replace(self, approved=True)

    def start(self) -> BookingState:
        self.ensure_not_terminal()
        if self.working_status is not WorkingStatus.NOT_STARTED:
            raise AlreadyStartedError()
        if self.worker_assign_status is not WorkerAssignStatus.ASSIGNED:
            raise WorkerNotAssignedError()
        if self.payment_status is not PaymentStatus.COMPLETED:
            raise PaymentIncompleteError()
        return replace(self, working_status=WorkingStatus.STARTED)

    def complete(self) -> BookingState:
        self.ensure_not_terminal()
        if self.working_status is not WorkingStatus.STARTED:
            raise NotStartedError()
        return replace(
            self,
            working_status=WorkingStatus.COMPLETED,
            booking_status=BookingStatus.COMPLETED,
        )

    def apply(self, action: BookingAction | str) -> BookingState:
        """Apply a START/COMPLETE action."""
        action = BookingAction(action)
        if action is BookingAction.START:
            return self.start()
        return self.complete()

    def cancel(self) -> tuple[BookingState, bool]:
        """Cancel the booking.

        Returns:
            (new_state, refund_due). A refund is due only for wallet-paid
            bookings whose payment completed; the new state is then REFUNDED.
        """
        if self.booking_status is BookingStatus.CANCELLED:
            raise AlreadyCancelledError()
        self.ensure_not_terminal()

        refund_due = (
            self.payment_method is PaymentMethod.WALLET
            and self.payment_status is PaymentStatus.COMPLETED
        )
        new_state = replace(
            self,
            booking_status=BookingStatus.CANCELLED,
            payment_status=PaymentStatus.REFUNDED if refund_due else self.payment_status,
        )
        return new_state, refund_due

    def confirm_cash(self) -> BookingState:
        """Record a cash payment collected by the provider."""
        self.ensure_not_terminal()
        if self.payment_method is not PaymentMethod.CASH:
            raise InvalidStateError("Booking is not a cash booking")
        if self.payment_status is PaymentStatus.COMPLETED:
            raise InvalidStateError("Payment already completed")
        return replace(self, payment_status=PaymentStatus.COMPLETED)

    def record_assignment(self, assigned_count: int, capacity: int) -> BookingState:
        """Update worker_assign_status after workers were added."""
        self.ensure_not_terminal()
        if assigned_count >= capacity:
            return replace(self, worker_assign_status=WorkerAssignStatus.ASSIGNED)
        return self

    def progress_flags(self) -> dict[str, bool]:
        """Customer-facing progress flags."""
        return {
            "bookingConfirmed": self.approved,
            "workerAssigned": self.worker_assign_status is WorkerAssignStatus.ASSIGNED,
            "amountPaid": self.payment_status is PaymentStatus.COMPLETED,
            "serviceCompleted": self.working_status is WorkingStatus.COMPLETED,
        }
