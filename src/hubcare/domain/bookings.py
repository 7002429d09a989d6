"""Booking lifecycle - creation, approval, start/complete, cancellation, cash.

Each operation runs in one transaction (hubcare.infra.db.txn) and sends its
notifications only after commit. A notification failure never undoes the
booking change.
"""

from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal

from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from hubcare.domain import ledger, promotions
from hubcare.domain.booking_notifications import (
    notify_booking_approved,
    notify_booking_cancelled,
    notify_booking_created,
    notify_booking_progress,
)
from hubcare.domain.booking_state import (
    BookingAction,
    BookingState,
    PaymentMethod,
)
from hubcare.domain.errors import (
    BookingNotFoundError,
    DuplicateBookingError,
    NotFoundError,
    PaymentTimeoutError,
    ValidationError,
)
from hubcare.domain.pricing import base_amount, compute_price, round2, to_decimal
from hubcare.infra.db import is_lock_timeout, txn
from hubcare.infra.repositories.bookings_repository import (
    find_active_booking,
    get_booking,
    get_service,
    insert_booking,
    location_belongs_to_user,
    save_state,
)
from hubcare.infra.repositories.notifications_repository import mark_converted
from hubcare.infra.repositories.workers_repository import list_assigned_workers
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context
from hubcare.settings import get_settings

logger = get_logger(__name__)

MAX_WORK_HOURS = Decimal("10000")


def lock_booking(cur: PgCursor, booking_id: str) -> dict:
    """Load a booking FOR UPDATE.

    Raises:
        BookingNotFoundError: Unknown booking.
        PaymentTimeoutError: Row lock not acquired within the lock timeout.
    """
    try:
        booking = get_booking(cur, booking_id, for_update=True)
    except Exception as exc:
        if is_lock_timeout(exc):
            raise PaymentTimeoutError("Booking is busy, please retry") from exc
        raise
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


def _run(cur: PgCursor | None, fn):
    if cur is not None:
        return fn(cur)
    with txn(lock_timeout_ms=get_settings().wallet_lock_timeout_ms) as c:
        return fn(c)


# ── Creation ─────────────────────────────────────────────


def create_booking(
    *,
    user_id: str,
    service_id: str,
    location_id: str,
    service_date: date,
    start_time: time,
    number_of_worker: int,
    work_hours: Decimal,
    payment_method: PaymentMethod | str,
    offer_id: str | None = None,
    notification_id: str | None = None,
    cur: PgCursor | None = None,
) -> dict:
    """Create a booking, paying for it from the user's wallet when asked.

    This function, inside one transaction:
    1. Validates the service and the user's location exist
    2. Rejects a second ACTIVE booking for (user, service, date)
    3. Reserves the promo offer, if any, and computes the discount
    4. Executes the wallet payment (payer debit, provider and platform credit)
    5. Inserts the booking row
    6. Inserts the promo redemption row
    7. Commits (also marks notification_id converted)

    After commit the user, the admin and the provider are notified.
    Any failure before commit rolls back every write above.

    Args:
        user_id: Booking user.
        service_id: Service UUID.
        location_id: One of the user's saved locations.
        service_date: Date of service.
        start_time: Start time.
        number_of_worker: Worker capacity (>= 1).
        work_hours: Hours per worker (> 0).
        payment_method: WALLET or CASH.
        offer_id: Optional promo offer.
        notification_id: Optional notification that led to this booking.
        cur: Optional cursor; when given, the caller owns the transaction
            and no notification is sent.

    Returns:
        Booking dict as stored.

    Raises:
        ValidationError: Invalid counts/hours/method.
        NotFoundError: Unknown service or location.
        DuplicateBookingError: Active booking exists for the same day.
        AlreadyRedeemedError / OfferNotFoundError / OfferExpiredError: Promo.
        InsufficientFundsError: Wallet cannot cover final amount.
        PaymentTimeoutError: Wallet locks not acquired in time.
    """
    try:
        method = PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError("Invalid payment method")
    if number_of_worker < 1:
        raise ValidationError("numberOfWorker must be at least 1")
    work_hours = to_decimal(work_hours)
    if work_hours <= 0:
        raise ValidationError("workHours must be greater than zero")
    # Priced with the value the NUMERIC(6, 2) column will hold
    if work_hours != round2(work_hours):
        raise ValidationError("workHours must have at most 2 decimal places")
    if work_hours >= MAX_WORK_HOURS:
        raise ValidationError("workHours is too large")
    work_hours = round2(work_hours)

    booking_id = str(uuid.uuid4())
    tax_rate = get_settings().booking_tax_rate

    def _do(c: PgCursor) -> dict:
        # Step 1: service and location
        service = get_service(c, service_id)
        if service is None:
            raise NotFoundError("Service not found")
        if not location_belongs_to_user(c, location_id, user_id):
            raise NotFoundError("Location not found")

        # Step 2: uniqueness
        if find_active_booking(
            c, user_id=user_id, service_id=service_id, service_date=service_date
        ):
            raise DuplicateBookingError()

        # Step 3: promo
        discount = Decimal("0")
        if offer_id:
            discount = promotions.reserve(
                c,
                user_id=user_id,
                offer_id=offer_id,
                base_amount=base_amount(service["amount"], number_of_worker, work_hours),
            )

        price = compute_price(
            amount=service["amount"],
            number_of_worker=number_of_worker,
            work_hours=work_hours,
            discount_amount=discount,
            tax_rate=tax_rate,
        )

        # Step 4: payment
        paid = False
        if method is PaymentMethod.WALLET:
            if price.final_amount > 0:
                ledger.pay_for_service(
                    c,
                    payer_id=user_id,
                    provider_id=service["provider_id"],
                    amount=price.final_amount,
                    booking_id=booking_id,
                )
            paid = True

        # Step 5: booking row
        state = BookingState.initial(method, paid=paid)
        try:
            insert_booking(
                c,
                booking_id=booking_id,
                user_id=user_id,
                provider_id=service["provider_id"],
                service_id=service_id,
                location_id=location_id,
                service_date=service_date,
                start_time=start_time,
                number_of_worker=number_of_worker,
                work_hours=work_hours,
                amount=price.amount,
                discount_amount=price.discount_amount,
                tax_rate=price.tax_rate,
                taxes_and_fees=price.taxes_and_fees,
                final_amount=price.final_amount,
                offer_id=offer_id,
                state=state,
            )
        except pg_errors.UniqueViolation as exc:
            raise DuplicateBookingError() from exc

        # Step 6: redemption
        if offer_id:
            promotions.record_redemption(
                c,
                user_id=user_id,
                offer_id=offer_id,
                booking_id=booking_id,
                discount_amount=price.discount_amount,
            )

        if notification_id:
            mark_converted(c, notification_id, user_id)

        return get_booking(c, booking_id)

    booking = _run(cur, _do)

    logger.info(
        "booking created",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                service_id=service_id,
                payment_method=method.value,
                final_amount=booking["final_amount"],
                offer_applied=bool(offer_id),
            )
        },
    )

    if cur is None:
        notify_booking_created(booking)
    return booking


# ── Transitions ──────────────────────────────────────────


def booking_action(
    booking_id: str,
    action: BookingAction | str,
    *,
    cur: PgCursor | None = None,
) -> dict:
    """Start or complete a booking.

    Raises:
        ValidationError: Unknown action.
        BookingNotFoundError: Unknown booking.
        InvalidStateError: Booking is cancelled or completed.
        AlreadyStartedError / WorkerNotAssignedError / PaymentIncompleteError:
            START preconditions.
        NotStartedError: COMPLETE before START.
    """
    try:
        action = BookingAction(action)
    except ValueError:
        raise ValidationError("Invalid booking ID or action")

    def _do(c: PgCursor) -> dict:
        booking = lock_booking(c, booking_id)
        new_state = BookingState.from_row(booking).apply(action)
        save_state(
            c,
            booking_id,
            new_state,
            started=action is BookingAction.START,
            completed=action is BookingAction.COMPLETE,
        )
        return get_booking(c, booking_id)

    booking = _run(cur, _do)

    logger.info(
        "booking started" if action is BookingAction.START else "booking completed",
        extra={"extra_fields": safe_log_context(booking_id=booking_id)},
    )
    if cur is None:
        notify_booking_progress(booking, action.value)
    return booking


def approve_booking(booking_id: str, *, cur: PgCursor | None = None) -> dict:
    """Provider confirmation of a booking request.

    Raises:
        BookingNotFoundError: Unknown booking.
        InvalidStateError: Booking is cancelled or completed.
        AlreadyApprovedError: Already approved.
    """

    def _do(c: PgCursor) -> dict:
        booking = lock_booking(c, booking_id)
        new_state = BookingState.from_row(booking).approve()
        save_state(c, booking_id, new_state)
        return get_booking(c, booking_id)

    booking = _run(cur, _do)

    logger.info(
        "booking approved",
        extra={"extra_fields": safe_log_context(booking_id=booking_id)},
    )
    if cur is None:
        notify_booking_approved(booking)
    return booking


def cancel_booking(
    booking_id: str,
    *,
    cancelled_by: str,
    cur: PgCursor | None = None,
) -> dict:
    """Cancel a booking, refunding wallet payments once.

    A wallet-paid booking whose payment completed is credited back its
    final amount and moves to REFUNDED in the same transaction.

    Returns:
        {"booking": dict, "refund_amount": Decimal | None}

    Raises:
        BookingNotFoundError: Unknown booking.
        AlreadyCancelledError: Booking already cancelled.
        InvalidStateError: Booking already completed.
    """

    def _do(c: PgCursor) -> tuple[dict, Decimal | None]:
        booking = lock_booking(c, booking_id)
        new_state, refund_due = BookingState.from_row(booking).cancel()

        refund_amount = None
        if refund_due and booking["final_amount"] > 0:
            record = ledger.refund(
                c,
                user_id=booking["user_id"],
                amount=booking["final_amount"],
                booking_id=booking_id,
            )
            refund_amount = record.amount

        save_state(c, booking_id, new_state, cancelled=True)
        return get_booking(c, booking_id), refund_amount

    booking, refund_amount = _run(cur, _do)

    logger.info(
        "booking cancelled",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                cancelled_by=cancelled_by,
                refund_amount=refund_amount,
            )
        },
    )
    if cur is None:
        notify_booking_cancelled(booking, cancelled_by)
    return {"booking": booking, "refund_amount": refund_amount}


def confirm_cash_payment(booking_id: str, *, cur: PgCursor | None = None) -> dict:
    """Record a cash payment collected by the provider.

    The provider is credited the full amount and debited the platform
    commission, which is credited to the platform account.

    Raises:
        BookingNotFoundError: Unknown booking.
        InvalidStateError: Terminal booking, not CASH, or already paid.
    """

    def _do(c: PgCursor) -> dict:
        booking = lock_booking(c, booking_id)
        new_state = BookingState.from_row(booking).confirm_cash()
        if booking["final_amount"] > 0:
            ledger.settle_cash_payment(
                c,
                provider_id=booking["provider_id"],
                amount=booking["final_amount"],
                booking_id=booking_id,
            )
        save_state(c, booking_id, new_state)
        return get_booking(c, booking_id)

    booking = _run(cur, _do)

    logger.info(
        "cash payment confirmed",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id, amount=booking["final_amount"]
            )
        },
    )
    return booking


# ── Reads ────────────────────────────────────────────────


def load_booking_with_workers(booking_id: str) -> tuple[dict, list[dict]]:
    """Booking plus its assigned workers (newest first).

    Raises:
        BookingNotFoundError: Unknown booking.
    """
    with txn() as cur:
        booking = get_booking(cur, booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking, list_assigned_workers(cur, booking_id)
