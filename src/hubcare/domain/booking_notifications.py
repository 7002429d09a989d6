"""Post-commit booking notifications.

Every function here runs after the booking transaction committed and never
raises: recipient lookup failures are logged and the notification dropped.
"""

from __future__ import annotations

import psycopg2

from hubcare.infra.db import txn
from hubcare.infra.repositories.users_repository import get_first_admin, get_users
from hubcare.notifications.dispatcher import (
    Notification,
    NotificationDispatcher,
    Recipient,
)
from hubcare.notifications.realtime import get_registry
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context

logger = get_logger(__name__)

BOOKING_APPROVED_EVENT = "booking_approved"

# Module-level dispatcher (singleton)
_dispatcher = NotificationDispatcher()


def _get_dispatcher() -> NotificationDispatcher:
    """Get notification dispatcher (allows override in tests)."""
    return _dispatcher


def _load_recipients(
    user_ids: list[str], *, include_admin: bool = False
) -> tuple[dict[str, Recipient], Recipient | None] | None:
    try:
        with txn() as cur:
            users = get_users(cur, user_ids)
            admin = get_first_admin(cur) if include_admin else None
    except (psycopg2.Error, RuntimeError) as e:
        logger.warning(
            "notification recipients lookup failed",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return None
    recipients = {uid: Recipient.from_user(u) for uid, u in users.items()}
    return recipients, Recipient.from_user(admin) if admin else None


def notify_booking_created(booking: dict) -> None:
    """Tell the user, the platform admin and the provider about a new booking."""
    loaded = _load_recipients([booking["user_id"], booking["provider_id"]], include_admin=True)
    if loaded is None:
        return
    recipients, admin = loaded
    user = recipients.get(booking["user_id"])
    provider = recipients.get(booking["provider_id"])
    booker = (user.name if user else None) or "a user"

    _get_dispatcher().notify_many(
        [
            Notification(
                recipient=user,
                title="Booking Created!",
                message=f"Your Booking has been successfully created. Booking ID: {booking['id']}",
                booking_id=booking["id"],
            ),
            Notification(
                recipient=admin,
                title="New Booking Received!",
                message=f"A new booking has been created by {booker}.",
                booking_id=booking["id"],
            ),
            Notification(
                recipient=provider,
                title="New Booking Received!",
                message=f"A new booking has been created by {booker}.",
                booking_id=booking["id"],
            ),
        ]
    )


def notify_booking_approved(booking: dict) -> None:
    """Notify the user and push a real-time booking_approved event."""
    message = (
        f"Your booking for package {booking.get('service_name') or 'Service'} has been approved."
    )
    get_registry().emit(
        booking["user_id"],
        BOOKING_APPROVED_EVENT,
        {"message": message, "bookingId": booking["id"]},
    )

    loaded = _load_recipients([booking["user_id"]])
    if loaded is None:
        return
    recipients, _ = loaded
    _get_dispatcher().notify(
        recipients.get(booking["user_id"]),
        "Booking Approved",
        message,
        booking_id=booking["id"],
    )


def notify_workers_assigned(booking: dict, assigned_count: int) -> None:
    loaded = _load_recipients([booking["user_id"]])
    if loaded is None:
        return
    recipients, _ = loaded
    _get_dispatcher().notify(
        recipients.get(booking["user_id"]),
        "Workers Assigned",
        f"{assigned_count} of {booking['number_of_worker']} worker(s) assigned to your booking.",
        booking_id=booking["id"],
    )


def notify_booking_progress(booking: dict, action: str) -> None:
    """Tell the user a booking was started or completed."""
    verb = "started" if action == "START" else "completed"
    loaded = _load_recipients([booking["user_id"]])
    if loaded is None:
        return
    recipients, _ = loaded
    _get_dispatcher().notify(
        recipients.get(booking["user_id"]),
        f"Booking {verb.capitalize()}",
        f"Your booking for {booking.get('service_name') or 'Service'} has been {verb}.",
        booking_id=booking["id"],
    )


def notify_booking_cancelled(booking: dict, cancelled_by: str) -> None:
    """Tell the other party that the booking was cancelled."""
    other = booking["provider_id"] if cancelled_by == booking["user_id"] else booking["user_id"]
    loaded = _load_recipients([other])
    if loaded is None:
        return
    recipients, _ = loaded
    _get_dispatcher().notify(
        recipients.get(other),
        "Booking Cancelled",
        f"Booking {booking['id']} for {booking.get('service_name') or 'Service'} has been cancelled.",
        booking_id=booking["id"],
    )
