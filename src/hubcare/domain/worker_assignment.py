"""Worker assignment - bounded allocation of provider workers to a booking.

Single and bulk assignment share one code path. The booking row is locked
FOR UPDATE so the count-then-insert capacity check cannot race.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from hubcare.domain.booking_notifications import notify_workers_assigned
from hubcare.domain.booking_state import BookingState
from hubcare.domain.bookings import lock_booking
from hubcare.domain.errors import (
    AlreadyAssignedError,
    CapacityExceededError,
    InvalidWorkerError,
    ValidationError,
)
from hubcare.infra.db import txn
from hubcare.infra.repositories.bookings_repository import save_state
from hubcare.infra.repositories.workers_repository import (
    count_assigned,
    filter_assigned,
    filter_provider_workers,
    insert_booking_worker,
)
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context
from hubcare.settings import get_settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class AssignmentResult:
    booking_id: str
    assigned_worker_ids: list[str]
    assigned_count: int
    capacity: int
    worker_assign_status: str


def _normalize(worker_ids: list[str]) -> list[str]:
    if not worker_ids:
        raise ValidationError("Worker IDs are required in an array")
    if len(set(worker_ids)) != len(worker_ids):
        raise ValidationError("Worker IDs must not contain duplicates")
    return list(worker_ids)


def _assign_locked(cur: PgCursor, booking: dict, worker_ids: list[str]) -> AssignmentResult:
    state = BookingState.from_row(booking)
    state.ensure_not_terminal()

    capacity = booking["number_of_worker"]
    current = count_assigned(cur, booking["id"])
    remaining = capacity - current
    if len(worker_ids) > remaining:
        raise CapacityExceededError(remaining=max(remaining, 0), assigned=current)

    owned = filter_provider_workers(cur, booking["provider_id"], worker_ids)
    invalid = [w for w in worker_ids if w not in owned]
    if invalid:
        raise InvalidWorkerError(invalid)

    already = filter_assigned(cur, booking["id"], worker_ids)
    if already:
        raise AlreadyAssignedError(sorted(already))

    for worker_id in worker_ids:
        try:
            insert_booking_worker(cur, booking["id"], worker_id)
        except pg_errors.UniqueViolation as exc:
            raise AlreadyAssignedError([worker_id]) from exc

    total = current + len(worker_ids)
    new_state = state.record_assignment(total, capacity)
    if new_state != state:
        save_state(cur, booking["id"], new_state)

    return AssignmentResult(
        booking_id=booking["id"],
        assigned_worker_ids=worker_ids,
        assigned_count=total,
        capacity=capacity,
        worker_assign_status=new_state.worker_assign_status.value,
    )


def assign_workers(
    booking_id: str,
    worker_ids: list[str],
    *,
    cur: PgCursor | None = None,
) -> AssignmentResult:
    """Assign a batch of workers to a booking, all or nothing.

    Checks run in order: booking exists and is not terminal, capacity,
    ownership, duplicates. When the assigned count reaches number_of_worker
    the booking becomes ASSIGNED.

    Args:
        booking_id: Booking UUID.
        worker_ids: Worker UUIDs to add.
        cur: Optional cursor; when given, the caller owns the transaction
            and no notification is sent.

    Raises:
        ValidationError: Empty or duplicated worker_ids.
        BookingNotFoundError: Unknown booking.
        InvalidStateError: Booking is cancelled or completed.
        CapacityExceededError: More workers than remaining slots.
        InvalidWorkerError: A worker belongs to another provider (or none).
        AlreadyAssignedError: A worker is already on this booking.
    """
    worker_ids = _normalize(worker_ids)

    if cur is not None:
        return _assign_locked(cur, lock_booking(cur, booking_id), worker_ids)

    with txn(lock_timeout_ms=get_settings().wallet_lock_timeout_ms) as c:
        booking = lock_booking(c, booking_id)
        result = _assign_locked(c, booking, worker_ids)

    logger.info(
        "workers assigned",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                added=len(worker_ids),
                assigned_count=result.assigned_count,
                capacity=result.capacity,
            )
        },
    )
    notify_workers_assigned(booking, result.assigned_count)
    return result


def assign_worker(
    booking_id: str,
    worker_id: str,
    *,
    cur: PgCursor | None = None,
) -> AssignmentResult:
    """Assign one worker; same rules as assign_workers."""
    if not worker_id:
        raise ValidationError("Worker ID is required")
    return assign_workers(booking_id, [worker_id], cur=cur)
