"""Booking endpoints (/booking).

Users create, list, inspect and cancel their bookings. The booking's
provider approves, assigns workers, starts/completes, confirms cash payment
and may also cancel.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from hubcare.api.auth import ROLE_USER, CurrentUser
from hubcare.api.envelope import ok, pagination
from hubcare.api.rbac import (
    PARTY_PROVIDER,
    PARTY_USER,
    BookingAccessContext,
    is_uuid,
    require_booking_party,
    require_role,
)
from hubcare.api.serializers import serialize_booking, serialize_worker
from hubcare.domain.booking_state import BookingAction, BookingState, PaymentMethod
from hubcare.observability.logging import get_logger

router = APIRouter(prefix="/booking", tags=["bookings"])

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")
_TIME_FORMATS = ("%I:%M %p", "%H:%M", "%H:%M:%S")


def parse_service_date(value: object) -> object:
    """Accept YYYY-MM-DD or M/D/YYYY."""
    if not isinstance(value, str):
        return value
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    raise ValueError("Invalid service date format")


def parse_start_time(value: object) -> object:
    """Accept hh:mm AM/PM or HH:mm (seconds optional)."""
    if not isinstance(value, str):
        return value
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value.strip().upper(), fmt).time()
        except ValueError:
            continue
    raise ValueError("Invalid start time format")


class CreateBookingRequest(BaseModel):
    """Request body for booking creation."""

    model_config = ConfigDict(populate_by_name=True)

    service_date: date = Field(alias="serviceDate")
    start_time: time = Field(alias="startTime")
    number_of_worker: int = Field(alias="numberOfWorker", ge=1)
    work_hours: Decimal = Field(alias="workHours", gt=0, max_digits=6, decimal_places=2)
    location_id: uuid.UUID = Field(alias="locationId")
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    offer_id: uuid.UUID | None = Field(default=None, alias="offerId")
    notification_id: uuid.UUID | None = Field(default=None, alias="notificationId")

    @field_validator("service_date", mode="before")
    @classmethod
    def _parse_date(cls, v: object) -> object:
        return parse_service_date(v)

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_time(cls, v: object) -> object:
        return parse_start_time(v)


class BookingActionRequest(BaseModel):
    action: BookingAction


class AssignWorkersRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    worker_ids: list[uuid.UUID] = Field(alias="workerIds", min_length=1)


class AssignWorkerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    worker_id: uuid.UUID = Field(alias="workerId")


def _list_bookings(
    user_id: str,
    status: str | None,
    page: int,
    limit: int,
) -> tuple[list[dict], int]:
    """List a user's bookings newest first."""
    from hubcare.infra.db import txn
    from hubcare.infra.repositories.bookings_repository import list_bookings

    with txn() as cur:
        return list_bookings(
            cur,
            user_id=user_id,
            booking_status=status,
            limit=limit,
            offset=(page - 1) * limit,
        )


# ── Reads ────────────────────────────────────────────────


@router.get("")
def list_my_bookings(
    status: Literal["ACTIVE", "COMPLETED", "CANCELLED"] | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    user: CurrentUser = Depends(require_role(ROLE_USER)),
):
    """List the caller's bookings, optionally filtered by bookingStatus."""
    bookings, total = _list_bookings(user.id, status, page, limit)
    return ok(
        "Bookings fetched successfully",
        {
            "bookings": [serialize_booking(b) for b in bookings],
            **pagination(page, limit, total),
        },
    )


@router.get("/{booking_id}")
def get_booking_detail(ctx: BookingAccessContext = Depends(require_booking_party(PARTY_USER))):
    from hubcare.domain.bookings import load_booking_with_workers

    booking, workers = load_booking_with_workers(ctx.booking_id)
    data = serialize_booking(booking)
    data["workers"] = [serialize_worker(w) for w in workers]
    return ok("Booking fetched successfully", data)


@router.get("/{booking_id}/status")
def get_booking_status(ctx: BookingAccessContext = Depends(require_booking_party(PARTY_USER))):
    """Progress flags for the customer timeline."""
    from hubcare.domain.bookings import load_booking_with_workers

    booking, _ = load_booking_with_workers(ctx.booking_id)
    state = BookingState.from_row(booking)
    return ok(
        "Booking status fetched successfully",
        {
            "bookingId": booking["id"],
            "bookingStatus": booking["booking_status"],
            "phase": state.phase.value,
            **state.progress_flags(),
        },
    )


@router.get("/{booking_id}/workers")
def get_assigned_workers(
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_USER, PARTY_PROVIDER)),
):
    from hubcare.domain.bookings import load_booking_with_workers

    _, workers = load_booking_with_workers(ctx.booking_id)
    return ok(
        "Assigned workers fetched successfully",
        {"bookingId": ctx.booking_id, "workers": [serialize_worker(w) for w in workers]},
    )


# ── Creation ─────────────────────────────────────────────


@router.post("/{service_id}", status_code=201)
def create_booking(
    body: CreateBookingRequest,
    service_id: str = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_USER)),
):
    """Create a booking for a service; WALLET bookings are paid immediately."""
    from hubcare.domain.bookings import create_booking as create_booking_domain

    if not is_uuid(service_id):
        raise HTTPException(status_code=404, detail="Service not found")

    booking = create_booking_domain(
        user_id=user.id,
        service_id=service_id,
        location_id=str(body.location_id),
        service_date=body.service_date,
        start_time=body.start_time,
        number_of_worker=body.number_of_worker,
        work_hours=body.work_hours,
        payment_method=body.payment_method,
        offer_id=str(body.offer_id) if body.offer_id else None,
        notification_id=str(body.notification_id) if body.notification_id else None,
    )
    return ok("Booking created successfully", serialize_booking(booking), status_code=201)


# ── Transitions ──────────────────────────────────────────


@router.patch("/{booking_id}/action")
def booking_action(
    body: BookingActionRequest,
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_PROVIDER)),
):
    """START or COMPLETE a booking."""
    from hubcare.domain.bookings import booking_action as booking_action_domain

    booking = booking_action_domain(ctx.booking_id, body.action)
    verb = "started" if body.action is BookingAction.START else "completed"
    return ok(f"Booking {verb} successfully", serialize_booking(booking))


@router.post("/{booking_id}/cancel")
def cancel_booking(
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_USER, PARTY_PROVIDER)),
):
    """Cancel a booking; wallet payments are refunded to the user."""
    from hubcare.domain.bookings import cancel_booking as cancel_booking_domain

    result = cancel_booking_domain(ctx.booking_id, cancelled_by=ctx.user.id)
    data = serialize_booking(result["booking"])
    data["refundAmount"] = result["refund_amount"]
    message = (
        "Booking cancelled and amount refunded to wallet"
        if result["refund_amount"] is not None
        else "Booking cancelled successfully"
    )
    return ok(message, data)


@router.post("/{booking_id}/approve")
def approve_booking(
    ctx: BookingAccessContext = Depends(
        require_booking_party(
            PARTY_PROVIDER, denied_message="You are not authorized to approve this booking"
        )
    ),
):
    from hubcare.domain.bookings import approve_booking as approve_booking_domain

    booking = approve_booking_domain(ctx.booking_id)
    return ok("Booking request accepted successfully", serialize_booking(booking))


@router.post("/{booking_id}/assign-workers")
def assign_workers(
    body: AssignWorkersRequest,
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_PROVIDER)),
):
    from hubcare.domain.worker_assignment import assign_workers as assign_workers_domain

    result = assign_workers_domain(ctx.booking_id, [str(w) for w in body.worker_ids])
    return ok(
        "Workers assigned successfully",
        {
            "bookingId": result.booking_id,
            "assignedWorkerIds": result.assigned_worker_ids,
            "assignedCount": result.assigned_count,
            "numberOfWorker": result.capacity,
            "workerAssignStatus": result.worker_assign_status,
        },
    )


@router.post("/{booking_id}/assign-worker")
def assign_worker(
    body: AssignWorkerRequest,
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_PROVIDER)),
):
    from hubcare.domain.worker_assignment import assign_worker as assign_worker_domain

    result = assign_worker_domain(ctx.booking_id, str(body.worker_id))
    return ok(
        "Worker assigned successfully",
        {
            "bookingId": result.booking_id,
            "workerId": result.assigned_worker_ids[0],
            "assignedCount": result.assigned_count,
            "numberOfWorker": result.capacity,
            "workerAssignStatus": result.worker_assign_status,
        },
    )


@router.post("/{booking_id}/confirm-cash")
def confirm_cash_payment(
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_PROVIDER)),
):
    from hubcare.domain.bookings import confirm_cash_payment as confirm_cash_domain

    booking = confirm_cash_domain(ctx.booking_id)
    return ok(
        "Cash payment processed, wallet updated, commission transferred",
        serialize_booking(booking),
    )
