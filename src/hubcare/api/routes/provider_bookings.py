"""Provider booking endpoints (/provider/booking)."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from hubcare.api.auth import ROLE_PROVIDER, CurrentUser
from hubcare.api.envelope import ok, pagination
from hubcare.api.rbac import PARTY_PROVIDER, BookingAccessContext, require_booking_party, require_role
from hubcare.api.serializers import serialize_booking, serialize_worker

router = APIRouter(prefix="/provider/booking", tags=["provider-bookings"])

MAX_PAGE_SIZE = 100

ProviderStatusFilter = Literal["REQUEST", "ACTIVE", "COMPLETED", "CANCELLED"]


def status_filters(status: str | None) -> dict:
    """Map the provider status filter onto booking columns.

    REQUEST means ACTIVE and not yet approved; ACTIVE means approved and
    still ACTIVE.
    """
    if status == "REQUEST":
        return {"booking_status": "ACTIVE", "approved": False}
    if status == "ACTIVE":
        return {"booking_status": "ACTIVE", "approved": True}
    if status:
        return {"booking_status": status}
    return {}


def _list_bookings(provider_id: str, status: str | None, page: int, limit: int) -> tuple[list[dict], int]:
    from hubcare.infra.db import txn
    from hubcare.infra.repositories.bookings_repository import list_bookings

    with txn() as cur:
        return list_bookings(
            cur,
            provider_id=provider_id,
            limit=limit,
            offset=(page - 1) * limit,
            **status_filters(status),
        )


@router.get("")
def list_provider_bookings(
    status: ProviderStatusFilter | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    user: CurrentUser = Depends(require_role(ROLE_PROVIDER)),
):
    bookings, total = _list_bookings(user.id, status, page, limit)
    return ok(
        "Bookings fetched successfully",
        {
            "bookings": [serialize_booking(b) for b in bookings],
            **pagination(page, limit, total),
        },
    )


@router.get("/{booking_id}")
def get_provider_booking(
    ctx: BookingAccessContext = Depends(require_booking_party(PARTY_PROVIDER)),
):
    from hubcare.domain.bookings import load_booking_with_workers

    booking, workers = load_booking_with_workers(ctx.booking_id)
    data = serialize_booking(booking)
    data["workers"] = [serialize_worker(w) for w in workers]
    return ok("Booking fetched successfully", data)
