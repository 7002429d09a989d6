"""Admin read endpoints (/admin)."""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from hubcare.api.auth import ROLE_ADMIN, CurrentUser
from hubcare.api.envelope import ok, pagination
from hubcare.api.rbac import is_uuid, require_role
from hubcare.api.serializers import serialize_booking, serialize_transaction

router = APIRouter(prefix="/admin", tags=["admin"])

MAX_PAGE_SIZE = 100


def _list_user_bookings(
    user_id: str,
    *,
    booking_status: str | None,
    start_date: date | None,
    end_date: date | None,
    page: int,
    limit: int,
) -> tuple[list[dict], int]:
    from hubcare.infra.db import txn
    from hubcare.infra.repositories.bookings_repository import list_bookings

    with txn() as cur:
        return list_bookings(
            cur,
            user_id=user_id,
            booking_status=booking_status,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=(page - 1) * limit,
        )


@router.get("/users/{user_id}/bookings")
def user_booking_history(
    user_id: str = Path(...),
    booking_status: Literal["ACTIVE", "COMPLETED", "CANCELLED"] | None = Query(
        None, alias="bookingStatus"
    ),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    admin: CurrentUser = Depends(require_role(ROLE_ADMIN)),
):
    """Paginated booking history of one user, filtered by status and service date."""
    if not is_uuid(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="startDate must be before endDate")

    bookings, total = _list_user_bookings(
        user_id,
        booking_status=booking_status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return ok(
        "User booking history fetched successfully",
        {
            "bookings": [serialize_booking(b) for b in bookings],
            **pagination(page, limit, total),
        },
    )


@router.get("/wallet/{user_id}/transactions")
def user_transaction_summary(
    user_id: str = Path(...),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    admin: CurrentUser = Depends(require_role(ROLE_ADMIN)),
):
    """Balance, CREDIT/DEBIT totals and latest transactions of one account."""
    from hubcare.domain.wallet import get_transaction_summary

    if not is_uuid(user_id):
        raise HTTPException(status_code=404, detail="User not found")

    summary = get_transaction_summary(user_id, limit=limit)
    return ok(
        "Transaction summary fetched successfully",
        {
            "userId": user_id,
            "balance": summary["balance"],
            "totalCredit": summary["total_credit"],
            "totalDebit": summary["total_debit"],
            "transactionCount": summary["count"],
            "transactions": [serialize_transaction(t) for t in summary["transactions"]],
        },
    )
