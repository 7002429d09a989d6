"""Row dict -> camelCase response payloads."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any


def _iso(value: date | datetime | time | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_booking(b: dict) -> dict[str, Any]:
    return {
        "id": b["id"],
        "userId": b["user_id"],
        "providerId": b["provider_id"],
        "serviceId": b["service_id"],
        "serviceName": b.get("service_name"),
        "locationId": b["location_id"],
        "serviceDate": _iso(b["service_date"]),
        "startTime": _iso(b["start_time"]),
        "numberOfWorker": b["number_of_worker"],
        "workHours": b["work_hours"],
        "amount": b["amount"],
        "discountAmount": b["discount_amount"],
        "taxRate": b["tax_rate"],
        "taxesAndFees": b["taxes_and_fees"],
        "finalAmount": b["final_amount"],
        "paymentMethod": b["payment_method"],
        "paymentStatus": b["payment_status"],
        "bookingStatus": b["booking_status"],
        "workingStatus": b["working_status"],
        "workerAssignStatus": b["worker_assign_status"],
        "approved": b["approved"],
        "offerId": b.get("offer_id"),
        "startTimestamp": _iso(b.get("start_timestamp")),
        "completedAt": _iso(b.get("completed_at")),
        "cancelledAt": _iso(b.get("cancelled_at")),
        "createdAt": _iso(b.get("created_at")),
        "updatedAt": _iso(b.get("updated_at")),
    }


def serialize_worker(w: dict) -> dict[str, Any]:
    return {
        "id": w["id"],
        "name": w["name"],
        "phone": w.get("phone"),
        "assignedAt": _iso(w.get("assigned_at")),
    }


def serialize_worker_profile(w: dict) -> dict[str, Any]:
    return {
        "id": w["id"],
        "providerId": w["provider_id"],
        "name": w["name"],
        "email": w.get("email"),
        "phone": w.get("phone"),
        "companyAddress": w.get("company_address"),
        "createdAt": _iso(w.get("created_at")),
        "updatedAt": _iso(w.get("updated_at")),
    }


def serialize_transaction(t: dict) -> dict[str, Any]:
    return {
        "id": t["id"],
        "amount": t["amount"],
        "type": t["type"],
        "description": t["description"],
        "balanceAfter": t["balance_after"],
        "bookingId": t.get("booking_id"),
        "paymentReference": t.get("payment_reference"),
        "createdAt": _iso(t.get("created_at")),
    }
