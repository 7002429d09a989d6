"""Tests for /booking and /provider/booking endpoints.

Covers:
- Response envelope on success and failure
- Role and booking-party checks (403/404)
- Request validation (400)
- Domain errors rendered with their status and code
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from hubcare.api.auth import CurrentUser, get_current_user
from hubcare.api.factory import create_app
from hubcare.domain.errors import (
    AlreadyCancelledError,
    CapacityExceededError,
    DuplicateBookingError,
    InsufficientFundsError,
    WorkerNotAssignedError,
)
from hubcare.domain.worker_assignment import AssignmentResult
from helpers import make_booking


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user():
    return CurrentUser(id=str(uuid4()), role="User", name="Ana", email="ana@example.com")


@pytest.fixture
def provider():
    return CurrentUser(id=str(uuid4()), role="Provider", name="Cleaners", email=None)


def _client(current: CurrentUser) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_current_user] = lambda: current
    return TestClient(app, raise_server_exceptions=False)


def _parties(user_id: str, provider_id: str):
    return patch("hubcare.api.rbac._get_booking_parties", return_value=(user_id, provider_id))


_CREATE_BODY = {
    "serviceDate": "2025-01-15",
    "startTime": "10:00 AM",
    "numberOfWorker": 2,
    "workHours": 3,
    "locationId": str(uuid4()),
    "paymentMethod": "WALLET",
}


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateBooking:
    def test_created(self, user):
        booking = make_booking(user_id=user.id)
        with patch("hubcare.domain.bookings.create_booking", return_value=booking) as mock_create:
            resp = _client(user).post(f"/booking/{booking['service_id']}", json=_CREATE_BODY)
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] is True
        assert body["message"] == "Booking created successfully"
        assert body["data"]["finalAmount"] == 315.0
        assert body["data"]["serviceDate"] == "2025-01-15"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["start_time"].hour == 10
        assert kwargs["payment_method"].value == "WALLET"

    def test_alternate_date_and_time_formats(self, user):
        body = dict(_CREATE_BODY, serviceDate="01/15/2025", startTime="14:30")
        with patch(
            "hubcare.domain.bookings.create_booking", return_value=make_booking()
        ) as mock_create:
            resp = _client(user).post(f"/booking/{uuid4()}", json=body)
        assert resp.status_code == 201
        kwargs = mock_create.call_args.kwargs
        assert kwargs["service_date"].isoformat() == "2025-01-15"
        assert kwargs["start_time"].isoformat() == "14:30:00"

    def test_provider_cannot_book(self, provider):
        resp = _client(provider).post(f"/booking/{uuid4()}", json=_CREATE_BODY)
        assert resp.status_code == 403
        assert resp.json()["status"] is False

    def test_missing_field_is_400(self, user):
        body = {k: v for k, v in _CREATE_BODY.items() if k != "locationId"}
        resp = _client(user).post(f"/booking/{uuid4()}", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"
        assert "locationId" in resp.json()["message"]

    @pytest.mark.parametrize(
        "override",
        [
            {"numberOfWorker": 0},
            {"workHours": 0},
            {"workHours": "1.333"},
            {"paymentMethod": "CARD"},
            {"serviceDate": "15th of Jan"},
            {"startTime": "noonish"},
        ],
    )
    def test_invalid_fields_are_400(self, user, override):
        resp = _client(user).post(f"/booking/{uuid4()}", json=dict(_CREATE_BODY, **override))
        assert resp.status_code == 400

    def test_non_uuid_service_is_404(self, user):
        resp = _client(user).post("/booking/not-a-uuid", json=_CREATE_BODY)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Service not found"

    def test_insufficient_funds(self, user):
        with patch(
            "hubcare.domain.bookings.create_booking",
            side_effect=InsufficientFundsError("Insufficient wallet balance"),
        ):
            resp = _client(user).post(f"/booking/{uuid4()}", json=_CREATE_BODY)
        assert resp.status_code == 400
        assert resp.json() == {
            "status": False,
            "message": "Insufficient wallet balance",
            "error": "INSUFFICIENT_FUNDS",
        }

    def test_duplicate_booking_is_409(self, user):
        with patch(
            "hubcare.domain.bookings.create_booking", side_effect=DuplicateBookingError()
        ):
            resp = _client(user).post(f"/booking/{uuid4()}", json=_CREATE_BODY)
        assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Party checks
# ---------------------------------------------------------------------------


class TestBookingParty:
    def test_stranger_cannot_cancel(self, user):
        with _parties(str(uuid4()), str(uuid4())):
            resp = _client(user).post(f"/booking/{uuid4()}/cancel")
        assert resp.status_code == 403

    def test_unknown_booking_is_404(self, user):
        with patch("hubcare.api.rbac._get_booking_parties", return_value=None):
            resp = _client(user).post(f"/booking/{uuid4()}/cancel")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Booking not found"

    def test_non_uuid_booking_is_404(self, user):
        with patch("hubcare.api.rbac._get_booking_parties") as mock_parties:
            resp = _client(user).get("/booking/abc/workers")
        assert resp.status_code == 404
        mock_parties.assert_not_called()

    def test_user_cannot_approve(self, user, provider):
        with _parties(user.id, provider.id):
            resp = _client(user).post(f"/booking/{uuid4()}/approve")
        assert resp.status_code == 403
        assert resp.json()["message"] == "You are not authorized to approve this booking"


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_cancel_with_refund(self, user, provider):
        booking = make_booking(
            user_id=user.id, booking_status="CANCELLED", payment_status="REFUNDED"
        )
        result = {"booking": booking, "refund_amount": Decimal("315.00")}
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.bookings.cancel_booking", return_value=result) as mock_cancel:
            resp = _client(user).post(f"/booking/{booking['id']}/cancel")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Booking cancelled and amount refunded to wallet"
        assert resp.json()["data"]["refundAmount"] == 315.0
        assert mock_cancel.call_args.kwargs["cancelled_by"] == user.id

    def test_provider_cancel_without_refund(self, user, provider):
        booking = make_booking(
            booking_status="CANCELLED", payment_method="CASH", payment_status="PENDING"
        )
        with _parties(user.id, provider.id), \
             patch(
                 "hubcare.domain.bookings.cancel_booking",
                 return_value={"booking": booking, "refund_amount": None},
             ):
            resp = _client(provider).post(f"/booking/{booking['id']}/cancel")
        assert resp.json()["message"] == "Booking cancelled successfully"
        assert resp.json()["data"]["refundAmount"] is None

    def test_cancel_twice(self, user, provider):
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.bookings.cancel_booking", side_effect=AlreadyCancelledError()):
            resp = _client(user).post(f"/booking/{uuid4()}/cancel")
        assert resp.status_code == 400
        assert resp.json()["error"] == "ALREADY_CANCELLED"

    def test_approve(self, user, provider):
        booking = make_booking(approved=True)
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.bookings.approve_booking", return_value=booking):
            resp = _client(provider).post(f"/booking/{booking['id']}/approve")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Booking request accepted successfully"

    def test_start_without_workers(self, user, provider):
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.bookings.booking_action", side_effect=WorkerNotAssignedError()):
            resp = _client(provider).patch(f"/booking/{uuid4()}/action", json={"action": "START"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Worker not assigned yet"

    def test_complete(self, user, provider):
        booking = make_booking(
            booking_status="COMPLETED", working_status="COMPLETED", worker_assign_status="ASSIGNED"
        )
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.bookings.booking_action", return_value=booking):
            resp = _client(provider).patch(
                f"/booking/{booking['id']}/action", json={"action": "COMPLETE"}
            )
        assert resp.json()["message"] == "Booking completed successfully"

    def test_unknown_action_is_400(self, user, provider):
        with _parties(user.id, provider.id):
            resp = _client(provider).patch(f"/booking/{uuid4()}/action", json={"action": "PAUSE"})
        assert resp.status_code == 400

    def test_confirm_cash(self, user, provider):
        booking = make_booking(payment_method="CASH")
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.bookings.confirm_cash_payment", return_value=booking):
            resp = _client(provider).post(f"/booking/{booking['id']}/confirm-cash")
        assert resp.status_code == 200
        assert resp.json()["data"]["paymentStatus"] == "COMPLETED"


# ---------------------------------------------------------------------------
# Worker assignment
# ---------------------------------------------------------------------------


class TestAssignWorkers:
    def test_assign_workers(self, user, provider):
        booking_id = str(uuid4())
        workers = [str(uuid4()), str(uuid4())]
        result = AssignmentResult(
            booking_id=booking_id,
            assigned_worker_ids=workers,
            assigned_count=2,
            capacity=2,
            worker_assign_status="ASSIGNED",
        )
        with _parties(user.id, provider.id), \
             patch("hubcare.domain.worker_assignment.assign_workers", return_value=result):
            resp = _client(provider).post(
                f"/booking/{booking_id}/assign-workers", json={"workerIds": workers}
            )
        assert resp.status_code == 200
        assert resp.json()["data"]["workerAssignStatus"] == "ASSIGNED"
        assert resp.json()["data"]["assignedWorkerIds"] == workers

    def test_empty_worker_list_is_400(self, user, provider):
        with _parties(user.id, provider.id):
            resp = _client(provider).post(
                f"/booking/{uuid4()}/assign-workers", json={"workerIds": []}
            )
        assert resp.status_code == 400

    def test_capacity_exceeded(self, user, provider):
        with _parties(user.id, provider.id), \
             patch(
                 "hubcare.domain.worker_assignment.assign_worker",
                 side_effect=CapacityExceededError(remaining=0, assigned=2),
             ):
            resp = _client(provider).post(
                f"/booking/{uuid4()}/assign-worker", json={"workerId": str(uuid4())}
            )
        assert resp.status_code == 400
        assert resp.json()["error"] == "CAPACITY_EXCEEDED"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_list_my_bookings_paginated(self, user):
        rows = [make_booking(user_id=user.id) for _ in range(2)]
        with patch("hubcare.api.routes.bookings._list_bookings", return_value=(rows, 12)) as mock_list:
            resp = _client(user).get("/booking?status=ACTIVE&page=2&limit=5")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert len(data["bookings"]) == 2
        assert data["totalPages"] == 3
        assert data["currentPage"] == 2
        mock_list.assert_called_once_with(user.id, "ACTIVE", 2, 5)

    def test_booking_status_flags(self, user, provider):
        booking = make_booking(user_id=user.id, approved=True)
        with _parties(user.id, provider.id), \
             patch(
                 "hubcare.domain.bookings.load_booking_with_workers",
                 return_value=(booking, []),
             ):
            resp = _client(user).get(f"/booking/{booking['id']}/status")
        data = resp.json()["data"]
        assert data["phase"] == "AWAITING_WORKERS"
        assert data["bookingConfirmed"] is True
        assert data["workerAssigned"] is False
        assert data["amountPaid"] is True

    def test_provider_request_filter(self, provider):
        with patch(
            "hubcare.api.routes.provider_bookings._list_bookings", return_value=([], 0)
        ) as mock_list:
            resp = _client(provider).get("/provider/booking?status=REQUEST")
        assert resp.status_code == 200
        mock_list.assert_called_once_with(provider.id, "REQUEST", 1, 20)

    def test_user_cannot_list_provider_bookings(self, user):
        resp = _client(user).get("/provider/booking")
        assert resp.status_code == 403

    def test_provider_booking_detail_with_workers(self, user, provider):
        booking = make_booking(provider_id=provider.id)
        workers = [{"id": str(uuid4()), "name": "Joe", "phone": None, "assigned_at": None}]
        with _parties(user.id, provider.id), \
             patch(
                 "hubcare.domain.bookings.load_booking_with_workers",
                 return_value=(booking, workers),
             ):
            resp = _client(provider).get(f"/provider/booking/{booking['id']}")
        assert resp.json()["data"]["workers"][0]["name"] == "Joe"
