"""Declarative authorization guards.

Provides:
- require_role(): FastAPI dependency allowing only the listed account roles
- require_booking_party(): FastAPI dependency allowing only the booking's
  user and/or provider

Admins are never an implicit party to a booking.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Path

from hubcare.api.auth import ROLES, CurrentUser, get_current_user
from hubcare.domain.errors import AuthorizationError, BookingNotFoundError

PARTY_USER = "user"
PARTY_PROVIDER = "provider"

_PARTIES = (PARTY_USER, PARTY_PROVIDER)


@dataclass
class BookingAccessContext:
    """Context returned by require_booking_party."""

    user: CurrentUser
    booking_id: str
    party: str


def is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _get_booking_parties(booking_id: str) -> tuple[str, str] | None:
    """Lookup (user_id, provider_id) of a booking."""
    from hubcare.infra.db import txn
    from hubcare.infra.repositories.bookings_repository import get_booking_parties

    with txn() as cur:
        return get_booking_parties(cur, booking_id)


def require_role(*roles: str) -> Callable[..., CurrentUser]:
    """Create a dependency that requires one of the given account roles.

    Usage:
        @router.post("/something")
        def endpoint(user: CurrentUser = Depends(require_role("Provider"))):
            ...
    """
    for role in roles:
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role}")

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise AuthorizationError("Insufficient role")
        return user

    return dependency


def require_booking_party(
    *parties: str,
    denied_message: str = "You are not authorized for this booking",
) -> Callable[..., BookingAccessContext]:
    """Create a dependency that requires the caller to be a party to the booking.

    Args:
        parties: Allowed parties, "user" and/or "provider".
        denied_message: 403 message for callers who are not a party.

    Returns:
        FastAPI dependency function reading the booking_id path parameter.
        Raises 404 for unknown bookings and 403 for non-parties.
    """
    for party in parties:
        if party not in _PARTIES:
            raise ValueError(f"Invalid party: {party}")

    def dependency(
        booking_id: str = Path(...),
        user: CurrentUser = Depends(get_current_user),
    ) -> BookingAccessContext:
        found = _get_booking_parties(booking_id) if is_uuid(booking_id) else None
        if found is None:
            raise BookingNotFoundError(booking_id)

        user_id, provider_id = found
        if PARTY_USER in parties and user.id == user_id:
            return BookingAccessContext(user=user, booking_id=booking_id, party=PARTY_USER)
        if PARTY_PROVIDER in parties and user.id == provider_id:
            return BookingAccessContext(user=user, booking_id=booking_id, party=PARTY_PROVIDER)

        raise AuthorizationError(denied_message)

    return dependency
