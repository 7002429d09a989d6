"""Promotion redemption guard - single-use promo codes per user."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from hubcare.domain.errors import (
    AlreadyRedeemedError,
    OfferExpiredError,
    OfferNotFoundError,
)
from hubcare.domain.pricing import clamp_discount, round2, to_decimal
from hubcare.infra.db import set_read_only, txn
from hubcare.infra.repositories.promotions_repository import (
    get_offer,
    get_offer_by_code,
    insert_redemption,
    redemption_exists,
)

PERCENTAGE = "PERCENTAGE"


def compute_discount(offer: dict, base_amount: Decimal) -> Decimal:
    """Discount for an offer against base_amount, clamped to [0, base_amount]."""
    base = to_decimal(base_amount)
    value = to_decimal(offer["discount_value"])
    if offer["discount_type"] == PERCENTAGE:
        raw = round2(base * value / 100)
    else:
        raw = value
    return clamp_discount(raw, base)


def reserve(
    cur: PgCursor,
    *,
    user_id: str,
    offer_id: str,
    base_amount: Decimal,
    now: datetime | None = None,
) -> Decimal:
    """Validate an offer for a user and return the discount it grants.

    The redemption is only recorded by record_redemption(), in the same
    transaction as the booking insert.

    Raises:
        AlreadyRedeemedError: User already redeemed this offer.
        OfferNotFoundError: Offer does not exist.
        OfferExpiredError: Offer expires_at is in the past.
    """
    if redemption_exists(cur, user_id, offer_id):
        raise AlreadyRedeemedError()

    offer = get_offer(cur, offer_id)
    if offer is None:
        raise OfferNotFoundError(offer_id)

    expires_at = offer.get("expires_at")
    if expires_at is not None:
        now = now or datetime.now(timezone.utc)
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < now:
            raise OfferExpiredError()

    return compute_discount(offer, base_amount)


def preview_discount(*, user_id: str, offer_code: str, original_amount: Decimal) -> dict:
    """Discount offer_code would grant user_id on original_amount, without redeeming.

    Runs the same checks as reserve() inside a read-only transaction.

    Raises:
        OfferNotFoundError: Unknown code.
        AlreadyRedeemedError: User already redeemed this offer.
        OfferExpiredError: Offer expired.
    """
    amount = round2(to_decimal(original_amount))
    with txn() as cur:
        set_read_only(cur)
        offer = get_offer_by_code(cur, offer_code)
        if offer is None:
            raise OfferNotFoundError(offer_code)
        discount = reserve(cur, user_id=user_id, offer_id=offer["id"], base_amount=amount)
    return {
        "offer": offer,
        "original_amount": amount,
        "discount_amount": discount,
        "amount_after_discount": amount - discount,
    }


def record_redemption(
    cur: PgCursor,
    *,
    user_id: str,
    offer_id: str,
    booking_id: str,
    discount_amount: Decimal,
) -> str:
    """Persist the redemption; a concurrent duplicate maps to AlreadyRedeemedError."""
    try:
        return insert_redemption(
            cur,
            user_id=user_id,
            offer_id=offer_id,
            booking_id=booking_id,
            discount_amount=discount_amount,
        )
    except pg_errors.UniqueViolation as exc:
        raise AlreadyRedeemedError() from exc
