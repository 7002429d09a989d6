"""Booking price computation.

All money is Decimal, rounded half-up to cents at the point of persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert numeric input to Decimal without binary float drift."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


@dataclass(frozen=True)
class BookingPrice:
    """Price breakdown persisted on the booking row."""

    amount: Decimal
    number_of_worker: int
    work_hours: Decimal
    base_amount: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    taxes_and_fees: Decimal
    final_amount: Decimal


def base_amount(amount: Decimal, number_of_worker: int, work_hours: Decimal) -> Decimal:
    return round2(to_decimal(amount) * number_of_worker * to_decimal(work_hours))


def clamp_discount(discount: Decimal, base: Decimal) -> Decimal:
    """Clamp a discount to [0, base]."""
    discount = to_decimal(discount)
    if discount < 0:
        return Decimal("0.00")
    if discount > base:
        return round2(base)
    return round2(discount)


def final_amount(
    amount: Decimal,
    number_of_worker: int,
    work_hours: Decimal,
    discount_amount: Decimal,
    tax_rate: Decimal,
) -> Decimal:
    """round2((amount * workers * hours - discount) * (1 + tax_rate))."""
    gross = to_decimal(amount) * number_of_worker * to_decimal(work_hours)
    return round2((gross - to_decimal(discount_amount)) * (1 + to_decimal(tax_rate)))


def compute_price(
    *,
    amount: Decimal,
    number_of_worker: int,
    work_hours: Decimal,
    discount_amount: Decimal = Decimal("0"),
    tax_rate: Decimal = Decimal("0"),
) -> BookingPrice:
    """Compute the full price breakdown for a booking.

    The discount is clamped to the base amount so the final amount is never
    negative. ``taxes_and_fees`` is the difference between the final amount
    and the discounted subtotal, so the three stored components always add up.

    Raises:
        ValueError: On non-positive workers/hours or negative amount/tax.
    """
    amount = to_decimal(amount)
    work_hours = to_decimal(work_hours)
    tax_rate = to_decimal(tax_rate)

    if number_of_worker < 1:
        raise ValueError("number_of_worker must be >= 1")
    if work_hours <= 0:
        raise ValueError("work_hours must be > 0")
    if amount < 0:
        raise ValueError("amount must be >= 0")
    if tax_rate < 0:
        raise ValueError("tax_rate must be >= 0")

    base = base_amount(amount, number_of_worker, work_hours)
    discount = clamp_discount(discount_amount, base)
    final = final_amount(amount, number_of_worker, work_hours, discount, tax_rate)
    subtotal = round2(amount * number_of_worker * work_hours - discount)

    return BookingPrice(
        amount=round2(amount),
        number_of_worker=number_of_worker,
        work_hours=work_hours,
        base_amount=base,
        discount_amount=discount,
        tax_rate=tax_rate,
        taxes_and_fees=final - subtotal,
        final_amount=final,
    )


def split_commission(total: Decimal, provider_share_rate: Decimal) -> tuple[Decimal, Decimal]:
    """Split a payment into (provider_share, platform_commission).

    The provider share is rounded; the commission is the exact remainder so
    the two parts always sum to ``total``.
    """
    total = round2(total)
    provider_share = round2(total * to_decimal(provider_share_rate))
    return provider_share, total - provider_share
