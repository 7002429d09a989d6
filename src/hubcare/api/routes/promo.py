"""Promo code endpoints (/promo)."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from hubcare.api.auth import CurrentUser, get_current_user
from hubcare.api.envelope import ok

router = APIRouter(prefix="/promo", tags=["promo"])


class CheckPromoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    offer_code: str = Field(alias="offerCode", min_length=1, max_length=64)
    original_amount: Decimal = Field(alias="originalAmount", gt=0, decimal_places=2)


@router.post("/check")
def check_promo(
    body: CheckPromoRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """Preview the discount a code grants the caller; nothing is redeemed."""
    from hubcare.domain.promotions import preview_discount

    preview = preview_discount(
        user_id=user.id,
        offer_code=body.offer_code.strip(),
        original_amount=body.original_amount,
    )
    offer = preview["offer"]
    return ok(
        "Coupon code is valid.",
        {
            "offerId": offer["id"],
            "offerCode": offer["code"],
            "discountType": offer["discount_type"],
            "discountValue": offer["discount_value"],
            "originalAmount": preview["original_amount"],
            "discountAmount": preview["discount_amount"],
            "amountAfterDiscount": preview["amount_after_discount"],
        },
    )
