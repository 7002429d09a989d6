"""Wallet endpoints (/wallet): recharge and read-only ledger views."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, ConfigDict, Field, model_validator

from hubcare.api.auth import CurrentUser, get_current_user
from hubcare.api.envelope import ok, pagination
from hubcare.api.serializers import serialize_transaction

router = APIRouter(prefix="/wallet", tags=["wallet"])

MAX_PAGE_SIZE = 100


class AddMoneyRequest(BaseModel):
    """Request body for wallet recharge.

    Either ``token`` or ``payment_method`` identifies the card to charge.
    """

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(gt=0, decimal_places=2)
    token: str | None = None
    payment_method: str | None = Field(default=None, alias="paymentMethod")
    description: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _require_payment_source(self) -> AddMoneyRequest:
        if not (self.token or self.payment_method):
            raise ValueError("token or payment_method is required")
        return self


@router.post("/add")
def add_to_wallet(
    body: AddMoneyRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    user: CurrentUser = Depends(get_current_user),
):
    """Charge the processor and credit the caller's wallet."""
    from hubcare.domain.wallet import recharge_wallet

    result = recharge_wallet(
        user_id=user.id,
        amount=body.amount,
        payment_token=body.token or body.payment_method,
        description=body.description,
        idempotency_key=idempotency_key,
    )
    return ok(
        "Money added to wallet successfully",
        {
            "balance": result["balance"],
            "paymentIntentId": result["payment_intent_id"],
            "transactionId": result["transaction"].id,
        },
    )


@router.get("")
def get_wallet(user: CurrentUser = Depends(get_current_user)):
    from hubcare.domain.wallet import get_user_wallet

    wallet = get_user_wallet(user.id)
    return ok(
        "Wallet fetched successfully",
        {
            "id": wallet["id"],
            "userId": wallet["user_id"],
            "balance": wallet["balance"],
            "updatedAt": wallet["updated_at"].isoformat() if wallet.get("updated_at") else None,
        },
    )


@router.get("/transactions")
def get_wallet_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    user: CurrentUser = Depends(get_current_user),
):
    """Caller's ledger, newest first."""
    from hubcare.domain.wallet import get_transactions

    result = get_transactions(user.id, page=page, limit=limit)
    return ok(
        "Wallet transactions fetched successfully",
        {
            "transactions": [serialize_transaction(t) for t in result["items"]],
            **pagination(page, limit, result["total"]),
        },
    )
