"""Schemas for the storefront checkout endpoint."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models import DeliveryMode


class BuyerInfoPayload(BaseModel):
    email: str = Field(..., min_length=3)
    prenom: Optional[str] = None
    nom: Optional[str] = None
    telephone: Optional[str] = None

    @field_validator("email", mode="before")
    def _normalize_email(cls, value: str) -> str:
        cleaned = str(value or "").strip().lower()
        if "@" not in cleaned:
            raise ValueError("email invalide")
        return cleaned


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    produit_id: str = Field(..., alias="produitId", min_length=1)
    base_price: Decimal = Field(..., alias="basePrice", ge=0)
    buyer_info: BuyerInfoPayload = Field(..., alias="buyerInfo")
    delivery_mode: DeliveryMode = Field(default=DeliveryMode.DELIVERY, alias="deliveryMode")


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    final_price: float = Field(alias="finalPrice")
    discount: float
    delivery_fee: float = Field(alias="deliveryFee")
    checkout_url: str = Field(alias="checkoutUrl")
    order_rank: int = Field(alias="orderRank")


__all__ = ["BuyerInfoPayload", "CheckoutRequest", "CheckoutResponse"]
