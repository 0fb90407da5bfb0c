"""Storefront checkout endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.dependencies.services import get_checkout_service
from backend.schemas.checkout import CheckoutRequest, CheckoutResponse
from backend.services.checkout import BuyerInfo, CheckoutService

router = APIRouter(tags=["checkout"])


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    payload: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
):
    buyer = BuyerInfo(**payload.buyer_info.model_dump())
    result = service.create_checkout(payload.produit_id, payload.base_price, buyer, payload.delivery_mode)
    return CheckoutResponse(**result)
