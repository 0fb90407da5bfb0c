"""Product stock endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends

from backend.dependencies.services import get_ledger_service
from backend.schemas.products import ProductStockResponse, RestockRequest
from backend.services.ledger import SalesLedgerService

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/{product_id}/restock", response_model=ProductStockResponse)
def restock_product(
    product_id: str,
    payload: Optional[RestockRequest] = Body(default=None),
    service: SalesLedgerService = Depends(get_ledger_service),
):
    product = service.restock(product_id, payload.quantity if payload else 1)
    return ProductStockResponse(
        produit_id=product.id,
        quantite=product.quantite,
        vendu=product.vendu,
        statut=product.statut.value,
        version=product.version,
    )
