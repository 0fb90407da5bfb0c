"""Sales ledger endpoints (attribution, annulation, ventes manuelles)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from backend.dependencies.services import get_delisting_dispatcher, get_ledger_service
from backend.schemas.sales import (
    AttributeSaleRequest,
    DeleteSaleRequest,
    ManualSaleRequest,
    SaleOperationResponse,
    SalePayload,
    SalesListResponse,
)
from backend.services.ledger import LedgerOperation, SalesLedgerService
from core.delisting import DelistingDispatcher

router = APIRouter(prefix="/sales", tags=["sales"])


def _response(operation: LedgerOperation) -> SaleOperationResponse:
    product = operation.product
    return SaleOperationResponse(
        sale=SalePayload.from_sale(operation.sale) if operation.sale else None,
        produit_id=product.id if product else None,
        quantite=product.quantite if product else None,
        vendu=product.vendu if product else None,
        statut=product.statut.value if product else None,
    )


@router.get("", response_model=SalesListResponse)
def list_sales(
    attribue: Optional[bool] = Query(default=None),
    month: Optional[str] = Query(default=None, description="MM-YYYY"),
    service: SalesLedgerService = Depends(get_ledger_service),
):
    sales = service.list_sales(attribue=attribue, month=month)
    return SalesListResponse(items=[SalePayload.from_sale(sale) for sale in sales], total=len(sales))


@router.post("/attribute", response_model=SaleOperationResponse)
def attribute_sale(
    payload: AttributeSaleRequest,
    background_tasks: BackgroundTasks,
    service: SalesLedgerService = Depends(get_ledger_service),
    dispatcher: DelistingDispatcher = Depends(get_delisting_dispatcher),
):
    operation = service.attribute(payload.sale_id, payload.produit_id, force=payload.force)
    if operation.delist:
        background_tasks.add_task(dispatcher.dispatch_all, operation.delist)
    return _response(operation)


@router.post("/manual", response_model=SaleOperationResponse)
def record_manual_sale(
    payload: ManualSaleRequest,
    background_tasks: BackgroundTasks,
    service: SalesLedgerService = Depends(get_ledger_service),
    dispatcher: DelistingDispatcher = Depends(get_delisting_dispatcher),
):
    operation = service.record_manual_sale(
        payload.produit_id,
        payload.prix_vente_reel,
        sale_date=payload.date_vente,
    )
    if operation.delist:
        background_tasks.add_task(dispatcher.dispatch_all, operation.delist)
    return _response(operation)


@router.delete("/{sale_id}", response_model=SaleOperationResponse)
def delete_sale(
    sale_id: str,
    payload: Optional[DeleteSaleRequest] = Body(default=None),
    remettre_en_stock: Optional[bool] = Query(default=None, alias="remettreEnStock"),
    service: SalesLedgerService = Depends(get_ledger_service),
):
    restock = remettre_en_stock if remettre_en_stock is not None else bool(payload and payload.remettre_en_stock)
    return _response(service.reverse(sale_id, restock=restock))
