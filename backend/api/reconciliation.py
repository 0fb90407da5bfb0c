"""Réconciliation : import du tableur de caisse et dédoublonnage du ledger."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from backend.dependencies.services import get_dedupe_sweep, get_delisting_dispatcher, get_import_service
from backend.schemas.reconciliation import DedupeRequest, DedupeResponse, ImportRequest, ImportResponse
from backend.services.dedupe import DedupeSweep
from backend.services.reconciliation_import import SpreadsheetImportService
from core.delisting import DelistingDispatcher

router = APIRouter(tags=["reconciliation"])


@router.post("/sales-reconciliation/import", response_model=ImportResponse)
def import_spreadsheet(
    payload: ImportRequest,
    background_tasks: BackgroundTasks,
    service: SpreadsheetImportService = Depends(get_import_service),
    dispatcher: DelistingDispatcher = Depends(get_delisting_dispatcher),
):
    report = service.import_rows(payload.rows)
    if report.delist:
        background_tasks.add_task(dispatcher.dispatch_all, list(report.delist))
    return ImportResponse(**report.as_dict())


@router.post("/reconciliation/dedupe", response_model=DedupeResponse)
def dedupe_sales(
    payload: DedupeRequest,
    sweep: DedupeSweep = Depends(get_dedupe_sweep),
):
    return DedupeResponse(**sweep.run(dry_run=payload.dry_run, month=payload.month))
