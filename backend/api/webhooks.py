"""Webhooks de vente des canaux (caisse, marketplace, site).

Toujours 200 pour éviter les tempêtes de relivraison, sauf signature invalide (401).
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from backend.dependencies.services import get_delisting_dispatcher, get_ingestion_service, get_settings
from backend.services.ingestion import IngestionOutcome, SaleIngestionService
from backend.settings import Settings
from core.delisting import DelistingDispatcher
from core.errors import AuthError
from core.sale_intents import SIGNATURE_HEADERS, marketplace_challenge_response

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _signature(request: Request) -> str | None:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


async def _ingest(
    request: Request,
    handler: Callable[[bytes, str | None], IngestionOutcome],
    background_tasks: BackgroundTasks,
    dispatcher: DelistingDispatcher,
    label: str,
) -> dict[str, object]:
    raw_body = await request.body()
    try:
        outcome = await run_in_threadpool(handler, raw_body, _signature(request))
    except AuthError:
        LOGGER.warning("[%s] Signature webhook rejetée", label)
        raise
    except Exception as exc:
        # Acquitté malgré tout : le canal relivrerait en boucle.
        LOGGER.exception("[%s] Webhook non traité", label)
        return {"received": True, "processed": 0, "error": str(exc)}

    if outcome.delist:
        background_tasks.add_task(dispatcher.dispatch_all, list(outcome.delist))
    return outcome.as_response()


@router.post("/pos")
async def pos_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: SaleIngestionService = Depends(get_ingestion_service),
    dispatcher: DelistingDispatcher = Depends(get_delisting_dispatcher),
):
    return await _ingest(request, service.handle_pos, background_tasks, dispatcher, "POS")


@router.get("/marketplace")
def marketplace_challenge(
    challenge_code: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
):
    if not challenge_code:
        return {"status": "ok"}
    return {
        "challengeResponse": marketplace_challenge_response(
            challenge_code,
            settings.marketplace_verification_token,
            settings.marketplace_endpoint_url,
        )
    }


@router.post("/marketplace")
async def marketplace_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: SaleIngestionService = Depends(get_ingestion_service),
    dispatcher: DelistingDispatcher = Depends(get_delisting_dispatcher),
):
    return await _ingest(request, service.handle_marketplace, background_tasks, dispatcher, "MARKETPLACE")


@router.post("/storefront")
async def storefront_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: SaleIngestionService = Depends(get_ingestion_service),
    dispatcher: DelistingDispatcher = Depends(get_delisting_dispatcher),
):
    return await _ingest(request, service.handle_storefront, background_tasks, dispatcher, "SITE")
