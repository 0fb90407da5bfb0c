"""Fournisseurs FastAPI des services métier (instances partagées, surchargées en test)."""

from __future__ import annotations

import logging
from functools import lru_cache

from backend.services.checkout import CheckoutService
from backend.services.dedupe import DedupeSweep
from backend.services.ingestion import SaleIngestionService
from backend.services.ledger import SalesLedgerService
from backend.services.reconciliation_import import SpreadsheetImportService
from backend.settings import Settings
from core.channels import EbayClient, SquareClient
from core.delisting import DelistingDispatcher
from core.disposition import DispositionEngine
from core.models import Channel
from core.promotions import PromotionCalculator
from core.reference_snapshot import SnapshotProvider
from core.repositories import (
    SqlDepositorRepository,
    SqlOrderRepository,
    SqlProcessedEventRepository,
    SqlProductRepository,
    SqlSaleRepository,
)

LOGGER = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    return Settings.load()


@lru_cache
def get_square_client() -> SquareClient | None:
    settings = get_settings()
    if not settings.square_access_token:
        LOGGER.warning("SQUARE_ACCESS_TOKEN absent : caisse et paiement en ligne désactivés")
        return None
    return SquareClient(
        settings.square_access_token,
        environment=settings.square_environment,
        location_id=settings.square_location_id,
        timeout=settings.channel_timeout_seconds,
    )


@lru_cache
def get_ebay_client() -> EbayClient | None:
    settings = get_settings()
    if not (settings.ebay_client_id and settings.ebay_client_secret and settings.ebay_refresh_token):
        LOGGER.warning("Identifiants eBay incomplets : retrait marketplace désactivé")
        return None
    return EbayClient(
        settings.ebay_client_id,
        settings.ebay_client_secret,
        settings.ebay_refresh_token,
        environment=settings.ebay_environment,
        timeout=settings.channel_timeout_seconds,
    )


@lru_cache
def get_snapshot_provider() -> SnapshotProvider:
    depositors = SqlDepositorRepository()
    return SnapshotProvider(depositors.list_all, ttl_seconds=get_settings().reference_snapshot_ttl_seconds)


@lru_cache
def get_disposition_engine() -> DispositionEngine:
    return DispositionEngine(SqlProductRepository(), SqlSaleRepository())


@lru_cache
def get_delisting_dispatcher() -> DelistingDispatcher:
    clients = {Channel.POS: get_square_client(), Channel.MARKETPLACE: get_ebay_client()}
    return DelistingDispatcher({channel: client for channel, client in clients.items() if client is not None})


@lru_cache
def get_ingestion_service() -> SaleIngestionService:
    return SaleIngestionService(
        products=SqlProductRepository(),
        orders=SqlOrderRepository(),
        events=SqlProcessedEventRepository(),
        disposition=get_disposition_engine(),
        snapshots=get_snapshot_provider(),
        settings=get_settings(),
        square=get_square_client(),
    )


@lru_cache
def get_ledger_service() -> SalesLedgerService:
    return SalesLedgerService(
        products=SqlProductRepository(),
        sales=SqlSaleRepository(),
        disposition=get_disposition_engine(),
        snapshots=get_snapshot_provider(),
        timezone=get_settings().business_timezone,
    )


@lru_cache
def get_import_service() -> SpreadsheetImportService:
    return SpreadsheetImportService(
        products=SqlProductRepository(),
        sales=SqlSaleRepository(),
        disposition=get_disposition_engine(),
        snapshots=get_snapshot_provider(),
        timezone=get_settings().business_timezone,
    )


@lru_cache
def get_dedupe_sweep() -> DedupeSweep:
    return DedupeSweep(SqlSaleRepository(), timezone=get_settings().business_timezone)


@lru_cache
def get_checkout_service() -> CheckoutService:
    settings = get_settings()
    promotions = PromotionCalculator(
        SqlOrderRepository(),
        timezone=settings.business_timezone,
        delivery_fee=settings.delivery_fee,
        discount_rate=settings.promo_discount_rate,
    )
    return CheckoutService(
        products=SqlProductRepository(),
        promotions=promotions,
        payments=get_square_client(),
        public_base_url=settings.public_base_url,
    )
