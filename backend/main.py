"""FastAPI application exposing the multichannel sales reconciliation core."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.api import checkout as checkout_router
from backend.api import products as products_router
from backend.api import reconciliation as reconciliation_router
from backend.api import sales as sales_router
from backend.api import webhooks as webhooks_router
from backend.dependencies.auth import optional_api_key
from backend.settings import Settings
from core.errors import ReconciliationError

LOGGER = logging.getLogger(__name__)


def _load_allowed_origins(settings: Settings) -> list[str]:
    if settings.cors_allowed_origins:
        return settings.cors_allowed_origins
    # Front Next.js / Vite en dev
    return [
        "http://localhost:3000",
        "http://localhost:5173",
    ]


def _error_payload(message: str) -> dict[str, object]:
    return {"success": False, "error": message}


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Requête invalide"


@lru_cache
def create_app() -> FastAPI:
    """Construit l'application FastAPI ainsi que tous les routeurs de domaine."""

    settings = Settings.load()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    app = FastAPI(
        title="Inventaire Multicanal API",
        version="1.0.0",
        description="""
## Réconciliation des ventes multicanal

- **Webhooks** : ventes caisse, marketplace et site, appliquées au stock
- **Ledger** : attribution manuelle, annulation, ventes manuelles
- **Réconciliation** : import du tableur de caisse, dédoublonnage
- **Checkout** : promotions du jour et lien de paiement

### Authentification
Les routes opérateur exigent l'en-tête `X-API-KEY` lorsque `ADMIN_API_KEY` est défini.
Les webhooks sont authentifiés par signature HMAC.
        """,
        openapi_tags=[
            {"name": "webhooks", "description": "Notifications de vente des canaux"},
            {"name": "sales", "description": "Ledger des ventes"},
            {"name": "reconciliation", "description": "Import tableur et dédoublonnage"},
            {"name": "checkout", "description": "Paiement du site"},
            {"name": "products", "description": "Stock produits"},
        ],
        docs_url="/docs",
        redoc_url="/redoc",
    )

    allowed_origins = _load_allowed_origins(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReconciliationError)
    async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.error("%s %s : %s", request.method, request.url.path, exc.message)
        else:
            LOGGER.info("%s %s -> %d : %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_payload(_validation_message(exc)),
        )

    # Webhooks et checkout : appelés par les canaux et le site public.
    app.include_router(webhooks_router.router)
    app.include_router(checkout_router.router)

    operator_router = APIRouter(dependencies=[Depends(optional_api_key)])
    operator_router.include_router(sales_router.router)
    operator_router.include_router(reconciliation_router.router)
    operator_router.include_router(products_router.router)
    app.include_router(operator_router)

    @app.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
