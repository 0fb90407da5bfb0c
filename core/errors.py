"""Taxonomie d'erreurs du domaine de réconciliation."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base des erreurs métier ; ``status_code`` est repris tel quel par l'API."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ReconciliationError):
    status_code = 400


class PayloadError(ValidationError):
    """Payload entrant (webhook, import) non conforme au contrat attendu."""


class AuthError(ReconciliationError):
    status_code = 401


class NotFoundError(ReconciliationError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"Produit {product_id} introuvable.")
        self.product_id = product_id


class SaleNotFoundError(NotFoundError):
    def __init__(self, sale_id: str) -> None:
        super().__init__(f"Vente {sale_id} introuvable.")
        self.sale_id = sale_id


class ConflictError(ReconciliationError):
    status_code = 409


class UpstreamChannelError(ReconciliationError):
    """Échec d'un appel RPC vers un canal (caisse, marketplace, paiement)."""

    status_code = 502

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"[{channel}] {message}")
        self.channel = channel


class ConsistencyWarning(ReconciliationError):
    """Correspondance ambiguë : la vente part dans le bac des non-attribuées."""

    status_code = 409


__all__ = [
    "AuthError",
    "ConflictError",
    "ConsistencyWarning",
    "NotFoundError",
    "PayloadError",
    "ProductNotFoundError",
    "ReconciliationError",
    "SaleNotFoundError",
    "UpstreamChannelError",
    "ValidationError",
]
