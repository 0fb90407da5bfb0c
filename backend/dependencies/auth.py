from __future__ import annotations

import hmac

from fastapi import Depends, Header

from backend.dependencies.services import get_settings
from backend.settings import Settings
from core.errors import AuthError


def require_api_key(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> str | None:
    """
    Valide l'en-tête `X-API-KEY` si une clé est configurée.

    Lorsqu'aucune clé n'est définie, l'accès est ouvert pour simplifier le dev local.
    """

    secret = settings.admin_api_key
    if secret is None:
        return None

    if x_api_key is None or not hmac.compare_digest(x_api_key, secret):
        raise AuthError("Clé API invalide")
    return x_api_key


def optional_api_key(api_key: str | None = Depends(require_api_key)) -> None:
    """Déclenche la vérification mais ne retourne rien."""
