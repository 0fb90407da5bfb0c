"""Instantané en lecture seule du registre des déposantes (trigramme -> politique de stock).

L'instantané est immuable : le fournisseur en reconstruit un nouveau à
l'expiration du TTL au lieu de muter un singleton partagé.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

from core.models import Depositor, StockType

LOGGER = logging.getLogger(__name__)

_TRIGRAMME_RE = re.compile(r"^\s*([A-Za-z]{2,4})")


def extract_trigramme(sku: str | None) -> str | None:
    """Préfixe alphabétique du SKU (``"ABC12"`` -> ``"ABC"``)."""
    if not sku:
        return None
    match = _TRIGRAMME_RE.match(sku)
    return match.group(1).upper() if match else None


@dataclass(frozen=True)
class ReferenceSnapshot:
    depositors: Mapping[str, Depositor] = field(default_factory=dict)
    loaded_at: float = 0.0

    @classmethod
    def build(cls, depositors: Iterable[Depositor], *, loaded_at: float | None = None) -> "ReferenceSnapshot":
        index = {d.trigramme.upper(): d for d in depositors}
        return cls(
            depositors=MappingProxyType(index),
            loaded_at=time.monotonic() if loaded_at is None else loaded_at,
        )

    def depositor_for_sku(self, sku: str | None) -> Depositor | None:
        code = extract_trigramme(sku)
        if code is None:
            return None
        return self.depositors.get(code)

    def stock_type_for(self, sku: str | None, trigramme: str | None = None) -> StockType:
        """Politique de stock ; trigramme explicite prioritaire sur le préfixe du SKU."""
        depositor = self.depositors.get(trigramme.upper()) if trigramme else None
        if depositor is None:
            depositor = self.depositor_for_sku(sku)
        return depositor.stock_type if depositor else StockType.UNIQUE


class SnapshotProvider:
    """Fournit l'instantané courant, rechargé quand il a plus de ``ttl_seconds``."""

    def __init__(
        self,
        loader: Callable[[], Iterable[Depositor]],
        *,
        ttl_seconds: float = 300,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._snapshot: ReferenceSnapshot | None = None

    def current(self) -> ReferenceSnapshot:
        now = self._monotonic()
        snapshot = self._snapshot
        if snapshot is not None and now - snapshot.loaded_at < self._ttl:
            return snapshot
        with self._lock:
            snapshot = self._snapshot
            if snapshot is None or now - snapshot.loaded_at >= self._ttl:
                try:
                    snapshot = ReferenceSnapshot.build(self._loader(), loaded_at=now)
                except Exception:
                    if snapshot is None:
                        raise
                    LOGGER.exception("Rechargement du registre des déposantes impossible, instantané précédent conservé")
                    return snapshot
                self._snapshot = snapshot
                LOGGER.debug("Registre des déposantes rechargé (%d entrées)", len(snapshot.depositors))
        return snapshot


__all__ = ["ReferenceSnapshot", "SnapshotProvider", "extract_trigramme"]
