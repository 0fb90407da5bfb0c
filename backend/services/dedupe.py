"""Balayage des doublons caisse / import tableur.

Une même vente physique peut exister deux fois : attribuée (webhook caisse)
et non attribuée (import dont le SKU n'a pas été reconnu). Les ventes sont
groupées par (prix réalisé, jour calendaire local) ; dans un groupe mixte on
conserve la première vente attribuée et on supprime toutes les non attribuées.
Les groupes homogènes sont laissés intacts.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import pandas as pd

from core.clock import month_bounds, parse_month
from core.repositories.sales import SaleRepository

LOGGER = logging.getLogger(__name__)

MAX_DETAILS = 50


def _price_key(value: Any) -> str | None:
    if value is None or pd.isna(value):
        return None
    return str(Decimal(str(value)).quantize(Decimal("0.01"), ROUND_HALF_UP))


def _clean(value: Any) -> Any:
    if value is None:
        return None
    try:
        return None if pd.isna(value) else value
    except (TypeError, ValueError):
        return value


def find_duplicates(frame: pd.DataFrame, timezone: str) -> tuple[list[str], list[dict[str, Any]]]:
    """Retourne (ids à supprimer, détail par groupe) sans rien écrire."""
    if frame.empty:
        return [], []

    df = frame.copy()
    df["prix_key"] = df["prix_vente_reel"].map(_price_key)
    dates = pd.to_datetime(df["date_vente"], errors="coerce")
    df["jour"] = dates.dt.tz_localize("UTC").dt.tz_convert(timezone).dt.date
    df["attribue"] = df["attribue"].fillna(False).astype(bool)
    df = df.dropna(subset=["prix_key", "jour"])
    df = df.sort_values(["created_at", "id"], kind="mergesort", na_position="last")

    to_delete: list[str] = []
    details: list[dict[str, Any]] = []
    for (prix, jour), group in df.groupby(["prix_key", "jour"], sort=True):
        if len(group) < 2:
            continue
        attributed = group[group["attribue"]]
        unattributed = group[~group["attribue"]]
        if attributed.empty or unattributed.empty:
            continue
        kept = attributed.iloc[0]
        removed = unattributed["id"].tolist()
        to_delete.extend(removed)
        details.append(
            {
                "prix": prix,
                "jour": jour.isoformat(),
                "conserve": {"id": kept["id"], "nom": _clean(kept.get("nom")), "sku": _clean(kept.get("sku"))},
                "supprimes": [
                    {"id": row["id"], "nom": _clean(row.get("nom"))} for row in unattributed.to_dict(orient="records")
                ],
            }
        )
    return to_delete, details


class DedupeSweep:
    def __init__(self, sales: SaleRepository, *, timezone: str = "Europe/Paris") -> None:
        self.sales = sales
        self.timezone = timezone

    def run(self, *, dry_run: bool = True, month: str | None = None) -> dict[str, Any]:
        start = end = None
        if month:
            start, end = month_bounds(*parse_month(month), self.timezone)
        frame = self.sales.ledger_frame(start=start, end=end)
        to_delete, details = find_duplicates(frame, self.timezone)

        deleted = 0
        if to_delete and not dry_run:
            deleted = self.sales.delete_many(to_delete)
        LOGGER.info(
            "Dédoublonnage%s : %d vente(s) examinée(s), %d doublon(s), %d supprimé(s)",
            " (simulation)" if dry_run else "",
            len(frame),
            len(to_delete),
            deleted,
        )
        return {
            "success": True,
            "dryRun": dry_run,
            "totalVentes": int(len(frame)),
            "doublonsIdentifies": len(to_delete),
            "doublonsSupprimes": deleted,
            "details": details[:MAX_DETAILS],
        }


__all__ = ["DedupeSweep", "MAX_DETAILS", "find_duplicates"]
