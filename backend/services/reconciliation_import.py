"""Import de l'export « ventes » de la caisse (tableur) dans le ledger.

Chaque ligne devient une vente ``importedSpreadsheet``. Les lignes dont le SKU
correspond à un seul produit sont attribuées et décrémentent le stock ; les
autres restent non attribuées avec le libellé brut, pour attribution manuelle.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

import pandas as pd

from core.clock import Clock, to_utc_naive, utcnow
from core.delisting import DelistRequest
from core.disposition import DispositionEngine, DispositionResult, product_descriptors
from core.errors import ConsistencyWarning, ReconciliationError
from core.models import Channel, Product, Sale, SaleOrigin
from core.reference_snapshot import ReferenceSnapshot, SnapshotProvider
from core.repositories.products import ProductRepository, normalize_sku
from core.repositories.sales import SaleRepository, import_key

LOGGER = logging.getLogger(__name__)

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("Date", "date"),
    "article": ("Article", "article"),
    "sku": ("SKU", "sku", "Sku"),
    "prix": ("Ventes brutes", "Ventes nettes", "Ventes brute", "Ventes nette", "Prix", "prix"),
    "remarques": ("Remarques", "remarques"),
    "categorie": ("Catégorie", "categorie", "Categorie"),
    "transaction_id": ("Nº de transaction", "Nº\xa0de transaction", "N° de transaction", "transactionId"),
}

SKU_PATTERN = re.compile(r"\b([a-z]{2,4})\s*(\d{1,4})\b", re.IGNORECASE)
_EXCEL_EPOCH_OFFSET = 25569


@dataclass
class ImportReport:
    imported: int = 0
    skipped: int = 0
    errors: int = 0
    attributed: int = 0
    delist: list[DelistRequest] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": self.errors,
            "attributed": self.attributed,
        }


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell(row: Mapping[str, Any], key: str) -> Any:
    for column in COLUMN_ALIASES[key]:
        value = row.get(column)
        if not _blank(value):
            return value
    return None


def parse_price(value: Any) -> Decimal | None:
    """Prix au format français (``"165,00 €"``) ou numérique."""
    if _blank(value):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    cleaned = re.sub(r"[€\s\xa0]", "", str(value)).replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def parse_sale_date(value: Any, tz_name: str) -> datetime | None:
    """Date de vente en UTC naïf ; None si illisible.

    Formats acceptés : date/datetime natifs, ``jj/mm/aaaa``, chaîne ISO et
    numéro de série tableur (jours depuis 1899-12-30).
    """
    if _blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return to_utc_naive(value, tz_name)
    if isinstance(value, date):
        return to_utc_naive(datetime.combine(value, datetime.min.time()), tz_name)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = (float(value) - _EXCEL_EPOCH_OFFSET) * 86400
        return datetime(1970, 1, 1) + timedelta(seconds=seconds)

    text = str(value).strip()
    try:
        if "/" in text:
            # jj/mm/aaaa, éventuellement suivi de HH:MM[:SS] (exports caisse).
            date_part, _, time_part = text.partition(" ")
            day, month, year = (int(part) for part in date_part.split("/")[:3])
            clock_parts = [int(part) for part in time_part.strip().split(":") if part]
            hour, minute, second = (clock_parts + [0, 0, 0])[:3]
            return to_utc_naive(datetime(year, month, day, hour, minute, second), tz_name)
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    parsed = parsed.to_pydatetime()
    if parsed.tzinfo is not None:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return to_utc_naive(parsed, tz_name)


def extract_sku(*texts: Any) -> str | None:
    """SKU trouvé dans un texte libre (``"Robe ABC 12"`` -> ``"ABC12"``)."""
    haystack = " ".join(str(t) for t in texts if not _blank(t))
    match = SKU_PATTERN.search(haystack)
    if not match:
        return None
    return f"{match.group(1)}{match.group(2)}".upper()


class SpreadsheetImportService:
    def __init__(
        self,
        *,
        products: ProductRepository,
        sales: SaleRepository,
        disposition: DispositionEngine,
        snapshots: SnapshotProvider,
        timezone: str = "Europe/Paris",
        clock: Clock = utcnow,
    ) -> None:
        self.products = products
        self.sales = sales
        self.disposition = disposition
        self.snapshots = snapshots
        self.timezone = timezone
        self.clock = clock

    def _match(self, index: Mapping[str, list[Product]], sku: str | None) -> Product | None:
        if not sku:
            return None
        candidates = index.get(normalize_sku(sku), [])
        if len(candidates) > 1:
            raise ConsistencyWarning(f"SKU {sku} ambigu ({len(candidates)} produits)")
        return candidates[0] if candidates else None

    def _attribute(
        self,
        sale: Sale,
        product: Product,
        *,
        snapshot: ReferenceSnapshot,
        now: datetime,
        report: ImportReport,
    ) -> DispositionResult | None:
        """Décrémente le stock puis rattache la vente déjà écrite ; None si la disposition échoue."""
        try:
            result = self.disposition.apply(
                product,
                1,
                unit_price=sale.prix_vente_reel,
                origin=SaleOrigin.IMPORTED_SPREADSHEET,
                snapshot=snapshot,
                sale_date=sale.date_vente,
                record_sales=False,
            )
        except ReconciliationError as exc:
            LOGGER.warning("Vente %s (%s) laissée non attribuée: %s", sale.id, sale.nom, exc.message)
            return None
        self.sales.update_attribution(sale.id, {**product_descriptors(product), "attribue": True, "attribue_at": now})
        report.attributed += 1
        if result.delist_required:
            report.delist.append(DelistRequest(result.product, Channel.POS))
        return result

    def import_rows(self, rows: Iterable[Mapping[str, Any]]) -> ImportReport:
        frame = pd.DataFrame(list(rows))
        report = ImportReport()
        if frame.empty:
            return report

        index = self.products.sku_index()
        known_keys = self.sales.import_keys()
        snapshot = self.snapshots.current()
        now = self.clock()

        for row in frame.to_dict(orient="records"):
            article = str(_cell(row, "article") or "").strip()
            remarques = _cell(row, "remarques")
            try:
                price = parse_price(_cell(row, "prix"))
                if price is None or price <= 0:
                    # Remboursements, annulations et lignes sans montant.
                    LOGGER.info("Ligne sans prix ignorée: %s", article)
                    report.skipped += 1
                    continue

                sale_date = parse_sale_date(_cell(row, "date"), self.timezone)
                if sale_date is None:
                    LOGGER.warning("Date invalide (%s) pour %s", _cell(row, "date"), article)
                    report.errors += 1
                    continue

                transaction_id = _cell(row, "transaction_id")
                transaction_id = str(transaction_id).strip() if transaction_id is not None else None
                key = import_key(transaction_id, article, price) if transaction_id else None
                if key is not None and key in known_keys:
                    LOGGER.info("Vente déjà importée: %s", key)
                    report.skipped += 1
                    continue

                raw_sku = _cell(row, "sku")
                sku = str(raw_sku).strip() if raw_sku is not None else extract_sku(article, remarques)
                categorie = _cell(row, "categorie")
                sale = Sale(
                    id="",
                    source=SaleOrigin.IMPORTED_SPREADSHEET,
                    nom=article or (str(remarques) if remarques else "Vente inconnue"),
                    sku=sku,
                    categorie=str(categorie) if categorie is not None else None,
                    prix_vente_reel=price,
                    date_vente=sale_date,
                    transaction_id=transaction_id,
                    # Composante de la clé d'import : conservée même vide.
                    nom_source=article,
                    sku_source=sku,
                    remarque=str(remarques) if remarques is not None else None,
                )

                try:
                    product = self._match(index, sku)
                except ConsistencyWarning as warning:
                    LOGGER.warning("%s ; vente laissée non attribuée", warning.message)
                    product = None
            except (ValueError, TypeError, ArithmeticError) as exc:
                LOGGER.warning("Ligne %s illisible: %s", article, exc)
                report.errors += 1
                continue

            # La vente est écrite (non attribuée) avant toute écriture de stock.
            self.sales.add_many([sale])
            report.imported += 1
            if key is not None:
                known_keys.add(key)
            if product is not None:
                result = self._attribute(sale, product, snapshot=snapshot, now=now, report=report)
                if result is not None:
                    # Les lignes suivantes du même produit repartent de l'état écrit.
                    index[normalize_sku(product.sku)] = [result.product]

        LOGGER.info(
            "Import tableur : %d importée(s) dont %d attribuée(s), %d ignorée(s), %d erreur(s)",
            report.imported,
            report.attributed,
            report.skipped,
            report.errors,
        )
        return report


__all__ = [
    "COLUMN_ALIASES",
    "ImportReport",
    "SpreadsheetImportService",
    "extract_sku",
    "parse_price",
    "parse_sale_date",
]
