"""Schemas for the sales ledger endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import Sale


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AttributeSaleRequest(_CamelModel):
    sale_id: str = Field(..., alias="saleId", min_length=1)
    produit_id: str = Field(..., alias="produitId", min_length=1)
    force: bool = False


class DeleteSaleRequest(_CamelModel):
    remettre_en_stock: bool = Field(default=False, alias="remettreEnStock")


class ManualSaleRequest(_CamelModel):
    produit_id: str = Field(..., alias="produitId", min_length=1)
    prix_vente_reel: Decimal = Field(..., alias="prixVenteReel", gt=0)
    date_vente: Optional[datetime] = Field(default=None, alias="dateVente")


class SalePayload(_CamelModel):
    id: str
    produit_id: Optional[str] = Field(default=None, alias="produitId")
    sku: Optional[str] = None
    nom: Optional[str] = None
    categorie: Optional[str] = None
    marque: Optional[str] = None
    chineur: Optional[str] = None
    trigramme: Optional[str] = None
    source: str
    prix_initial: Optional[float] = Field(default=None, alias="prixInitial")
    prix_vente_reel: Optional[float] = Field(default=None, alias="prixVenteReel")
    date_vente: Optional[datetime] = Field(default=None, alias="dateVente")
    attribue: bool = False
    attribue_at: Optional[datetime] = Field(default=None, alias="attribueAt")
    nom_source: Optional[str] = Field(default=None, alias="nomSource")
    sku_source: Optional[str] = Field(default=None, alias="skuSource")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @classmethod
    def from_sale(cls, sale: Sale) -> "SalePayload":
        data = {key: value for key, value in sale.__dict__.items() if key in cls.model_fields}
        data["source"] = sale.source.value
        return cls(**data)


class SaleOperationResponse(_CamelModel):
    success: bool = True
    sale: Optional[SalePayload] = None
    produit_id: Optional[str] = Field(default=None, alias="produitId")
    quantite: Optional[int] = None
    vendu: Optional[bool] = None
    statut: Optional[str] = None


class SalesListResponse(_CamelModel):
    items: List[SalePayload]
    total: int


__all__ = [
    "AttributeSaleRequest",
    "DeleteSaleRequest",
    "ManualSaleRequest",
    "SaleOperationResponse",
    "SalePayload",
    "SalesListResponse",
]
