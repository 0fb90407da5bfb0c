"""Schemas for product stock endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RestockRequest(BaseModel):
    quantity: int = Field(default=1, ge=1)


class ProductStockResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    produit_id: str = Field(alias="produitId")
    quantite: int
    vendu: bool
    statut: str
    version: Optional[int] = None


__all__ = ["ProductStockResponse", "RestockRequest"]
