"""Schemas for spreadsheet import and dedupe sweep endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(..., min_length=1)


class ImportResponse(BaseModel):
    success: bool = True
    imported: int
    skipped: int
    errors: int
    attributed: int = 0


class DedupeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dry_run: bool = Field(default=True, alias="dryRun")
    month: Optional[str] = Field(default=None, pattern=r"^\d{1,2}-\d{4}$")


class DedupeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    dry_run: bool = Field(alias="dryRun")
    total_ventes: int = Field(alias="totalVentes")
    doublons_identifies: int = Field(alias="doublonsIdentifies")
    doublons_supprimes: int = Field(alias="doublonsSupprimes")
    details: List[Dict[str, Any]] = Field(default_factory=list)


__all__ = ["DedupeRequest", "DedupeResponse", "ImportRequest", "ImportResponse"]
