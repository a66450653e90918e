from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class VehicleSchema(BaseModel):
    """Advertised vehicle record as stored in the ground-truth JSON file."""

    id: str
    title: str
    brand: str
    model: str
    year: int = Field(ge=1900, le=2100)
    price: int = Field(gt=0, validation_alias=AliasChoices("price", "price_rub"))
    mileage_km: int = Field(ge=0)
    location: dict[str, Any] = {}
    deal_terms: dict[str, Any] = {}
