"""
Ground-truth vehicle record.

The advertised facts the manager is checked against.  A record is loaded once
by the infra layer and passed explicitly into sessions; nothing here caches
it, so several records can be used side by side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GroundTruthRecord:
    id: str
    title: str
    brand: str
    model: str
    year: int
    price: int
    mileage_km: int
    location: dict[str, Any] = field(default_factory=dict)
    deal_terms: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GroundTruthRecord":
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            brand=str(data["brand"]),
            model=str(data["model"]),
            year=int(data["year"]),
            price=int(data["price"]),
            mileage_km=int(data["mileage_km"]),
            location=dict(data.get("location") or {}),
            deal_terms=dict(data.get("deal_terms") or {}),
        )

    def dealership_context(self) -> str:
        """One-line description of the dealership for the generator prompt."""
        city = self.location.get("city", "the city")
        address = self.location.get("address", "")
        inspection = self.location.get("inspection_place", "the showroom parking")
        banks = (self.deal_terms.get("credit") or {}).get("banks_count", 8)
        where = f"{city}, {address}" if address else city
        return f"Dealership in {where}. Inspection: {inspection}. Credit: {banks} partner banks."

    def summary(self) -> str:
        """Compact multi-line record for prompts."""
        credit = self.deal_terms.get("credit") or {}
        return "\n".join([
            f"id: {self.id}",
            f"title: {self.title}",
            f"price: {self.price}",
            f"brand: {self.brand}, model: {self.model}, year: {self.year}, mileage_km: {self.mileage_km}",
            f"location: {self.location.get('city', '')}, {self.location.get('address', '')}",
            f"credit banks: {credit.get('banks_count', 8)}, "
            f"trade_in: {self.deal_terms.get('trade_in', False)}, "
            f"buyout: {self.deal_terms.get('buyout', False)}",
        ])
