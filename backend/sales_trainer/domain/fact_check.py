"""
Fact-consistency checker.

Pulls at most one year, one price and one mileage figure out of a manager
utterance (first match per field) and compares them with the ground-truth
record:

  year      any difference is a conflict
  price     more than 5% off
  distance  more than 10% off

Only the first conflicting field in the order year → price → distance is
reported.  Fields the manager did not mention never conflict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sales_trainer.domain.ground_truth import GroundTruthRecord


class FactField(Enum):
    YEAR = "year"
    PRICE = "price"
    DISTANCE = "distance"


PRICE_TOLERANCE = 0.05
DISTANCE_TOLERANCE = 0.10

# "2021 года", "2021 г.", "год 2021", "a 2021 model", "model year 2021"
_YEAR_RE = re.compile(
    r"(?:\b(?:год[а-я]*|г\.|model year|year)\s*((?:19|20)\d{2})\b)"
    r"|(?:\b((?:19|20)\d{2})\s*(?:г\.|г\b|год[а-я]*|year\b|model\b|модел[а-я]*|выпуска\b))",
    re.IGNORECASE,
)
# Grouped thousands ("1 850 000", "1,850,000") or a plain run of 4+ digits.
# A comma only counts as a separator when three digits follow it, so
# "2023, 2 890 000 руб" does not glue the year onto the price.
_AMOUNT = r"(?<!\d)(\d{1,3}(?:[ \u00a0,]\d{3})+|\d{4,})"

# "1 850 000 руб", "1850000₽", "1,850,000 rub"
_PRICE_RE = re.compile(
    _AMOUNT + r"\s*(?:₽|руб|rub|roubles?|rubles?)",
    re.IGNORECASE,
)
# "45 000 км", "45000 km", "45,000 kilometers"
_DISTANCE_RE = re.compile(
    _AMOUNT + r"\s*(?:км|километр|km\b|kilomet)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FactCheckResult:
    has_conflict: bool = False
    field: FactField | None = None
    advertised_value: int | None = None
    claimed_value: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_conflict": self.has_conflict,
            "field": self.field.value if self.field else None,
            "advertised_value": self.advertised_value,
            "claimed_value": self.claimed_value,
        }


def _parse_number(raw: str | None) -> int | None:
    if not raw:
        return None
    cleaned = re.sub(r"[\s,]", "", raw)
    return int(cleaned) if cleaned.isdigit() else None


def _first_group(match: re.Match[str] | None) -> str | None:
    if match is None:
        return None
    return next((g for g in match.groups() if g), None)


def extract_year(text: str) -> int | None:
    return _parse_number(_first_group(_YEAR_RE.search(text)))


def extract_price(text: str) -> int | None:
    return _parse_number(_first_group(_PRICE_RE.search(text)))


def extract_distance(text: str) -> int | None:
    return _parse_number(_first_group(_DISTANCE_RE.search(text)))


def _off_by_more_than(claimed: int, advertised: int, tolerance: float) -> bool:
    return abs(claimed - advertised) > advertised * tolerance


def check(manager_text: str, record: GroundTruthRecord) -> FactCheckResult:
    """Compare the manager's numeric claims with the advertised record."""
    year = extract_year(manager_text)
    if year and year != record.year:
        return FactCheckResult(True, FactField.YEAR, record.year, year)

    price = extract_price(manager_text)
    if price and _off_by_more_than(price, record.price, PRICE_TOLERANCE):
        return FactCheckResult(True, FactField.PRICE, record.price, price)

    distance = extract_distance(manager_text)
    if distance and _off_by_more_than(distance, record.mileage_km, DISTANCE_TOLERANCE):
        return FactCheckResult(True, FactField.DISTANCE, record.mileage_km, distance)

    return FactCheckResult()
