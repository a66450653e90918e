"""
Tests for the fact-consistency checker against the fixture record
(2023, 2 890 000 RUB, 24 000 km).
"""

import pytest

from sales_trainer.domain.fact_check import (
    FactCheckResult,
    FactField,
    check,
    extract_distance,
    extract_price,
    extract_year,
)


class TestExtraction:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Машина 2021 года выпуска", 2021),
            ("This is a 2021 model", 2021),
            ("model year 2019", 2019),
            ("Отличный автомобиль", None),
        ],
    )
    def test_year(self, text, expected):
        assert extract_year(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Цена 2 890 000 руб", 2_890_000),
            ("It costs 1,850,000 rub", 1_850_000),
            ("Всего 3100000₽", 3_100_000),
            ("Машина 2023, 2 890 000 руб", 2_890_000),
            ("Year 2023, 1,850,000 rub", 1_850_000),
            ("Недорого", None),
        ],
    )
    def test_price(self, text, expected):
        assert extract_price(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Пробег 45 000 км", 45_000),
            ("Only 30,000 km on it", 30_000),
            ("Машина 2023, 24 000 км", 24_000),
            ("Пробег 24000km", 24_000),
            ("Low mileage", None),
        ],
    )
    def test_distance(self, text, expected):
        assert extract_distance(text) == expected


class TestCheck:
    def test_year_conflict(self, record):
        result = check("Машина 2021 года, в отличном состоянии", record)
        assert result == FactCheckResult(True, FactField.YEAR, 2023, 2021)

    def test_matching_year(self, record):
        assert check("Model year 2023, one owner", record).has_conflict is False

    def test_price_within_tolerance(self, record):
        assert check("Цена 3 000 000 руб", record).has_conflict is False

    def test_year_before_price_is_not_glued_on(self, record):
        assert check("Машина 2023, 2 890 000 руб", record) == FactCheckResult()

    def test_price_conflict(self, record):
        result = check("Цена 3 100 000 руб", record)
        assert result.field is FactField.PRICE
        assert result.advertised_value == 2_890_000
        assert result.claimed_value == 3_100_000

    def test_distance_within_tolerance(self, record):
        assert check("Пробег 26 000 км", record).has_conflict is False

    def test_distance_conflict(self, record):
        result = check("Пробег всего 30 000 км", record)
        assert result.field is FactField.DISTANCE
        assert result.claimed_value == 30_000

    def test_year_reported_before_price_and_distance(self, record):
        result = check("2021 года, цена 3 500 000 руб, пробег 90 000 км", record)
        assert result.field is FactField.YEAR

    def test_price_reported_before_distance(self, record):
        result = check("Цена 3 500 000 руб, пробег 90 000 км", record)
        assert result.field is FactField.PRICE

    def test_no_figures_no_conflict(self, record):
        result = check("Great car, come and see it", record)
        assert result == FactCheckResult()
        assert result.to_dict() == {
            "has_conflict": False,
            "field": None,
            "advertised_value": None,
            "claimed_value": None,
        }
