"""
Tests for loading and validating the ground-truth vehicle file.
"""

import json

import pytest

from sales_trainer.infra.ground_truth_loader import load_ground_truth, parse_ground_truth

VALID = {
    "id": "car-9",
    "title": "Skoda Octavia 1.4 AT, 2020",
    "brand": "Skoda",
    "model": "Octavia",
    "year": 2020,
    "price": 1_850_000,
    "mileage_km": 61_000,
}


def test_bundled_vehicle_loads():
    record = load_ground_truth()
    assert record.id == "car-0001"
    assert record.year == 2023
    assert record.price == 2_890_000
    assert record.mileage_km == 24_000
    assert "8 partner banks" in record.dealership_context()


def test_parse_minimal_record():
    record = parse_ground_truth(VALID)
    assert record.title == "Skoda Octavia 1.4 AT, 2020"
    assert record.location == {}
    assert record.deal_terms == {}


def test_price_rub_alias():
    data = {k: v for k, v in VALID.items() if k != "price"}
    data["price_rub"] = 1_700_000
    assert parse_ground_truth(data).price == 1_700_000


def test_invalid_fields_are_listed():
    data = dict(VALID, year=1800, mileage_km=-1)
    del data["brand"]

    with pytest.raises(ValueError) as exc:
        parse_ground_truth(data)

    message = str(exc.value)
    assert "year" in message
    assert "mileage_km" in message
    assert "brand" in message


def test_load_from_file(tmp_path):
    path = tmp_path / "car.json"
    path.write_text(json.dumps(VALID), encoding="utf-8")
    assert load_ground_truth(path).id == "car-9"


def test_missing_file(tmp_path):
    with pytest.raises(ValueError, match="not found"):
        load_ground_truth(tmp_path / "nope.json")


def test_malformed_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="not valid JSON"):
        load_ground_truth(path)
