"""
Tests for product form validation.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError

import pytest

from inventory.validators import (
    parse_amount,
    parse_bool,
    parse_int,
    validate_price,
    validate_product_data,
    validate_tax_rate,
)


class TestParseAmount:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("25000", Decimal("25000")),
            ("25.000", Decimal("25000")),
            ("1.234.567", Decimal("1234567")),
            ("25.5", Decimal("25.5")),
            ("8.00", Decimal("8.00")),
            (" 15000 ", Decimal("15000")),
            (15000, Decimal("15000")),
            (12.5, Decimal("12.5")),
        ],
    )
    def test_valid_amounts(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "12,5x", True, "NaN", "Infinity"])
    def test_invalid_amounts(self, value):
        assert parse_amount(value) is None


class TestParseHelpers:
    def test_parse_int(self):
        assert parse_int("5") == 5
        assert parse_int("5.0") == 5
        assert parse_int("", default=3) == 3
        assert parse_int("five") is None

    def test_parse_bool(self):
        assert parse_bool("true") is True
        assert parse_bool("0") is False
        assert parse_bool(None, default=True) is True
        assert parse_bool(1) is True


class TestValidatePrice:
    def test_accepts_positive_price(self):
        assert validate_price("25000") == Decimal("25000")

    @pytest.mark.parametrize("value", ["0", "-5", "abc", "100000000", "250000000"])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_price(value)
        assert exc.value.messages == [
            "Price must be a valid positive number and less than 100,000,000"
        ]

    def test_limit_follows_settings(self, settings):
        settings.POS_MAX_PRODUCT_PRICE = Decimal("1000")

        with pytest.raises(ValidationError):
            validate_price("1000")
        assert validate_price("999") == Decimal("999")

    def test_tax_rate_bounds(self):
        assert validate_tax_rate("8") == Decimal("8")
        with pytest.raises(ValidationError):
            validate_tax_rate("101")
        with pytest.raises(ValidationError):
            validate_tax_rate("-1")


class TestValidateProductData:
    def valid_payload(self, **overrides):
        data = {
            "name": "Black coffee",
            "sku": "coffee-001",
            "price": "25.000",
            "category_id": 1,
            "tax_rate": "8",
            "stock": "10",
        }
        data.update(overrides)
        return data

    def test_cleans_valid_payload(self):
        cleaned = validate_product_data(self.valid_payload())

        assert cleaned["name"] == "Black coffee"
        assert cleaned["sku"] == "COFFEE-001"
        assert cleaned["price"] == Decimal("25000")
        assert cleaned["tax_rate"] == Decimal("8")
        assert cleaned["stock"] == 10
        assert cleaned["category_id"] == 1
        assert cleaned["track_inventory"] is True
        assert cleaned["product_type"] == 1

    def test_reports_every_missing_field(self):
        with pytest.raises(ValidationError) as exc:
            validate_product_data({})

        errors = exc.value.message_dict
        assert errors["name"] == ["Product name is required"]
        assert errors["sku"] == ["SKU is required"]
        assert errors["price"] == ["Price is required"]
        assert errors["category_id"] == ["Category is required"]
        assert errors["tax_rate"] == ["Tax rate is required"]

    def test_negative_stock(self):
        with pytest.raises(ValidationError) as exc:
            validate_product_data(self.valid_payload(stock=-1))

        assert exc.value.message_dict == {"stock": ["Stock must be 0 or greater"]}

    def test_partial_only_checks_given_fields(self):
        cleaned = validate_product_data({"price": "30000"}, partial=True)

        assert cleaned == {"price": Decimal("30000")}

    def test_partial_still_rejects_bad_values(self):
        with pytest.raises(ValidationError) as exc:
            validate_product_data({"name": "  "}, partial=True)

        assert "name" in exc.value.message_dict
