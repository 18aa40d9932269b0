"""
Unit tests for creation payload validation.

Tests cover:
- Missing required fields (all reported at once)
- Line item validation and normalisation
- Numeric coercion of top-level fields
- Order totals and defaults
- Field aliases and ignored fields
"""

import pytest

from api.src.errors import InvalidFieldError, InvalidItemError, MissingFieldError
from api.src.models.requests import RequestKind
from api.src.services.kinds import get_kind_config
from api.src.services.validation import coerce_number, validate_payload

ORDER = get_kind_config(RequestKind.ORDER)
RENOVATION = get_kind_config(RequestKind.RENOVATION)
BUY_SELL = get_kind_config(RequestKind.BUY_SELL)


def order_payload(**overrides):
    payload = {
        "requesterId": "buyer-1",
        "items": [{"itemId": "A", "itemType": "marketplace", "price": 1000, "quantity": 2}],
    }
    payload.update(overrides)
    return payload


class TestMissingFields:
    """Tests for required field checks."""

    def test_all_missing_fields_are_reported(self):
        with pytest.raises(MissingFieldError) as exc_info:
            validate_payload(RENOVATION, {}, "PKR")

        assert exc_info.value.fields == ["requesterId", "serviceCategory"]
        assert exc_info.value.message == "Missing required fields: requesterId, serviceCategory"

    def test_blank_strings_count_as_missing(self):
        with pytest.raises(MissingFieldError) as exc_info:
            validate_payload(RENOVATION, {"requesterId": "  ", "serviceCategory": "Painting"}, "PKR")

        assert exc_info.value.fields == ["requesterId"]

    def test_missing_fields_are_checked_before_items(self):
        with pytest.raises(MissingFieldError):
            validate_payload(ORDER, {"items": [{"itemId": "A"}]}, "PKR")


class TestItems:
    """Tests for order line items."""

    def test_empty_item_list_is_rejected(self):
        with pytest.raises(InvalidItemError) as exc_info:
            validate_payload(ORDER, order_payload(items=[]), "PKR")

        assert exc_info.value.index == 0

    def test_items_must_be_a_list(self):
        with pytest.raises(InvalidFieldError):
            validate_payload(ORDER, order_payload(items={"itemId": "A"}), "PKR")

    def test_reports_index_of_first_invalid_item(self):
        items = [
            {"itemId": "A", "itemType": "marketplace", "price": 10, "quantity": 1},
            {"itemId": "B", "itemType": "marketplace", "price": 10, "quantity": 0},
        ]

        with pytest.raises(InvalidItemError) as exc_info:
            validate_payload(ORDER, order_payload(items=items), "PKR")

        assert exc_info.value.index == 1
        assert exc_info.value.reason == "quantity must be greater than 0"
        assert exc_info.value.message == "Invalid item at index 1: quantity must be greater than 0"

    @pytest.mark.parametrize("item, reason", [
        ({"itemId": "A", "itemType": "t", "quantity": 1}, "missing required fields: price"),
        ({"itemId": "A", "itemType": "t", "price": "abc", "quantity": 1}, "price must be a number"),
        ({"itemId": "A", "itemType": "t", "price": -5, "quantity": 1}, "price must be greater than 0"),
        ({"itemId": "A", "itemType": "t", "price": True, "quantity": 1}, "price must be a number"),
        ("not an item", "item must be an object"),
    ])
    def test_invalid_items(self, item, reason):
        with pytest.raises(InvalidItemError) as exc_info:
            validate_payload(ORDER, order_payload(items=[item]), "PKR")

        assert exc_info.value.reason == reason

    def test_numeric_strings_are_coerced(self):
        items = [{"itemId": "A", "itemType": "marketplace", "price": "1000", "quantity": "2", "name": "Lamp"}]

        result = validate_payload(ORDER, order_payload(items=items), "PKR")

        item = result.details["items"][0]
        assert item["price"] == 1000
        assert item["quantity"] == 2
        assert item["name"] == "Lamp"
        assert "image" not in item


class TestOrderDefaults:
    """Tests for order totals and defaults."""

    def test_total_is_computed_when_absent(self):
        result = validate_payload(ORDER, order_payload(), "PKR")

        assert result.details["total"] == 2000
        assert result.details["currency"] == "PKR"
        assert result.details["paymentStatus"] == "pending"

    def test_supplied_total_and_currency_are_kept(self):
        result = validate_payload(ORDER, order_payload(total="1999.5", currency="USD"), "PKR")

        assert result.details["total"] == 1999.5
        assert result.details["currency"] == "USD"

    def test_orders_have_no_category(self):
        assert validate_payload(ORDER, order_payload(), "PKR").category is None


class TestNumericFields:
    """Tests for top-level numeric fields."""

    def test_budget_is_coerced(self):
        result = validate_payload(
            RENOVATION,
            {"requesterId": "u1", "serviceCategory": "Painting", "budget": "50000"},
            "PKR",
        )

        assert result.details["budget"] == 50000

    def test_non_numeric_budget_is_rejected(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            validate_payload(
                RENOVATION,
                {"requesterId": "u1", "serviceCategory": "Painting", "budget": "lots"},
                "PKR",
            )

        assert exc_info.value.field == "budget"

    def test_negative_offer_is_rejected(self):
        with pytest.raises(InvalidFieldError):
            validate_payload(BUY_SELL, {"requesterId": "u1", "propertyId": "p1", "offerAmount": -1}, "PKR")

    @pytest.mark.parametrize("value, expected", [
        (5, 5),
        (2.5, 2.5),
        ("3", 3),
        (" 4.0 ", 4),
    ])
    def test_coerce_number(self, value, expected):
        assert coerce_number(value) == expected

    @pytest.mark.parametrize("value", [None, "nan", "inf", [], False])
    def test_coerce_number_rejects(self, value):
        with pytest.raises(ValueError):
            coerce_number(value)


class TestShape:
    """Tests for the normalised payload shape."""

    def test_renovation_payload(self):
        result = validate_payload(
            RENOVATION,
            {
                "requesterId": "u1",
                "providerId": "p1",
                "serviceCategory": "Painting",
                "description": "Two bedrooms",
                "propertyId": "prop-9",
                "unrelated": "dropped",
            },
            "PKR",
        )

        assert result.requester_id == "u1"
        assert result.provider_id == "p1"
        assert result.category == "Painting"
        assert result.details["detailedDescription"] == "Two bedrooms"
        assert result.details["propertyId"] == "prop-9"
        assert result.details["photos"] == []
        assert "unrelated" not in result.details
        assert "serviceCategory" not in result.details

    @pytest.mark.parametrize("category", [5, ["Painting"], {"name": "Painting"}, True])
    def test_non_string_category_is_rejected(self, category):
        with pytest.raises(InvalidFieldError) as exc_info:
            validate_payload(
                RENOVATION,
                {"requesterId": "u1", "serviceCategory": category},
                "PKR",
            )

        assert exc_info.value.field == "serviceCategory"
        assert "must be a string" in exc_info.value.message

    def test_blank_provider_means_open_request(self):
        result = validate_payload(
            RENOVATION,
            {"requesterId": "u1", "serviceCategory": "Painting", "providerId": ""},
            "PKR",
        )

        assert result.provider_id is None
