"""
Creation payload validation.

Checks run in a fixed order and fail fast, each with its own error:

1. every structurally required field is present (all missing fields are
   reported together)
2. line items, for kinds that carry them
3. numeric coercion of the kind's numeric fields
4. the category, when the kind has one, is a string
"""

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

import structlog

from api.src.errors import InvalidFieldError, InvalidItemError, MissingFieldError
from api.src.models.requests import LineItem
from api.src.services.kinds import KindConfig

logger = structlog.get_logger(__name__)

Number = Union[int, float]

REQUIRED_ITEM_FIELDS = ("itemId", "itemType", "price", "quantity")


@dataclass
class NormalisedPayload:
    """Validated creation payload, split into the shared record fields."""

    requester_id: str
    provider_id: Optional[str]
    category: Optional[str]
    details: Dict[str, Any] = field(default_factory=dict)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def coerce_number(value: Any) -> Number:
    """
    Coerce a wire value to a finite number.

    Integral values come back as ``int`` so stored totals stay exact.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, (int, float)):
        number: Number = value
    elif isinstance(value, str):
        number = float(value.strip())
    else:
        raise ValueError(f"not a number: {value!r}")

    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def _apply_aliases(config: KindConfig, payload: Mapping[str, Any]) -> Dict[str, Any]:
    fields = dict(payload)
    for alias, canonical in config.field_aliases.items():
        if alias in fields and _is_missing(fields.get(canonical)):
            fields[canonical] = fields.pop(alias)
    return fields


def _validate_item(index: int, item: Any) -> Dict[str, Any]:
    if not isinstance(item, Mapping):
        raise InvalidItemError(index, "item must be an object")

    missing = [name for name in REQUIRED_ITEM_FIELDS if _is_missing(item.get(name))]
    if missing:
        raise InvalidItemError(index, f"missing required fields: {', '.join(missing)}")

    amounts: Dict[str, Number] = {}
    for name in ("price", "quantity"):
        try:
            amounts[name] = coerce_number(item[name])
        except ValueError:
            raise InvalidItemError(index, f"{name} must be a number")
        if amounts[name] <= 0:
            raise InvalidItemError(index, f"{name} must be greater than 0")

    line = LineItem(
        item_id=str(item["itemId"]),
        item_type=str(item["itemType"]),
        price=amounts["price"],
        quantity=amounts["quantity"],
        name=item.get("name"),
        image=item.get("image"),
        seller_id=item.get("sellerId"),
    )
    normalised = line.model_dump(by_alias=True, exclude_none=True)
    # Keep exact integer amounts as sent.
    normalised.update(amounts)
    return normalised


def validate_items(items: Any) -> List[Dict[str, Any]]:
    """
    Validate and normalise an order's line items.

    Raises:
        InvalidFieldError: If ``items`` is not a list
        InvalidItemError: For the first invalid item
    """
    if not isinstance(items, list):
        raise InvalidFieldError("items", "must be a list")
    if not items:
        raise InvalidItemError(0, "at least one item is required")
    return [_validate_item(index, item) for index, item in enumerate(items)]


def validate_payload(
    config: KindConfig,
    payload: Mapping[str, Any],
    default_currency: str,
) -> NormalisedPayload:
    """
    Validate a creation payload for one kind.

    Args:
        config: Kind configuration
        payload: camelCase wire payload
        default_currency: Currency recorded on orders that omit one

    Returns:
        Normalised payload

    Raises:
        MissingFieldError: If required fields are absent
        InvalidItemError: If a line item is invalid
        InvalidFieldError: If a numeric field is not numeric or negative, or
            the category is not a string
    """
    fields = _apply_aliases(config, payload)

    missing = [name for name in config.required_fields if _is_missing(fields.get(name))]
    if missing:
        raise MissingFieldError(missing)

    details: Dict[str, Any] = {}

    if config.requires_items:
        details["items"] = validate_items(fields["items"])

    for name in config.numeric_fields:
        if _is_missing(fields.get(name)):
            continue
        try:
            number = coerce_number(fields[name])
        except ValueError:
            raise InvalidFieldError(name, "must be a number")
        if number < 0:
            raise InvalidFieldError(name, "must not be negative")
        fields[name] = number

    for name in config.detail_fields:
        if name in fields and fields[name] is not None:
            details[name] = fields[name]

    if config.requires_items:
        details.setdefault("total", sum(item["price"] * item["quantity"] for item in details["items"]))
        details.setdefault("currency", default_currency)

    for name, value in config.defaults.items():
        details.setdefault(name, copy.deepcopy(value))

    known = set(config.required_fields) | set(config.detail_fields) | set(config.field_aliases)
    known.update(("providerId", "requesterId", "items"))
    if config.category_field:
        known.add(config.category_field)
    ignored = sorted(set(fields) - known)
    if ignored:
        logger.debug("payload_fields_ignored", kind=config.kind.value, fields=ignored)

    provider_id = fields.get("providerId")
    category = fields.get(config.category_field) if config.category_field else None
    if category is not None and not isinstance(category, str):
        raise InvalidFieldError(config.category_field, "must be a string")

    return NormalisedPayload(
        requester_id=str(fields["requesterId"]),
        provider_id=None if _is_missing(provider_id) else str(provider_id),
        category=category,
        details=details,
    )
