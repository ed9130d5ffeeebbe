from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import InvalidInputError, EmptyOrderError


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_SKU_LENGTH = 50


@dataclass(frozen=True)
class CustomerInfo:
    """
    Customer details attached to an order.

    email is stored as given here; normalization happens where it is used
    as a key (see customer_service.normalize_email).
    """
    name: str
    email: str
    address: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class OrderLine:
    variant_id: int
    quantity: int


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for client input.

    Rejects floats, booleans, scientific notation and decimal strings.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError(f"{field} must be an integer", field=field)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise InvalidInputError(
                f"{field} must be a plain integer (scientific notation not allowed)", field=field
            )
        if "." in stripped:
            raise InvalidInputError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise InvalidInputError(f"{field} must be an integer", field=field)
    if isinstance(value, float):
        raise InvalidInputError(f"{field} must be an integer, not a decimal", field=field)
    raise InvalidInputError(f"{field} must be an integer", field=field)


def require_positive_int(value: Any, field: str) -> int:
    n = coerce_int(value, field)
    if n < 1:
        raise InvalidInputError(f"{field} must be greater than 0", field=field)
    return n


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} is required", field=field)
    text = value.strip()
    if max_length and len(text) > max_length:
        raise InvalidInputError(f"{field} exceeds max length {max_length}", field=field)
    return text


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_price_cents(value: Any, field: str = "price") -> int:
    price = coerce_int(value, field)
    if price < 0:
        raise InvalidInputError(f"{field} must be >= 0", field=field)
    if price > MAX_PRICE_CENTS:
        raise InvalidInputError(
            f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})", field=field
        )
    return price


def normalize_sku(value: Any) -> str:
    """SKUs are stored trimmed and uppercased; uniqueness is per organization."""
    if value is None or not isinstance(value, str):
        raise InvalidInputError("SKU is required", field="sku")
    sku = value.strip().upper()
    if not sku:
        raise InvalidInputError("SKU cannot be empty", field="sku")
    if len(sku) > MAX_SKU_LENGTH:
        raise InvalidInputError(f"SKU must be {MAX_SKU_LENGTH} characters or less", field="sku")
    return sku


def parse_customer_info(payload: Any) -> CustomerInfo:
    if isinstance(payload, CustomerInfo):
        payload = {
            "name": payload.name,
            "email": payload.email,
            "address": payload.address,
            "phone": payload.phone,
        }
    if not isinstance(payload, dict):
        raise InvalidInputError("customer_info is required", field="customer_info")

    email = require_text(payload.get("email"), "email", max_length=255)
    if "@" not in email:
        raise InvalidInputError("email must be a valid address", field="email")

    return CustomerInfo(
        name=require_text(payload.get("name"), "name", max_length=255),
        email=email,
        address=optional_text(payload.get("address")),
        phone=optional_text(payload.get("phone")),
    )


def merge_order_lines(lines: Any) -> list[OrderLine]:
    """
    Validate requested lines and merge duplicate variant ids.

    Quantities for a repeated variant are summed into one line; first-seen
    order is preserved so item ordering in the order matches the request.
    """
    if not lines:
        raise EmptyOrderError("Order must contain at least one item")
    if not isinstance(lines, (list, tuple)):
        raise InvalidInputError("items must be a list", field="items")

    merged: dict[int, int] = {}
    for raw in lines:
        if isinstance(raw, OrderLine):
            variant_id, quantity = raw.variant_id, raw.quantity
        elif isinstance(raw, dict):
            variant_id = raw.get("variant_id")
            quantity = raw.get("quantity")
        else:
            raise InvalidInputError("Each item must have variant_id and quantity", field="items")

        if variant_id is None:
            raise InvalidInputError("variant_id is required", field="variant_id")
        variant_id = coerce_int(variant_id, "variant_id")
        quantity = require_positive_int(quantity, "quantity")
        merged[variant_id] = merged.get(variant_id, 0) + quantity

    return [OrderLine(variant_id=v, quantity=q) for v, q in merged.items()]
