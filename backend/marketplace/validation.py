from __future__ import annotations
from datetime import datetime
from marketplace.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .models import PRODUCT_STATUSES


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

PRODUCT_NAME_MIN_LENGTH = 3
BRAND_NAME_MAX_LENGTH = 100


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = {"error": str(self)}
        if self.field:
            data["field"] = self.field
        return data


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate slug)."""


class NotFoundError(LookupError):
    """404-level: referenced entity does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: non-column keys the caller handles itself (nested arrays);
      passed through untouched
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer", key)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)", key)
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)", key)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer", key)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal", key)
    raise ValidationError(f"{key} must be an integer", key)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing[0])

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", k)

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            patch[k] = raw
            continue

        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable and col.default is None:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", k)

        patch[k] = val

    return patch


def _check_price(key: str, value: Any, *, strictly_positive: bool) -> None:
    if value is None:
        return
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", key)
    if strictly_positive and value <= 0:
        raise ValidationError(f"{key} must be > 0", key)
    if value < 0:
        raise ValidationError(f"{key} must be >= 0", key)
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})", key)


def enforce_rules_product(patch: dict, *, partial: bool = True) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.

    sale_price_cents is deliberately NOT compared against regular_price_cents.
    """
    if "name" in patch:
        name = patch["name"] or ""
        if len(name) < PRODUCT_NAME_MIN_LENGTH:
            raise ValidationError(f"name must be at least {PRODUCT_NAME_MIN_LENGTH} characters", "name")

    if "brand_name" in patch:
        # null clears the brand on update only
        if patch["brand_name"] == "" or (patch["brand_name"] is None and not partial):
            raise ValidationError("brand_name is required", "brand_name")

    if "regular_price_cents" in patch:
        if patch["regular_price_cents"] is None:
            raise ValidationError("regular_price_cents cannot be null", "regular_price_cents")
        _check_price("regular_price_cents", patch["regular_price_cents"], strictly_positive=True)

    if "sale_price_cents" in patch:
        _check_price("sale_price_cents", patch["sale_price_cents"], strictly_positive=False)

    if "stock" in patch:
        if patch["stock"] is None or patch["stock"] < 0:
            raise ValidationError("stock must be >= 0", "stock")

    if "status" in patch and patch["status"] not in PRODUCT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}", "status")


def _optional_text(item: dict, key: str, field: str, max_length: int | None = None) -> str | None:
    value = item.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field)
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", field)
    return value or None


def parse_image_payloads(raw: Any) -> list[dict]:
    """
    Normalize the images array of a product payload.

    An image needs a url (absolute http(s) or site-relative "/...") or a
    storage_key; position defaults to the array index. An empty list is valid.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("images must be an array", "images")

    images = []
    for index, item in enumerate(raw):
        field = f"images[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{field} must be an object", field)

        url = _optional_text(item, "url", f"{field}.url", 1024)
        storage_key = _optional_text(item, "storage_key", f"{field}.storage_key", 512)
        if url and not (url.startswith("/") or url.startswith("http://") or url.startswith("https://")):
            raise ValidationError(f"{field}.url must be absolute (http/https) or start with /", f"{field}.url")
        if not url and not storage_key:
            raise ValidationError(f"{field} needs a url or a storage_key", field)

        position = item.get("position")
        if position is None:
            position = index
        else:
            position = _coerce_int(f"{field}.position", position)
            if position < 0:
                raise ValidationError(f"{field}.position must be >= 0", f"{field}.position")

        images.append({
            "url": url,
            "storage_key": storage_key,
            "position": position,
            "alt": _optional_text(item, "alt", f"{field}.alt", 255),
        })
    return images


def parse_variant_payloads(raw: Any) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("variants must be an array", "variants")

    variants = []
    for index, item in enumerate(raw):
        field = f"variants[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{field} must be an object", field)

        stock = item.get("stock")
        stock = 0 if stock is None else _coerce_int(f"{field}.stock", stock)
        if stock < 0:
            raise ValidationError(f"{field}.stock must be >= 0", f"{field}.stock")

        price = item.get("price_cents")
        if price is not None:
            price = _coerce_int(f"{field}.price_cents", price)
            _check_price(f"{field}.price_cents", price, strictly_positive=False)

        variants.append({
            "size": _optional_text(item, "size", f"{field}.size", 64),
            "color": _optional_text(item, "color", f"{field}.color", 64),
            "model": _optional_text(item, "model", f"{field}.model", 128),
            "sku": _optional_text(item, "sku", f"{field}.sku", 64),
            "price_cents": price,
            "stock": stock,
        })
    return variants


def validate_event_payload(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    product_id = payload.get("product_id")
    if product_id is None:
        raise ValidationError("product_id is required", "product_id")
    return {
        "product_id": _coerce_int("product_id", product_id),
        "buyer_name": _optional_text(payload, "buyer_name", "buyer_name", 120),
        "buyer_contact": _optional_text(payload, "buyer_contact", "buyer_contact", 64),
        "note": _optional_text(payload, "note", "note"),
    }


def validate_sale_payload(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    quantity = payload.get("quantity")
    quantity = 1 if quantity is None else _coerce_int("quantity", quantity)
    if quantity < 1:
        raise ValidationError("quantity must be >= 1", "quantity")

    amount = payload.get("amount_cents")
    if amount is not None:
        amount = _coerce_int("amount_cents", amount)
        _check_price("amount_cents", amount, strictly_positive=False)

    return {"quantity": quantity, "amount_cents": amount}


def validate_category_payload(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    name = _optional_text(payload, "name", "name", 120)
    if not name:
        raise ValidationError("name is required", "name")
    return {"name": name, "description": _optional_text(payload, "description", "description")}
