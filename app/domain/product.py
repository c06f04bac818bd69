# app/domain/product.py
"""Product aggregate.

Holds the field rules of a catalog product and the way it is flattened
into (and read back from) a Redis hash, where every value is text.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping

from app.domain.exceptions import StorageError, ValidationError

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500
PRICE_MAX = Decimal("999999.99")
QTY_MAX = 999999

EDITABLE_FIELDS = ("name", "description", "price", "qty")
HASH_FIELDS = ("id", "name", "description", "price", "qty", "createdAt", "updatedAt")

_CENT = Decimal("0.01")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return Decimal(str(value)).is_finite()


def round_price(value: Any) -> Decimal:
    """Round half-up to exactly two fractional digits (99.999 -> 100.00)."""
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def floor_qty(value: Any) -> int:
    return math.floor(Decimal(str(value)))


def normalize(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Trim strings, round the price and floor qty for the fields present.

    Values of the wrong type are passed through untouched so that
    ``validate`` can report them.
    """
    out: Dict[str, Any] = {}
    for key in EDITABLE_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key in ("name", "description") and isinstance(value, str):
            value = value.strip()
        elif key == "price" and _is_number(value):
            value = round_price(value)
        elif key == "qty" and _is_number(value):
            value = floor_qty(value)
        out[key] = value
    return out


def _check_text(errors: List[str], label: str, value: Any, min_len: int, max_len: int) -> None:
    if not isinstance(value, str):
        errors.append(f"{label} must be a string")
        return
    length = len(value.strip())
    if length < min_len:
        errors.append(f"{label} must be at least {min_len} characters long")
    elif length > max_len:
        errors.append(f"{label} must be at most {max_len} characters long")


def validate(fields: Mapping[str, Any], partial: bool = False) -> List[str]:
    """Return the ordered list of rule violations for a set of product fields.

    With ``partial=True`` absent fields are not reported as missing.
    An empty list means the fields are acceptable.
    """
    errors: List[str] = []

    for key in EDITABLE_FIELDS:
        if key not in fields or fields[key] is None:
            if not partial or (key in fields and fields[key] is None):
                errors.append(f"{key} is required")
            continue

        value = fields[key]
        if key == "name":
            _check_text(errors, "name", value, NAME_MIN_LENGTH, NAME_MAX_LENGTH)
        elif key == "description":
            _check_text(errors, "description", value, DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH)
        elif key == "price":
            if not _is_number(value):
                errors.append("price must be a number")
            else:
                price = Decimal(str(value))
                if price <= 0:
                    errors.append("price must be greater than 0")
                elif price > PRICE_MAX:
                    errors.append(f"price must not exceed {PRICE_MAX}")
                elif price.as_tuple().exponent < -2:
                    errors.append("price must have at most 2 decimal places")
        elif key == "qty":
            if not _is_number(value):
                errors.append("qty must be a number")
            else:
                qty = Decimal(str(value))
                if qty != qty.to_integral_value():
                    errors.append("qty must be an integer")
                elif qty < 0:
                    errors.append("qty must not be negative")
                elif qty > QTY_MAX:
                    errors.append(f"qty must not exceed {QTY_MAX}")

    return errors


def _raise_if_invalid(fields: Mapping[str, Any], partial: bool) -> None:
    errors = validate(fields, partial=partial)
    if errors:
        raise ValidationError(
            "; ".join(errors),
            details={"validationErrors": [{"message": e} for e in errors]},
        )


def _format_ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


@dataclass
class Product:
    id: str
    name: str
    description: str
    price: Decimal
    qty: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(cls, fields: Mapping[str, Any]) -> "Product":
        """Build a new product with a fresh id and timestamps.

        Precision is normalised silently; values still out of bounds after
        normalisation raise ValidationError.
        """
        data = normalize(fields)
        _raise_if_invalid(data, partial=False)

        now = _now()
        return cls(
            id=str(uuid.uuid4()),
            name=data["name"],
            description=data["description"],
            price=data["price"],
            qty=data["qty"],
            created_at=now,
            updated_at=now,
        )

    def apply_update(self, fields: Mapping[str, Any]) -> None:
        """Replace the fields present in ``fields`` and refresh updated_at.

        Full and partial updates share this path: a full update simply
        carries every field.
        """
        data = normalize(fields)
        _raise_if_invalid(data, partial=True)

        for key, value in data.items():
            setattr(self, key, value)

        # never move backwards, even if the clock does
        self.updated_at = max(_now(), self.updated_at)

    # --- Serialization ----------------------------------------------------

    def to_hash(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "qty": str(self.qty),
            "createdAt": _format_ts(self.created_at),
            "updatedAt": _format_ts(self.updated_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "qty": self.qty,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def is_complete(data: Mapping[str, str] | None) -> bool:
        return bool(data) and all(key in data for key in HASH_FIELDS)

    @classmethod
    def from_hash(cls, data: Mapping[str, str]) -> "Product":
        try:
            price = Decimal(data["price"])
            if not price.is_finite():
                raise ValueError(f"price is not a finite number: {data['price']!r}")
            return cls(
                id=data["id"],
                name=data["name"],
                description=data["description"],
                price=price,
                qty=int(data["qty"]),
                created_at=datetime.fromisoformat(data["createdAt"]),
                updated_at=datetime.fromisoformat(data["updatedAt"]),
            )
        except (KeyError, ValueError, TypeError, InvalidOperation) as e:
            raise StorageError(
                "Stored product record is malformed",
                details={"productId": data.get("id"), "originalError": repr(e)},
            ) from e
