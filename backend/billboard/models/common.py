"""
Shared helpers for Billboard models: money rounding and Mongo document shaping.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from bson import ObjectId


# Decimal precision for monetary values (2 decimal places)
DECIMAL_PRECISION = Decimal("0.01")


def quantize_money(value: Decimal | float | int | str) -> Decimal:
    """Round a monetary amount to cents using ROUND_HALF_UP."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(DECIMAL_PRECISION, rounding=ROUND_HALF_UP)


def money(value: Decimal | float | int | str) -> float:
    """Cents-rounded amount as a float for JSON responses."""
    return float(quantize_money(value))


def serialize_document(document: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a MongoDB document into a JSON-ready dict.

    ``_id`` becomes ``id``; ObjectIds become strings and datetimes ISO 8601.
    The password hash is never included.
    """
    result: dict[str, Any] = {}
    for key, value in document.items():
        if key == "hashed_password":
            continue
        if key == "_id":
            key = "id"
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        result[key] = value
    return result
