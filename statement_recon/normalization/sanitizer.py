"""
Schema Normalizer

Coerces arbitrary extracted or pasted records into FlatTransaction.

DESIGN DECISION: This module is the single place where defaults live.
Nothing else in the package re-derives a default for a missing field.

IMPORTANT: sanitize() NEVER raises and NEVER rejects a record.
Unrecognized enum values fall back to the safe branch (Debit, Fiat) and
suspicious values are left for the validator to flag.
"""

import math
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from statement_recon.models.transaction import (
    AI_SOURCE,
    DEFAULT_CURRENCY,
    AssetKind,
    Direction,
    FlatTransaction,
)

OPTIONAL_TEXT_FIELDS = (
    "payee",
    "memo",
    "price_ccy",
    "category_id",
    "status",
    "tx_type",
    "ext1_kind",
    "ext1_val",
)


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value if value is not None else default).strip()


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return _text(value) or None


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _timestamp(value: Any) -> Optional[int]:
    number = _number(value)
    if number is None:
        return None
    return int(number)


def coerce_direction(value: Any) -> Direction:
    """Case-insensitive "credit" is Credit; everything else is Debit."""
    if _text(value).lower() == "credit":
        return Direction.CREDIT
    return Direction.DEBIT


def coerce_kind(value: Any) -> AssetKind:
    """Case-insensitive "crypto" is Crypto; everything else is Fiat."""
    if _text(value).lower() == "crypto":
        return AssetKind.CRYPTO
    return AssetKind.FIAT


def _as_mapping(raw: Any) -> Mapping:
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if isinstance(raw, Mapping):
        return raw
    return {}


def sanitize(
    raw: Any,
    default_account_id: Optional[str] = None,
) -> FlatTransaction:
    """
    Normalize one raw record into a FlatTransaction.

    Args:
        raw: Any value; mappings and pydantic models are read field by field,
             anything else is treated as an empty record.
        default_account_id: Account used when the record has none
                            (typically the statement's inferred account).

    Returns:
        A FlatTransaction with every required field populated and every
        optional text field either non-blank or None.
    """
    record = _as_mapping(raw)

    account_id = _text(record.get("account_id"))
    if not account_id and default_account_id:
        account_id = _text(default_account_id)

    amount = _number(record.get("amount_or_qty"))

    fields = {
        "txid": _text(record.get("txid")),
        "date": _text(record.get("date")),
        "posted_ts": _timestamp(record.get("posted_ts")),
        "source": _text(record.get("source")) or AI_SOURCE,
        "account_id": account_id,
        "direction": coerce_direction(record.get("direction")),
        "kind": coerce_kind(record.get("kind")),
        "ccy_or_asset": _text(record.get("ccy_or_asset")) or DEFAULT_CURRENCY,
        "amount_or_qty": amount if amount is not None else 0.0,
        "price": _number(record.get("price")),
    }
    for name in OPTIONAL_TEXT_FIELDS:
        fields[name] = _optional_text(record.get(name))

    return FlatTransaction(**fields)


def sanitize_many(
    raws: Any,
    default_account_id: Optional[str] = None,
) -> list[FlatTransaction]:
    """Sanitize every element of an iterable, preserving order."""
    return [sanitize(raw, default_account_id=default_account_id) for raw in raws]
