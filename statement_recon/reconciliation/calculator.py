"""
Reconciliation Calculator

Compares a batch's net movement with the movement implied by the
statement's opening and closing balances.

    net      = sum of credits - sum of debits
    expected = closing balance - opening balance
    diff     = |net - expected|

No currency conversion is done. A multi-currency batch still gets a diff;
``units`` on the result shows which currencies/assets were summed so a
reviewer can judge it.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from statement_recon.models.extraction import ReconciliationResult
from statement_recon.models.transaction import FlatTransaction


def _amount(row: Any) -> float:
    value = row.get("amount_or_qty") if isinstance(row, Mapping) else getattr(row, "amount_or_qty", 0)
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _direction(row: Any) -> str:
    value = row.get("direction") if isinstance(row, Mapping) else getattr(row, "direction", "")
    value = getattr(value, "value", value)
    return str(value if value is not None else "").strip().lower()


def _unit(row: Any) -> Optional[str]:
    if isinstance(row, FlatTransaction):
        return row.amount.unit
    value = row.get("ccy_or_asset") if isinstance(row, Mapping) else None
    if value is None:
        return None
    return str(value).strip() or None


def reconcile(
    rows: Iterable[Any],
    opening_balance: Optional[float],
    closing_balance: Optional[float],
) -> ReconciliationResult:
    """
    Reconcile rows against statement balances.

    Args:
        rows: FlatTransaction objects or raw mappings.
        opening_balance: Statement opening balance; None counts as 0.
        closing_balance: Statement closing balance; None counts as 0.

    Returns:
        ReconciliationResult; compare diff with a tolerance, not with 0.
    """
    sum_credits = 0.0
    sum_debits = 0.0
    units: list[str] = []

    for row in rows:
        direction = _direction(row)
        if direction == "credit":
            sum_credits += _amount(row)
        elif direction == "debit":
            sum_debits += _amount(row)

        unit = _unit(row)
        if unit and unit not in units:
            units.append(unit)

    net = sum_credits - sum_debits
    expected = (closing_balance or 0.0) - (opening_balance or 0.0)

    return ReconciliationResult(
        sum_credits=sum_credits,
        sum_debits=sum_debits,
        net=net,
        expected=expected,
        diff=abs(net - expected),
        units=tuple(units),
    )
