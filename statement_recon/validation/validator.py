"""
Validator / Warning Engine

Runs a fixed rule set over a batch of transactions and returns
deduplicated, human-readable warnings.

RULES (each checked independently per row):
1. txid does not start with the statement's txid prefix (if one is set)
2. account_id differs from the statement's account (if one is set)
3. direction is not exactly "Debit" or "Credit"
4. amount_or_qty is not a positive number

Messages are aggregated: a message seen more than once carries its count,
e.g. "amount_or_qty must be a positive number (3)". Order is the order of
first occurrence, not severity.

IMPORTANT: Warnings NEVER block an edit, a confirmation or an import.
Rule 3 can only fire for rows that skipped normalization; it stays as a
check on raw input.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from statement_recon.config import get_settings
from statement_recon.models.extraction import ReconciliationResult

VALID_DIRECTIONS = ("Debit", "Credit")

DIRECTION_MESSAGE = "direction must be Debit or Credit"
AMOUNT_MESSAGE = "amount_or_qty must be a positive number"


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _row_messages(
    row: Any,
    expected_account_id: Optional[str],
    expected_txid_prefix: Optional[str],
) -> list[str]:
    messages = []

    if expected_txid_prefix:
        txid = _field(row, "txid")
        if not isinstance(txid, str) or not txid.startswith(expected_txid_prefix):
            messages.append(
                f"txid does not start with expected prefix '{expected_txid_prefix}'"
            )

    if expected_account_id:
        if _field(row, "account_id") != expected_account_id:
            messages.append(
                f"account_id differs from statement account '{expected_account_id}'"
            )

    if _field(row, "direction") not in VALID_DIRECTIONS:
        messages.append(DIRECTION_MESSAGE)

    if not _is_positive_number(_field(row, "amount_or_qty")):
        messages.append(AMOUNT_MESSAGE)

    return messages


def compute_warnings(
    transactions: Iterable[Any],
    expected_account_id: Optional[str],
    expected_txid_prefix: Optional[str],
) -> list[str]:
    """
    Compute aggregated warnings for a batch.

    Args:
        transactions: FlatTransaction objects or raw mappings.
        expected_account_id: The statement's account, or None to skip rule 2.
        expected_txid_prefix: The statement's txid prefix, or None/"" to skip rule 1.

    Returns:
        Distinct messages in first-occurrence order, suffixed " (N)" when N > 1.
    """
    counts: dict[str, int] = {}
    for row in transactions:
        for message in _row_messages(row, expected_account_id, expected_txid_prefix):
            counts[message] = counts.get(message, 0) + 1

    return [
        f"{message} ({count})" if count > 1 else message
        for message, count in counts.items()
    ]


class BatchValidator:
    """
    Warning engine bound to one statement's expectations.

    Holds the expected account and txid prefix so callers can re-run the
    rules on every draft change without passing them around.
    """

    def __init__(
        self,
        expected_account_id: Optional[str] = None,
        expected_txid_prefix: Optional[str] = None,
    ):
        self.expected_account_id = expected_account_id
        self.expected_txid_prefix = expected_txid_prefix
        self._settings = get_settings().app

    def validate(self, transactions: Iterable[Any]) -> list[str]:
        """Run all rules; see compute_warnings."""
        return compute_warnings(
            transactions,
            self.expected_account_id,
            self.expected_txid_prefix,
        )

    def get_user_friendly_summary(
        self,
        warnings: list[str],
        reconciliation: Optional[ReconciliationResult] = None,
    ) -> str:
        """
        Generate a summary of warnings and the balance check for review.

        A reconciliation diff is reported, never treated as a blocker.
        """
        lines = []

        if reconciliation is not None:
            tolerance = self._settings.reconciliation_tolerance
            if reconciliation.is_balanced(tolerance):
                lines.append(
                    f"✅ Balanced: net {reconciliation.net:,.2f} matches "
                    f"statement movement {reconciliation.expected:,.2f}"
                )
            else:
                lines.append(
                    f"⚠️ Off by {reconciliation.diff:,.2f}: net {reconciliation.net:,.2f} "
                    f"vs statement movement {reconciliation.expected:,.2f}"
                )
            if reconciliation.is_multi_currency:
                lines.append(
                    "   • Rows use several currencies/assets "
                    f"({', '.join(reconciliation.units)}); the diff is not meaningful"
                )

        if not warnings:
            lines.append("✅ No warnings. Please review the rows below.")
        else:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
