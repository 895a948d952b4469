"""Tests for the warning engine and the reconciliation calculator."""

import pytest

from statement_recon.models.extraction import ReconciliationResult
from statement_recon.models.transaction import AssetKind, Direction, FlatTransaction
from statement_recon.reconciliation import reconcile
from statement_recon.validation import BatchValidator, compute_warnings


def _row(txid="CHK-1", account_id="acct.main", direction=Direction.DEBIT, amount=10.0, **kwargs):
    return FlatTransaction(
        txid=txid,
        account_id=account_id,
        direction=direction,
        amount_or_qty=amount,
        **kwargs,
    )


class TestComputeWarnings:
    """Tests for compute_warnings()."""

    def test_clean_batch_has_no_warnings(self):
        """Test rows matching every rule produce nothing."""
        rows = [_row("CHK-1"), _row("CHK-2", direction=Direction.CREDIT)]
        assert compute_warnings(rows, "acct.main", "CHK-") == []

    def test_prefix_warning_aggregated(self):
        """Test three rows missing the prefix produce one message with (3)."""
        rows = [_row("X-1"), _row("X-2"), _row("X-3")]
        assert compute_warnings(rows, "acct.main", "CHK-") == [
            "txid does not start with expected prefix 'CHK-' (3)",
        ]

    def test_single_occurrence_has_no_count(self):
        """Test a message seen once carries no suffix."""
        rows = [_row("X-1"), _row("CHK-2")]
        assert compute_warnings(rows, "acct.main", "CHK-") == [
            "txid does not start with expected prefix 'CHK-'",
        ]

    def test_rules_skipped_without_expectations(self):
        """Test prefix and account rules need a statement value to compare with."""
        rows = [_row("X-1", account_id="acct.other")]
        assert compute_warnings(rows, None, None) == []
        assert compute_warnings(rows, "", "") == []

    def test_account_mismatch(self):
        """Test rows on another account are flagged."""
        rows = [_row(account_id="acct.other"), _row(account_id="")]
        assert compute_warnings(rows, "acct.main", None) == [
            "account_id differs from statement account 'acct.main' (2)",
        ]

    def test_non_positive_amount(self):
        """Test zero and negative amounts are flagged."""
        rows = [_row(amount=0), _row(amount=-5), _row(amount=1)]
        assert compute_warnings(rows, None, None) == [
            "amount_or_qty must be a positive number (2)",
        ]

    def test_raw_rows_checked_for_direction_and_amount(self):
        """Test unsanitized mappings are checked too."""
        rows = [
            {"txid": "CHK-1", "direction": "debit", "amount_or_qty": "10"},
            {"txid": "CHK-2", "direction": "Credit", "amount_or_qty": True},
        ]
        assert compute_warnings(rows, None, "CHK-") == [
            "direction must be Debit or Credit",
            "amount_or_qty must be a positive number (2)",
        ]

    def test_first_occurrence_order(self):
        """Test messages keep the order they were first seen in."""
        rows = [_row(amount=0), _row("X-1")]
        warnings = compute_warnings(rows, None, "CHK-")
        assert warnings == [
            "amount_or_qty must be a positive number",
            "txid does not start with expected prefix 'CHK-'",
        ]


class TestBatchValidator:
    """Tests for the bound validator and its summary."""

    def test_validate_uses_bound_expectations(self):
        validator = BatchValidator(expected_account_id="acct.main", expected_txid_prefix="CHK-")
        assert validator.validate([_row("X-1")]) == [
            "txid does not start with expected prefix 'CHK-'",
        ]

    def test_summary_balanced_without_warnings(self):
        """Test a balanced, warning-free batch summary."""
        summary = BatchValidator().get_user_friendly_summary(
            [],
            ReconciliationResult(net=-50, expected=-50, diff=0, units=("USD",)),
        )
        assert "Balanced" in summary
        assert "No warnings" in summary

    def test_summary_lists_warnings_and_diff(self):
        """Test warnings and an off-balance diff are both reported."""
        summary = BatchValidator().get_user_friendly_summary(
            ["amount_or_qty must be a positive number (2)"],
            ReconciliationResult(net=10, expected=0, diff=10, units=("USD", "ETH")),
        )
        assert "Off by 10.00" in summary
        assert "several currencies" in summary
        assert "amount_or_qty must be a positive number (2)" in summary


class TestReconcile:
    """Tests for reconcile()."""

    def test_credit_and_debit(self):
        """Test the basic arithmetic against opening/closing balances."""
        rows = [
            _row(direction=Direction.CREDIT, amount=100),
            _row(direction=Direction.DEBIT, amount=40),
        ]
        result = reconcile(rows, opening_balance=1000, closing_balance=1060)
        assert result.sum_credits == 100
        assert result.sum_debits == 40
        assert result.net == 60
        assert result.expected == 60
        assert result.diff == 0

    def test_statement_example(self):
        """Test two debits explain a 50 drop."""
        rows = [_row(amount=30), _row(amount=20)]
        result = reconcile(rows, 500, 450)
        assert result.net == -50
        assert result.expected == -50
        assert result.diff == 0
        assert result.is_balanced()

    def test_diff_is_absolute(self):
        """Test the diff is never negative."""
        result = reconcile([_row(direction=Direction.CREDIT, amount=10)], 0, 50)
        assert result.net == 10
        assert result.diff == 40

    def test_missing_balances_count_as_zero(self):
        """Test None balances are treated as 0."""
        result = reconcile([_row(amount=5)], None, None)
        assert result.expected == 0
        assert result.diff == 5

    def test_raw_rows(self):
        """Test mappings with loose casing and numeric strings are summed."""
        rows = [
            {"direction": "credit", "amount_or_qty": "12.5", "ccy_or_asset": "USD"},
            {"direction": " DEBIT ", "amount_or_qty": 2.5, "ccy_or_asset": "USD"},
            {"direction": "Debit", "amount_or_qty": "abc"},
            {"direction": "sideways", "amount_or_qty": 100},
        ]
        result = reconcile(rows, 0, 10)
        assert result.sum_credits == 12.5
        assert result.sum_debits == 2.5
        assert result.diff == 0
        assert result.units == ("USD",)

    def test_units_flag_multi_currency(self):
        """Test units collect each distinct currency or asset in order."""
        rows = [
            _row(amount=1, ccy_or_asset="USD"),
            _row(amount=1, kind=AssetKind.CRYPTO, ccy_or_asset="ETH"),
            _row(amount=1, ccy_or_asset="USD"),
        ]
        result = reconcile(rows, 0, 0)
        assert result.units == ("USD", "ETH")
        assert result.is_multi_currency

    def test_crypto_quantities_not_rounded(self):
        """Test sums keep full precision."""
        rows = [_row(direction=Direction.CREDIT, amount=0.00012345, kind=AssetKind.CRYPTO)]
        result = reconcile(rows, None, None)
        assert result.sum_credits == pytest.approx(0.00012345, abs=1e-12)
        assert result.diff == pytest.approx(0.00012345, abs=1e-12)
