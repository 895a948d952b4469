"""Reconciliation package."""

from statement_recon.reconciliation.calculator import reconcile

__all__ = ["reconcile"]
