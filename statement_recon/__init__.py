"""
Statement Reconciliation - Source Package

Turns AI-extracted bank statement lines into a reviewed, reconciled
batch of ledger transactions.

DESIGN PRINCIPLES:
1. AI extracts → Human reviews and confirms → Ledger imports
2. One place for defaults (the normalizer)
3. Warnings advise, they never block
4. The extraction result is immutable; only the draft is edited
5. The ledger is an external collaborator behind a gateway
"""

__version__ = "1.0.0"
__author__ = "Statement Reconciliation Team"
