"""Validation package."""

from statement_recon.validation.validator import BatchValidator, compute_warnings

__all__ = ["BatchValidator", "compute_warnings"]
