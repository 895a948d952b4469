"""Schema normalization package."""

from statement_recon.normalization.sanitizer import (
    coerce_direction,
    coerce_kind,
    sanitize,
    sanitize_many,
)

__all__ = ["coerce_direction", "coerce_kind", "sanitize", "sanitize_many"]
