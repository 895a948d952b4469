"""
Draft Editing State Machine

A Draft is the editable working copy of one ExtractionPreview.

Each row is in one of two states:
- PENDING   (initial, editable, deletable)
- CONFIRMED (reviewed and locked until unconfirmed)

``rows`` and ``confirmed`` are parallel lists and ALWAYS have the same
length; every structural change (add, delete, append, reset) updates both
together.

DESIGN DECISION: Confirmation is a hard lock enforced here, not only in
the UI. patch_row and delete_row on a confirmed row are refused: they
return False and leave the draft unchanged. Only set_confirmed(i, False)
unlocks a row.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional

import structlog

from statement_recon.models.extraction import ExtractionPreview
from statement_recon.models.transaction import AssetKind, Direction, FlatTransaction
from statement_recon.normalization.sanitizer import sanitize
from statement_recon.parsing.bulk_parser import parse_bulk

logger = structlog.get_logger(__name__)


class Draft:
    """
    Mutable working copy of an extraction result.

    ``version`` increases on every change so derived views (warnings,
    reconciliation) know when to recompute.
    """

    def __init__(
        self,
        source: ExtractionPreview,
        default_account_id: Optional[str] = None,
    ):
        """
        Initialize a draft from an extraction result.

        Args:
            source: The immutable extraction result to derive rows from.
            default_account_id: Account for new rows. Defaults to the
                                statement's inferred account.
        """
        self._explicit_account_id = default_account_id
        self._source = source
        self._rows: list[FlatTransaction] = []
        self._confirmed: list[bool] = []
        self.version = 0
        self._load(source)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def source(self) -> ExtractionPreview:
        return self._source

    @property
    def rows(self) -> tuple[FlatTransaction, ...]:
        return tuple(self._rows)

    @property
    def confirmed(self) -> tuple[bool, ...]:
        return tuple(self._confirmed)

    @property
    def default_account_id(self) -> str:
        return self._explicit_account_id or self._source.inferred_meta.account_id or ""

    @property
    def confirmed_count(self) -> int:
        return sum(self._confirmed)

    def is_confirmed(self, index: int) -> bool:
        self._check_index(index)
        return self._confirmed[index]

    def pending_indices(self) -> list[int]:
        return [i for i, locked in enumerate(self._confirmed) if not locked]

    def snapshot(self) -> tuple[list[FlatTransaction], list[bool]]:
        """Copies of rows and flags, safe to hand to other components."""
        return list(self._rows), list(self._confirmed)

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Draft):
            return NotImplemented
        return self._rows == other._rows and self._confirmed == other._confirmed

    def __repr__(self) -> str:
        return (
            f"Draft(rows={len(self._rows)}, confirmed={self.confirmed_count}, "
            f"version={self.version})"
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def patch_row(self, index: int, fields: Mapping[str, Any]) -> bool:
        """
        Merge a partial update into a row.

        The merged record goes back through the normalizer, so patched rows
        obey the same invariants as extracted ones.

        Returns:
            True if applied, False if the row is confirmed.

        Raises:
            IndexError: If index is out of range.
        """
        self._check_index(index)
        if self._confirmed[index]:
            logger.warning("draft_patch_refused", index=index, reason="confirmed")
            return False

        merged = {**self._rows[index].model_dump(), **dict(fields)}
        self._rows[index] = sanitize(merged)
        self._touch()
        return True

    def add_row(self, defaults: Optional[Mapping[str, Any]] = None) -> int:
        """
        Append a new pending row.

        The row starts as a zero-amount fiat debit on the statement account;
        ``defaults`` overrides any of those fields.

        Returns:
            Index of the new row.
        """
        record = {
            "amount_or_qty": 0,
            "direction": Direction.DEBIT,
            "kind": AssetKind.FIAT,
            "account_id": self.default_account_id,
        }
        record.update(defaults or {})
        self._rows.append(sanitize(record, default_account_id=self.default_account_id))
        self._confirmed.append(False)
        self._touch()
        return len(self._rows) - 1

    def delete_row(self, index: int) -> bool:
        """
        Remove a row and its confirmation flag.

        Returns:
            True if removed, False if the row is confirmed.

        Raises:
            IndexError: If index is out of range.
        """
        self._check_index(index)
        if self._confirmed[index]:
            logger.warning("draft_delete_refused", index=index, reason="confirmed")
            return False

        del self._rows[index]
        del self._confirmed[index]
        self._touch()
        return True

    def set_confirmed(self, index: int, value: bool) -> None:
        """Lock or unlock a row. No business rule gates this."""
        self._check_index(index)
        self._confirmed[index] = bool(value)
        self._touch()

    def append_rows(self, rows: Iterable[Any]) -> int:
        """
        Append rows as pending, normalizing each one.

        Returns:
            Number of rows appended.
        """
        new_rows = [
            sanitize(row, default_account_id=self.default_account_id) for row in rows
        ]
        if not new_rows:
            return 0
        self._rows.extend(new_rows)
        self._confirmed.extend(False for _ in new_rows)
        self._touch()
        return len(new_rows)

    def append_text(self, text: str) -> int:
        """
        Parse pasted text and append the rows.

        Raises:
            ParseError: If nothing could be parsed. The draft is unchanged.
        """
        return self.append_rows(parse_bulk(text, default_account_id=self.default_account_id))

    def reset_to_extracted(self, source: Optional[ExtractionPreview] = None) -> None:
        """
        Discard all edits and rebuild from the extraction result.

        Args:
            source: A new extraction result to switch to (e.g. a historical
                    run). Defaults to the current one.
        """
        if source is not None:
            self._source = source
        self._load(self._source)
        self._touch()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _load(self, source: ExtractionPreview) -> None:
        self._rows = list(source.transactions)
        self._confirmed = [False] * len(self._rows)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._rows):
            raise IndexError(f"Row index {index} out of range (draft has {len(self._rows)} rows)")

    def _touch(self) -> None:
        self.version += 1
