"""
Core Transaction Model for Statement Reconciliation

FlatTransaction is the canonical shape of one extracted statement line.
Everything downstream (draft, validator, reconciliation, ledger import)
works on this model.

DESIGN DECISION: The model is frozen. Edits produce a new row through the
normalizer, so the extraction result can share rows with a draft without
being mutated by it.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

AI_SOURCE = "ai_extract"
"""Source sentinel for rows produced by AI-assisted extraction."""

DEFAULT_CURRENCY = "USD"


class Direction(str, Enum):
    """
    Movement direction of a statement line.

    The amount is always a magnitude; the sign lives here.
    """
    DEBIT = "Debit"
    CREDIT = "Credit"


class AssetKind(str, Enum):
    """Whether the line moves fiat currency or a crypto asset."""
    FIAT = "Fiat"
    CRYPTO = "Crypto"


# =============================================================================
# AMOUNT VARIANTS - one payload type per AssetKind
# =============================================================================

class FiatAmount(BaseModel):
    """A fiat movement: value in a currency."""
    model_config = ConfigDict(frozen=True)

    kind: AssetKind = AssetKind.FIAT
    currency: str
    value: float

    @property
    def unit(self) -> str:
        return self.currency

    @property
    def magnitude(self) -> float:
        return self.value


class CryptoAmount(BaseModel):
    """
    A crypto movement: quantity of an asset.

    price/price_ccy record the conversion rate captured at extraction time.
    """
    model_config = ConfigDict(frozen=True)

    kind: AssetKind = AssetKind.CRYPTO
    asset: str
    quantity: float
    price: Optional[float] = None
    price_ccy: Optional[str] = None

    @property
    def unit(self) -> str:
        return self.asset

    @property
    def magnitude(self) -> float:
        return self.quantity

    @property
    def priced_value(self) -> Optional[float]:
        """Quantity valued at the captured price, when one was captured."""
        if self.price is None:
            return None
        return self.quantity * self.price


Amount = Union[FiatAmount, CryptoAmount]


# =============================================================================
# FLAT TRANSACTION
# =============================================================================

class FlatTransaction(BaseModel):
    """
    One statement line, post-normalization.

    Build these through statement_recon.normalization.sanitize, which owns
    every default. Constructing one directly is fine for tests and for
    already-clean data.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    txid: str = Field(
        default="",
        description="Statement-assigned or external id; uniqueness is the ledger's job"
    )
    date: str = Field(
        default="",
        description="Statement date as printed; not parsed here"
    )
    posted_ts: Optional[int] = Field(
        default=None,
        description="Posting time, Unix seconds"
    )
    source: str = Field(
        default=AI_SOURCE,
        description="Origin of the row"
    )
    payee: Optional[str] = None
    memo: Optional[str] = None
    account_id: str = Field(
        default="",
        description="Ledger account id; empty when extraction could not tell"
    )
    direction: Direction = Direction.DEBIT
    kind: AssetKind = AssetKind.FIAT
    ccy_or_asset: str = Field(
        default=DEFAULT_CURRENCY,
        description="Currency code or asset ticker"
    )
    amount_or_qty: float = Field(
        default=0.0,
        description="Magnitude of the movement (unsigned)"
    )
    price: Optional[float] = None
    price_ccy: Optional[str] = None
    category_id: Optional[str] = None
    status: Optional[str] = None
    tx_type: Optional[str] = None
    ext1_kind: Optional[str] = None
    ext1_val: Optional[str] = None

    @property
    def amount(self) -> Amount:
        """The amount as a tagged variant selected by ``kind``."""
        if self.kind is AssetKind.CRYPTO:
            return CryptoAmount(
                asset=self.ccy_or_asset,
                quantity=self.amount_or_qty,
                price=self.price,
                price_ccy=self.price_ccy,
            )
        if self.kind is AssetKind.FIAT:
            return FiatAmount(currency=self.ccy_or_asset, value=self.amount_or_qty)
        raise ValueError(f"Unhandled asset kind: {self.kind!r}")

    @property
    def signed_amount(self) -> float:
        """Amount with credits positive and debits negative."""
        if self.direction is Direction.CREDIT:
            return self.amount_or_qty
        return -self.amount_or_qty

    def to_payload(self) -> dict:
        """
        Convert to the JSON object the ledger batch-import endpoint expects.

        Absent optional fields are omitted rather than sent as null.
        """
        return self.model_dump(mode="json", exclude_none=True)
