"""Data models and DTOs for ``ledger_sync``.

Two families live here:

- Plain frozen dataclasses for values the package hands out
  (:class:`TransactionRecord`, :class:`SheetRef`).
- Pydantic models for everything that crosses a validation boundary: the
  write shape accepted by the ledger store (:class:`RecordInput` and
  :class:`RecordPatch`) and the outbound webhook wire format
  (:class:`WebhookPayload` / :class:`WebhookResponse`).

Derived ledger views (ref numbers, running balances) are not modeled here:
they are computed on read by :mod:`ledger_sync.ledger` and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CATEGORY = "Other"

_CENT = Decimal("0.01")

# Largest value the Numeric(18, 2) amount columns hold.
MAX_AMOUNT = Decimal("9999999999999999.99")

# ---------------------------------------------------------------------------
# Core record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """One financial event as stored in a ledger.

    ``id`` and ``created_at`` are assigned by the store on creation and never
    change afterwards. ``created_at`` only breaks ordering ties between
    records sharing the same ``occurred_on``.
    """

    id: int
    ledger_id: str
    occurred_on: date
    description: str
    category: str
    amount_in: Decimal
    amount_out: Decimal
    created_at: datetime

    @property
    def net(self) -> Decimal:
        return self.amount_in - self.amount_out


# ---------------------------------------------------------------------------
# Write shapes (validated at the store boundary)
# ---------------------------------------------------------------------------


def _quantize_amount(v: Decimal) -> Decimal:
    if not v.is_finite():
        raise ValueError("amount must be a finite number")
    if v < 0:
        raise ValueError("amount must be >= 0")
    # Compare before quantizing: quantize fails outright past 28 digits.
    if v > MAX_AMOUNT or v.quantize(_CENT, rounding=ROUND_HALF_UP) > MAX_AMOUNT:
        raise ValueError(f"amount must be <= {MAX_AMOUNT}")
    return v.quantize(_CENT, rounding=ROUND_HALF_UP)


class RecordInput(BaseModel):
    """Validated fields for creating or fully replacing a record.

    The UI's stricter "exactly one of in/out is non-zero" rule is not enforced
    here: imported spreadsheet rows may legitimately carry both or neither.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    occurred_on: date
    description: str
    category: str = DEFAULT_CATEGORY
    amount_in: Decimal = Decimal("0.00")
    amount_out: Decimal = Decimal("0.00")

    @field_validator("description")
    @classmethod
    def _description_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("description must be non-empty")
        return v

    @field_validator("category")
    @classmethod
    def _category_default(cls, v: str) -> str:
        return v or DEFAULT_CATEGORY

    @field_validator("amount_in", "amount_out")
    @classmethod
    def _amount_non_negative(cls, v: Decimal) -> Decimal:
        return _quantize_amount(v)


class RecordPatch(BaseModel):
    """Partial edit of an existing record.

    Unset fields keep their stored values; the merged result is re-validated
    as a :class:`RecordInput` before anything is written.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    occurred_on: date | None = None
    description: str | None = None
    category: str | None = None
    amount_in: Decimal | None = None
    amount_out: Decimal | None = None

    def apply_to(self, record: TransactionRecord) -> RecordInput:
        changes = self.model_dump(exclude_none=True)
        base: dict[str, Any] = {
            "occurred_on": record.occurred_on,
            "description": record.description,
            "category": record.category,
            "amount_in": record.amount_in,
            "amount_out": record.amount_out,
        }
        base.update(changes)
        return RecordInput.model_validate(base)


# ---------------------------------------------------------------------------
# Spreadsheet reference
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SheetRef:
    """A spreadsheet id plus the numeric ``gid`` of one sheet tab."""

    spreadsheet_id: str
    gid: str = "0"


# ---------------------------------------------------------------------------
# Outbound webhook wire format
# ---------------------------------------------------------------------------


class WebhookRow(BaseModel):
    """One ledger line as the webhook expects it.

    Field order is the column order of the receiving sheet and must not change.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    ref: int
    date: str
    description: str
    category: str
    amount_in: float = Field(alias="in")
    amount_out: float = Field(alias="out")
    balance: float


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: Literal["batch"] = "batch"
    expenses: list[WebhookRow]

    def to_json_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WebhookResponse(BaseModel):
    """Acknowledgement returned by the webhook; unknown keys are tolerated."""

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str | None = None
    count: int | None = None


__all__ = [
    "DEFAULT_CATEGORY",
    "MAX_AMOUNT",
    "RecordInput",
    "RecordPatch",
    "SheetRef",
    "TransactionRecord",
    "WebhookPayload",
    "WebhookResponse",
    "WebhookRow",
]
