"""Pydantic models for payroll contract events and the derived aggregates.

Events are immutable records validated on the way in; aggregates are the
mutable projections owned by the aggregate store. Token amounts are plain
Python integers throughout (arbitrary precision, never floats).
"""

from __future__ import annotations

import re
from typing import Annotated, Any, ClassVar, Literal, Mapping, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from payroll_indexer.errors import MalformedEventError

UINT256_MAX = 2**256 - 1

_HEX_RE = re.compile(r"^0x[0-9a-f]+$")


def normalize_hex(value: Any) -> str:
    """Return `value` as a lowercase `0x`-prefixed hex string.

    Accepts hex strings in any case (with or without the `0x` prefix) and raw
    bytes.

    Raises:
        ValueError: if the value is empty or not hexadecimal.
    """
    if isinstance(value, (bytes, bytearray)):
        if not value:
            raise ValueError("empty byte identifier")
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValueError(f"expected hex string or bytes, got {type(value).__name__}")
    text = value.strip().lower()
    if not text.startswith("0x"):
        text = "0x" + text
    if not _HEX_RE.match(text):
        raise ValueError(f"not a hex identifier: {value!r}")
    return text


HexId = Annotated[str, BeforeValidator(normalize_hex)]
Amount = Annotated[int, Field(ge=0, le=UINT256_MAX)]
Timestamp = Annotated[int, Field(ge=0)]


# =========================================================
# EVENTS
# =========================================================

class ChainEvent(BaseModel):
    """Fields shared by every payroll contract event.

    `event_id` is the stable unique identifier of the log entry. When it is
    not supplied it is derived from `transaction_hash` and `log_index`; it
    stays `None` when neither is present. The aggregation engine needs no
    id, the indexer requires one for its checkpoint.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    amount_fields: ClassVar[tuple[str, ...]] = ()

    kind: str
    event_id: str | None = Field(default=None, min_length=1)
    block_timestamp: Timestamp
    block_number: int | None = Field(default=None, ge=0)
    transaction_hash: HexId | None = None
    log_index: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _derive_event_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("event_id"):
            tx = data.get("transaction_hash")
            log_index = data.get("log_index")
            if tx not in (None, "") and log_index not in (None, ""):
                data = {**data, "event_id": f"{normalize_hex(tx)}-{int(log_index)}"}
        return data

    @property
    def position(self) -> tuple[int, int] | None:
        """Chain position `(block_number, log_index)` when both are known."""
        if self.block_number is None or self.log_index is None:
            return None
        return (self.block_number, self.log_index)


class ClaimEvent(ChainEvent):
    """A payee claimed `amount` token units from a payroll."""
    amount_fields: ClassVar[tuple[str, ...]] = ("amount",)

    kind: Literal["PayrollClaimed"] = "PayrollClaimed"
    payee_id: HexId
    amount: Amount
    payroll_id: int | None = Field(default=None, ge=0)


class DepositEvent(ChainEvent):
    amount_fields: ClassVar[tuple[str, ...]] = ("amount",)

    kind: Literal["PayrollDeposited"] = "PayrollDeposited"
    depositor: HexId
    amount: Amount


class ExecutionEvent(ChainEvent):
    amount_fields: ClassVar[tuple[str, ...]] = ("total_amount",)

    kind: Literal["PayrollExecuted"] = "PayrollExecuted"
    payroll_id: int = Field(..., ge=0)
    total_amount: Amount
    employee_count: int = Field(..., ge=0)


class EmergencyWithdrawEvent(ChainEvent):
    amount_fields: ClassVar[tuple[str, ...]] = ("amount",)

    kind: Literal["EmergencyWithdraw"] = "EmergencyWithdraw"
    admin: HexId
    amount: Amount


class PausedEvent(ChainEvent):
    kind: Literal["Paused"] = "Paused"
    account: HexId


class UnpausedEvent(ChainEvent):
    kind: Literal["Unpaused"] = "Unpaused"
    account: HexId


class RoleGrantedEvent(ChainEvent):
    kind: Literal["RoleGranted"] = "RoleGranted"
    role: HexId
    account: HexId
    sender: HexId


class RoleRevokedEvent(ChainEvent):
    kind: Literal["RoleRevoked"] = "RoleRevoked"
    role: HexId
    account: HexId
    sender: HexId


class RoleAdminChangedEvent(ChainEvent):
    kind: Literal["RoleAdminChanged"] = "RoleAdminChanged"
    role: HexId
    previous_admin_role: HexId
    new_admin_role: HexId


PayrollEvent = Annotated[
    Union[
        ClaimEvent,
        DepositEvent,
        ExecutionEvent,
        EmergencyWithdrawEvent,
        PausedEvent,
        UnpausedEvent,
        RoleGrantedEvent,
        RoleRevokedEvent,
        RoleAdminChangedEvent,
    ],
    Field(discriminator="kind"),
]

_EVENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(PayrollEvent)

DEFAULT_KIND = "PayrollClaimed"


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<record>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_event(record: Mapping[str, Any] | ChainEvent) -> ChainEvent:
    """Validate a raw record into its typed event class.

    Records without a `kind` are treated as `PayrollClaimed`.

    Raises:
        MalformedEventError: if the record fails validation.
    """
    if isinstance(record, ChainEvent):
        return record
    if not isinstance(record, Mapping):
        raise MalformedEventError(f"expected a mapping, got {type(record).__name__}", record)
    data = dict(record)
    data.setdefault("kind", DEFAULT_KIND)
    try:
        return _EVENT_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise MalformedEventError(_describe(e), record, data.get("event_id")) from e


def parse_claim(record: Mapping[str, Any] | ClaimEvent) -> ClaimEvent:
    """Validate a raw record as a `ClaimEvent`.

    Raises:
        MalformedEventError: if the record fails validation or is another kind.
    """
    event = parse_event(record)
    if not isinstance(event, ClaimEvent):
        raise MalformedEventError(f"expected PayrollClaimed, got {event.kind}", record, event.event_id)
    return event


# =========================================================
# AGGREGATES
# =========================================================

class PayeeAggregate(BaseModel):
    """Running totals for one payee.

    Attributes:
        id: Lowercase hex payee address.
        total_paid: Exact sum of every claimed amount.
        last_paid_at: Block timestamp of the latest processed claim.
        claim_count: Number of claims folded in.
    """
    model_config = ConfigDict(extra="forbid", validate_assignment=True)
    id: HexId
    total_paid: int = Field(default=0, ge=0)
    last_paid_at: int | None = Field(default=None, ge=0)
    claim_count: int = Field(default=0, ge=0)


class MonthAggregate(BaseModel):
    """Payroll cost for one month bucket (`id` is the `YYYYMM` key as text)."""
    model_config = ConfigDict(extra="forbid", validate_assignment=True)
    id: str
    month: int = Field(..., ge=0)
    total_cost: int = Field(default=0, ge=0)


class Checkpoint(BaseModel):
    """Last event committed by the indexer."""
    model_config = ConfigDict(extra="forbid", frozen=True)
    event_id: str
    block_timestamp: int = Field(..., ge=0)
    block_number: int | None = None
    log_index: int | None = None
    processed: int = Field(default=0, ge=0)

    @classmethod
    def after(cls, event: ChainEvent, processed: int) -> "Checkpoint":
        return cls(
            event_id=event.event_id,
            block_timestamp=event.block_timestamp,
            block_number=event.block_number,
            log_index=event.log_index,
            processed=processed,
        )

    @property
    def position(self) -> tuple[int, int] | None:
        if self.block_number is None or self.log_index is None:
            return None
        return (self.block_number, self.log_index)
