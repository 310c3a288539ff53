"""
Structured transaction metadata.

Replaces the free-form metadata bag with versioned sub-records while
keeping an `extensions` map for caller-supplied keys. Serialized with
camelCase aliases into the `metadata` JSON column.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from reconciler.config.constants import METADATA_VERSION


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @classmethod
    def field_keys(cls) -> set[str]:
        """Attribute names and camelCase aliases of all fields."""
        keys = set(cls.model_fields)
        keys.update(f.alias for f in cls.model_fields.values() if f.alias)
        return keys


class BlockchainDetails(_CamelModel):
    """On-chain details captured at the last lookup."""

    gas: str | None = None
    gas_price: str | None = None
    nonce: int | None = None
    block_number: int | None = None
    confirmations: int = 0
    timestamp: int | None = None
    is_erc20_transfer: bool = Field(default=False, alias="isERC20Transfer")
    # Outer call target for token transfers (the token contract)
    contract_address: str | None = None
    # Only the first Transfer event is reconciled
    transfer_event_count: int = 0


class DiagnosticInfo(_CamelModel):
    """Why and when the reconciler last changed the record."""

    error: str | None = None
    hours_since_creation: float | None = None
    fixed_at: datetime | None = None
    fixed_by: str | None = None  # "poller" or "sweep"
    attempts: int | None = None


class AttributionInfo(_CamelModel):
    """How the acting user relates to the on-chain parties."""

    role: str | None = None  # sender, recipient, tracking
    # Recipient unknown to the system; to_user_id falls back to the sender
    external_counterparty: bool = False


class TransactionMetadata(_CamelModel):
    """Metadata stored alongside every transaction record."""

    version: int = METADATA_VERSION
    is_pending: bool = False
    network_id: int | None = None
    network_name: str | None = None
    blockchain_details: BlockchainDetails | None = None
    attribution: AttributionInfo | None = None
    diagnostics: DiagnosticInfo = Field(default_factory=DiagnosticInfo)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fold_flat_keys(cls, data: Any) -> Any:
        """
        Keep keys of rows written before the structured layout.

        Flat diagnostic keys (error, fixedAt, ...) move under diagnostics
        unless already set there; any other unknown root key (type,
        projectId, ...) moves to extensions.
        """
        if not isinstance(data, dict):
            return data

        known = cls.field_keys()
        diagnostic_keys = DiagnosticInfo.field_keys()
        folded: dict[str, Any] = {}
        flat_diagnostics: dict[str, Any] = {}
        extra: dict[str, Any] = {}

        for key, value in data.items():
            if key in known:
                folded[key] = value
            elif key in diagnostic_keys:
                flat_diagnostics[key] = value
            else:
                extra[key] = value

        if flat_diagnostics:
            nested = folded.get("diagnostics") or {}
            if isinstance(nested, DiagnosticInfo):
                nested = nested.model_dump(by_alias=True, exclude_none=True)
            folded["diagnostics"] = {**flat_diagnostics, **nested}
        if extra:
            folded["extensions"] = {**extra, **(folded.get("extensions") or {})}
        return folded

    @classmethod
    def from_raw(cls, raw: dict[str, Any] | None) -> "TransactionMetadata":
        """Load from the JSON column, tolerating empty or legacy rows."""
        return cls.model_validate(raw or {})

    def to_raw(self) -> dict[str, Any]:
        """Dump for the JSON column."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
