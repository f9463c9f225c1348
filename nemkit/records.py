"""
Announced / confirmed transaction records.

Raw NIS JSON is tagged exactly once, here, into one of four record kinds:

    PLAIN_TRANSFER             type 257, no mosaics
    ASSET_TRANSFER             type 257, mosaics attached
    MULTISIG_PLAIN_TRANSFER    type 4100 wrapping a plain transfer
    MULTISIG_ASSET_TRANSFER    type 4100 wrapping a mosaic transfer

Anything else (other transaction types, malformed bodies) becomes an
``UnsupportedRecord`` value. ``parse_record()`` never raises for bad input
so a stream of records can keep flowing past one bad entry.

Accepted input shapes:
    - a bare transaction dict
    - a {"meta": {...}, "transaction": {...}} pair (account history, streams)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import jsonschema
from jsonschema.exceptions import best_match

from nemkit.address import address_from_public_key
from nemkit.config import NetworkMode
from nemkit.message import Message
from nemkit.mosaic import AssetIdentifier
from nemkit.tx import TransactionType

# =========================================================================
# Schemas
# =========================================================================

_HEX_KEY = {"type": "string", "pattern": "^[0-9a-fA-F]{64}$"}

TRANSFER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["type", "fee", "signer", "recipient", "amount"],
    "properties": {
        "type": {"const": int(TransactionType.TRANSFER)},
        "fee": {"type": "integer", "minimum": 0},
        "signer": _HEX_KEY,
        "recipient": {"type": "string", "minLength": 1},
        "amount": {"type": "integer", "minimum": 0},
        "message": {
            "type": "object",
            "properties": {
                "type": {"type": "integer"},
                "payload": {"type": "string", "pattern": "^([0-9a-fA-F]{2})*$"},
            },
        },
        "mosaics": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["mosaicId", "quantity"],
                "properties": {
                    "mosaicId": {
                        "type": "object",
                        "required": ["namespaceId", "name"],
                        "properties": {
                            "namespaceId": {"type": "string", "minLength": 1},
                            "name": {"type": "string", "minLength": 1},
                        },
                    },
                    "quantity": {"type": "integer", "minimum": 0},
                },
            },
        },
    },
}

MULTISIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["type", "fee", "signer", "otherTrans"],
    "properties": {
        "type": {"const": int(TransactionType.MULTISIG)},
        "fee": {"type": "integer", "minimum": 0},
        "signer": _HEX_KEY,
        "otherTrans": {"type": "object"},
    },
}

_TRANSFER_VALIDATOR = jsonschema.Draft202012Validator(TRANSFER_SCHEMA)
_MULTISIG_VALIDATOR = jsonschema.Draft202012Validator(MULTISIG_SCHEMA)


def _schema_error(validator: jsonschema.Draft202012Validator, instance: Any) -> str | None:
    error = best_match(validator.iter_errors(instance))
    if error is None:
        return None
    path = "/".join(str(p) for p in error.absolute_path) or "<root>"
    return f"{path}: {error.message}"


# =========================================================================
# Types
# =========================================================================


class RecordKind(StrEnum):
    PLAIN_TRANSFER = "PLAIN_TRANSFER"
    ASSET_TRANSFER = "ASSET_TRANSFER"
    MULTISIG_PLAIN_TRANSFER = "MULTISIG_PLAIN_TRANSFER"
    MULTISIG_ASSET_TRANSFER = "MULTISIG_ASSET_TRANSFER"

    @property
    def is_multisig(self) -> bool:
        return self in (RecordKind.MULTISIG_PLAIN_TRANSFER, RecordKind.MULTISIG_ASSET_TRANSFER)

    @property
    def carries_assets(self) -> bool:
        return self in (RecordKind.ASSET_TRANSFER, RecordKind.MULTISIG_ASSET_TRANSFER)


@dataclass(frozen=True)
class MosaicQuantity:
    """A mosaic id and a smallest-unit quantity."""

    identifier: AssetIdentifier
    quantity: int


@dataclass(frozen=True)
class TransferBody:
    """The transfer part of a record (the record itself, or the inner tx)."""

    signer_public_key: str
    recipient: str
    amount: int
    fee: int
    mosaics: tuple[MosaicQuantity, ...] | None
    message: Message


@dataclass(frozen=True)
class AnnouncedTransactionRecord:
    """A tagged transfer record pushed or returned by the network.

    Attributes:
        kind: Which of the four supported shapes this is.
        signer_public_key / signer_address: Who signed the outer transaction
            (the cosigner for multisig kinds).
        fee: Fee of the outer transaction.
        transfer: The transfer body; for multisig kinds this is the inner
            transaction with its own fee.
        tx_hash / inner_hash / height: From record meta, when present.
    """

    kind: RecordKind
    signer_public_key: str
    signer_address: str
    fee: int
    transfer: TransferBody
    timestamp: int | None = None
    tx_hash: str | None = None
    inner_hash: str | None = None
    height: int | None = None

    @property
    def inner_transaction(self) -> TransferBody | None:
        return self.transfer if self.kind.is_multisig else None


@dataclass(frozen=True)
class UnsupportedRecord:
    """A record that is not one of the four supported shapes."""

    type_code: int | None
    reason: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


# =========================================================================
# Parsing
# =========================================================================


def _transfer_body(tx: dict[str, Any]) -> TransferBody:
    mosaics = None
    if tx.get("mosaics"):
        mosaics = tuple(
            MosaicQuantity(
                identifier=AssetIdentifier.from_dict(m["mosaicId"]),
                quantity=int(m["quantity"]),
            )
            for m in tx["mosaics"]
        )
    return TransferBody(
        signer_public_key=str(tx["signer"]).lower(),
        recipient=str(tx["recipient"]),
        amount=int(tx["amount"]),
        fee=int(tx["fee"]),
        mosaics=mosaics,
        message=Message.from_dict(tx.get("message")),
    )


def _meta_hash(meta: dict[str, Any], key: str) -> str | None:
    value = meta.get(key)
    if isinstance(value, dict) and value.get("data"):
        return str(value["data"])
    return None


def parse_record(
    raw: dict[str, Any], network: NetworkMode
) -> AnnouncedTransactionRecord | UnsupportedRecord:
    """Tag a raw NIS transaction (or meta/transaction pair).

    Returns:
        AnnouncedTransactionRecord for the four transfer shapes,
        UnsupportedRecord for everything else.
    """
    if not isinstance(raw, dict):
        return UnsupportedRecord(type_code=None, reason="record is not an object")

    meta: dict[str, Any] = {}
    tx = raw
    if isinstance(raw.get("transaction"), dict):
        tx = raw["transaction"]
        meta = raw.get("meta") or {}

    type_code = tx.get("type")
    if type_code == TransactionType.TRANSFER:
        error = _schema_error(_TRANSFER_VALIDATOR, tx)
        if error is not None:
            return UnsupportedRecord(type_code, f"malformed transfer: {error}", raw)
        body = _transfer_body(tx)
        kind = RecordKind.ASSET_TRANSFER if body.mosaics else RecordKind.PLAIN_TRANSFER

    elif type_code == TransactionType.MULTISIG:
        error = _schema_error(_MULTISIG_VALIDATOR, tx)
        if error is not None:
            return UnsupportedRecord(type_code, f"malformed multisig: {error}", raw)
        inner = tx["otherTrans"]
        if inner.get("type") != TransactionType.TRANSFER:
            return UnsupportedRecord(
                inner.get("type"), "multisig wraps a non-transfer transaction", raw
            )
        error = _schema_error(_TRANSFER_VALIDATOR, inner)
        if error is not None:
            return UnsupportedRecord(type_code, f"malformed inner transfer: {error}", raw)
        body = _transfer_body(inner)
        kind = (
            RecordKind.MULTISIG_ASSET_TRANSFER
            if body.mosaics
            else RecordKind.MULTISIG_PLAIN_TRANSFER
        )

    else:
        return UnsupportedRecord(
            type_code if isinstance(type_code, int) else None,
            f"unsupported transaction type {type_code!r}",
            raw,
        )

    signer = str(tx["signer"]).lower()
    height = meta.get("height")
    return AnnouncedTransactionRecord(
        kind=kind,
        signer_public_key=signer,
        signer_address=address_from_public_key(signer, network),
        fee=int(tx["fee"]),
        transfer=body,
        timestamp=tx.get("timeStamp"),
        tx_hash=_meta_hash(meta, "hash"),
        inner_hash=_meta_hash(meta, "innerHash"),
        height=int(height) if height is not None else None,
    )
