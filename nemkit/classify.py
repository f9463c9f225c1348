"""
Transaction classification.

Reduces the four record kinds to one canonical ``TransactionSummary``:

    origin      record signer (public key, address), read the same way for
                every kind
    total_fee   plain kinds:     record.fee
                multisig kinds:  record.fee + inner.fee  (both are paid)
    net_amount  no mosaics:      transfer.amount (micro-XEM)
                mosaics:         sum of quantities in the base namespace
    assets      mosaics outside the base namespace, in input order

An ``UnsupportedRecord`` yields an ``UnsupportedTransactionType`` value; the
classifier never guesses and never raises for a record shape.

Pure functions, no I/O. Inputs are never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from nemkit.mosaic import BASE_NAMESPACE
from nemkit.records import (
    AnnouncedTransactionRecord,
    MosaicQuantity,
    UnsupportedRecord,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionSummary:
    """Canonical summary of a transfer record.

    Attributes:
        origin_public_key: Signer of the outer transaction.
        origin_address: Address of that signer.
        net_amount: Base-currency amount in micro-XEM (0 if mosaic-only).
        total_fee: Every fee the sender paid, in micro-XEM.
        assets: Non-base mosaics, in the order they appear on the record.
        tx_hash: Transaction hash, when the record carried one.
    """

    origin_public_key: str
    origin_address: str
    net_amount: int
    total_fee: int
    assets: tuple[MosaicQuantity, ...] = ()
    tx_hash: str | None = None


@dataclass(frozen=True)
class UnsupportedTransactionType:
    """Classification outcome for a record of an unknown shape."""

    type_code: int | None
    reason: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def classify(
    record: AnnouncedTransactionRecord | UnsupportedRecord,
) -> TransactionSummary | UnsupportedTransactionType:
    """Classify one record. See module docstring for the rules."""
    if isinstance(record, UnsupportedRecord):
        return UnsupportedTransactionType(record.type_code, record.reason, record.raw)

    transfer = record.transfer
    if record.kind.is_multisig:
        total_fee = record.fee + transfer.fee
    else:
        total_fee = record.fee

    net_amount = 0
    assets: list[MosaicQuantity] = []
    if not record.kind.carries_assets or transfer.mosaics is None:
        net_amount = transfer.amount
    else:
        for mosaic in transfer.mosaics:
            # TODO: any nem:* mosaic other than xem is folded too; compare
            # against XEM_ID once NIS is confirmed to never carry others.
            if mosaic.identifier.namespace == BASE_NAMESPACE:
                net_amount += mosaic.quantity
            else:
                assets.append(mosaic)

    return TransactionSummary(
        origin_public_key=record.signer_public_key,
        origin_address=record.signer_address,
        net_amount=net_amount,
        total_fee=total_fee,
        assets=tuple(assets),
        tx_hash=record.tx_hash,
    )


async def classify_each(
    records: AsyncIterable[AnnouncedTransactionRecord | UnsupportedRecord],
) -> AsyncIterator[TransactionSummary | UnsupportedTransactionType]:
    """Classify a stream record by record.

    Unsupported records are reported (logged and yielded) and the stream
    continues with the next record.
    """
    async for record in records:
        outcome = classify(record)
        if isinstance(outcome, UnsupportedTransactionType):
            log.warning(
                "skipping unsupported record type=%r reason=%s",
                outcome.type_code, outcome.reason,
            )
        yield outcome
