"""
Tests for transaction classification.

Test plan:
- plain: net = amount, fee = fee, no assets
- asset: base-namespace quantities fold into net, others listed in order
- multisig kinds: fee = outer + inner, origin = outer signer
- unsupported records → UnsupportedTransactionType value, never raised
- classify_each: a bad record does not end the stream
"""

from collections.abc import AsyncIterator
from typing import Any

import pytest

from nemkit.classify import (
    TransactionSummary,
    UnsupportedTransactionType,
    classify,
    classify_each,
)
from nemkit.config import NetworkMode
from nemkit.mosaic import AssetIdentifier
from nemkit.records import MosaicQuantity, UnsupportedRecord, parse_record

RECIPIENT = "TALICELCD3XPH4FFI5STGGNSNSWPOTG5E4DS2TOS"
SIGNER = "ab" * 32
COSIGNER = "cd" * 32
NET = NetworkMode.TEST_NET
GOLD = AssetIdentifier("game", "gold")
GEM = AssetIdentifier("game", "gem")


def transfer(**overrides: Any) -> dict[str, Any]:
    tx: dict[str, Any] = {
        "type": 257,
        "signer": SIGNER,
        "fee": 100_000,
        "recipient": RECIPIENT,
        "amount": 10_000_000,
        "message": {},
    }
    tx.update(overrides)
    return tx


def multisig(inner: dict[str, Any]) -> dict[str, Any]:
    return {"type": 4100, "signer": COSIGNER, "fee": 150_000, "otherTrans": inner}


def mosaic(namespace: str, name: str, quantity: int) -> dict[str, Any]:
    return {"mosaicId": {"namespaceId": namespace, "name": name}, "quantity": quantity}


def summarize(raw: dict[str, Any]) -> TransactionSummary:
    outcome = classify(parse_record(raw, NET))
    assert isinstance(outcome, TransactionSummary), outcome
    return outcome


class TestPlain:
    def test_plain_transfer(self) -> None:
        summary = summarize(transfer())
        assert summary.origin_public_key == SIGNER
        assert summary.net_amount == 10_000_000
        assert summary.total_fee == 100_000
        assert summary.assets == ()

    def test_hash_carried(self) -> None:
        raw = {"meta": {"hash": {"data": "aa" * 32}}, "transaction": transfer()}
        assert summarize(raw).tx_hash == "aa" * 32


class TestAssets:
    def test_base_currency_folds_into_net(self) -> None:
        summary = summarize(
            transfer(
                amount=1_000_000,
                mosaics=[
                    mosaic("game", "gold", 50_000),
                    mosaic("nem", "xem", 3_000_000),
                    mosaic("game", "gem", 7),
                ],
            )
        )
        assert summary.net_amount == 3_000_000
        assert summary.assets == (
            MosaicQuantity(GOLD, 50_000),
            MosaicQuantity(GEM, 7),
        )
        assert all(a.identifier.namespace != "nem" for a in summary.assets)

    def test_mosaic_only_has_zero_net(self) -> None:
        summary = summarize(transfer(amount=1_000_000, mosaics=[mosaic("game", "gold", 1)]))
        assert summary.net_amount == 0
        assert summary.assets == (MosaicQuantity(GOLD, 1),)


class TestMultisig:
    def test_fee_is_outer_plus_inner(self) -> None:
        summary = summarize(multisig(transfer()))
        assert summary.total_fee == 150_000 + 100_000
        assert summary.origin_public_key == COSIGNER
        assert summary.net_amount == 10_000_000

    def test_multisig_assets(self) -> None:
        inner = transfer(
            fee=550_000, amount=1_000_000, mosaics=[mosaic("game", "gold", 50_000)]
        )
        summary = summarize(multisig(inner))
        assert summary.total_fee == 700_000
        assert summary.net_amount == 0
        assert summary.assets == (MosaicQuantity(GOLD, 50_000),)


class TestUnsupported:
    def test_returned_not_raised(self) -> None:
        outcome = classify(parse_record({"type": 2049, "fee": 1}, NET))
        assert isinstance(outcome, UnsupportedTransactionType)
        assert outcome.type_code == 2049

    def test_direct_unsupported_record(self) -> None:
        outcome = classify(UnsupportedRecord(type_code=None, reason="garbage"))
        assert outcome == UnsupportedTransactionType(None, "garbage")


class TestClassifyEach:
    @pytest.mark.asyncio
    async def test_stream_continues_after_unsupported(self) -> None:
        raws = [transfer(amount=1), {"type": 8193}, transfer(amount=2)]

        async def records() -> AsyncIterator[Any]:
            for raw in raws:
                yield parse_record(raw, NET)

        outcomes = [o async for o in classify_each(records())]

        assert len(outcomes) == 3
        assert isinstance(outcomes[1], UnsupportedTransactionType)
        assert isinstance(outcomes[2], TransactionSummary)
        assert outcomes[2].net_amount == 2
