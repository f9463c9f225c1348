"""
End-to-end tests for NemService: fake client, real signing, no network.

Announced bytes are decoded with deserialize_transaction(), tagged with
parse_record() and classified, so each scenario runs the whole pipeline:
codec → resolver → builder → announce → record → summary.

Test plan:
- direct XEM send: amount converted from XEM, net/fee/assets as built
- multisig mosaic send: 500 gold at divisibility 2 → 50 000 on the wire,
  net 0, fee outer + inner
- unknown namespace: UnknownAssetError, nothing signed or announced
- encrypted sends carry an encrypted message; bad key signs nothing
- rejection returned as a value
- account queries default to the base address and need a NisClient
- account_updates streams the base account by default
- confirmed_summaries classifies pushed records and unsubscribes on close
"""

import asyncio
import json
from typing import Any

import pytest

from nemkit.address import address_from_public_key
from nemkit.classify import TransactionSummary, UnsupportedTransactionType, classify
from nemkit.client import AnnounceResult
from nemkit.config import Credential, NemConfig, NetworkMode
from nemkit.errors import CryptoError, UnknownAssetError
from nemkit.fees import FEE_UNIT, MULTISIG_FEE
from nemkit.listener import EventConnection, EventSubscriptions
from nemkit.message import MessageKind
from nemkit.mosaic import AssetAmount, AssetIdentifier, MosaicDefinition
from nemkit.nis_client import AccountInfo, NisClient
from nemkit.records import MosaicQuantity, RecordKind, parse_record
from nemkit.serialize import deserialize_transaction
from nemkit.service import NemService
from nemkit.signer import LocalKeyService, SignedTransaction
from nemkit.stomp import StompFrame, decode_frames, encode_frame

ADDRESS = "TBCI2A67UQZAKCR6NS4JWAEICEIGEIM72G3MVW5S"
COSIGNER_ADDRESS = "TCFFOMQ2SBX77E2FZC3VX43ZTRV4ZNTXTCGWBM5J"
RECIPIENT = "TALICELCD3XPH4FFI5STGGNSNSWPOTG5E4DS2TOS"
BASE = Credential(private_key="1" * 64, address=ADDRESS)
COSIGNER = Credential(private_key="2" * 64, address=COSIGNER_ADDRESS)
RECIPIENT_CRED = Credential(private_key="4" * 64, address=RECIPIENT)
MULTISIG_PUBLIC_KEY = LocalKeyService().public_key(
    Credential(private_key="3" * 64, address=RECIPIENT)
)
GOLD = AssetIdentifier("game", "gold")
NET = NetworkMode.TEST_NET

CONFIG = NemConfig(
    network=NET,
    base=BASE,
    multisig_public_key=MULTISIG_PUBLIC_KEY,
    cosigner=COSIGNER,
    default_asset=GOLD,
    nis_url="http://node:7890",
    ws_url="ws://node:7778/w/messages/websocket",
)

SUCCESS = {"code": 1, "message": "SUCCESS", "transactionHash": {"data": "ee" * 32}}

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClient:
    """NemClient with an in-memory mosaic registry; records announces."""

    def __init__(self, response: dict[str, Any] = SUCCESS) -> None:
        self._response = response
        self.announced: list[SignedTransaction] = []
        self.lookups: list[AssetIdentifier] = []

    async def announce(self, signed: SignedTransaction) -> AnnounceResult:
        self.announced.append(signed)
        return AnnounceResult.from_dict(self._response)

    async def get_mosaic_definition(
        self, identifier: AssetIdentifier
    ) -> MosaicDefinition | None:
        self.lookups.append(identifier)
        if identifier == GOLD:
            return MosaicDefinition(identifier=GOLD, divisibility=2, supply=1_000_000)
        return None


class RecordingKeyService(LocalKeyService):
    def __init__(self) -> None:
        self.sign_calls = 0

    def sign(self, credential: Credential, tx: dict[str, Any]) -> SignedTransaction:
        self.sign_calls += 1
        return super().sign(credential, tx)


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self._inbound: asyncio.Queue[str] = asyncio.Queue()
        self._inbound.put_nowait("CONNECTED\nversion:1.1\n\n\x00")

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str:
        return await self._inbound.get()

    async def close(self) -> None:
        pass

    def push(self, subscription_id: str, body: dict[str, Any]) -> None:
        frame = StompFrame("MESSAGE", {"subscription": subscription_id}, json.dumps(body))
        self._inbound.put_nowait(encode_frame(frame))


def _service(
    client: FakeClient | None = None,
) -> tuple[NemService, FakeClient, RecordingKeyService]:
    client = client or FakeClient()
    keys = RecordingKeyService()
    return NemService(CONFIG, client=client, key_service=keys), client, keys


def _summary_of(signed: SignedTransaction) -> TransactionSummary:
    record = parse_record(deserialize_transaction(signed.data), NET)
    outcome = classify(record)
    assert isinstance(outcome, TransactionSummary), outcome
    return outcome


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestDirectSend:
    @pytest.mark.asyncio
    async def test_ten_xem_empty_message(self) -> None:
        service, client, keys = _service()
        result = await service.send_transaction(RECIPIENT, 10)

        assert result.accepted
        assert len(client.announced) == 1
        summary = _summary_of(client.announced[0])
        assert summary.net_amount == 10_000_000
        assert summary.total_fee == FEE_UNIT
        assert summary.assets == ()
        assert summary.origin_public_key == keys.public_key(BASE)
        assert summary.origin_address == address_from_public_key(keys.public_key(BASE), NET)

    def test_builder_units_pass_through(self) -> None:
        service, _, _ = _service()
        signed = service.builder.build_direct(RECIPIENT, 10)
        summary = _summary_of(signed)
        assert summary.net_amount == 10
        assert summary.total_fee == FEE_UNIT
        assert summary.assets == ()

    @pytest.mark.asyncio
    async def test_plain_message(self) -> None:
        service, client, _ = _service()
        await service.send_transaction(RECIPIENT, 1, "thanks")
        tx = deserialize_transaction(client.announced[0].data)
        assert bytes.fromhex(tx["message"]["payload"]) == b"thanks"


class TestMultisigMosaicSend:
    @pytest.mark.asyncio
    async def test_gold_through_multisig(self) -> None:
        service, client, keys = _service()
        result = await service.send_multisig_mosaic_transaction(
            RECIPIENT, 500, namespace="game", name="gold"
        )

        assert result.accepted
        signed = client.announced[0]
        record = parse_record(deserialize_transaction(signed.data), NET)
        assert record.kind == RecordKind.MULTISIG_ASSET_TRANSFER  # type: ignore[union-attr]

        summary = _summary_of(signed)
        assert summary.assets == (MosaicQuantity(GOLD, 50_000),)
        assert summary.net_amount == 0
        # 500.00 gold costs 11 fee units on top of the multisig envelope
        assert summary.total_fee == MULTISIG_FEE + 11 * FEE_UNIT
        assert summary.origin_public_key == keys.public_key(COSIGNER)
        assert keys.sign_calls == 1

    @pytest.mark.asyncio
    async def test_default_mosaic(self) -> None:
        service, client, _ = _service()
        await service.send_mosaic_transaction(RECIPIENT, 1)
        assert client.lookups == [GOLD]
        summary = _summary_of(client.announced[0])
        assert summary.assets == (MosaicQuantity(GOLD, 100),)

    @pytest.mark.asyncio
    async def test_several_mosaics(self) -> None:
        service, client, _ = _service()
        await service.send_mosaics(
            RECIPIENT,
            [AssetAmount(1, GOLD), AssetAmount(2, AssetIdentifier("nem", "xem"))],
            "bundle",
        )
        summary = _summary_of(client.announced[0])
        assert summary.assets == (MosaicQuantity(GOLD, 100),)
        assert summary.net_amount == 2_000_000


class TestUnknownAsset:
    @pytest.mark.asyncio
    async def test_nothing_signed_or_announced(self) -> None:
        service, client, keys = _service()
        with pytest.raises(UnknownAssetError):
            await service.send_mosaic_transaction(
                RECIPIENT, 1, namespace="nowhere", name="gold"
            )
        assert keys.sign_calls == 0
        assert client.announced == []

    @pytest.mark.asyncio
    async def test_multisig_nothing_signed_or_announced(self) -> None:
        service, client, keys = _service()
        with pytest.raises(UnknownAssetError):
            await service.send_multisig_mosaic_transaction(
                RECIPIENT, 1, namespace="nowhere", name="gold"
            )
        assert keys.sign_calls == 0
        assert client.announced == []


class TestEncryptedSends:
    @pytest.mark.asyncio
    async def test_encrypted_readable_by_recipient(self) -> None:
        service, client, keys = _service()
        recipient_pk = keys.public_key(RECIPIENT_CRED)
        await service.send_encrypted_transaction(RECIPIENT, 1, "secret", recipient_pk)

        record = parse_record(deserialize_transaction(client.announced[0].data), NET)
        message = record.transfer.message  # type: ignore[union-attr]
        assert message.kind == MessageKind.ENCRYPTED
        sender = keys.public_key(BASE)
        assert keys.decrypt_message(RECIPIENT_CRED, sender, message.payload) == "secret"

    @pytest.mark.asyncio
    async def test_multisig_encrypted_uses_base_key(self) -> None:
        service, client, keys = _service()
        recipient_pk = keys.public_key(RECIPIENT_CRED)
        await service.send_multisig_encrypted_transaction(RECIPIENT, 1, "pool", recipient_pk)

        tx = deserialize_transaction(client.announced[0].data)
        payload = bytes.fromhex(tx["otherTrans"]["message"]["payload"])
        assert keys.decrypt_message(RECIPIENT_CRED, keys.public_key(BASE), payload) == "pool"

    @pytest.mark.asyncio
    async def test_mosaic_encrypted(self) -> None:
        service, client, keys = _service()
        await service.send_mosaic_encrypted_transaction(
            RECIPIENT, 1, "loot", keys.public_key(RECIPIENT_CRED)
        )
        tx = deserialize_transaction(client.announced[0].data)
        assert tx["message"]["type"] == 2

    @pytest.mark.asyncio
    async def test_multisig_mosaic_encrypted(self) -> None:
        service, client, keys = _service()
        await service.send_multisig_mosaic_encrypted_transaction(
            RECIPIENT, 1, "loot", keys.public_key(RECIPIENT_CRED)
        )
        tx = deserialize_transaction(client.announced[0].data)
        assert tx["otherTrans"]["message"]["type"] == 2

    @pytest.mark.asyncio
    async def test_bad_key_signs_nothing(self) -> None:
        service, client, keys = _service()
        with pytest.raises(CryptoError):
            await service.send_encrypted_transaction(RECIPIENT, 1, "x", "zz")
        assert keys.sign_calls == 0
        assert client.announced == []


class TestRejection:
    @pytest.mark.asyncio
    async def test_rejection_returned(self) -> None:
        client = FakeClient({"code": 5, "message": "FAILURE_INSUFFICIENT_BALANCE"})
        service, _, _ = _service(client)
        result = await service.send_multisig_transaction(RECIPIENT, 1_000_000)
        assert not result.accepted
        assert result.rejection is not None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class FakeTransport:
    def __init__(self, response: dict[str, Any]) -> None:
        self._response = response
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    async def get_json(
        self, url: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        self.calls.append((url, params))
        return self._response

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        raise AssertionError("no posts expected")


class TestQueries:
    @pytest.mark.asyncio
    async def test_account_info_defaults_to_base(self) -> None:
        transport = FakeTransport({"account": {"address": ADDRESS, "balance": 1}, "meta": {}})
        service = NemService(CONFIG, client=NisClient.from_config(CONFIG, transport))
        info = await service.get_account_info()
        assert info.balance == 1
        assert transport.calls == [("http://node:7890/account/get", {"address": ADDRESS})]

    @pytest.mark.asyncio
    async def test_mosaic_listing_defaults_to_namespace(self) -> None:
        transport = FakeTransport({"data": []})
        service = NemService(CONFIG, client=NisClient.from_config(CONFIG, transport))
        assert await service.get_mosaic_definitions() == []
        assert transport.calls[0][1]["namespace"] == "game"  # type: ignore[index]

    @pytest.mark.asyncio
    async def test_queries_need_nis_client(self) -> None:
        service, _, _ = _service()
        with pytest.raises(TypeError):
            await service.get_owned_mosaics()


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class TestStreams:
    @pytest.mark.asyncio
    async def test_account_updates_for_base_account(self) -> None:
        ws = FakeWebSocket()

        async def connect(url: str) -> FakeWebSocket:
            return ws

        events = EventSubscriptions(CONFIG, EventConnection(CONFIG.ws_url or "", connect))
        service = NemService(CONFIG, client=FakeClient(), events=events)

        ws.push("sub-1", {"account": {"address": ADDRESS, "balance": 9}, "meta": {}})
        updates = await service.account_updates()
        info = await asyncio.wait_for(anext(updates), timeout=1)

        assert updates.destination == f"/account/{ADDRESS}"
        assert isinstance(info, AccountInfo)
        assert info.balance == 9
        await service.close()

    @pytest.mark.asyncio
    async def test_classified_stream(self) -> None:
        ws = FakeWebSocket()

        async def connect(url: str) -> FakeWebSocket:
            return ws

        events = EventSubscriptions(CONFIG, EventConnection(CONFIG.ws_url or "", connect))
        service = NemService(CONFIG, client=FakeClient(), events=events)
        signer = LocalKeyService().public_key(BASE)

        # first subscription on a fresh connection is "sub-1"
        ws.push("sub-1", {"type": 2049})
        ws.push(
            "sub-1",
            {
                "meta": {"hash": {"data": "aa" * 32}},
                "transaction": {
                    "type": 257,
                    "signer": signer,
                    "fee": 50_000,
                    "recipient": RECIPIENT,
                    "amount": 4,
                    "message": {},
                },
            },
        )

        summaries = service.confirmed_summaries(ADDRESS)
        first = await asyncio.wait_for(anext(summaries), timeout=1)
        second = await asyncio.wait_for(anext(summaries), timeout=1)
        await summaries.aclose()

        assert isinstance(first, UnsupportedTransactionType)
        assert isinstance(second, TransactionSummary)
        assert second.net_amount == 4
        assert second.tx_hash == "aa" * 32
        commands = [f.command for raw in ws.sent for f in decode_frames(raw)]
        assert commands[-1] == "UNSUBSCRIBE"
        await service.close()
