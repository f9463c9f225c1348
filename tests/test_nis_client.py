"""
Tests for NisClient: canned NIS responses, no network.

Uses a FakeTransport that routes by path and records every call,
exercising the parsing logic in nis_client.py.

Test plan:
- announce: posts the RequestAnnounce body, success / failure parsed,
  rejection classified, transport error propagates
- mosaic definitions: found on a later page, missing → None, unknown
  namespace (404) → None, other errors propagate, listing collects pages
- account queries: account info, by public key, owned mosaics
- history: records tagged, next_page_id from last meta id, empty page
"""

from typing import Any

import pytest

from nemkit.client import AnnounceResult, NemClient
from nemkit.config import Credential, NemConfig, NetworkMode
from nemkit.errors import AnnounceErrorCode, TransportError
from nemkit.mosaic import AssetIdentifier
from nemkit.nis_client import DEFINITION_PAGE_SIZE, NisClient
from nemkit.records import RecordKind, UnsupportedRecord
from nemkit.signer import SignedTransaction

BASE_URL = "http://node:7890"
ADDRESS = "TBCI2A67UQZAKCR6NS4JWAEICEIGEIM72G3MVW5S"
RECIPIENT = "TALICELCD3XPH4FFI5STGGNSNSWPOTG5E4DS2TOS"
SIGNER = "ab" * 32
GOLD = AssetIdentifier("game", "gold")

SIGNED = SignedTransaction(
    data=b"\x01\x01\x00\x00",
    signature=b"\x22" * 64,
    tx_hash="ee" * 32,
    signer_public_key=SIGNER,
)

# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """Returns canned responses keyed by path; pops lists for paging."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self._routes = routes
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []

    def _respond(self, path: str) -> dict[str, Any]:
        response = self._routes[path]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def get_json(
        self, url: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        path = url.removeprefix(BASE_URL)
        self.calls.append(("GET", path, params))
        return self._respond(path)

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        path = url.removeprefix(BASE_URL)
        self.calls.append(("POST", path, payload))
        return self._respond(path)


def _definition(namespace: str, name: str, divisibility: int = 0) -> dict[str, Any]:
    return {
        "creator": SIGNER,
        "description": "",
        "id": {"namespaceId": namespace, "name": name},
        "properties": [
            {"name": "divisibility", "value": str(divisibility)},
            {"name": "initialSupply", "value": "1000000"},
            {"name": "supplyMutable", "value": "false"},
            {"name": "transferable", "value": "true"},
        ],
        "levy": {},
    }


def _page(start_id: int, names: list[str]) -> dict[str, Any]:
    return {
        "data": [
            {"meta": {"id": start_id - i}, "mosaic": _definition("game", name)}
            for i, name in enumerate(names)
        ]
    }


def _transfer_pair(meta_id: int) -> dict[str, Any]:
    return {
        "meta": {"id": meta_id, "height": 1200, "hash": {"data": f"{meta_id:064x}"}},
        "transaction": {
            "type": 257,
            "version": -1744830463,
            "timeStamp": 1000,
            "deadline": 4600,
            "signer": SIGNER,
            "fee": 50_000,
            "recipient": RECIPIENT,
            "amount": 3_000_000,
            "message": {},
        },
    }


ANNOUNCE_SUCCESS = {
    "type": 1,
    "code": 1,
    "message": "SUCCESS",
    "transactionHash": {"data": "ee" * 32},
    "innerTransactionHash": {},
}

ANNOUNCE_INSUFFICIENT = {
    "type": 1,
    "code": 5,
    "message": "FAILURE_INSUFFICIENT_BALANCE",
    "transactionHash": {"data": "ee" * 32},
}

ACCOUNT = {
    "account": {
        "address": ADDRESS,
        "balance": 125_000_000,
        "vestedBalance": 100_000_000,
        "importance": 0.00012,
        "publicKey": SIGNER,
        "harvestedBlocks": 3,
        "multisigInfo": {"cosignaturesCount": 2, "minCosignatories": 1},
    },
    "meta": {
        "cosignatories": [{"address": RECIPIENT}],
        "cosignatoryOf": [],
        "status": "LOCKED",
        "remoteStatus": "INACTIVE",
    },
}


def _client(routes: dict[str, Any]) -> tuple[NisClient, FakeTransport]:
    transport = FakeTransport(routes)
    return NisClient(BASE_URL, NetworkMode.TEST_NET, transport), transport


# ---------------------------------------------------------------------------
# Announce
# ---------------------------------------------------------------------------


class TestAnnounce:
    @pytest.mark.asyncio
    async def test_posts_announce_body(self) -> None:
        client, transport = _client({"/transaction/announce": ANNOUNCE_SUCCESS})
        await client.announce(SIGNED)
        assert transport.calls == [
            ("POST", "/transaction/announce", {"data": "01010000", "signature": "22" * 64})
        ]

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        client, _ = _client({"/transaction/announce": ANNOUNCE_SUCCESS})
        result = await client.announce(SIGNED)
        assert result.accepted is True
        assert result.transaction_hash == "ee" * 32
        assert result.inner_transaction_hash is None
        assert result.rejection is None

    @pytest.mark.asyncio
    async def test_rejection_classified(self) -> None:
        client, _ = _client({"/transaction/announce": ANNOUNCE_INSUFFICIENT})
        result = await client.announce(SIGNED)
        assert result.accepted is False
        assert result.rejection is not None
        assert result.rejection.code == 5
        assert result.rejection.error_code == AnnounceErrorCode.INSUFFICIENT_BALANCE

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self) -> None:
        error = TransportError("down", error_code="CONNECTION_FAILED")
        client, _ = _client({"/transaction/announce": error})
        with pytest.raises(TransportError):
            await client.announce(SIGNED)

    def test_satisfies_protocol(self) -> None:
        client, _ = _client({})
        assert isinstance(client, NemClient)


class TestAnnounceResultParsing:
    def test_multisig_inner_hash(self) -> None:
        result = AnnounceResult.from_dict(
            {
                "code": 1,
                "message": "SUCCESS",
                "transactionHash": {"data": "aa" * 32},
                "innerTransactionHash": {"data": "bb" * 32},
            }
        )
        assert result.inner_transaction_hash == "bb" * 32

    def test_missing_code_is_rejection(self) -> None:
        result = AnnounceResult.from_dict({})
        assert result.accepted is False
        assert result.rejection is not None
        assert result.rejection.error_code == AnnounceErrorCode.REJECTED


# ---------------------------------------------------------------------------
# Mosaic definitions
# ---------------------------------------------------------------------------

DEFINITION_PATH = "/namespace/mosaic/definition/page"


class TestMosaicDefinitions:
    @pytest.mark.asyncio
    async def test_found_on_first_page(self) -> None:
        client, transport = _client({DEFINITION_PATH: _page(10, ["silver", "gold"])})
        definition = await client.get_mosaic_definition(GOLD)
        assert definition is not None
        assert definition.identifier == GOLD
        assert transport.calls[0][2] == {
            "namespace": "game",
            "pageSize": DEFINITION_PAGE_SIZE,
        }

    @pytest.mark.asyncio
    async def test_found_on_second_page(self) -> None:
        full_page = _page(500, [f"coin{i}" for i in range(DEFINITION_PAGE_SIZE)])
        client, transport = _client(
            {DEFINITION_PATH: [full_page, _page(300, ["gold"])]}
        )
        definition = await client.get_mosaic_definition(GOLD)
        assert definition is not None
        assert len(transport.calls) == 2
        # second page continues from the last id of the first
        assert transport.calls[1][2]["id"] == 500 - (DEFINITION_PAGE_SIZE - 1)

    @pytest.mark.asyncio
    async def test_missing_in_namespace(self) -> None:
        client, _ = _client({DEFINITION_PATH: _page(10, ["silver"])})
        assert await client.get_mosaic_definition(GOLD) is None

    @pytest.mark.asyncio
    async def test_unknown_namespace_is_none(self) -> None:
        error = TransportError("HTTP 404", error_code="HTTP_ERROR", status_code=404)
        client, _ = _client({DEFINITION_PATH: error})
        assert await client.get_mosaic_definition(AssetIdentifier("nope", "gold")) is None

    @pytest.mark.asyncio
    async def test_server_error_propagates(self) -> None:
        error = TransportError("HTTP 500", error_code="HTTP_ERROR", status_code=500)
        client, _ = _client({DEFINITION_PATH: error})
        with pytest.raises(TransportError):
            await client.get_mosaic_definition(GOLD)

    @pytest.mark.asyncio
    async def test_list_namespace(self) -> None:
        client, _ = _client({DEFINITION_PATH: _page(10, ["silver", "gold"])})
        definitions = await client.get_mosaic_definitions("game")
        assert [d.identifier.name for d in definitions] == ["silver", "gold"]


# ---------------------------------------------------------------------------
# Account queries
# ---------------------------------------------------------------------------


class TestAccountQueries:
    @pytest.mark.asyncio
    async def test_account_info(self) -> None:
        client, transport = _client({"/account/get": ACCOUNT})
        info = await client.get_account_info(ADDRESS.lower())

        assert transport.calls[0][2] == {"address": ADDRESS}
        assert info.address == ADDRESS
        assert info.balance == 125_000_000
        assert info.vested_balance == 100_000_000
        assert info.public_key == SIGNER
        assert info.min_cosignatories == 1
        assert info.cosignatories == (RECIPIENT,)
        assert info.is_multisig
        assert info.status == "LOCKED"

    @pytest.mark.asyncio
    async def test_account_info_by_public_key(self) -> None:
        client, transport = _client({"/account/get/from-public-key": ACCOUNT})
        info = await client.get_account_info_by_public_key(SIGNER)
        assert transport.calls[0][2] == {"publicKey": SIGNER}
        assert info.harvested_blocks == 3

    @pytest.mark.asyncio
    async def test_owned_mosaics(self) -> None:
        owned = {
            "data": [
                {"mosaicId": {"namespaceId": "nem", "name": "xem"}, "quantity": 125_000_000},
                {"mosaicId": {"namespaceId": "game", "name": "gold"}, "quantity": 50_000},
            ]
        }
        client, _ = _client({"/account/mosaic/owned": owned})
        mosaics = await client.get_owned_mosaics(ADDRESS)
        assert [(m.identifier, m.quantity) for m in mosaics] == [
            (AssetIdentifier("nem", "xem"), 125_000_000),
            (GOLD, 50_000),
        ]


class TestTransactions:
    @pytest.mark.asyncio
    async def test_page_records(self) -> None:
        importance_transfer = {"meta": {"id": 40}, "transaction": {"type": 2049}}
        page = {"data": [_transfer_pair(42), _transfer_pair(41), importance_transfer]}
        client, transport = _client({"/account/transfers/all": page})
        result = await client.get_transactions(ADDRESS)

        assert transport.calls[0][2] == {"address": ADDRESS}
        assert len(result.records) == 3
        first = result.records[0]
        assert not isinstance(first, UnsupportedRecord)
        assert first.kind == RecordKind.PLAIN_TRANSFER
        assert first.height == 1200
        assert first.tx_hash == f"{42:064x}"
        assert isinstance(result.records[2], UnsupportedRecord)
        assert result.next_page_id == 40

    @pytest.mark.asyncio
    async def test_next_page_id_passed(self) -> None:
        client, transport = _client({"/account/transfers/all": {"data": []}})
        result = await client.get_transactions(ADDRESS, page_id=40)
        assert transport.calls[0][2] == {"address": ADDRESS, "id": 40}
        assert result.records == ()
        assert result.next_page_id is None


class TestFromConfig:
    def test_uses_config_url_and_network(self) -> None:
        config = NemConfig(
            network=NetworkMode.MAIN_NET,
            base=Credential(private_key="1" * 64, address=ADDRESS),
            nis_url="http://main:7890/",
        )
        client = NisClient.from_config(config)
        assert client.base_url == "http://main:7890"
