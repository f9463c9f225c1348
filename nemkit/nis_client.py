"""
NIS REST client, the real network implementation of NemClient.

Translates NIS JSON into nemkit types. Uses an injectable transport
(HttpTransport) so the HTTP layer can be swapped for test fakes without
changing parsing logic.

No retry loops. No secrets.

Endpoints:
    POST /transaction/announce                        announce()
    GET  /namespace/mosaic/definition/page            get_mosaic_definition(s)
    GET  /account/get                                 get_account_info()
    GET  /account/get/from-public-key                 get_account_info_by_public_key()
    GET  /account/mosaic/owned                        get_owned_mosaics()
    GET  /account/transfers/all                       get_transactions()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from nemkit.address import normalize_address
from nemkit.client import AnnounceResult
from nemkit.config import NemConfig, NetworkMode
from nemkit.errors import TransportError
from nemkit.mosaic import AssetIdentifier, MosaicDefinition
from nemkit.records import (
    AnnouncedTransactionRecord,
    MosaicQuantity,
    UnsupportedRecord,
    parse_record,
)
from nemkit.signer import SignedTransaction
from nemkit.transport import HttpTransport, HttpxTransport

log = logging.getLogger(__name__)

# NIS caps definition pages at 100 entries.
DEFINITION_PAGE_SIZE = 100


@dataclass(frozen=True)
class AccountInfo:
    """Account state as reported by ``/account/get``.

    Balances are in micro-XEM.
    """

    address: str
    balance: int
    vested_balance: int
    importance: float
    public_key: str | None
    harvested_blocks: int = 0
    min_cosignatories: int = 0
    cosignatories: tuple[str, ...] = ()
    cosignatory_of: tuple[str, ...] = ()
    status: str | None = None

    @property
    def is_multisig(self) -> bool:
        return bool(self.cosignatories)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountInfo:
        """Parse a NIS ``AccountMetaDataPair`` JSON object."""
        account = data.get("account") or {}
        meta = data.get("meta") or {}
        multisig = account.get("multisigInfo") or {}
        return cls(
            address=str(account.get("address", "")),
            balance=int(account.get("balance", 0)),
            vested_balance=int(account.get("vestedBalance", 0)),
            importance=float(account.get("importance", 0.0)),
            public_key=account.get("publicKey"),
            harvested_blocks=int(account.get("harvestedBlocks", 0)),
            min_cosignatories=int(multisig.get("minCosignatories", 0)),
            cosignatories=tuple(
                str(c.get("address", "")) for c in meta.get("cosignatories", [])
            ),
            cosignatory_of=tuple(
                str(c.get("address", "")) for c in meta.get("cosignatoryOf", [])
            ),
            status=meta.get("status"),
        )


@dataclass(frozen=True)
class TransactionPage:
    """One page of account history.

    ``next_page_id`` is the id to pass back to fetch the next (older) page,
    or None when this page was empty.
    """

    records: tuple[AnnouncedTransactionRecord | UnsupportedRecord, ...] = field(
        default_factory=tuple
    )
    next_page_id: int | None = None


class NisClient:
    """NIS REST client implementing the NemClient protocol.

    Args:
        base_url: NIS endpoint (e.g. "http://127.0.0.1:7890").
        network: Network used to derive signer addresses on records.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        base_url: str,
        network: NetworkMode,
        transport: HttpTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._network = network
        self._transport = transport or HttpxTransport()

    @classmethod
    def from_config(
        cls, config: NemConfig, transport: HttpTransport | None = None
    ) -> NisClient:
        return cls(
            config.nis_url or config.network.default_nis_url,
            config.network,
            transport or HttpxTransport(timeout=config.timeout),
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    # -----------------------------------------------------------------
    # NemClient protocol methods
    # -----------------------------------------------------------------

    async def announce(self, signed: SignedTransaction) -> AnnounceResult:
        """Submit a signed transaction.

        Transport exceptions propagate to the caller. A node-side refusal
        is returned as a non-accepted AnnounceResult.
        """
        response = await self._transport.post_json(
            self._url("/transaction/announce"), signed.to_announce_dict()
        )
        return AnnounceResult.from_dict(response)

    async def get_mosaic_definition(
        self, identifier: AssetIdentifier
    ) -> MosaicDefinition | None:
        """Find one definition by paging through its namespace.

        An unknown namespace (HTTP 404) is reported as None, like an unknown
        mosaic inside a known namespace.
        """
        page_id: int | None = None
        while True:
            try:
                entries = await self._definition_page(identifier.namespace, page_id)
            except TransportError as exc:
                if exc.status_code == 404:
                    return None
                raise
            for entry_id, definition in entries:
                if definition.identifier == identifier:
                    return definition
                page_id = entry_id
            if len(entries) < DEFINITION_PAGE_SIZE:
                return None

    async def get_mosaic_definitions(self, namespace: str) -> list[MosaicDefinition]:
        """All definitions created in a namespace."""
        definitions: list[MosaicDefinition] = []
        page_id: int | None = None
        while True:
            entries = await self._definition_page(namespace, page_id)
            for entry_id, definition in entries:
                definitions.append(definition)
                page_id = entry_id
            if len(entries) < DEFINITION_PAGE_SIZE:
                return definitions

    async def _definition_page(
        self, namespace: str, page_id: int | None
    ) -> list[tuple[int, MosaicDefinition]]:
        params: dict[str, Any] = {"namespace": namespace, "pageSize": DEFINITION_PAGE_SIZE}
        if page_id is not None:
            params["id"] = page_id
        response = await self._transport.get_json(
            self._url("/namespace/mosaic/definition/page"), params
        )
        entries: list[tuple[int, MosaicDefinition]] = []
        for item in response.get("data", []):
            entries.append(
                (int(item["meta"]["id"]), MosaicDefinition.from_dict(item["mosaic"]))
            )
        log.debug("definition page namespace=%s entries=%d", namespace, len(entries))
        return entries

    # -----------------------------------------------------------------
    # Account queries
    # -----------------------------------------------------------------

    async def get_account_info(self, address: str) -> AccountInfo:
        response = await self._transport.get_json(
            self._url("/account/get"), {"address": normalize_address(address)}
        )
        return AccountInfo.from_dict(response)

    async def get_account_info_by_public_key(self, public_key: str) -> AccountInfo:
        response = await self._transport.get_json(
            self._url("/account/get/from-public-key"), {"publicKey": public_key}
        )
        return AccountInfo.from_dict(response)

    async def get_owned_mosaics(self, address: str) -> list[MosaicQuantity]:
        response = await self._transport.get_json(
            self._url("/account/mosaic/owned"), {"address": normalize_address(address)}
        )
        return [
            MosaicQuantity(
                identifier=AssetIdentifier.from_dict(item["mosaicId"]),
                quantity=int(item["quantity"]),
            )
            for item in response.get("data", [])
        ]

    async def get_transactions(
        self, address: str, page_id: int | None = None
    ) -> TransactionPage:
        """Incoming and outgoing confirmed transactions, newest first.

        Args:
            address: Account to query.
            page_id: ``next_page_id`` of the previous page, or None for the
                newest page.
        """
        params: dict[str, Any] = {"address": normalize_address(address)}
        if page_id is not None:
            params["id"] = page_id
        response = await self._transport.get_json(
            self._url("/account/transfers/all"), params
        )
        items = response.get("data", [])
        records = tuple(parse_record(item, self._network) for item in items)
        next_page_id = None
        if items:
            last_meta = items[-1].get("meta") or {}
            if last_meta.get("id") is not None:
                next_page_id = int(last_meta["id"])
        return TransactionPage(records=records, next_page_id=next_page_id)
