"""
NemService: the one-object surface over the whole engine.

Every send is a strict sequence on one flow of control:

    message codec → asset resolver (mosaic sends) → builder (sign) → announce

A failure at any stage aborts before the next one starts, so a resolution
error never signs and a signing error never announces.

Amounts passed here are XEM (int or Decimal) and converted to micro-XEM.
Mosaic quantities are whole/decimal units of the mosaic.

Example:
    config = NemConfig.from_env()
    service = NemService(config)
    result = await service.send_transaction("TBCI2A67...", 10, "thanks")
    if not result.accepted:
        print(result.rejection)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from decimal import Decimal

from nemkit.announce import Announcer
from nemkit.builder import TransactionBuilder
from nemkit.classify import TransactionSummary, UnsupportedTransactionType, classify_each
from nemkit.client import AnnounceResult, NemClient
from nemkit.config import NemConfig
from nemkit.listener import BlockEvent, EventSubscriptions, Record, Subscription
from nemkit.message import Message, MessageCodec
from nemkit.mosaic import AssetAmount, AssetResolver, MosaicDefinition, xem
from nemkit.nis_client import AccountInfo, NisClient, TransactionPage
from nemkit.records import MosaicQuantity
from nemkit.signer import KeyService, LocalKeyService, SignedTransaction

log = logging.getLogger(__name__)


class NemService:
    """Send, query and subscribe for one configured account set.

    Args:
        config: Accounts, network and endpoints.
        client: Node client. Defaults to a NisClient built from config. Any
            NemClient is enough for sends; the account queries need a
            NisClient.
        key_service: Signing/encryption. Defaults to LocalKeyService.
        events: Event streams. Defaults to EventSubscriptions over config.
    """

    def __init__(
        self,
        config: NemConfig,
        client: NemClient | None = None,
        key_service: KeyService | None = None,
        events: EventSubscriptions | None = None,
    ) -> None:
        self.config = config
        self.client: NemClient = client or NisClient.from_config(config)
        self.key_service: KeyService = key_service or LocalKeyService()
        self.events = events or EventSubscriptions(config)
        self.codec = MessageCodec(config, self.key_service)
        self.resolver = AssetResolver(config, self.client)
        self.builder = TransactionBuilder(config, self.key_service, self.resolver)
        self.announcer = Announcer(self.client)

    async def _announce(self, signed: SignedTransaction) -> AnnounceResult:
        return await self.announcer.announce(signed)

    # -----------------------------------------------------------------
    # XEM sends
    # -----------------------------------------------------------------

    async def send_transaction(
        self, to: str, amount: int | Decimal, message: str | None = None
    ) -> AnnounceResult:
        signed = self.builder.build_direct(to, xem(amount), self.codec.plain(message))
        return await self._announce(signed)

    async def send_encrypted_transaction(
        self, to: str, amount: int | Decimal, message: str, public_key: str
    ) -> AnnounceResult:
        """Send XEM with a message only ``public_key``'s owner can read.

        Raises:
            CryptoError: ``public_key`` is malformed (nothing is signed).
        """
        encrypted = self.codec.encrypted(message, public_key)
        signed = self.builder.build_direct(to, xem(amount), encrypted)
        return await self._announce(signed)

    async def send_multisig_transaction(
        self, to: str, amount: int | Decimal, message: str | None = None
    ) -> AnnounceResult:
        signed = self.builder.build_multisig(to, xem(amount), self.codec.plain(message))
        return await self._announce(signed)

    async def send_multisig_encrypted_transaction(
        self, to: str, amount: int | Decimal, message: str, public_key: str
    ) -> AnnounceResult:
        encrypted = self.codec.encrypted(message, public_key)
        signed = self.builder.build_multisig(to, xem(amount), encrypted)
        return await self._announce(signed)

    # -----------------------------------------------------------------
    # Mosaic sends
    # -----------------------------------------------------------------

    def _amounts(
        self, quantity: int | Decimal, namespace: str | None, name: str | None
    ) -> list[AssetAmount]:
        return [AssetAmount(quantity, self.resolver.identifier(namespace, name))]

    async def send_mosaic_transaction(
        self,
        to: str,
        quantity: int | Decimal,
        message: str | None = None,
        *,
        namespace: str | None = None,
        name: str | None = None,
    ) -> AnnounceResult:
        """Send ``quantity`` of a mosaic (the configured default if unnamed)."""
        return await self.send_mosaics(
            to, self._amounts(quantity, namespace, name), self.codec.plain(message)
        )

    async def send_mosaic_encrypted_transaction(
        self,
        to: str,
        quantity: int | Decimal,
        message: str,
        public_key: str,
        *,
        namespace: str | None = None,
        name: str | None = None,
    ) -> AnnounceResult:
        return await self.send_mosaics(
            to,
            self._amounts(quantity, namespace, name),
            self.codec.encrypted(message, public_key),
        )

    async def send_multisig_mosaic_transaction(
        self,
        to: str,
        quantity: int | Decimal,
        message: str | None = None,
        *,
        namespace: str | None = None,
        name: str | None = None,
    ) -> AnnounceResult:
        return await self.send_mosaics(
            to,
            self._amounts(quantity, namespace, name),
            self.codec.plain(message),
            multisig=True,
        )

    async def send_multisig_mosaic_encrypted_transaction(
        self,
        to: str,
        quantity: int | Decimal,
        message: str,
        public_key: str,
        *,
        namespace: str | None = None,
        name: str | None = None,
    ) -> AnnounceResult:
        return await self.send_mosaics(
            to,
            self._amounts(quantity, namespace, name),
            self.codec.encrypted(message, public_key),
            multisig=True,
        )

    async def send_mosaics(
        self,
        to: str,
        assets: list[AssetAmount],
        message: Message | str | None = None,
        *,
        multisig: bool = False,
    ) -> AnnounceResult:
        """Send several mosaics in one transfer.

        Raises:
            UnknownAssetError / NonTransferableAssetError: Resolution failed;
                nothing was signed or announced.
        """
        if not isinstance(message, Message):
            message = self.codec.plain(message)
        if multisig:
            signed = await self.builder.build_multisig_with_assets(to, assets, message)
        else:
            signed = await self.builder.build_direct_with_assets(to, assets, message)
        return await self._announce(signed)

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def _nis(self) -> NisClient:
        if not isinstance(self.client, NisClient):
            raise TypeError("account queries need a NisClient")
        return self.client

    async def get_account_info(self, address: str | None = None) -> AccountInfo:
        return await self._nis().get_account_info(address or self.config.base.address)

    async def get_account_info_by_public_key(self, public_key: str) -> AccountInfo:
        return await self._nis().get_account_info_by_public_key(public_key)

    async def get_owned_mosaics(self, address: str | None = None) -> list[MosaicQuantity]:
        return await self._nis().get_owned_mosaics(address or self.config.base.address)

    async def get_transactions(
        self, address: str | None = None, page_id: int | None = None
    ) -> TransactionPage:
        return await self._nis().get_transactions(
            address or self.config.base.address, page_id
        )

    async def get_mosaic_definitions(
        self, namespace: str | None = None
    ) -> list[MosaicDefinition]:
        return await self._nis().get_mosaic_definitions(
            namespace or self.config.default_asset.namespace
        )

    # -----------------------------------------------------------------
    # Streams
    # -----------------------------------------------------------------

    async def new_blocks(self) -> Subscription[BlockEvent]:
        return await self.events.new_blocks()

    async def new_block_heights(self) -> Subscription[int]:
        return await self.events.new_block_heights()

    async def unconfirmed_transactions(
        self, address: str | None = None
    ) -> Subscription[Record]:
        return await self.events.unconfirmed_transactions(address)

    async def confirmed_transactions(
        self, address: str | None = None
    ) -> Subscription[Record]:
        return await self.events.confirmed_transactions(address)

    async def account_updates(self, address: str | None = None) -> Subscription[AccountInfo]:
        return await self.events.account_updates(address)

    async def confirmed_summaries(
        self, address: str | None = None
    ) -> AsyncIterator[TransactionSummary | UnsupportedTransactionType]:
        """Confirmed transactions, classified as they arrive.

        Unsupported records are yielded as UnsupportedTransactionType values
        and the stream continues. Closing the generator unsubscribes.
        """
        subscription = await self.events.confirmed_transactions(address)
        try:
            async for outcome in classify_each(subscription):
                yield outcome
        finally:
            await subscription.unsubscribe()

    async def close(self) -> None:
        await self.events.close()
