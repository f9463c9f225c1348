"""
Transaction builder: intent → envelope → signed transaction.

Signing accounts:
    DIRECT    signed by config.base
    MULTISIG  inner transfer's signer is config.multisig_public_key; the
              envelope is signed once, by config.cosigner

The mosaic variants resolve every AssetAmount before anything is planned
or signed, so a resolution failure never leaves a partial transaction.
Amounts here are micro-XEM; mosaic quantities are whole/decimal units that
the resolver converts with each mosaic's divisibility.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from nemkit.config import NemConfig
from nemkit.message import EMPTY_MESSAGE, Message
from nemkit.mosaic import AssetAmount, AssetResolver
from nemkit.signer import KeyService, SignedTransaction
from nemkit.tx import (
    Envelope,
    EnvelopeKind,
    TimeWindow,
    TransferIntent,
    plan_multisig,
    plan_transfer,
)

log = logging.getLogger(__name__)


class TransactionBuilder:
    """Builds and signs transfer transactions for one configuration.

    Args:
        config: Accounts, network and deadline width.
        key_service: Derives public keys and signs.
        resolver: Resolves mosaic amounts for the *_with_assets variants.
        now: Clock used for the time window. Defaults to UTC wall time.
    """

    def __init__(
        self,
        config: NemConfig,
        key_service: KeyService,
        resolver: AssetResolver,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._key_service = key_service
        self._resolver = resolver
        self._now = now or (lambda: datetime.now(UTC))

    # -----------------------------------------------------------------
    # XEM transfers
    # -----------------------------------------------------------------

    def build_direct(
        self, destination: str, amount: int, message: Message = EMPTY_MESSAGE
    ) -> SignedTransaction:
        """Plain transfer of ``amount`` micro-XEM signed by the base account."""
        intent = TransferIntent(destination, amount=amount, message=message)
        return self.sign(Envelope(intent))

    def build_multisig(
        self, destination: str, amount: int, message: Message = EMPTY_MESSAGE
    ) -> SignedTransaction:
        """Multisig transfer of ``amount`` micro-XEM from the multisig account.

        Raises:
            ValueError: No multisig account / cosigner configured.
        """
        multisig_public_key, _ = self._config.require_multisig()
        intent = TransferIntent(destination, amount=amount, message=message)
        return self.sign(Envelope(intent, EnvelopeKind.MULTISIG, multisig_public_key))

    # -----------------------------------------------------------------
    # Mosaic transfers
    # -----------------------------------------------------------------

    async def build_direct_with_assets(
        self,
        destination: str,
        assets: list[AssetAmount],
        message: Message = EMPTY_MESSAGE,
    ) -> SignedTransaction:
        """Mosaic transfer signed by the base account.

        Raises:
            UnknownAssetError / NonTransferableAssetError: From resolution,
                before anything is signed.
        """
        resolved = await self._resolver.resolve_all(assets)
        intent = TransferIntent(destination, assets=tuple(resolved), message=message)
        return self.sign(Envelope(intent))

    async def build_multisig_with_assets(
        self,
        destination: str,
        assets: list[AssetAmount],
        message: Message = EMPTY_MESSAGE,
    ) -> SignedTransaction:
        multisig_public_key, _ = self._config.require_multisig()
        resolved = await self._resolver.resolve_all(assets)
        intent = TransferIntent(destination, assets=tuple(resolved), message=message)
        return self.sign(Envelope(intent, EnvelopeKind.MULTISIG, multisig_public_key))

    # -----------------------------------------------------------------
    # Signing
    # -----------------------------------------------------------------

    def sign(self, envelope: Envelope) -> SignedTransaction:
        """Plan and sign an envelope with the account it designates.

        Raises:
            SigningError: Malformed credential or unserializable transaction.
            ValueError: Multisig envelope without a configured cosigner.
        """
        window = TimeWindow.create(self._now(), hours=self._config.deadline_hours)
        network = self._config.network

        # only MULTISIG envelopes carry a multisig key
        if envelope.multisig_public_key is None:
            credential = self._config.base
            tx = plan_transfer(
                envelope.intent,
                self._key_service.public_key(credential),
                network,
                window,
            )
        else:
            _, credential = self._config.require_multisig()
            inner = plan_transfer(envelope.intent, envelope.multisig_public_key, network, window)
            tx = plan_multisig(
                inner, self._key_service.public_key(credential), network, window
            )

        signed = self._key_service.sign(credential, tx)
        log.debug(
            "built %s transfer tx_hash=%s fee=%s",
            envelope.kind.value.lower(), signed.tx_hash, tx["fee"],
        )
        return signed
