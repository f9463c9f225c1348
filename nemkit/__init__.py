"""
nemkit: client engine for the NEM (NIS1) ledger.

Public API:

    Pure layer (no I/O):
        - ``MessageCodec`` / ``plain()``: build plain or encrypted messages.
        - ``TransferIntent``, ``Envelope``: what to send and who signs it.
        - ``plan_transfer()``, ``plan_multisig()``: unsigned NIS transaction dicts.
        - ``serialize_transaction()`` / ``deserialize_transaction()``: NIS1 bytes.
        - ``parse_record()``: raw NIS JSON → tagged record.
        - ``classify()``: tagged record → TransactionSummary.
        - Fees: ``transfer_fee``, ``message_fee``, ``mosaic_fee``, ``mosaics_fee``.

    Impure layer (network I/O):
        - ``AssetResolver``: mosaic amounts → transferable assets.
        - ``TransactionBuilder``: resolve + plan + sign.
        - ``announce()`` / ``Announcer``: submit once, no retry.
        - ``EventSubscriptions``: blocks, heights, (un)confirmed transactions.
        - ``NemService``: everything above behind one object.

    Protocols (for dependency injection):
        - ``NemClient``: network boundary (announce, mosaic lookup).
        - ``KeyService``: secrets boundary (public key, sign, encrypt).
        - ``AssetMetadataService``: mosaic definition lookup.
        - ``HttpTransport``: injectable HTTP transport.

    Concrete implementations:
        - ``NisClient`` over ``HttpxTransport``.
        - ``LocalKeyService`` (Ed25519 + Curve25519/AES message encryption).
        - ``EventConnection`` (STOMP over websockets).

    Errors:
        - ``NemError`` and subclasses; ``classify_announce_message()``.
"""

from nemkit.address import (
    address_from_public_key,
    is_valid_address,
    normalize_address,
    pretty_address,
)
from nemkit.announce import Announcer, announce
from nemkit.builder import TransactionBuilder
from nemkit.classify import (
    TransactionSummary,
    UnsupportedTransactionType,
    classify,
    classify_each,
)
from nemkit.client import AnnounceResult, NemClient, RejectedTransaction
from nemkit.config import Credential, NemConfig, NetworkMode
from nemkit.errors import (
    AnnounceErrorCode,
    CryptoError,
    NemError,
    NonTransferableAssetError,
    SigningError,
    TransportError,
    UnknownAssetError,
    classify_announce_message,
)
from nemkit.fees import message_fee, mosaic_fee, mosaics_fee, transfer_fee
from nemkit.listener import BlockEvent, EventConnection, EventSubscriptions, Subscription
from nemkit.message import EMPTY_MESSAGE, Message, MessageCodec, MessageKind, plain
from nemkit.mosaic import (
    XEM_ID,
    AssetAmount,
    AssetIdentifier,
    AssetMetadataService,
    AssetResolver,
    MosaicDefinition,
    TransferableAsset,
    xem,
)
from nemkit.nis_client import AccountInfo, NisClient, TransactionPage
from nemkit.records import (
    AnnouncedTransactionRecord,
    MosaicQuantity,
    RecordKind,
    UnsupportedRecord,
    parse_record,
)
from nemkit.serialize import deserialize_transaction, serialize_transaction
from nemkit.service import NemService
from nemkit.signer import KeyService, LocalKeyService, SignedTransaction
from nemkit.transport import HttpTransport, HttpxTransport
from nemkit.tx import (
    Envelope,
    EnvelopeKind,
    TimeWindow,
    TransferIntent,
    plan_multisig,
    plan_transfer,
)

__version__ = "0.1.0"

__all__ = [
    "AccountInfo",
    "AnnounceErrorCode",
    "AnnounceResult",
    "AnnouncedTransactionRecord",
    "Announcer",
    "AssetAmount",
    "AssetIdentifier",
    "AssetMetadataService",
    "AssetResolver",
    "BlockEvent",
    "Credential",
    "CryptoError",
    "EMPTY_MESSAGE",
    "Envelope",
    "EnvelopeKind",
    "EventConnection",
    "EventSubscriptions",
    "HttpTransport",
    "HttpxTransport",
    "KeyService",
    "LocalKeyService",
    "Message",
    "MessageCodec",
    "MessageKind",
    "MosaicDefinition",
    "MosaicQuantity",
    "NemClient",
    "NemConfig",
    "NemError",
    "NemService",
    "NetworkMode",
    "NisClient",
    "NonTransferableAssetError",
    "RecordKind",
    "RejectedTransaction",
    "SignedTransaction",
    "SigningError",
    "Subscription",
    "TimeWindow",
    "TransactionBuilder",
    "TransactionPage",
    "TransactionSummary",
    "TransferIntent",
    "TransferableAsset",
    "TransportError",
    "UnknownAssetError",
    "UnsupportedRecord",
    "UnsupportedTransactionType",
    "XEM_ID",
    "address_from_public_key",
    "announce",
    "classify",
    "classify_announce_message",
    "classify_each",
    "deserialize_transaction",
    "is_valid_address",
    "message_fee",
    "mosaic_fee",
    "mosaics_fee",
    "normalize_address",
    "parse_record",
    "plain",
    "plan_multisig",
    "plan_transfer",
    "pretty_address",
    "serialize_transaction",
    "transfer_fee",
    "xem",
]
