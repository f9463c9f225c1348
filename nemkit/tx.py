"""
Transfer transaction recipes.

Builds unsigned NIS1 transaction dicts. Pure and deterministic given a
TimeWindow: no secrets, no network calls. The signer public key is filled
in by the builder because it depends on the credential.

Shapes (NIS JSON):

    transfer (type 257)
        version   network_byte << 24 | 1   (XEM)   or | 2 (mosaics)
        recipient, amount (micro-XEM), message, [mosaics]

    multisig (type 4100)
        version   network_byte << 24 | 1
        otherTrans  the inner transfer, signed by the multisig account key

Invariants:
    - A TransferIntent carries exactly one of amount / assets.
    - A mosaic transfer's amount is the 1 XEM multiplier; mosaic quantities
      are absolute smallest-unit quantities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import IntEnum, StrEnum

from nemkit.address import normalize_address
from nemkit.config import NetworkMode
from nemkit.fees import MOSAIC_MULTIPLIER, MULTISIG_FEE, message_fee, mosaics_fee, transfer_fee
from nemkit.message import EMPTY_MESSAGE, Message
from nemkit.mosaic import TransferableAsset

NEM_EPOCH = datetime(2015, 3, 29, 0, 6, 25, tzinfo=UTC)


class TransactionType(IntEnum):
    TRANSFER = 0x0101
    MULTISIG = 0x1004


def nem_timestamp(moment: datetime) -> int:
    """Seconds since the NEM epoch."""
    return int((moment - NEM_EPOCH).total_seconds())


def version_for(network: NetworkMode, version: int) -> int:
    return (network.network_byte << 24) | version


@dataclass(frozen=True)
class TimeWindow:
    """Validity window of a transaction, in NEM-epoch seconds."""

    timestamp: int
    deadline: int

    @classmethod
    def create(cls, now: datetime | None = None, *, hours: int = 2) -> TimeWindow:
        moment = now or datetime.now(UTC)
        return cls(
            timestamp=nem_timestamp(moment),
            deadline=nem_timestamp(moment + timedelta(hours=hours)),
        )


# =========================================================================
# Intent and envelope
# =========================================================================


@dataclass(frozen=True)
class TransferIntent:
    """What to send: destination, exactly one payload, and a message.

    Attributes:
        destination: Recipient address (normalized on construction).
        amount: Micro-XEM, for a plain transfer.
        assets: Resolved mosaics, for a mosaic transfer.
        message: Attached message (EMPTY_MESSAGE by default).
    """

    destination: str
    amount: int | None = None
    assets: tuple[TransferableAsset, ...] | None = None
    message: Message = EMPTY_MESSAGE

    def __post_init__(self) -> None:
        object.__setattr__(self, "destination", normalize_address(self.destination))
        if (self.amount is None) == (self.assets is None):
            raise ValueError("exactly one of amount or assets must be given")
        if self.amount is not None and self.amount < 0:
            raise ValueError(f"amount must be non-negative, got: {self.amount}")
        if self.assets is not None:
            if not self.assets:
                raise ValueError("assets must be non-empty")
            object.__setattr__(self, "assets", tuple(self.assets))

    @property
    def carries_assets(self) -> bool:
        return self.assets is not None


class EnvelopeKind(StrEnum):
    DIRECT = "DIRECT"
    MULTISIG = "MULTISIG"


@dataclass(frozen=True)
class Envelope:
    """How an intent is signed.

    DIRECT envelopes are signed by the base account. MULTISIG envelopes wrap
    the intent for ``multisig_public_key`` and are signed by the cosigner;
    the inner transfer is never signed on its own.
    """

    intent: TransferIntent
    kind: EnvelopeKind = EnvelopeKind.DIRECT
    multisig_public_key: str | None = field(default=None)

    def __post_init__(self) -> None:
        if (self.kind == EnvelopeKind.MULTISIG) != (self.multisig_public_key is not None):
            raise ValueError("multisig_public_key is required for multisig envelopes only")


# =========================================================================
# Recipes
# =========================================================================


def plan_transfer(
    intent: TransferIntent,
    signer_public_key: str,
    network: NetworkMode,
    window: TimeWindow,
) -> dict[str, object]:
    """Build an unsigned transfer dict from an intent.

    The fee is the NIS minimum for the payload and message.
    """
    message = intent.message
    tx: dict[str, object] = {
        "type": int(TransactionType.TRANSFER),
        "timeStamp": window.timestamp,
        "deadline": window.deadline,
        "signer": signer_public_key,
        "recipient": intent.destination,
        "message": message.to_dict(),
    }

    if intent.assets is not None:
        tx["version"] = version_for(network, 2)
        tx["amount"] = MOSAIC_MULTIPLIER
        tx["fee"] = mosaics_fee(intent.assets) + message_fee(message)
        tx["mosaics"] = [asset.to_dict() for asset in intent.assets]
    elif intent.amount is not None:
        tx["version"] = version_for(network, 1)
        tx["amount"] = intent.amount
        tx["fee"] = transfer_fee(intent.amount) + message_fee(message)
    else:
        raise ValueError("transfer intent carries neither amount nor assets")

    return tx


def plan_multisig(
    inner: dict[str, object],
    cosigner_public_key: str,
    network: NetworkMode,
    window: TimeWindow,
) -> dict[str, object]:
    """Wrap an unsigned inner transfer in a multisig envelope."""
    if inner.get("type") != TransactionType.TRANSFER:
        raise ValueError("multisig envelopes wrap transfer transactions only")
    return {
        "type": int(TransactionType.MULTISIG),
        "version": version_for(network, 1),
        "timeStamp": window.timestamp,
        "deadline": window.deadline,
        "fee": MULTISIG_FEE,
        "signer": cosigner_public_key,
        "otherTrans": inner,
    }
