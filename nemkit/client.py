"""
Node client protocol: the network boundary.

Defines what the announcer and resolver depend on, not a concrete
implementation. This keeps the builder and facade testable and keeps
``httpx`` out of business logic.

Concrete implementations:
    - NisClient (real, over HttpTransport)
    - FakeClient (tests)

A node that refuses a transaction is not an exception: ``announce()``
returns an AnnounceResult carrying a RejectedTransaction. Transport
failures raise TransportError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from nemkit.errors import AnnounceErrorCode, classify_announce_message
from nemkit.mosaic import AssetIdentifier, MosaicDefinition
from nemkit.signer import SignedTransaction

# NIS validation result code for SUCCESS.
_CODE_SUCCESS = 1


@dataclass(frozen=True)
class RejectedTransaction:
    """Why the node refused a transaction.

    Attributes:
        code: NIS result code.
        message: NIS result message (e.g. "FAILURE_INSUFFICIENT_BALANCE").
        error_code: Coarse category from classify_announce_message().
    """

    code: int
    message: str
    error_code: AnnounceErrorCode


@dataclass(frozen=True)
class AnnounceResult:
    """Node acknowledgement of an announce.

    ``accepted`` means "accepted for validation", not confirmed.

    Attributes:
        accepted: True iff the node answered SUCCESS.
        code / message: Raw NIS result.
        transaction_hash: Hash reported by the node, if any.
        inner_transaction_hash: For multisig announces, the inner hash.
        rejection: Set iff accepted is False.
    """

    accepted: bool
    code: int
    message: str
    transaction_hash: str | None = None
    inner_transaction_hash: str | None = None
    rejection: RejectedTransaction | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnnounceResult:
        """Parse a NIS ``NemAnnounceResult`` JSON object."""
        code = int(data.get("code", 0))
        message = str(data.get("message", ""))
        accepted = code == _CODE_SUCCESS
        rejection = None
        if not accepted:
            rejection = RejectedTransaction(
                code=code,
                message=message,
                error_code=classify_announce_message(message),
            )
        return cls(
            accepted=accepted,
            code=code,
            message=message,
            transaction_hash=_hash_data(data.get("transactionHash")),
            inner_transaction_hash=_hash_data(data.get("innerTransactionHash")),
            rejection=rejection,
        )


def _hash_data(value: Any) -> str | None:
    if isinstance(value, dict):
        data = value.get("data")
        return str(data) if data else None
    return None


@runtime_checkable
class NemClient(Protocol):
    """Interface for NIS network operations used by the core."""

    async def announce(self, signed: SignedTransaction) -> AnnounceResult:
        """Submit a signed transaction. One round trip, no retry.

        Raises:
            TransportError: Node unreachable or non-2xx.
        """
        ...

    async def get_mosaic_definition(
        self, identifier: AssetIdentifier
    ) -> MosaicDefinition | None:
        """Look up a mosaic definition; None if it does not exist."""
        ...
