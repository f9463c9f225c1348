"""
Announcer: submits a signed transaction to the network exactly once.

Outcomes:
    - node accepted     → AnnounceResult(accepted=True, transaction_hash=...)
    - node refused      → AnnounceResult(accepted=False, rejection=...)
    - node unreachable  → TransportError propagates

No retry. Resubmitting the same signed bytes is harmless (NIS answers
FAILURE_HASH_EXISTS) but that decision belongs to the caller.
"""

from __future__ import annotations

import logging

from nemkit.client import AnnounceResult, NemClient
from nemkit.signer import SignedTransaction

log = logging.getLogger(__name__)


async def announce(signed: SignedTransaction, client: NemClient) -> AnnounceResult:
    """Submit ``signed`` through ``client`` and log the outcome."""
    log.info("announcing tx_hash=%s signer=%s", signed.tx_hash, signed.signer_public_key)
    result = await client.announce(signed)
    if result.accepted:
        log.info(
            "announce accepted tx_hash=%s inner=%s",
            result.transaction_hash or signed.tx_hash,
            result.inner_transaction_hash,
        )
    else:
        category = result.rejection.error_code if result.rejection else None
        log.warning(
            "announce rejected tx_hash=%s code=%d message=%s category=%s",
            signed.tx_hash, result.code, result.message, category,
        )
    return result


class Announcer:
    """Binds ``announce()`` to one client."""

    def __init__(self, client: NemClient) -> None:
        self._client = client

    async def announce(self, signed: SignedTransaction) -> AnnounceResult:
        return await announce(signed, self._client)
