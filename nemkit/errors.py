"""
Error taxonomy for nemkit.

Exceptions are raised for failures that abort an operation:

    - ``UnknownAssetError`` / ``NonTransferableAssetError``: mosaic resolution.
    - ``CryptoError``: message encryption (bad recipient key).
    - ``SigningError``: transaction signing (bad credential).
    - ``TransportError``: the node could not be reached or answered garbage.

A node that answers but refuses a transaction is NOT an exception. That
outcome is carried inside ``AnnounceResult`` as a ``RejectedTransaction``,
and ``classify_announce_message()`` maps the NIS validation message to a
coarse ``AnnounceErrorCode``.

NIS validation results:
    - SUCCESS: accepted for validation
    - NEUTRAL: already known (duplicate hash)
    - FAILURE_*: rejected, e.g. FAILURE_INSUFFICIENT_BALANCE
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class NemError(Exception):
    """Base class for every nemkit failure.

    Attributes:
        error_code: Machine-readable category (e.g. "TIMEOUT").
        details: Structured diagnostics. Never contains secrets.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class UnknownAssetError(NemError):
    """The mosaic identifier does not exist on the network."""


class NonTransferableAssetError(NemError):
    """The mosaic exists but its definition forbids transfers."""


class CryptoError(NemError):
    """Message encryption failed (malformed recipient key, bad payload)."""


class SigningError(NemError):
    """Signing failed (malformed credential)."""


class TransportError(NemError):
    """The node was unreachable or returned a non-2xx / non-JSON response.

    Attributes:
        status_code: HTTP status when the node responded, else None.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# NIS validation message → AnnounceErrorCode
# ---------------------------------------------------------------------------


class AnnounceErrorCode(StrEnum):
    """Coarse categories for transactions the node refused."""

    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_FEE = "INSUFFICIENT_FEE"
    TIME_WINDOW = "TIME_WINDOW"
    MULTISIG = "MULTISIG"
    MOSAIC = "MOSAIC"
    SIGNATURE = "SIGNATURE"
    DUPLICATE = "DUPLICATE"
    REJECTED = "REJECTED"


_EXACT_MAP: dict[str, AnnounceErrorCode] = {
    "NEUTRAL": AnnounceErrorCode.DUPLICATE,
    "FAILURE_HASH_EXISTS": AnnounceErrorCode.DUPLICATE,
    "FAILURE_INSUFFICIENT_BALANCE": AnnounceErrorCode.INSUFFICIENT_BALANCE,
    "FAILURE_INSUFFICIENT_FEE": AnnounceErrorCode.INSUFFICIENT_FEE,
    "FAILURE_SIGNATURE_NOT_VERIFIABLE": AnnounceErrorCode.SIGNATURE,
    "FAILURE_PAST_DEADLINE": AnnounceErrorCode.TIME_WINDOW,
}

# Checked in order after the exact map.
_PREFIX_MAP: tuple[tuple[str, AnnounceErrorCode], ...] = (
    ("FAILURE_TIMESTAMP_", AnnounceErrorCode.TIME_WINDOW),
    ("FAILURE_MULTISIG", AnnounceErrorCode.MULTISIG),
    ("FAILURE_MOSAIC", AnnounceErrorCode.MOSAIC),
)


def classify_announce_message(message: str | None) -> AnnounceErrorCode:
    """Map a NIS validation message to an AnnounceErrorCode.

    Args:
        message: NIS result message (e.g. "FAILURE_INSUFFICIENT_BALANCE").
            None means the node sent no message at all.

    Returns:
        AnnounceErrorCode. Unrecognized failures map to REJECTED.
    """
    if not message:
        return AnnounceErrorCode.REJECTED

    code = _EXACT_MAP.get(message)
    if code is not None:
        return code

    for prefix, mapped in _PREFIX_MAP:
        if message.startswith(prefix):
            return mapped

    return AnnounceErrorCode.REJECTED
