"""
Transfer messages.

A message is one of:

    - Empty                        → ``{}`` in NIS JSON, length 0 on the wire
    - Plain(text)                  → type 1, payload = UTF-8 bytes
    - Encrypted(text, recipient)   → type 2, payload = ciphertext

Encrypted messages are produced once by the key service and are opaque
bytes from then on; the plaintext is not kept on the Message.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nemkit.config import NemConfig
    from nemkit.signer import KeyService


class MessageType(IntEnum):
    """NIS message type codes."""

    PLAIN = 1
    ENCRYPTED = 2


class MessageKind(StrEnum):
    EMPTY = "EMPTY"
    PLAIN = "PLAIN"
    ENCRYPTED = "ENCRYPTED"


@dataclass(frozen=True)
class Message:
    """A message attached to a transfer.

    Attributes:
        kind: EMPTY, PLAIN or ENCRYPTED.
        payload: Bytes that go on the wire (UTF-8 text or ciphertext).
        recipient_public_key: Set for ENCRYPTED only.
    """

    kind: MessageKind
    payload: bytes = b""
    recipient_public_key: str | None = None

    def __post_init__(self) -> None:
        if self.kind == MessageKind.EMPTY and self.payload:
            raise ValueError("empty message cannot carry a payload")
        if self.kind != MessageKind.EMPTY and not self.payload:
            raise ValueError(f"{self.kind} message requires a payload")
        if (self.kind == MessageKind.ENCRYPTED) != (self.recipient_public_key is not None):
            raise ValueError("recipient_public_key is required for encrypted messages only")

    @property
    def is_empty(self) -> bool:
        return self.kind == MessageKind.EMPTY

    @property
    def message_type(self) -> MessageType | None:
        if self.kind == MessageKind.PLAIN:
            return MessageType.PLAIN
        if self.kind == MessageKind.ENCRYPTED:
            return MessageType.ENCRYPTED
        return None

    @property
    def text(self) -> str | None:
        """Plaintext for PLAIN messages, None otherwise."""
        if self.kind == MessageKind.PLAIN:
            return self.payload.decode("utf-8")
        return None

    def to_dict(self) -> dict[str, object]:
        """NIS JSON form."""
        if self.message_type is None:
            return {}
        return {"type": int(self.message_type), "payload": self.payload.hex()}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Message:
        """Parse NIS JSON. Encrypted messages keep an unknown recipient."""
        if not data or not data.get("payload"):
            return EMPTY_MESSAGE
        payload = bytes.fromhex(data["payload"])
        if data.get("type") == MessageType.ENCRYPTED:
            return cls(MessageKind.ENCRYPTED, payload, recipient_public_key="")
        return cls(MessageKind.PLAIN, payload)


EMPTY_MESSAGE = Message(MessageKind.EMPTY)


def plain(text: str | None) -> Message:
    """Plain message, or EMPTY_MESSAGE for None / empty text."""
    if not text:
        return EMPTY_MESSAGE
    return Message(MessageKind.PLAIN, text.encode("utf-8"))


class MessageCodec:
    """Builds messages on behalf of the configured base account.

    Args:
        config: Supplies the base account credential used for encryption.
        key_service: Performs the encryption.
    """

    def __init__(self, config: NemConfig, key_service: KeyService) -> None:
        self._config = config
        self._key_service = key_service

    def plain(self, text: str | None) -> Message:
        return plain(text)

    def encrypted(self, text: str | None, recipient_public_key: str) -> Message:
        """Encrypt text for the recipient with the base account's key.

        Raises:
            CryptoError: If the recipient public key is malformed.
        """
        if not text:
            return EMPTY_MESSAGE
        payload = self._key_service.encrypt_message(
            self._config.base, recipient_public_key, text
        )
        return Message(
            MessageKind.ENCRYPTED,
            payload,
            recipient_public_key=recipient_public_key.lower(),
        )
