"""
Key service protocol: the secrets boundary.

The builder never touches private key bytes. It asks a ``KeyService`` for
the public key of a credential, hands it an unsigned transaction dict, and
gets back a ``SignedTransaction``: the serialized bytes plus signature,
ready for ``/transaction/announce``.

Implementations:
    - LocalKeyService (in-process keys, ``cryptography`` + ``PyNaCl``)

LocalKeyService uses standard Ed25519. The transaction hash is keccak-256
of the serialized bytes, as NIS computes it.

Message encryption (LocalKeyService):
    shared  = X25519(sender_sk → curve25519, recipient_pk → curve25519)
    key     = keccak256(shared XOR salt)
    payload = salt (32) || iv (16) || AES-256-CBC(PKCS7(text))
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import nacl.bindings
import nacl.exceptions
import nacl.signing
from Crypto.Hash import keccak
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from nemkit.config import Credential
from nemkit.errors import CryptoError, SigningError
from nemkit.serialize import serialize_transaction

_SALT_BYTES = 32
_IV_BYTES = 16


@dataclass(frozen=True)
class SignedTransaction:
    """A signed, submission-ready transaction.

    Attributes:
        data: NIS1 serialized transaction bytes.
        signature: 64-byte signature over ``data``.
        tx_hash: keccak-256 of ``data`` (64 hex chars).
        signer_public_key: Public key that produced the signature.
    """

    data: bytes
    signature: bytes
    tx_hash: str
    signer_public_key: str

    def to_announce_dict(self) -> dict[str, str]:
        """Body of a NIS ``RequestAnnounce``."""
        return {"data": self.data.hex(), "signature": self.signature.hex()}


@runtime_checkable
class KeyService(Protocol):
    """Interface for signing and message encryption."""

    def public_key(self, credential: Credential) -> str:
        """Hex public key of a credential.

        Raises:
            SigningError: If the credential's private key is unusable.
        """
        ...

    def sign(self, credential: Credential, tx: dict[str, Any]) -> SignedTransaction:
        """Serialize and sign an unsigned transaction dict.

        Raises:
            SigningError: If the credential is malformed or the dict cannot
                be serialized.
        """
        ...

    def encrypt_message(
        self, credential: Credential, recipient_public_key: str, text: str
    ) -> bytes:
        """Encrypt text from credential to recipient.

        Raises:
            CryptoError: If the recipient public key is malformed.
        """
        ...


def transaction_hash(data: bytes) -> str:
    return keccak.new(digest_bits=256, data=data).hexdigest()


def _shared_key(private_seed: bytes, public_key: bytes, salt: bytes) -> bytes:
    curve_sk = nacl.signing.SigningKey(private_seed).to_curve25519_private_key()
    curve_pk = nacl.signing.VerifyKey(public_key).to_curve25519_public_key()
    shared = nacl.bindings.crypto_scalarmult(bytes(curve_sk), bytes(curve_pk))
    mixed = bytes(a ^ b for a, b in zip(shared, salt))
    return keccak.new(digest_bits=256, data=mixed).digest()


def _parse_public_key(public_key_hex: str) -> bytes:
    try:
        raw = bytes.fromhex(public_key_hex)
    except ValueError as exc:
        raise CryptoError(
            "public key is not hex", error_code="BAD_PUBLIC_KEY"
        ) from exc
    if len(raw) != 32:
        raise CryptoError(
            f"public key must be 32 bytes, got {len(raw)}",
            error_code="BAD_PUBLIC_KEY",
        )
    return raw


class LocalKeyService:
    """KeyService holding keys in process memory."""

    def _private_key(self, credential: Credential) -> Ed25519PrivateKey:
        try:
            return Ed25519PrivateKey.from_private_bytes(bytes.fromhex(credential.private_key))
        except ValueError as exc:
            raise SigningError(
                "credential private key is malformed",
                error_code="BAD_CREDENTIAL",
                details={"address": credential.address},
            ) from exc

    def public_key(self, credential: Credential) -> str:
        key = self._private_key(credential).public_key()
        return key.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()

    def sign(self, credential: Credential, tx: dict[str, Any]) -> SignedTransaction:
        private_key = self._private_key(credential)
        public_key = self.public_key(credential)
        if tx.get("signer") != public_key:
            raise SigningError(
                "transaction signer does not match credential",
                error_code="SIGNER_MISMATCH",
                details={"address": credential.address},
            )
        try:
            data = serialize_transaction(tx)
        except (KeyError, ValueError) as exc:
            raise SigningError(
                f"transaction cannot be serialized: {exc}",
                error_code="MALFORMED_TRANSACTION",
            ) from exc
        return SignedTransaction(
            data=data,
            signature=private_key.sign(data),
            tx_hash=transaction_hash(data),
            signer_public_key=public_key,
        )

    def encrypt_message(
        self, credential: Credential, recipient_public_key: str, text: str
    ) -> bytes:
        recipient = _parse_public_key(recipient_public_key)
        salt = os.urandom(_SALT_BYTES)
        iv = os.urandom(_IV_BYTES)
        try:
            key = _shared_key(bytes.fromhex(credential.private_key), recipient, salt)
        except (ValueError, TypeError, nacl.exceptions.CryptoError) as exc:
            raise CryptoError(
                "recipient public key is not a valid curve point",
                error_code="BAD_PUBLIC_KEY",
            ) from exc

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(text.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return salt + iv + encryptor.update(padded) + encryptor.finalize()

    def decrypt_message(
        self, credential: Credential, sender_public_key: str, payload: bytes
    ) -> str:
        """Recipient side of ``encrypt_message``.

        Raises:
            CryptoError: Bad sender key or undecryptable payload.
        """
        sender = _parse_public_key(sender_public_key)
        if len(payload) < _SALT_BYTES + _IV_BYTES + 16:
            raise CryptoError("encrypted payload too short", error_code="BAD_PAYLOAD")
        salt = payload[:_SALT_BYTES]
        iv = payload[_SALT_BYTES : _SALT_BYTES + _IV_BYTES]
        body = payload[_SALT_BYTES + _IV_BYTES :]
        try:
            key = _shared_key(bytes.fromhex(credential.private_key), sender, salt)
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(body) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
        except (ValueError, TypeError, nacl.exceptions.CryptoError) as exc:
            raise CryptoError("message cannot be decrypted", error_code="BAD_PAYLOAD") from exc


def verify_signature(signed: SignedTransaction) -> bool:
    """Check a SignedTransaction's signature against its signer key."""
    try:
        key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(signed.signer_public_key))
        key.verify(signed.signature, signed.data)
        return True
    except (InvalidSignature, ValueError):
        return False
