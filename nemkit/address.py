"""
NEM account addresses.

Addresses are plain strings: 40 base32 characters, first character is the
network prefix (N mainnet, T testnet, M mijin). Wallets display them in
hyphenated groups of six; every entry point normalizes them first.

Derivation from a public key (NIS1):

    h = ripemd160(keccak256(public_key))
    v = network_byte || h
    address = base32(v || keccak256(v)[:4])
"""

from __future__ import annotations

import base64
import re
from typing import TYPE_CHECKING

from Crypto.Hash import RIPEMD160, keccak

if TYPE_CHECKING:
    from nemkit.config import NetworkMode

ADDRESS_LENGTH = 40

_ADDRESS_RE = re.compile(r"^[A-Z2-7]{40}$")
_SEPARATORS_RE = re.compile(r"[-\s]")


def normalize_address(value: str) -> str:
    """Strip separators and upper-case an address.

    Raises:
        ValueError: If the result is not 40 base32 characters.
    """
    address = _SEPARATORS_RE.sub("", value).upper()
    if not _ADDRESS_RE.match(address):
        raise ValueError(f"address must be 40 base32 characters, got: {value!r}")
    return address


def pretty_address(address: str) -> str:
    """Format an address in hyphenated groups of six (display only)."""
    plain = normalize_address(address)
    return "-".join(plain[i : i + 6] for i in range(0, ADDRESS_LENGTH, 6))


def _keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def address_from_public_key(public_key_hex: str, network: NetworkMode) -> str:
    """Derive the NIS1 address of a public key on the given network."""
    public_key = bytes.fromhex(public_key_hex)
    ripe = RIPEMD160.new(_keccak256(public_key)).digest()
    versioned = bytes([network.network_byte]) + ripe
    checksum = _keccak256(versioned)[:4]
    return base64.b32encode(versioned + checksum).decode("ascii")


def is_valid_address(address: str, network: NetworkMode) -> bool:
    """Check network prefix and checksum of an address."""
    try:
        plain = normalize_address(address)
    except ValueError:
        return False
    if plain[0] != network.address_prefix:
        return False
    decoded = base64.b32decode(plain)
    return _keccak256(decoded[:21])[:4] == decoded[21:]
