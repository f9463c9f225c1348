"""
Process-wide configuration.

A ``NemConfig`` is built once at startup (directly or via ``from_env()``)
and handed to every component. Nothing in nemkit mutates it.

Environment (``from_env``, default prefix ``NEM_``):

    NEM_MODE                  production | mijin | anything else → testnet
    NEM_ADDRESS               base account address
    NEM_PRIVATE_KEY           base account private key (hex)
    NEM_MULTISIG_PUBLIC_KEY   multisig account public key (optional)
    NEM_MULTISIG_PRIVATE_KEY  cosigner private key (optional)
    NEM_COSIGNER_ADDRESS      cosigner address (optional)
    NEM_NAMESPACE             default mosaic namespace
    NEM_MOSAIC                default mosaic name
    NEM_NIS_URL               NIS HTTP endpoint override
    NEM_WS_URL                NIS websocket endpoint override
    NEM_TIMEOUT               HTTP timeout in seconds
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import StrEnum

from nemkit.address import normalize_address
from nemkit.mosaic import XEM_ID, AssetIdentifier

_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class NetworkMode(StrEnum):
    """Which NEM network to address."""

    MAIN_NET = "MAIN_NET"
    TEST_NET = "TEST_NET"
    MIJIN_NET = "MIJIN_NET"

    @property
    def network_byte(self) -> int:
        return _NETWORK_BYTES[self]

    @property
    def address_prefix(self) -> str:
        return _ADDRESS_PREFIXES[self]

    @property
    def default_nis_url(self) -> str:
        return f"http://{_DEFAULT_HOSTS[self]}:7890"

    @property
    def default_ws_url(self) -> str:
        return f"ws://{_DEFAULT_HOSTS[self]}:7778/w/messages/websocket"


_NETWORK_BYTES = {
    NetworkMode.MAIN_NET: 0x68,
    NetworkMode.TEST_NET: 0x98,
    NetworkMode.MIJIN_NET: 0x60,
}

_ADDRESS_PREFIXES = {
    NetworkMode.MAIN_NET: "N",
    NetworkMode.TEST_NET: "T",
    NetworkMode.MIJIN_NET: "M",
}

_DEFAULT_HOSTS = {
    NetworkMode.MAIN_NET: "alice6.nem.ninja",
    NetworkMode.TEST_NET: "bigalice2.nem.ninja",
    NetworkMode.MIJIN_NET: "127.0.0.1",
}


def normalize_private_key(value: str) -> str:
    """Validate a private key hex string.

    Some wallets export 33-byte keys with a leading ``00``; that byte is
    dropped.

    Raises:
        ValueError: If the key is not 32 bytes of hex.
    """
    key = value.strip()
    if len(key) == 66 and key.startswith("00"):
        key = key[2:]
    if not _KEY_RE.match(key):
        raise ValueError("private key must be 64 hex characters")
    return key.lower()


@dataclass(frozen=True)
class Credential:
    """A signing key and the address it controls.

    The private key is excluded from repr so credentials can appear in
    tracebacks and debug output without leaking.
    """

    private_key: str = field(repr=False)
    address: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "private_key", normalize_private_key(self.private_key))
        object.__setattr__(self, "address", normalize_address(self.address))


@dataclass(frozen=True)
class NemConfig:
    """Immutable configuration shared by every component.

    Required:
        network: Which network to talk to.
        base: Base account credential (plain transfers, message encryption).

    Optional:
        multisig_public_key: Public key of the multisig account.
        cosigner: Credential of the cosigner that initiates multisig transfers.
        default_asset: Mosaic used when the caller names none.
        nis_url / ws_url: Node endpoints (network defaults when None).
        timeout: HTTP timeout in seconds.
        deadline_hours: Width of the transaction time window.
    """

    network: NetworkMode
    base: Credential
    multisig_public_key: str | None = None
    cosigner: Credential | None = None
    default_asset: AssetIdentifier = XEM_ID
    nis_url: str | None = None
    ws_url: str | None = None
    timeout: float = 30.0
    deadline_hours: int = 2

    def __post_init__(self) -> None:
        if self.multisig_public_key is not None:
            if not _KEY_RE.match(self.multisig_public_key):
                raise ValueError("multisig_public_key must be 64 hex characters")
            object.__setattr__(self, "multisig_public_key", self.multisig_public_key.lower())
        if self.deadline_hours < 1 or self.deadline_hours > 24:
            raise ValueError(f"deadline_hours must be 1-24, got: {self.deadline_hours}")
        if self.nis_url is None:
            object.__setattr__(self, "nis_url", self.network.default_nis_url)
        if self.ws_url is None:
            object.__setattr__(self, "ws_url", self.network.default_ws_url)

    def require_multisig(self) -> tuple[str, Credential]:
        """Return (multisig_public_key, cosigner) or raise ValueError."""
        if self.multisig_public_key is None or self.cosigner is None:
            raise ValueError("multisig account and cosigner are not configured")
        return self.multisig_public_key, self.cosigner

    @classmethod
    def from_env(cls, prefix: str = "NEM_") -> NemConfig:
        """Build a config from environment variables (see module docstring)."""

        def env(name: str) -> str | None:
            value = os.environ.get(prefix + name)
            return value if value else None

        mode = (env("MODE") or "local").lower()
        if mode == "production":
            network = NetworkMode.MAIN_NET
        elif mode == "mijin":
            network = NetworkMode.MIJIN_NET
        else:
            network = NetworkMode.TEST_NET

        address = env("ADDRESS")
        private_key = env("PRIVATE_KEY")
        if address is None or private_key is None:
            raise ValueError(f"{prefix}ADDRESS and {prefix}PRIVATE_KEY must be set")

        cosigner = None
        cosigner_key = env("MULTISIG_PRIVATE_KEY")
        if cosigner_key is not None:
            cosigner = Credential(
                private_key=cosigner_key,
                address=env("COSIGNER_ADDRESS") or address,
            )

        default_asset = XEM_ID
        namespace = env("NAMESPACE")
        mosaic = env("MOSAIC")
        if namespace is not None and mosaic is not None:
            default_asset = AssetIdentifier(namespace, mosaic)

        timeout = env("TIMEOUT")
        return cls(
            network=network,
            base=Credential(private_key=private_key, address=address),
            multisig_public_key=env("MULTISIG_PUBLIC_KEY"),
            cosigner=cosigner,
            default_asset=default_asset,
            nis_url=env("NIS_URL"),
            ws_url=env("WS_URL"),
            timeout=float(timeout) if timeout is not None else 30.0,
        )
