"""
Mosaics (named fungible assets) and their resolution.

Types:
    - ``AssetIdentifier``: (namespace, name), the mosaic id.
    - ``MosaicDefinition``: divisibility / supply / transferability as
      published by the network.
    - ``AssetAmount``: what the caller asks for (whole or decimal units).
    - ``TransferableAsset``: what goes on the wire (smallest units), plus the
      definition data the fee calculation needs.

Resolution:
    ``AssetResolver.resolve()`` fills in the configured default namespace /
    name, looks the definition up through an ``AssetMetadataService`` and
    converts the requested quantity to smallest units:

        smallest = requested × 10^divisibility

    The base currency (nem:xem) is known locally and never looked up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from nemkit.errors import NonTransferableAssetError, UnknownAssetError

if TYPE_CHECKING:
    from nemkit.config import NemConfig

log = logging.getLogger(__name__)

# Reserved namespace of the base currency.
BASE_NAMESPACE = "nem"

XEM_NAME = "xem"
XEM_DIVISIBILITY = 6
XEM_SUPPLY = 8_999_999_999


@dataclass(frozen=True)
class AssetIdentifier:
    """A mosaic id. Equality is by (namespace, name)."""

    namespace: str
    name: str

    def __post_init__(self) -> None:
        if not self.namespace:
            raise ValueError("namespace must be non-empty")
        if not self.name:
            raise ValueError("name must be non-empty")

    def __str__(self) -> str:
        return f"{self.namespace}:{self.name}"

    @property
    def is_base_currency(self) -> bool:
        return self.namespace == BASE_NAMESPACE

    def to_dict(self) -> dict[str, str]:
        return {"namespaceId": self.namespace, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssetIdentifier:
        return cls(namespace=data["namespaceId"], name=data["name"])


XEM_ID = AssetIdentifier(BASE_NAMESPACE, XEM_NAME)


@dataclass(frozen=True)
class MosaicDefinition:
    """Network-published properties of a mosaic."""

    identifier: AssetIdentifier
    divisibility: int
    supply: int
    transferable: bool = True
    supply_mutable: bool = False
    creator: str | None = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MosaicDefinition:
        """Parse a NIS ``MosaicDefinition`` JSON object.

        NIS encodes properties as a list of {"name", "value"} string pairs.
        """
        props = {p["name"]: p["value"] for p in data.get("properties", [])}
        return cls(
            identifier=AssetIdentifier.from_dict(data["id"]),
            divisibility=int(props.get("divisibility", "0")),
            supply=int(props.get("initialSupply", "0")),
            transferable=props.get("transferable", "true") == "true",
            supply_mutable=props.get("supplyMutable", "false") == "true",
            creator=data.get("creator"),
            description=data.get("description", ""),
        )


XEM_DEFINITION = MosaicDefinition(
    identifier=XEM_ID,
    divisibility=XEM_DIVISIBILITY,
    supply=XEM_SUPPLY,
)


@dataclass(frozen=True)
class AssetAmount:
    """A requested quantity of a mosaic, in whole (or decimal) units.

    ``identifier`` None means "the configured default mosaic".
    """

    quantity: int | Decimal
    identifier: AssetIdentifier | None = None


@dataclass(frozen=True)
class TransferableAsset:
    """A mosaic quantity ready to attach to a transfer.

    Attributes:
        identifier: The mosaic id.
        quantity: Smallest-unit quantity (what goes on the wire).
        divisibility: From the definition; kept for fee calculation.
        supply: From the definition; kept for fee calculation.
    """

    identifier: AssetIdentifier
    quantity: int
    divisibility: int
    supply: int

    def to_dict(self) -> dict[str, object]:
        return {"mosaicId": self.identifier.to_dict(), "quantity": self.quantity}


def to_smallest_unit(amount: int | Decimal, divisibility: int) -> int:
    """Convert a whole/decimal amount to smallest units.

    Raises:
        ValueError: If the amount is negative or finer than the divisibility
            allows (e.g. 1.234 of a divisibility-2 mosaic).
    """
    value = Decimal(amount) * (Decimal(10) ** divisibility)
    if value < 0:
        raise ValueError(f"amount must be non-negative, got: {amount}")
    if value != value.to_integral_value():
        raise ValueError(
            f"amount {amount} has more than {divisibility} decimal places"
        )
    return int(value)


def xem(amount: int | Decimal) -> int:
    """Convert an XEM amount to micro-XEM."""
    return to_smallest_unit(amount, XEM_DIVISIBILITY)


# ---------------------------------------------------------------------------
# Metadata boundary + resolver
# ---------------------------------------------------------------------------


@runtime_checkable
class AssetMetadataService(Protocol):
    """Looks up mosaic definitions on the network."""

    async def get_mosaic_definition(
        self, identifier: AssetIdentifier
    ) -> MosaicDefinition | None:
        """Return the definition, or None if the mosaic does not exist."""
        ...


class AssetResolver:
    """Turns AssetAmounts into TransferableAssets.

    Args:
        config: Supplies the default namespace / mosaic name.
        metadata: Definition lookup (usually a NisClient).
    """

    def __init__(self, config: NemConfig, metadata: AssetMetadataService) -> None:
        self._config = config
        self._metadata = metadata

    def identifier(
        self, namespace: str | None = None, name: str | None = None
    ) -> AssetIdentifier:
        """Build an identifier, substituting configured defaults for gaps."""
        default = self._config.default_asset
        return AssetIdentifier(namespace or default.namespace, name or default.name)

    async def resolve(
        self,
        identifier: AssetIdentifier | None,
        requested_quantity: int | Decimal,
    ) -> TransferableAsset:
        """Resolve one requested quantity into a TransferableAsset.

        Raises:
            UnknownAssetError: The mosaic does not exist.
            NonTransferableAssetError: The mosaic cannot be transferred.
            ValueError: The quantity is negative or too precise.
        """
        if identifier is None:
            identifier = self._config.default_asset

        if identifier == XEM_ID:
            definition: MosaicDefinition | None = XEM_DEFINITION
        else:
            definition = await self._metadata.get_mosaic_definition(identifier)

        if definition is None:
            raise UnknownAssetError(
                f"unknown mosaic {identifier}",
                error_code="UNKNOWN_ASSET",
                details={"mosaic": str(identifier)},
            )
        if not definition.transferable:
            raise NonTransferableAssetError(
                f"mosaic {identifier} is not transferable",
                error_code="NON_TRANSFERABLE",
                details={"mosaic": str(identifier)},
            )

        quantity = to_smallest_unit(requested_quantity, definition.divisibility)
        log.debug(
            "resolved mosaic=%s requested=%s quantity=%d divisibility=%d",
            identifier, requested_quantity, quantity, definition.divisibility,
        )
        return TransferableAsset(
            identifier=identifier,
            quantity=quantity,
            divisibility=definition.divisibility,
            supply=definition.supply,
        )

    async def resolve_all(self, amounts: list[AssetAmount]) -> list[TransferableAsset]:
        """Resolve several amounts in order. Fails on the first bad one."""
        if not amounts:
            raise ValueError("at least one mosaic amount is required")
        resolved: list[TransferableAsset] = []
        for amount in amounts:
            resolved.append(await self.resolve(amount.identifier, amount.quantity))
        return resolved
