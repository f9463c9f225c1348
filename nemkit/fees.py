"""
NIS1 minimum fee rules (post fee-fork), in micro-XEM.

    transfer   50_000 × clamp(amount_xem // 10_000, 1, 25)
    message    50_000 × (len(payload) // 32 + 1)        if a payload is present
    mosaic     per attached mosaic, see ``mosaic_fee()``
    multisig   150_000 for the envelope (inner fee is paid separately)
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from nemkit.message import Message
from nemkit.mosaic import TransferableAsset

FEE_UNIT = 50_000
MULTISIG_FEE = 150_000
MAX_FEE_UNITS = 25

# Amount field of a mosaic transfer: a 1 XEM multiplier.
MOSAIC_MULTIPLIER = 1_000_000

_MICRO_PER_XEM = 1_000_000
_MAX_MOSAIC_QUANTITY = 9_000_000_000_000_000
_XEM_SUPPLY = 8_999_999_999


def _units_for_xem(xem_amount: int) -> int:
    return min(MAX_FEE_UNITS, max(1, xem_amount // 10_000))


def transfer_fee(amount: int) -> int:
    """Fee for an XEM transfer of ``amount`` micro-XEM."""
    return FEE_UNIT * _units_for_xem(amount // _MICRO_PER_XEM)


def message_fee(message: Message) -> int:
    if message.is_empty:
        return 0
    return FEE_UNIT * (len(message.payload) // 32 + 1)


def xem_equivalent(quantity: int, supply: int, divisibility: int, multiplier: int) -> int:
    """Whole-XEM value of a mosaic quantity, as NIS estimates it."""
    if supply == 0:
        return 0
    return (_XEM_SUPPLY * quantity * multiplier) // (
        supply * 10 ** (divisibility + 6)
    )


def mosaic_fee(asset: TransferableAsset, multiplier: int = MOSAIC_MULTIPLIER) -> int:
    """Fee for one attached mosaic.

    Small-business mosaics (supply ≤ 10 000, divisibility 0) cost one unit.
    Others are priced by XEM equivalent, discounted by how small the total
    supply is relative to the XEM supply.
    """
    if asset.supply <= 10_000 and asset.divisibility == 0:
        return FEE_UNIT

    total_quantity = asset.supply * 10**asset.divisibility
    adjustment = math.floor(0.8 * math.log(max(1, _MAX_MOSAIC_QUANTITY // total_quantity)))
    equivalent = xem_equivalent(asset.quantity, asset.supply, asset.divisibility, multiplier)
    units = _units_for_xem(equivalent)
    return FEE_UNIT * max(1, units - adjustment)


def mosaics_fee(assets: Iterable[TransferableAsset], multiplier: int = MOSAIC_MULTIPLIER) -> int:
    return sum(mosaic_fee(asset, multiplier) for asset in assets)
