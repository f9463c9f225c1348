"""
NIS1 binary transaction layout.

All integers little-endian; byte arrays are length-prefixed with a u32.

    common header
        u32 type | u32 version | u32 timeStamp
        u32 32 | signer public key (32 bytes)
        u64 fee | u32 deadline

    transfer (257)
        u32 40 | recipient (40 ASCII bytes)
        u64 amount
        u32 message_len (0 if empty)
            [u32 message type | u32 payload_len | payload]
        version 2 only:
        u32 mosaic count
            per mosaic:
            u32 struct_len | u32 id_len
            u32 ns_len | namespace | u32 name_len | name
            u64 quantity

    multisig (4100)
        u32 inner_len | inner transfer bytes

``deserialize_transaction()`` returns the NIS JSON dict shape, so decoded
bytes can be fed straight to ``records.parse_record()``.
"""

from __future__ import annotations

import struct
from typing import Any

from nemkit.tx import TransactionType

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


# =========================================================================
# Encoding
# =========================================================================


def _u32(value: int) -> bytes:
    return _U32.pack(value & 0xFFFFFFFF)


def _u64(value: int) -> bytes:
    return _U64.pack(value)


def _sized(data: bytes) -> bytes:
    return _u32(len(data)) + data


def _header(tx: dict[str, Any]) -> bytes:
    signer = bytes.fromhex(str(tx["signer"]))
    if len(signer) != 32:
        raise ValueError("signer public key must be 32 bytes")
    return b"".join(
        (
            _u32(int(tx["type"])),
            _u32(int(tx["version"])),
            _u32(int(tx["timeStamp"])),
            _sized(signer),
            _u64(int(tx["fee"])),
            _u32(int(tx["deadline"])),
        )
    )


def _message(message: dict[str, Any] | None) -> bytes:
    if not message or not message.get("payload"):
        return _u32(0)
    payload = bytes.fromhex(message["payload"])
    body = _u32(int(message["type"])) + _sized(payload)
    return _sized(body)


def _mosaic(mosaic: dict[str, Any]) -> bytes:
    mosaic_id = mosaic["mosaicId"]
    id_bytes = _sized(mosaic_id["namespaceId"].encode("utf-8")) + _sized(
        mosaic_id["name"].encode("utf-8")
    )
    body = _sized(id_bytes) + _u64(int(mosaic["quantity"]))
    return _sized(body)


def _transfer(tx: dict[str, Any]) -> bytes:
    parts = [
        _header(tx),
        _sized(str(tx["recipient"]).encode("ascii")),
        _u64(int(tx["amount"])),
        _message(tx.get("message")),
    ]
    if int(tx["version"]) & 0xFFFFFF >= 2:
        mosaics = tx.get("mosaics") or []
        parts.append(_u32(len(mosaics)))
        parts.extend(_mosaic(m) for m in mosaics)
    return b"".join(parts)


def serialize_transaction(tx: dict[str, Any]) -> bytes:
    """Serialize a transfer or multisig dict to NIS1 bytes.

    Raises:
        ValueError: Unsupported transaction type or malformed fields.
    """
    tx_type = tx.get("type")
    if tx_type == TransactionType.TRANSFER:
        return _transfer(tx)
    if tx_type == TransactionType.MULTISIG:
        return _header(tx) + _sized(serialize_transaction(tx["otherTrans"]))
    raise ValueError(f"unsupported transaction type: {tx_type!r}")


# =========================================================================
# Decoding
# =========================================================================


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise ValueError(f"truncated transaction: need {n} bytes, have {self.remaining}")
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def u32(self) -> int:
        return _U32.unpack(self.take(4))[0]

    def u64(self) -> int:
        return _U64.unpack(self.take(8))[0]

    def sized(self) -> bytes:
        return self.take(self.u32())


def _read_header(reader: _Reader) -> dict[str, Any]:
    return {
        "type": reader.u32(),
        "version": reader.u32(),
        "timeStamp": reader.u32(),
        "signer": reader.sized().hex(),
        "fee": reader.u64(),
        "deadline": reader.u32(),
    }


def _read_transfer_body(reader: _Reader, tx: dict[str, Any]) -> None:
    tx["recipient"] = reader.sized().decode("ascii")
    tx["amount"] = reader.u64()

    message_len = reader.u32()
    if message_len:
        message_type = reader.u32()
        tx["message"] = {"type": message_type, "payload": reader.sized().hex()}
    else:
        tx["message"] = {}

    if tx["version"] & 0xFFFFFF >= 2:
        mosaics = []
        for _ in range(reader.u32()):
            reader.u32()  # struct length
            reader.u32()  # mosaic id length
            namespace = reader.sized().decode("utf-8")
            name = reader.sized().decode("utf-8")
            mosaics.append(
                {
                    "mosaicId": {"namespaceId": namespace, "name": name},
                    "quantity": reader.u64(),
                }
            )
        tx["mosaics"] = mosaics


def _read(reader: _Reader) -> dict[str, Any]:
    tx = _read_header(reader)
    if tx["type"] == TransactionType.TRANSFER:
        _read_transfer_body(reader, tx)
    elif tx["type"] == TransactionType.MULTISIG:
        tx["otherTrans"] = deserialize_transaction(reader.sized())
    else:
        raise ValueError(f"unsupported transaction type: {tx['type']!r}")
    return tx


def deserialize_transaction(data: bytes) -> dict[str, Any]:
    """Decode NIS1 bytes back into a transaction dict.

    Raises:
        ValueError: Truncated data, trailing bytes, or unsupported type.
    """
    reader = _Reader(data)
    tx = _read(reader)
    if reader.remaining:
        raise ValueError(f"{reader.remaining} trailing bytes after transaction")
    return tx
