"""
Ledger event subscriptions over one shared STOMP websocket.

Each subscription is an async iterator with a single cancellation handle
(``unsubscribe()``). All subscriptions of an ``EventSubscriptions`` share one
``EventConnection``, opened lazily by the first subscribe.

Streams:
    new_blocks()                     /blocks                → BlockEvent
    new_block_heights()              /blocks/new            → int
    unconfirmed_transactions(addr)   /unconfirmed/{addr}    → record
    unconfirmed_transactions()       /unconfirmed           → record
    confirmed_transactions(addr)     /transactions/{addr}   → record
    confirmed_transactions()         /blocks, fanned out    → record
    account_updates(addr)            /account/{addr}        → AccountInfo

Records are tagged by ``records.parse_record`` as they arrive, so consumers
only ever see AnnouncedTransactionRecord / UnsupportedRecord values.

Connection loss:
    Every open subscription ends by raising TransportError from its
    iterator (error_code CONNECTION_CLOSED, STOMP_ERROR or PROTOCOL_ERROR)
    and the socket is closed. Nothing reconnects on its own; the next
    subscribe opens a fresh connection.

Bad data:
    Undecodable frames and payloads a stream cannot parse are dropped with
    a warning. The connection and other subscriptions carry on.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar
from urllib.parse import urlsplit

import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed, WebSocketException

from nemkit.address import normalize_address
from nemkit.config import NemConfig, NetworkMode
from nemkit.errors import TransportError
from nemkit.nis_client import AccountInfo
from nemkit.records import AnnouncedTransactionRecord, UnsupportedRecord, parse_record
from nemkit.stomp import (
    StompFrame,
    connect_frame,
    decode_frames,
    disconnect_frame,
    encode_frame,
    send_frame,
    subscribe_frame,
    unsubscribe_frame,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

ACCOUNT_SUBSCRIBE_DESTINATION = "/w/api/account/subscribe"

Record = AnnouncedTransactionRecord | UnsupportedRecord


class WebSocketLike(Protocol):
    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[WebSocketLike]]


async def _default_connect(url: str) -> WebSocketLike:
    return await websockets.asyncio.client.connect(url)


_END = object()


# =========================================================================
# Subscription
# =========================================================================


class Subscription(Generic[T]):
    """One stream of events.

    Iterate with ``async for``; stop with ``unsubscribe()`` (or leave an
    ``async with`` block). After the connection drops, iteration raises
    TransportError once the already-received events are consumed.
    """

    def __init__(
        self,
        connection: EventConnection,
        subscription_id: str,
        destination: str,
        transform: Callable[[Any], list[T]],
    ) -> None:
        self._connection = connection
        self.subscription_id = subscription_id
        self.destination = destination
        self._transform = transform
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._error: TransportError | None = None
        self._ended = False

    @property
    def active(self) -> bool:
        return not self._ended

    def _deliver(self, payload: Any) -> None:
        if self._ended:
            return
        for item in self._transform(payload):
            self._queue.put_nowait(item)

    def _end(self, error: TransportError | None = None) -> None:
        if self._ended:
            return
        self._ended = True
        self._error = error
        self._queue.put_nowait(_END)

    async def unsubscribe(self) -> None:
        """Stop receiving events. Idempotent."""
        if not self._ended:
            await self._connection.unsubscribe(self)

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _END:
            self._queue.put_nowait(_END)
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.unsubscribe()


# =========================================================================
# Connection
# =========================================================================


class EventConnection:
    """A lazily opened STOMP session shared by many subscriptions.

    Args:
        url: Websocket endpoint (e.g. "ws://127.0.0.1:7778/w/messages/websocket").
        connect: Injectable connector. Defaults to ``websockets`` asyncio
            client. Pass a fake for testing.
    """

    def __init__(self, url: str, connect: Connector | None = None) -> None:
        self._url = url
        self._connect = connect or _default_connect
        self._ws: WebSocketLike | None = None
        self._reader: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._subscriptions: dict[str, Subscription[Any]] = {}

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def subscribe(
        self,
        destination: str,
        transform: Callable[[Any], list[T]],
        *,
        account: str | None = None,
    ) -> Subscription[T]:
        """Open (if needed) and subscribe to ``destination``.

        When ``account`` is given, NIS is also asked to start pushing that
        account's events.

        Raises:
            TransportError: Connect or send failure.
        """
        await self._ensure_connected()
        subscription_id = f"sub-{next(self._ids)}"
        subscription: Subscription[T] = Subscription(
            self, subscription_id, destination, transform
        )
        self._subscriptions[subscription_id] = subscription
        try:
            await self._send(subscribe_frame(subscription_id, destination))
            if account is not None:
                await self._send(
                    send_frame(ACCOUNT_SUBSCRIBE_DESTINATION, json.dumps({"account": account}))
                )
        except TransportError:
            self._subscriptions.pop(subscription_id, None)
            raise
        log.debug("subscribed id=%s destination=%s", subscription_id, destination)
        return subscription

    async def unsubscribe(self, subscription: Subscription[Any]) -> None:
        self._subscriptions.pop(subscription.subscription_id, None)
        subscription._end()
        if self._ws is not None:
            await self._send(unsubscribe_frame(subscription.subscription_id))
        log.debug("unsubscribed id=%s", subscription.subscription_id)

    async def close(self) -> None:
        """Disconnect and end every subscription without an error."""
        async with self._lock:
            ws, self._ws = self._ws, None
            reader, self._reader = self._reader, None
            if reader is not None:
                reader.cancel()
            for subscription in list(self._subscriptions.values()):
                subscription._end()
            self._subscriptions.clear()
            if ws is None:
                return
            try:
                await ws.send(encode_frame(disconnect_frame()))
            except ConnectionClosed:
                log.debug("connection already closed on disconnect")
            await ws.close()

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    async def _ensure_connected(self) -> None:
        async with self._lock:
            if self._ws is not None:
                return
            log.info("opening event stream url=%s", self._url)
            try:
                ws = await self._connect(self._url)
            except (OSError, WebSocketException) as exc:
                raise self._connect_failed(exc) from exc
            try:
                await ws.send(encode_frame(connect_frame(urlsplit(self._url).hostname or "")))
                await self._await_connected(ws)
            except (OSError, WebSocketException, ValueError) as exc:
                await ws.close()
                raise self._connect_failed(exc) from exc
            self._ws = ws
            self._reader = asyncio.create_task(self._read_loop(ws))

    def _connect_failed(self, exc: Exception) -> TransportError:
        return TransportError(
            f"failed to open event stream {self._url}: {exc}",
            error_code="CONNECTION_FAILED",
            details={"url": self._url},
        )

    async def _await_connected(self, ws: WebSocketLike) -> None:
        while True:
            for frame in decode_frames(_text(await ws.recv())):
                if frame.command == "CONNECTED":
                    return
                if frame.command == "ERROR":
                    await ws.close()
                    raise TransportError(
                        f"STOMP connect refused: {frame.headers.get('message', frame.body)}",
                        error_code="STOMP_ERROR",
                        details={"url": self._url},
                    )

    async def _send(self, frame: StompFrame) -> None:
        ws = self._ws
        if ws is None:
            raise TransportError("event stream is not connected", error_code="NOT_CONNECTED")
        try:
            await ws.send(encode_frame(frame))
        except ConnectionClosed as exc:
            raise TransportError(
                "event stream closed while sending",
                error_code="CONNECTION_CLOSED",
                details={"url": self._url},
            ) from exc

    async def _read_loop(self, ws: WebSocketLike) -> None:
        error: TransportError
        try:
            while True:
                raw = await ws.recv()
                try:
                    frames = decode_frames(_text(raw))
                except ValueError:
                    log.warning("dropping undecodable STOMP data")
                    continue
                for frame in frames:
                    if frame.command == "ERROR":
                        raise TransportError(
                            f"STOMP error: {frame.headers.get('message', frame.body)}",
                            error_code="STOMP_ERROR",
                            details={"url": self._url},
                        )
                    if frame.command == "MESSAGE":
                        self._dispatch(frame)
        except ConnectionClosed as exc:
            error = TransportError(
                "event stream closed",
                error_code="CONNECTION_CLOSED",
                details={"url": self._url},
            )
            error.__cause__ = exc
        except TransportError as exc:
            error = exc
        except Exception as exc:
            log.exception("event stream reader failed url=%s", self._url)
            error = TransportError(
                f"event stream reader failed: {exc}",
                error_code="PROTOCOL_ERROR",
                details={"url": self._url},
            )
            error.__cause__ = exc
        await self._drop(ws, error)

    def _dispatch(self, frame: StompFrame) -> None:
        subscription = self._subscriptions.get(frame.headers.get("subscription", ""))
        if subscription is None:
            return
        try:
            payload = json.loads(frame.body)
        except json.JSONDecodeError:
            log.warning("dropping non-JSON message on %s", subscription.destination)
            return
        try:
            subscription._deliver(payload)
        except Exception:
            log.exception("dropping message on %s", subscription.destination)

    async def _drop(self, ws: WebSocketLike, error: TransportError) -> None:
        if self._ws is not ws:
            return
        log.warning("event stream lost url=%s: %s", self._url, error)
        self._ws = None
        self._reader = None
        for subscription in list(self._subscriptions.values()):
            subscription._end(error)
        self._subscriptions.clear()
        await ws.close()


def _text(raw: str | bytes) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


# =========================================================================
# Typed streams
# =========================================================================


@dataclass(frozen=True)
class BlockEvent:
    """A block harvested on the network."""

    height: int
    timestamp: int
    signer: str
    prev_block_hash: str | None = None
    transactions: tuple[dict[str, Any], ...] = field(default=(), compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BlockEvent:
        prev = data.get("prevBlockHash")
        return cls(
            height=int(data["height"]),
            timestamp=int(data.get("timeStamp", 0)),
            signer=str(data.get("signer", "")),
            prev_block_hash=prev.get("data") if isinstance(prev, dict) else None,
            transactions=tuple(data.get("transactions", [])),
        )


class EventSubscriptions:
    """The ledger streams for one configured network.

    Args:
        config: Supplies the websocket URL and network.
        connection: Shared connection. Defaults to one built from config.
    """

    def __init__(self, config: NemConfig, connection: EventConnection | None = None) -> None:
        self._network: NetworkMode = config.network
        self._base_address = config.base.address
        self._connection = connection or EventConnection(
            config.ws_url or config.network.default_ws_url
        )

    @property
    def connection(self) -> EventConnection:
        return self._connection

    async def new_blocks(self) -> Subscription[BlockEvent]:
        return await self._connection.subscribe("/blocks", _blocks)

    async def new_block_heights(self) -> Subscription[int]:
        return await self._connection.subscribe("/blocks/new", _heights)

    async def unconfirmed_transactions(
        self, address: str | None = None
    ) -> Subscription[Record]:
        """Transactions entering the unconfirmed pool (optionally one account's)."""
        if address is None:
            return await self._connection.subscribe("/unconfirmed", self._records)
        address = normalize_address(address)
        return await self._connection.subscribe(
            f"/unconfirmed/{address}", self._records, account=address
        )

    async def confirmed_transactions(
        self, address: str | None = None
    ) -> Subscription[Record]:
        """Transactions included in a block (optionally one account's).

        Without an address, every transaction of every new block is yielded.
        """
        if address is None:
            return await self._connection.subscribe("/blocks", self._block_records)
        address = normalize_address(address)
        return await self._connection.subscribe(
            f"/transactions/{address}", self._records, account=address
        )

    async def account_updates(self, address: str | None = None) -> Subscription[AccountInfo]:
        """Balance, importance and multisig changes of one account.

        Defaults to the configured base account.
        """
        address = normalize_address(address or self._base_address)
        return await self._connection.subscribe(
            f"/account/{address}", _account_info, account=address
        )

    async def close(self) -> None:
        await self._connection.close()

    def _records(self, payload: Any) -> list[Record]:
        return [parse_record(payload, self._network)]

    def _block_records(self, payload: Any) -> list[Record]:
        if not isinstance(payload, dict):
            return []
        meta = {"height": payload.get("height")}
        return [
            parse_record({"meta": meta, "transaction": tx}, self._network)
            for tx in payload.get("transactions", [])
        ]


def _blocks(payload: Any) -> list[BlockEvent]:
    try:
        return [BlockEvent.from_dict(payload)]
    except (KeyError, TypeError, ValueError, AttributeError):
        log.warning("dropping malformed block event")
        return []


def _heights(payload: Any) -> list[int]:
    try:
        return [int(payload["height"])]
    except (KeyError, TypeError, ValueError):
        log.warning("dropping malformed block height event")
        return []


def _account_info(payload: Any) -> list[AccountInfo]:
    if not isinstance(payload, dict):
        log.warning("dropping malformed account event")
        return []
    # NIS pushes either an AccountMetaDataPair or the bare account object
    if "account" not in payload:
        payload = {"account": payload}
    try:
        return [AccountInfo.from_dict(payload)]
    except (KeyError, TypeError, ValueError, AttributeError):
        log.warning("dropping malformed account event")
        return []
