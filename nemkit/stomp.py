"""
STOMP 1.1 frame codec for the NIS websocket.

Frame layout:

    COMMAND\\n
    header:value\\n
    ...
    \\n
    body\\0

Header values are escaped (``\\\\``, ``\\n``, ``\\c``) on every frame except
CONNECT / CONNECTED. Bare newlines between frames are heart-beats and are
dropped by ``decode_frames()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

NULL = "\x00"

_UNESCAPED_COMMANDS = frozenset({"CONNECT", "CONNECTED"})
_ESCAPES = (("\\", "\\\\"), ("\n", "\\n"), (":", "\\c"))


def _escape(value: str) -> str:
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def _unescape(value: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            out.append({"\\": "\\", "n": "\n", "c": ":", "r": "\r"}.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


@dataclass(frozen=True)
class StompFrame:
    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


def encode_frame(frame: StompFrame) -> str:
    escape = frame.command not in _UNESCAPED_COMMANDS
    lines = [frame.command]
    for name, value in frame.headers.items():
        if escape:
            name, value = _escape(name), _escape(value)
        lines.append(f"{name}:{value}")
    return "\n".join(lines) + "\n\n" + frame.body + NULL


def decode_frame(text: str) -> StompFrame:
    """Decode one frame (without its trailing NUL).

    Raises:
        ValueError: If the frame has no command line.
    """
    head, _, body = text.partition("\n\n")
    lines = head.replace("\r\n", "\n").split("\n")
    command = lines[0].strip()
    if not command:
        raise ValueError("STOMP frame has no command")
    escape = command not in _UNESCAPED_COMMANDS
    headers: dict[str, str] = {}
    for line in lines[1:]:
        if not line:
            continue
        name, _, value = line.partition(":")
        if escape:
            name, value = _unescape(name), _unescape(value)
        # First occurrence of a repeated header wins.
        headers.setdefault(name, value)
    return StompFrame(command=command, headers=headers, body=body)


def decode_frames(data: str) -> list[StompFrame]:
    """Decode every complete frame in a websocket message."""
    frames: list[StompFrame] = []
    for chunk in data.split(NULL):
        chunk = chunk.lstrip("\r\n")
        if chunk:
            frames.append(decode_frame(chunk))
    return frames


# =========================================================================
# Client frames
# =========================================================================


def connect_frame(host: str, heartbeat: tuple[int, int] = (0, 0)) -> StompFrame:
    return StompFrame(
        "CONNECT",
        {
            "accept-version": "1.1,1.0",
            "host": host,
            "heart-beat": f"{heartbeat[0]},{heartbeat[1]}",
        },
    )


def subscribe_frame(subscription_id: str, destination: str) -> StompFrame:
    return StompFrame(
        "SUBSCRIBE",
        {"id": subscription_id, "destination": destination, "ack": "auto"},
    )


def unsubscribe_frame(subscription_id: str) -> StompFrame:
    return StompFrame("UNSUBSCRIBE", {"id": subscription_id})


def send_frame(destination: str, body: str) -> StompFrame:
    return StompFrame(
        "SEND",
        {
            "destination": destination,
            "content-type": "application/json",
            "content-length": str(len(body.encode("utf-8"))),
        },
        body,
    )


def disconnect_frame() -> StompFrame:
    return StompFrame("DISCONNECT")
