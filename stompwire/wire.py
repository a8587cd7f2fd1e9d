"""Reading and writing STOMP frames on a byte stream."""

from __future__ import annotations

import re
from typing import BinaryIO

from stompwire.frame import (
    HK_CONTENT_LENGTH,
    HK_CONTENT_TYPE,
    HK_SUPPRESS_CL,
    HK_SUPPRESS_CT,
    Headers,
    Message,
    StompError,
    check_headers,
)
from stompwire.utils import SPL_10, decode, encode, hex_data

EINVBCMD = "invalid broker command"
EUNKHDR = "corrupt frame headers"
EBADCL = "invalid content-length header"

CONNECT = "CONNECT"
CONNECTED = "CONNECTED"
MESSAGE = "MESSAGE"
RECEIPT = "RECEIPT"
ERROR = "ERROR"

HEARTBEAT = "\n"
DFLT_CONTENT_TYPE = "text/plain; charset=UTF-8"

BROKER_COMMANDS = frozenset({CONNECTED, MESSAGE, RECEIPT, ERROR})

_CONTENT_LENGTH_PATTERN = re.compile(r"[+-]?[0-9]+")


def _to_bytes(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _to_text(data: bytes) -> str:
    return data.decode("utf-8", "surrogateescape")


def _read_line(stream: BinaryIO) -> bytes:
    line = stream.readline()
    if not line.endswith(b"\n"):
        raise EOFError("stream ended inside a frame line")
    return line


def _read_until_nul(stream: BinaryIO) -> bytes:
    collected = bytearray()
    while True:
        byte = stream.read(1)
        if not byte:
            raise EOFError("stream ended before the frame terminator")
        if byte == b"\x00":
            return bytes(collected)
        collected += byte


def _read_body(stream: BinaryIO, length: int) -> bytes:
    collected = bytearray()
    while len(collected) < length:
        chunk = stream.read(length - len(collected))
        if not chunk:
            raise EOFError(
                f"short body read: {len(collected)} of {length} bytes"
            )
        collected += chunk
    stream.read(1)  # trailing NUL
    return bytes(collected)


def _content_length(text: str) -> int:
    text = text.strip()
    if not _CONTENT_LENGTH_PATTERN.fullmatch(text):
        raise StompError(EBADCL, text)
    length = int(text)
    if length < 0:
        raise StompError(EBADCL, text)
    return length


def read_frame(stream: BinaryIO, protocol: str) -> Message:
    """Read one frame from ``stream``.

    A bare line end (a heart-beat) yields a Message with an empty command.
    Raises EOFError when the stream ends and StompError on malformed data.
    """
    line = _read_line(stream)
    command = _to_text(line[:-1])
    if command == "":
        return Message()
    if command not in BROKER_COMMANDS:
        raise StompError(EINVBCMD, hex_data(_to_bytes(command)))

    headers = Headers()
    while True:
        line = _read_line(stream)
        if line == b"\n":
            break
        key, sep, value = _to_text(line[:-1]).partition(":")
        if not sep:
            raise StompError(EUNKHDR, key)
        headers = headers.add(decode(key), decode(value))

    check_headers(headers, protocol)

    length_text = headers.contains(HK_CONTENT_LENGTH)
    if length_text is None:
        body = _read_until_nul(stream)
    else:
        length = _content_length(length_text)
        body = _read_until_nul(stream) if length == 0 else _read_body(stream, length)
    return Message(command, headers, body)


def _final_headers(message: Message, protocol: str) -> Headers:
    headers = Headers(message.headers)
    if headers.contains(HK_SUPPRESS_CT) is None and headers.contains(HK_CONTENT_TYPE) is None:
        headers = headers.add(HK_CONTENT_TYPE, DFLT_CONTENT_TYPE)
    if headers.contains(HK_SUPPRESS_CL) is None and headers.contains(HK_CONTENT_LENGTH) is None:
        headers = headers.add(HK_CONTENT_LENGTH, str(len(message.body)))
    if protocol > SPL_10 and message.command != CONNECT:
        headers = Headers(encode(item) for item in headers)
    return headers


def encode_frame(message: Message, protocol: str) -> bytes:
    """Return the wire bytes for ``message``.

    Content-type and content-length headers are added unless present or
    suppressed. With content-length suppressed the body is cut at its
    first NUL byte. Headers are escaped for protocols above 1.0, except
    on CONNECT.
    """
    if message.command == HEARTBEAT:
        return b"\n"
    headers = _final_headers(message, protocol)
    body = bytes(message.body)
    if message.headers.contains(HK_SUPPRESS_CL) is not None:
        body = body.split(b"\x00", 1)[0]
    lines = [message.command + "\n"]
    lines.extend(f"{key}:{value}\n" for key, value in headers.pairs())
    lines.append("\n")
    return _to_bytes("".join(lines)) + body + b"\x00"


def write_frame(stream: BinaryIO, message: Message, protocol: str) -> int:
    """Write ``message`` to ``stream``, flush it, and return the byte count."""
    data = encode_frame(message, protocol)
    stream.write(data)
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()
    return len(data)