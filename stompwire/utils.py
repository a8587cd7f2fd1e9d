"""Header codec, dump, hashing and protocol helpers."""

from __future__ import annotations

import hashlib
import re
import uuid

from stompwire import senv

SPL_10 = "1.0"
SPL_11 = "1.1"
SPL_12 = "1.2"

_SUPPORTED = (SPL_10, SPL_11, SPL_12)

_VERSION = "v1.0.13-m.2"

_ENCODE_TABLE = str.maketrans(
    {"\\": "\\\\", "\n": "\\n", "\r": "\\r", ":": "\\c"}
)
_ESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "c": ":"}
_ESCAPE_PATTERN = re.compile(r"\\([\\nrc])")

_DUMP_WIDTH = 16


def encode(s: str) -> str:
    """Escape a header key or value for the STOMP 1.1+ wire format."""
    return s.translate(_ENCODE_TABLE)


def decode(s: str) -> str:
    """Undo STOMP 1.1+ header escaping; unknown escapes are left alone."""
    return _ESCAPE_PATTERN.sub(lambda match: _ESCAPES[match.group(1)], s)


def _dump_line(offset: int, chunk: bytes) -> str:
    cells = [f"{byte:02x}" for byte in chunk]
    cells.extend(["  "] * (_DUMP_WIDTH - len(chunk)))
    left = " ".join(cells[:8])
    right = " ".join(cells[8:])
    text = "".join(chr(byte) if 32 <= byte <= 126 else "." for byte in chunk)
    return f"{offset:08x}  {left}  {right}  |{text}|\n"


def _hex_dump(data: bytes) -> str:
    return "".join(
        _dump_line(offset, data[offset:offset + _DUMP_WIDTH])
        for offset in range(0, len(data), _DUMP_WIDTH)
    )


def hex_data(data: bytes) -> str:
    """Return a hex dump of ``data``, limited by the configured body length."""
    limit = senv.max_body_length()
    if limit > 0:
        data = data[:limit]
    return "\n" + _hex_dump(bytes(data))


def sha1(text: str) -> str:
    """Return the hex SHA-1 digest of ``text``."""
    return hashlib.sha1(text.encode("utf-8", "surrogateescape")).hexdigest()


def uuid4() -> str:
    """Return a random version 4 UUID string."""
    return str(uuid.uuid4())


def supported(version: str) -> bool:
    """True when ``version`` is a protocol level this client speaks."""
    return version in _SUPPORTED


def protocols() -> list[str]:
    """Protocol levels this client speaks, lowest first."""
    return list(_SUPPORTED)


def version() -> str:
    """Package version string."""
    return _VERSION