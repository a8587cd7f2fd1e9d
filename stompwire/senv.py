"""Connection defaults taken from ``STOMP_*`` environment variables."""

from __future__ import annotations

import logging
import os
import re

_log = logging.getLogger(__name__)

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")

DEFAULT_HOST = "localhost"
DEFAULT_PORT = "61613"
DEFAULT_PROTOCOL = "1.2"
DEFAULT_LOGIN = "guest"
DEFAULT_PASSCODE = "guest"
DEFAULT_HEARTBEATS = "0,0"
DEFAULT_DEST = "/queue/sng.sample.stomp.destination"
DEFAULT_SUB_CHAN_CAP = 1
DEFAULT_NMSGS = 1
DEFAULT_MAX_BODY_LENGTH = -1
DEFAULT_BUFSZ = 64 * 1024

# Sentinel login / passcode value meaning "send an empty credential".
NONE_MARKER = "NONE"


def _env(name: str) -> str:
    return os.environ.get(name, "")


def _env_int(name: str, default: int, bits: int = 64) -> int:
    """Read a base 10 integer from the environment, falling back on bad input."""
    text = _env(name)
    if not text:
        return default
    if not _INT_PATTERN.fullmatch(text):
        _log.warning("%s conversion error: invalid syntax %r", name, text)
        return default
    value = int(text)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        _log.warning("%s conversion error: value out of range %r", name, text)
        return default
    return value


def dest() -> str:
    """Destination name."""
    return _env("STOMP_DEST") or DEFAULT_DEST


def heartbeats() -> str:
    """Client requested heart-beat values."""
    return _env("STOMP_HEARTBEATS") or DEFAULT_HEARTBEATS


def host() -> str:
    """Broker host name."""
    return _env("STOMP_HOST") or DEFAULT_HOST


def host_and_port() -> tuple[str, str]:
    """Broker host and port, as used to open a socket."""
    return host(), port()


def login() -> str:
    """Login id; the value NONE yields an empty login."""
    value = _env("STOMP_LOGIN")
    if value == NONE_MARKER:
        return ""
    return value or DEFAULT_LOGIN


def nmsgs() -> int:
    """Number of messages to process."""
    return _env_int("STOMP_NMSGS", DEFAULT_NMSGS)


def passcode() -> str:
    """Passcode; the value NONE yields an empty passcode."""
    value = _env("STOMP_PASSCODE")
    if value == NONE_MARKER:
        return ""
    return value or DEFAULT_PASSCODE


def persistent() -> bool:
    """True when persistent messages are wanted."""
    return bool(_env("STOMP_PERSISTENT"))


def port() -> str:
    """Broker port."""
    return _env("STOMP_PORT") or DEFAULT_PORT


def protocol() -> str:
    """Protocol level to request."""
    return _env("STOMP_PROTOCOL") or DEFAULT_PROTOCOL


def sub_chan_cap() -> int:
    """Capacity of each subscription's message queue."""
    return _env_int("STOMP_SUBCHANCAP", DEFAULT_SUB_CHAN_CAP, bits=32)


def write_bufsz() -> int:
    """Socket write buffer size."""
    return _env_int("STOMP_WRITEBUFSZ", DEFAULT_BUFSZ, bits=32)


def read_bufsz() -> int:
    """Socket read buffer size."""
    return _env_int("STOMP_READBUFSZ", DEFAULT_BUFSZ, bits=32)


def vhost() -> str:
    """Virtual host name; defaults to the broker host."""
    return _env("STOMP_VHOST") or host()


def max_body_length() -> int:
    """Maximum body length shown in dumps; -1 means no limit."""
    return _env_int("STOMP_MAXBODYLENGTH", DEFAULT_MAX_BODY_LENGTH, bits=32)


def want_logger() -> str:
    """Requested logger name, or an empty string."""
    return _env("STOMP_LOGGER")


def use_stomp() -> bool:
    """True when a STOMP frame should be sent instead of CONNECT."""
    return bool(_env("STOMP_USESTOMP"))