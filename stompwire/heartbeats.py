"""Negotiation of STOMP heart-beat intervals between client and broker."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from stompwire.frame import HK_HEART_BEAT, Headers, StompError

EHBCLIENT = "invalid client heart-beat header"
EHBSERVER = "invalid server heart-beat header"
EHBCX = "non-numeric cx heartbeat value"
EHBCY = "non-numeric cy heartbeat value"
EHBSX = "non-numeric sx heartbeat value"
EHBSY = "non-numeric sy heartbeat value"

NO_HEARTBEATS = "0,0"

_NS_PER_MS = 1_000_000
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_LIMIT = 1 << 63


def _parse_ms(text: str, error: str) -> int:
    if not _INT_PATTERN.fullmatch(text):
        raise StompError(error, text)
    value = int(text)
    if not -_INT64_LIMIT <= value < _INT64_LIMIT:
        raise StompError(error, text)
    return value


def _split_pair(text: str, error: str) -> tuple[str, str]:
    parts = text.split(",")
    if len(parts) != 2:
        raise StompError(error, text)
    return parts[0], parts[1]


@dataclass(frozen=True)
class HeartBeatPlan:
    """Agreed heart-beat settings, in milliseconds as sent on the wire.

    ``cx``/``cy`` are the client's values and ``sx``/``sy`` the broker's.
    ``send`` and ``receive`` tell which directions are active.
    """

    cx: int
    cy: int
    sx: int
    sy: int
    send: bool
    receive: bool

    @property
    def send_interval_ms(self) -> int:
        """Interval between outgoing heart-beats, or 0 when not sending."""
        return max(self.cx, self.sy) if self.send else 0

    @property
    def receive_interval_ms(self) -> int:
        """Expected interval between incoming data, or 0 when not checking."""
        return max(self.sx, self.cy) if self.receive else 0

    @property
    def send_interval_ns(self) -> int:
        return self.send_interval_ms * _NS_PER_MS

    @property
    def receive_interval_ns(self) -> int:
        return self.receive_interval_ms * _NS_PER_MS

    @property
    def send_interval(self) -> float:
        """Send interval in seconds."""
        return self.send_interval_ms / 1000

    @property
    def receive_interval(self) -> float:
        """Receive interval in seconds."""
        return self.receive_interval_ms / 1000

    @property
    def receive_tolerance_ns(self) -> int:
        """Longest gap between reads still taken as healthy."""
        interval = self.receive_interval_ns
        return interval + interval // 5

    def is_receive_late(self, elapsed_ns: int) -> bool:
        """True when ``elapsed_ns`` since the last read marks the link dirty."""
        return self.receive and elapsed_ns > self.receive_tolerance_ns


def negotiate_heartbeats(
    client_headers: Iterable[str], server_headers: Iterable[str]
) -> HeartBeatPlan | None:
    """Work out heart-beating from CONNECT and CONNECTED headers.

    Returns None when either side asks for none, or when neither direction
    ends up active. Raises StompError on malformed heart-beat headers.
    """
    client_value = Headers(client_headers).contains(HK_HEART_BEAT)
    if client_value is None or client_value == NO_HEARTBEATS:
        return None
    server_value = Headers(server_headers).contains(HK_HEART_BEAT)
    if server_value is None or server_value == NO_HEARTBEATS:
        return None

    cx_text, cy_text = _split_pair(client_value, EHBCLIENT)
    cx = _parse_ms(cx_text, EHBCX)
    cy = _parse_ms(cy_text, EHBCY)
    sx_text, sy_text = _split_pair(server_value, EHBSERVER)
    sx = _parse_ms(sx_text, EHBSX)
    sy = _parse_ms(sy_text, EHBSY)

    send = not (cx == 0 or sy == 0)
    receive = not (sx == 0 or cy == 0)
    if not send and not receive:
        return None
    return HeartBeatPlan(cx=cx, cy=cy, sx=sx, sy=sy, send=send, receive=receive)