"""STOMP headers, messages and common header validation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from stompwire.utils import SPL_10, hex_data
from stompwire.utils import encode as _escape

EHDRNIL = "headers can not be None"
EHDRLEN = "unmatched headers, bad length"
EHDRMTK = "header key can not be empty"
EHDRMTV = "header value can not be empty"
EHDRUTF8 = "header string not UTF8"

HK_ACCEPT_VERSION = "accept-version"
HK_ACK = "ack"
HK_CONTENT_LENGTH = "content-length"
HK_CONTENT_TYPE = "content-type"
HK_DESTINATION = "destination"
HK_HEART_BEAT = "heart-beat"
HK_HOST = "host"
HK_ID = "id"
HK_LOGIN = "login"
HK_MESSAGE_ID = "message-id"
HK_PASSCODE = "passcode"
HK_RECEIPT = "receipt"
HK_RECEIPT_ID = "receipt-id"
HK_SUBSCRIPTION = "subscription"
HK_SUPPRESS_CL = "suppress-content-length"
HK_SUPPRESS_CT = "suppress-content-type"
HK_TRANSACTION = "transaction"
HK_VERSION = "version"


def _wire_len(text: str) -> int:
    return len(text.encode("utf-8", "surrogateescape"))


class StompError(Exception):
    """A STOMP protocol or usage error.

    ``message`` is one of the module's error texts; ``value`` optionally
    carries the offending data.
    """

    def __init__(self, message: str, value: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.value = value


class Headers(list):
    """Flat sequence of alternating header keys and values."""

    def __init__(self, items: Iterable[str] = ()) -> None:
        super().__init__(items)

    def pairs(self) -> Iterator[tuple[str, str]]:
        """Yield (key, value) pairs in order."""
        items = iter(self)
        return zip(items, items)

    def add(self, key: str, value: str) -> Headers:
        """Return new headers with one pair appended."""
        return Headers([*self, key, value])

    def add_headers(self, other: Iterable[str]) -> Headers:
        """Return new headers with all of ``other`` appended."""
        return Headers([*self, *other])

    def contains(self, key: str) -> str | None:
        """Value of the first header named ``key``, or None."""
        return next((v for k, v in self.pairs() if k == key), None)

    def contains_kv(self, key: str, value: str) -> bool:
        """True when the exact pair is present."""
        return any(k == key and v == value for k, v in self.pairs())

    def value(self, key: str) -> str:
        """Value of the first header named ``key``, or an empty string."""
        found = self.contains(key)
        return "" if found is None else found

    def clone(self) -> Headers:
        """Return an independent copy."""
        return Headers(self)

    def delete(self, key: str) -> Headers:
        """Return new headers without any pair named ``key``."""
        return Headers(
            item for k, v in self.pairs() if k != key for item in (k, v)
        )

    def validate(self) -> None:
        """Raise StompError unless keys and values are matched."""
        if len(self) % 2:
            raise StompError(EHDRLEN)

    def validate_utf8(self) -> None:
        """Raise StompError, carrying the bad string, if any is not UTF-8."""
        for text in self:
            try:
                text.encode("utf-8")
            except UnicodeEncodeError:
                raise StompError(EHDRUTF8, text) from None

    def size(self, encode: bool) -> int:
        """Wire size in bytes, optionally with STOMP escaping applied."""

        def measure(text: str) -> int:
            return _wire_len(_escape(text) if encode else text)

        return sum(measure(k) + 1 + measure(v) + 1 for k, v in self.pairs())

    def compare(self, other: Headers) -> bool:
        """True when both have equal length and every pair is found in ``other``."""
        if len(self) != len(other):
            return False
        return all(other.contains(k) == v for k, v in self.pairs())


@dataclass
class Message:
    """A STOMP frame: command, headers and body."""

    command: str = ""
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""

    def body_string(self) -> str:
        """The body as text."""
        return bytes(self.body).decode("utf-8", "replace")

    def size(self, encode: bool) -> int:
        """Size of the frame on the wire, in bytes."""
        return (
            _wire_len(self.command) + 1 + self.headers.size(encode) + 1
            + len(self.body) + 1
        )

    def __str__(self) -> str:
        return (
            "\nCommand:" + self.command
            + "\nHeaders:" + str(list(self.headers))
            + hex_data(self.body)
        )


def check_headers(headers: Headers | None, protocol: str) -> None:
    """Validate headers common to every frame; raise StompError on failure."""
    if headers is None:
        raise StompError(EHDRNIL)
    headers = Headers(headers) if not isinstance(headers, Headers) else headers
    headers.validate()
    for key, value in headers.pairs():
        if key == "":
            raise StompError(EHDRMTK)
        if protocol == SPL_10 and value == "":
            raise StompError(EHDRMTV)
    if protocol != SPL_10:
        headers.validate_utf8()