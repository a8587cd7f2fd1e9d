"""A client session over an established STOMP byte stream."""

from __future__ import annotations

import logging
import queue
import re
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import BinaryIO

from stompwire.frame import (
    HK_ACK,
    HK_DESTINATION,
    HK_ID,
    HK_MESSAGE_ID,
    HK_SUBSCRIPTION,
    Headers,
    Message,
    StompError,
    check_headers,
)
from stompwire.heartbeats import HeartBeatPlan, negotiate_heartbeats
from stompwire.subscriptions import (
    ACK_MODE_AUTO,
    STOMP_PLUS_DRAIN_NOW,
    Subscription,
    SubscriptionRegistry,
    check_subscribe_headers,
)
from stompwire.utils import SPL_10, SPL_11, SPL_12, sha1, supported
from stompwire.wire import ERROR, HEARTBEAT, MESSAGE, RECEIPT, read_frame, write_frame

_log = logging.getLogger(__name__)

ECONBAD = "no current connection or DISCONNECT previously completed"
EREQDSTSND = "destination required, SEND"
EBADVERNAK = "NACK not supported at protocol level 1.0"
EREQIDNAK = "id required, NACK"
EREQSUBNAK = "subscription required, NACK"
EREQMIDNAK = "message-id required, NACK"
EUNOSID = "id required, UNSUBSCRIBE"
EUNODSID = "destination or id required, UNSUBSCRIBE"
EBADSID = "invalid subscription-id"
EMSGNOSUB = "MESSAGE frame without a subscription header"
EBADBRKCMD = "unexpected broker command"

SEND = "SEND"
SUBSCRIBE = "SUBSCRIBE"
UNSUBSCRIBE = "UNSUBSCRIBE"
NACK = "NACK"

READ_ERROR_HEADER = "connection_read_error"
DEFAULT_DRAIN_NOW_MS = 100

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass
class MessageData:
    """A received frame, or the error that ended reading."""

    message: Message = field(default_factory=Message)
    error: BaseException | None = None


def _drain_interval(text: str) -> float:
    """Seconds to wait for more messages while draining; bad input gives 100 ms."""
    if _INT_PATTERN.fullmatch(text):
        value = int(text)
        if -(1 << 63) <= value < (1 << 63):
            return value / 1000
    return DEFAULT_DRAIN_NOW_MS / 1000


class Connection:
    """A STOMP session on a connected stream.

    The stream must offer ``readline``, ``read`` and ``write``. Frames from
    the broker are read on a background thread: MESSAGE frames go to the
    queue of their subscription, RECEIPT and ERROR frames (and the error
    that ends reading) go to ``message_data``.
    """

    def __init__(
        self,
        stream: BinaryIO,
        protocol: str,
        client_headers: Iterable[str] | None = None,
        server_headers: Iterable[str] | None = None,
    ) -> None:
        if not supported(protocol):
            raise ValueError(f"unsupported protocol level: {protocol!r}")
        self.stream = stream
        self.protocol = protocol
        self.subscriptions = SubscriptionRegistry()
        self.message_data: queue.Queue[MessageData] = queue.Queue()
        self.heartbeats: HeartBeatPlan | None = negotiate_heartbeats(
            client_headers or (), server_headers or ()
        )

        self.frames_read = 0
        self.bytes_read = 0
        self.frames_written = 0
        self.bytes_written = 0
        self.send_ticker_count = 0
        self.receive_ticker_count = 0
        self.heartbeat_send_failed = False
        self.heartbeat_receive_failed = False

        now = time.monotonic_ns()
        self._last_read = now
        self._last_send = now
        self._write_lock = threading.Lock()
        self._shutdown = threading.Event()

        self._start(self._reader, "stomp-reader")
        if self.heartbeats is not None:
            if self.heartbeats.send:
                self._start(self._send_ticker, "stomp-hb-send")
            if self.heartbeats.receive:
                self._start(self._receive_ticker, "stomp-hb-receive")

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        """True until the session is closed or reading fails."""
        return not self._shutdown.is_set()

    @property
    def send_ticker_interval(self) -> int:
        """Outgoing heart-beat interval in nanoseconds, 0 when none."""
        return self.heartbeats.send_interval_ns if self.heartbeats else 0

    @property
    def receive_ticker_interval(self) -> int:
        """Incoming heart-beat interval in nanoseconds, 0 when none."""
        return self.heartbeats.receive_interval_ns if self.heartbeats else 0

    def _start(self, target, name: str) -> None:
        threading.Thread(target=target, name=name, daemon=True).start()

    def _require_connected(self) -> None:
        if not self.connected:
            raise StompError(ECONBAD)

    def _transmit(self, command: str, headers: Headers, body: bytes = b"") -> None:
        if self._shutdown.is_set():
            raise StompError(ECONBAD)
        message = Message(command, Headers(headers).clone(), bytes(body))
        with self._write_lock:
            count = write_frame(self.stream, message, self.protocol)
            self._last_send = time.monotonic_ns()
            self.frames_written += 1
            self.bytes_written += count

    def send(self, headers: Iterable[str] | None, body: str) -> None:
        """Send a MESSAGE with a text body to the ``destination`` header."""
        self._send(headers, body.encode("utf-8", "surrogateescape"))

    def send_bytes(self, headers: Iterable[str] | None, body: bytes) -> None:
        """Send a MESSAGE with a binary body to the ``destination`` header."""
        self._send(headers, bytes(body))

    def _send(self, headers: Iterable[str] | None, body: bytes) -> None:
        _log.debug("%s start %s", SEND, headers)
        self._require_connected()
        check_headers(headers, self.protocol)
        headers = Headers(headers)
        if headers.contains(HK_DESTINATION) is None:
            raise StompError(EREQDSTSND)
        self._transmit(SEND, headers, body)
        _log.debug("%s end %s", SEND, headers)

    def subscribe(self, headers: Iterable[str] | None) -> queue.Queue:
        """Subscribe and return the queue that receives its messages.

        An ``ack:auto`` header is added when none is given, and an ``id``
        header is generated when the caller supplies none.
        """
        _log.debug("%s start %s %s", SUBSCRIBE, headers, self.protocol)
        self._require_connected()
        check_headers(headers, self.protocol)
        check_subscribe_headers(headers, self.protocol)
        headers = Headers(headers).clone()
        if headers.contains(HK_ACK) is None:
            headers = headers.add(HK_ACK, ACK_MODE_AUTO)
        sub, headers = self.subscriptions.establish(headers, self.protocol)
        self._transmit(SUBSCRIBE, headers)
        _log.debug("%s end %s %s", SUBSCRIBE, headers, self.protocol)
        return sub.messages

    def unsubscribe(self, headers: Iterable[str] | None) -> None:
        """End a subscription.

        With the drain-now extension header the subscription's pending
        messages are discarded until none arrives for the given number of
        milliseconds, and no UNSUBSCRIBE frame is sent.
        """
        _log.debug("%s start %s", UNSUBSCRIBE, headers)
        self._require_connected()
        check_headers(headers, self.protocol)
        headers = Headers(headers)

        has_dest = headers.contains(HK_DESTINATION) is not None
        sub_id = headers.contains(HK_ID)
        if self.protocol in (SPL_11, SPL_12):
            if sub_id is None:
                raise StompError(EUNOSID)
        elif self.protocol == SPL_10:
            if sub_id is None and not has_dest:
                raise StompError(EUNODSID)
        else:
            raise ValueError(f"unsubscribe version not supported: {self.protocol!r}")

        dest_hash = sha1(headers.value(HK_DESTINATION))
        by_id = self.subscriptions.get(sub_id) if sub_id is not None else None
        by_dest = self.subscriptions.get(dest_hash)

        target: Subscription
        if self.protocol == SPL_10:
            if by_dest is not None:
                key, target = dest_hash, by_dest
            elif by_id is not None:
                key, target = sub_id, by_id
            else:
                raise StompError(EUNODSID)
        else:
            if by_id is None:
                raise StompError(EBADSID, sub_id)
            key, target = sub_id, by_id

        drain_text = headers.contains(STOMP_PLUS_DRAIN_NOW)
        if drain_text is None:
            self._transmit(UNSUBSCRIBE, headers)
            self.subscriptions.remove(key)
            _log.debug("%s end %s", UNSUBSCRIBE, headers)
            return

        interval = _drain_interval(drain_text)
        dropped = 0
        while True:
            try:
                item = target.messages.get(timeout=interval)
            except queue.Empty:
                break
            dropped += 1
            _log.debug("drain-now dropped %d: %s", dropped, item.message.command)
        self.subscriptions.remove(key)
        _log.debug("%s end drain-now %s", UNSUBSCRIBE, headers)

    def nack(self, headers: Iterable[str] | None) -> None:
        """Reject a message; not available at protocol level 1.0."""
        _log.debug("%s start %s %s", NACK, headers, self.protocol)
        self._require_connected()
        if self.protocol == SPL_10:
            raise StompError(EBADVERNAK)
        check_headers(headers, self.protocol)
        headers = Headers(headers)
        if self.protocol == SPL_12:
            if headers.contains(HK_ID) is None:
                raise StompError(EREQIDNAK)
        else:
            if headers.contains(HK_SUBSCRIPTION) is None:
                raise StompError(EREQSUBNAK)
            if headers.contains(HK_MESSAGE_ID) is None:
                raise StompError(EREQMIDNAK)
        self._transmit(NACK, headers)
        _log.debug("%s end %s %s", NACK, headers, self.protocol)

    def close(self) -> None:
        """Stop all background work and close the stream."""
        self._shutdown.set()
        try:
            self.stream.close()
        except (OSError, ValueError):
            pass

    def _reader(self) -> None:
        while not self._shutdown.is_set():
            try:
                message = read_frame(self.stream, self.protocol)
                self._last_read = time.monotonic_ns()
                if not message.command:
                    continue
                self.frames_read += 1
                self.bytes_read += message.size(False)
                self._dispatch(MessageData(message))
            except (EOFError, OSError, ValueError, StompError) as exc:
                self._shutdown.set()
                failed = Message(headers=Headers([READ_ERROR_HEADER, str(exc)]))
                self.message_data.put(MessageData(failed, exc))
                _log.debug("reader stopped: %r", exc)
                return

    def _dispatch(self, data: MessageData) -> None:
        message = data.message
        if message.command == MESSAGE:
            sub_id = message.headers.contains(HK_SUBSCRIPTION)
            if sub_id is None:
                raise StompError(EMSGNOSUB, str(list(message.headers)))
            sub = self.subscriptions.get(sub_id)
            if sub is None:
                _log.debug("no subscription %s for %s", sub_id, message.headers)
            elif sub.closed:
                _log.debug("closed subscription %s for %s", sub_id, message.headers)
            else:
                sub.deliver(data)
        elif message.command in (ERROR, RECEIPT):
            self.message_data.put(data)
        else:
            raise StompError(EBADBRKCMD, message.command)

    def _send_ticker(self) -> None:
        interval = self.heartbeats.send_interval
        while not self._shutdown.wait(interval):
            try:
                self._transmit(HEARTBEAT, Headers())
            except StompError:
                self.heartbeat_send_failed = True
                break
            except (OSError, ValueError) as exc:
                _log.warning("heartbeat send failure: %s", exc)
                self.heartbeat_send_failed = True
            else:
                self.heartbeat_send_failed = False
                self.send_ticker_count += 1

    def _receive_ticker(self) -> None:
        plan = self.heartbeats
        while not self._shutdown.wait(plan.receive_interval):
            elapsed = time.monotonic_ns() - self._last_read
            if plan.is_receive_late(elapsed):
                _log.debug("heartbeat receive is late by %d ns", elapsed)
                self.heartbeat_receive_failed = True
            else:
                self.heartbeat_receive_failed = False
                self.receive_ticker_count += 1