"""Subscription bookkeeping and SUBSCRIBE header checks."""

from __future__ import annotations

import logging
import queue
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from stompwire import senv
from stompwire.frame import HK_ACK, HK_DESTINATION, HK_ID, Headers, StompError
from stompwire.utils import SPL_10, SPL_11, SPL_12, sha1, uuid4

_log = logging.getLogger(__name__)

EREQDSTSUB = "destination required, SUBSCRIBE"
ESBADAM = "invalid ackmode, SUBSCRIBE"
EDUPSID = "duplicate subscription-id"

ACK_MODE_AUTO = "auto"
ACK_MODE_CLIENT = "client"
ACK_MODE_CLIENT_INDIVIDUAL = "client-individual"

VALID_ACK_MODES_10 = frozenset({ACK_MODE_AUTO, ACK_MODE_CLIENT})
VALID_ACK_MODES_1X = frozenset({ACK_MODE_CLIENT_INDIVIDUAL})

# Client-side protocol extensions.
STOMP_PLUS_DRAIN_AFTER = "sng_drafter"
STOMP_PLUS_DRAIN_NOW = "sng_drnow"

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_UINT_MODULUS = 1 << 64


def _unsupported(protocol: str) -> ValueError:
    return ValueError(f"internal protocol level error: {protocol!r}")


def check_subscribe_headers(headers: Iterable[str], protocol: str) -> None:
    """Raise StompError unless the headers suit a SUBSCRIBE frame."""
    headers = Headers(headers)
    if headers.contains(HK_DESTINATION) is None:
        raise StompError(EREQDSTSUB)
    ack_mode = headers.contains(HK_ACK)
    if protocol == SPL_10:
        allowed = VALID_ACK_MODES_10
    elif protocol in (SPL_11, SPL_12):
        allowed = VALID_ACK_MODES_10 | VALID_ACK_MODES_1X
    else:
        raise _unsupported(protocol)
    if ack_mode is not None and ack_mode not in allowed:
        raise StompError(ESBADAM, ack_mode)


@dataclass
class Subscription:
    """One active subscription and the queue its messages arrive on.

    A queue capacity of 0 means the queue is unbounded.
    """

    id: str
    ack_mode: str = ""
    capacity: int = 1
    closed: bool = False
    drain_after_valid: bool = False
    drain_after: int = 0
    drain_count: int = 0
    messages: queue.Queue = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.messages = queue.Queue(maxsize=max(self.capacity, 0))

    def deliver(self, item: Any) -> bool:
        """Queue ``item``, blocking while full; False when dropped by draining."""
        if self.drain_after_valid:
            self.drain_count += 1
            if self.drain_count > self.drain_after:
                _log.debug("dropped message %d on %s", self.drain_count, self.id)
                return False
        self.messages.put(item)
        return True


def _drain_after(text: str) -> int | None:
    if not _INT_PATTERN.fullmatch(text):
        return None
    value = int(text)
    if not -(1 << 63) <= value < (1 << 63):
        return None
    return value % _UINT_MODULUS


class SubscriptionRegistry:
    """Thread-safe map of subscription ids to subscriptions."""

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = senv.sub_chan_cap() if capacity is None else capacity
        self._subs: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)

    def __contains__(self, sub_id: object) -> bool:
        with self._lock:
            return sub_id in self._subs

    def establish(
        self, headers: Iterable[str], protocol: str
    ) -> tuple[Subscription, Headers]:
        """Register a subscription for SUBSCRIBE ``headers``.

        Returns the subscription and the headers to send, which gain an
        ``id`` header when the caller supplied none. Raises StompError when
        the id is already in use.
        """
        headers = Headers(headers)
        given_id = headers.contains(HK_ID)
        generated = uuid4()
        dest_hash = sha1(headers.value(HK_DESTINATION))

        with self._lock:
            if given_id is not None:
                if given_id in self._subs or dest_hash in self._subs:
                    raise StompError(EDUPSID, given_id)
            elif generated in self._subs:
                raise StompError(EDUPSID, generated)

        if given_id is not None:
            sub_id = given_id
        elif protocol == SPL_10:
            sub_id = dest_hash
            headers = headers.add(HK_ID, sub_id)
        elif protocol in (SPL_11, SPL_12):
            sub_id = generated
            headers = headers.add(HK_ID, sub_id)
        else:
            raise _unsupported(protocol)

        sub = Subscription(
            id=sub_id, ack_mode=headers.value(HK_ACK), capacity=self.capacity
        )

        drain_text = headers.contains(STOMP_PLUS_DRAIN_AFTER)
        if drain_text is not None:
            count = _drain_after(drain_text)
            if count is None:
                _log.warning("%s conversion error: %r", STOMP_PLUS_DRAIN_AFTER, drain_text)
            else:
                sub.drain_after_valid = True
                sub.drain_after = count

        with self._lock:
            self._subs[sub_id] = sub
        return sub, headers

    def get(self, sub_id: str) -> Subscription | None:
        """The subscription with ``sub_id``, or None."""
        with self._lock:
            return self._subs.get(sub_id)

    def remove(self, sub_id: str) -> Subscription | None:
        """Forget ``sub_id`` and return its subscription, or None."""
        with self._lock:
            return self._subs.pop(sub_id, None)