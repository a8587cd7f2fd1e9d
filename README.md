# stompwire

A small, dependency-free STOMP client toolkit for protocol levels 1.0, 1.1
and 1.2. It provides:

- `stompwire.frame`: `Headers`, `Message`, `StompError` and `check_headers`,
  the header validation shared by every command.
- `stompwire.wire`: `read_frame`, `encode_frame` and `write_frame`, which put
  frames on a byte stream and take them off again, with header escaping,
  `content-length` handling and suppression of the automatic
  `content-type` / `content-length` headers.
- `stompwire.heartbeats`: `negotiate_heartbeats` works out a `HeartBeatPlan`
  from the client's and the broker's `heart-beat` headers.
- `stompwire.subscriptions`: `Subscription`, `SubscriptionRegistry` and
  `check_subscribe_headers`, covering subscription ids, ack modes and the
  `sng_drafter` drain-after extension.
- `stompwire.connection`: `Connection`, a session on an already connected
  stream, with `send`, `send_bytes`, `subscribe`, `unsubscribe`, `nack` and
  `close`.
- `stompwire.utils`: header `encode` / `decode`, `hex_data`, `sha1`,
  `uuid4`, `supported`, `protocols` and `version`.
- `stompwire.senv`: defaults for host, port, protocol, destination and so on,
  overridable through `STOMP_*` environment variables.

## Installation

```
pip install stompwire
```

To run the test suite:

```
pip install "stompwire[test]"
pytest
```

## Header escaping

STOMP 1.1 and later escape backslash, newline, carriage return and colon in
header names and values:

```python
from stompwire.utils import encode, decode

assert encode("c:c") == "c\\cc"
assert decode("n\\nn") == "n\nn"
```

## Headers

`Headers` is a flat list of alternating keys and values. Duplicate keys are
allowed and the first one wins on lookup. `add`, `add_headers` and `delete`
return new `Headers`.

```python
from stompwire.frame import Headers, check_headers

h = Headers().add("destination", "/queue/a").add("persistent", "true")
h.contains("destination")            # "/queue/a", or None when absent
h.value("missing")                   # ""
h.contains_kv("persistent", "true")  # True
h.size(False)                        # bytes on the wire
check_headers(h, "1.2")              # raises StompError on bad headers
```

`StompError` carries the error text in `message` and, where there is one,
the offending data in `value`.

## Frames on a stream

`write_frame` adds `content-type` and `content-length` unless they are given
or suppressed with `suppress-content-type` / `suppress-content-length`, and
returns the number of bytes written. `read_frame` accepts the broker commands
`CONNECTED`, `MESSAGE`, `RECEIPT` and `ERROR`; a bare line end (a heart-beat)
comes back as a `Message` with an empty command. It raises `EOFError` when the
stream ends and `StompError` on malformed data.

```python
import io
from stompwire.frame import Headers, Message
from stompwire.wire import read_frame, write_frame

buf = io.BytesIO()
frame = Message("MESSAGE", Headers(["destination", "/queue/a",
                                    "subscription", "s1"]), b"hello")
write_frame(buf, frame, "1.2")
buf.seek(0)
received = read_frame(buf, "1.2")
print(received.body_string())  # hello
```

## Heart beats

```python
from stompwire.frame import Headers
from stompwire.heartbeats import negotiate_heartbeats

plan = negotiate_heartbeats(
    Headers().add("heart-beat", "5000,5000"),
    Headers().add("heart-beat", "10000,10000"),
)
plan.send_interval_ms     # 10000
plan.receive_interval_ms  # 10000
```

`negotiate_heartbeats` returns `None` when either side sends no header or
`0,0`, or when neither direction ends up active.

## Sessions

`Connection(stream, protocol, client_headers, server_headers)` takes a
stream offering `readline`, `read` and `write`, on which the handshake has
already happened. A background thread reads frames: `MESSAGE` frames go to
the queue returned by `subscribe`, while `RECEIPT` and `ERROR` frames, and the
error that ends reading, go to `connection.message_data`, each as a
`MessageData` with `message` and `error`. When heart-beats are negotiated,
background threads send them and watch incoming traffic.

```python
conn = Connection(stream, "1.2")
messages = conn.subscribe(Headers(["destination", "/queue/a", "id", "s1"]))
conn.send(Headers(["destination", "/queue/a"]), "hello")
data = messages.get()
conn.unsubscribe(Headers(["destination", "/queue/a", "id", "s1"]))
conn.close()
```

With a `sng_drnow` header, `unsubscribe` discards queued messages until none
arrives for that many milliseconds (100 when the value is not a number), and
sends no UNSUBSCRIBE frame.

## What it does not do

The package does not open network sockets and does not perform the
CONNECT/CONNECTED handshake or DISCONNECT; `Connection` starts from a stream
the caller has already set up. It has no ACK, BEGIN, COMMIT or ABORT
operations, no read or write deadlines, and no command-line program.

## Environment

`stompwire.senv` reads `STOMP_HOST`, `STOMP_PORT`, `STOMP_PROTOCOL`,
`STOMP_LOGIN`, `STOMP_PASSCODE`, `STOMP_VHOST`, `STOMP_DEST`,
`STOMP_HEARTBEATS`, `STOMP_NMSGS`, `STOMP_SUBCHANCAP`, `STOMP_WRITEBUFSZ`,
`STOMP_READBUFSZ`, `STOMP_MAXBODYLENGTH`, `STOMP_PERSISTENT`,
`STOMP_USESTOMP` and `STOMP_LOGGER`. Without them the defaults are
`localhost:61613`, protocol `1.2`, login and passcode `guest`, and destination
`/queue/sng.sample.stomp.destination`. A login or passcode of `NONE` yields an
empty string.

```python
from stompwire import senv

host, port = senv.host_and_port()
```