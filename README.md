# lowws

A small, dependency-free toolkit for the WebSocket protocol (RFC 6455) at
a low level. It does not hide the protocol behind a message loop; it gives
you the pieces to build one:

- frame headers and frames: building, encoding, reading and masking
  (`lowws.frame`, `lowws.read`)
- the XOR masking cipher, usable on chunked data through an offset
  (`lowws.cipher`)
- protocol checks for incoming frame headers and close-frame payloads
  (`lowws.check`)
- the opening handshake for both sides: `Dialer` for clients
  (`lowws.dialer`), `Upgrader` for raw server connections (`lowws.server`)
  and `HTTPUpgrader` for requests received by an `http.server` handler
  (`lowws.http_upgrader`)
- `Sec-WebSocket-Key` / `Sec-WebSocket-Accept` computation (`lowws.nonce`)
- parsing and writing of header tokens and extension options
  (`lowws.httphead`)
- the `lowws-report` command, which summarises Autobahn test-suite reports
  (`lowws.report`)

## Installation

```
pip install lowws
```

Python 3.10 or newer is required. There are no runtime dependencies.

## Frames

```python
import io

from lowws.frame import compile_frame, new_text_frame
from lowws.read import read_frame

raw = compile_frame(new_text_frame(b"hello, world!"))

frame = read_frame(io.BytesIO(raw))
print(frame.header.opcode.is_control())  # False
print(frame.payload)                     # b'hello, world!'
```

`Header` is a frozen dataclass with the fields `fin`, `rsv`, `opcode`,
`masked`, `mask` and `length`; `Frame` pairs a header with its `payload`.
`OpCode` and `StatusCode` are `int` subclasses with the named values as
class attributes (`OpCode.TEXT`, `OpCode.CLOSE`, `StatusCode.NORMAL_CLOSURE`,
...) and predicates such as `is_control()`, `is_reserved()`,
`is_protocol_defined()` and `is_protocol_reserved()`. `rsv(r1, r2, r3)` and
`rsv_bits(rsv)` convert between the three RSV bits and the `rsv` value.

`read_header(stream)` and `read_frame(stream)` read from any object with a
`read(n)` method. They raise `EOFError` when the stream ends early and
`lowws.read.HeaderError` when a 64-bit length has its most significant bit
set. `read_frame` returns the payload as received, still masked.

Frames sent by a client must be masked. `mask_frame` uses a random mask
from `new_mask()`; `mask_frame_with` takes the mask you give it. Both
return a copy and leave the original payload alone, while
`mask_frame_in_place` and `mask_frame_in_place_with` change the payload,
which must then be a `bytearray`. `unmask_frame` and
`unmask_frame_in_place` reverse the operation.

```python
from lowws.frame import mask_frame_with, new_binary_frame, unmask_frame

masked = mask_frame_with(new_binary_frame(b"payload"), b"\x01\x02\x03\x04")
assert unmask_frame(masked).payload == b"payload"
```

The cipher is also available on its own. It works in place on a writable
buffer, and its `offset` argument lets you unmask a payload piece by piece
as it arrives:

```python
from lowws.cipher import cipher

data = bytearray(b"some masked bytes")
mask = b"\x01\x02\x03\x04"
cipher(memoryview(data)[:5], mask, 0)
cipher(memoryview(data)[5:], mask, 5)
```

Precompiled frames for common cases are in `lowws.frame`:
`COMPILED_PING`, `COMPILED_PONG`, `COMPILED_CLOSE` and
`COMPILED_CLOSE_<STATUS>` for each defined status code.

## Close frames

```python
from lowws.check import check_close_frame_data
from lowws.frame import StatusCode, new_close_frame, new_close_frame_body
from lowws.read import parse_close_frame_data

body = new_close_frame_body(StatusCode.NORMAL_CLOSURE, "bye")
frame = new_close_frame(body)

code, reason = parse_close_frame_data(frame.payload)
check_close_frame_data(code, reason)  # raises ProtocolError if invalid
```

`new_close_frame_body` crops the reason so the whole body fits into the
125-byte limit of control frames. `parse_close_frame_data` returns
`StatusCode(0)` and an empty reason for a payload shorter than two bytes;
such a close frame should not be passed to `check_close_frame_data`, which
rejects the empty code.

## Checking incoming headers

`check_header(header, state)` raises `lowws.check.ProtocolError` when a
header violates the protocol for the endpoint state: reserved opcodes,
oversized or fragmented control frames, RSV bits without a negotiated
extension, wrong masking for the side, and misplaced continuation frames.
`State` is an `enum.IntFlag` with `SERVER_SIDE`, `CLIENT_SIDE`, `EXTENDED`
and `FRAGMENTED`:

```python
from lowws.check import State, check_header

state = State.SERVER_SIDE | State.FRAGMENTED
check_header(header, state)
```

## Server handshake

`Upgrader.upgrade(conn)` reads the HTTP upgrade request from a connection
(anything with `recv`/`sendall`, or `read`/`write`), validates it, writes
either the `101 Switching Protocols` response or an error response, and
returns a `Handshake` with `protocol` and `extensions`. `upgrade(conn)`
does the same with default options.

```python
import socketserver

from lowws.server import Upgrader

upgrader = Upgrader(protocol=lambda candidate: candidate == b"chat")

class Handler(socketserver.BaseRequestHandler):
    def handle(self):
        handshake = upgrader.upgrade(self.request)
        ...  # read and write frames on self.request
```

A rejected request is answered and the rejection is raised: a subclass of
`lowws.errors.ConnectionRejectedError` (`HandshakeBadMethodError`,
`HandshakeBadUpgradeError`, `HandshakeUpgradeRequiredError`,
`MalformedRequestError`, ...), which carries the `reason`, the HTTP status
(`code`, also `status_code()`) and extra response `header`. Hooks
(`on_request`, `on_host`, `on_header`, `on_before_upgrade`, `negotiate`,
...) reject a request by raising; a `ConnectionRejectedError` they raise
decides the status, body and extra headers of the response, any other
exception is answered with status 500. `on_before_upgrade()` returns extra
headers for the successful response, and `hijack(conn, reader, method,
uri, major, minor)` may take the connection over after the request line
by returning true.

Extra headers (`header` on the upgraders and the dialer) may be raw text or
bytes, a mapping of names to a value or a list of values, a callable
returning one of these, or a list of any of them.

`HTTPUpgrader.upgrade(handler)` performs the same checks for a request
already parsed by an `http.server.BaseHTTPRequestHandler`, writes the
response to `handler.wfile` and marks the handler to close the connection
afterwards, so the caller continues with frames on `handler.rfile` and
`handler.wfile`. `upgrade_http(handler)` uses default options.

## Client handshake

`Dialer.dial(url)` connects to a `ws://` or `wss://` URL and performs the
handshake; it returns `(conn, leftover, handshake)`, where `leftover` holds
any bytes the server sent right after its response. `dial(url)` uses a
dialer without options. `Dialer.upgrade(conn, url)` performs only the
handshake on a connection you already have and returns
`(leftover, handshake)`.

```python
from lowws.dialer import Dialer
from lowws.httphead import Option

dialer = Dialer(
    timeout=5.0,
    protocols=["chat"],
    extensions=[Option("permessage-foo", {"level": "1"})],
)
conn, leftover, handshake = dialer.dial("ws://localhost:9001/ws")
```

Options include `net_dial(addr, timeout)`, `tls_client(conn, hostname)`,
`tls_context`, `wrap_conn(conn)`, `on_header(key, value)` and
`on_status_error(status, reason, stream)`. A response status other than 101
raises `lowws.errors.StatusError`; a bad response raises the matching
handshake error (`HandshakeBadSecAcceptError`, `HandshakeBadSubProtocolError`,
`HandshakeBadExtensionsError`, `MalformedResponseError`, ...). The
connection is closed when the handshake fails.

The accept key is computed with:

```python
from lowws.nonce import accept_from_nonce, check_accept_from_nonce, make_nonce

nonce = make_nonce()
accept = accept_from_nonce(nonce)
assert check_accept_from_nonce(accept, nonce)
```

## Autobahn report summary

The `lowws-report` command reads the `index.json` written by the Autobahn
test suite, prints a per-agent summary of case results to standard error,
and exits with status 1 if any case failed, was non-strict or closed
uncleanly:

```
lowws-report path/to/report/index.json
lowws-report --verbose path/to/report/index.json
lowws-report --http localhost:5555 path/to/report/index.json
```

With `--verbose` every case is listed, not only the failing ones. With
`--http ADDR` nothing is printed; instead a small web server serves an
index page and the report directory under `/report/`.

## What it does not do

The package stops at frames and handshakes. It has no message-level
reader or writer that reassembles fragments, answers pings or handles
close frames for you, no UTF-8 streaming validator for text messages, and
no compression extension: a negotiated extension is only reported in the
`Handshake`, never applied to payloads. There is no ready-made echo or
test server either; these are left to the code built on top.

## Running the tests

```
pip install "lowws[test]"
pytest
```