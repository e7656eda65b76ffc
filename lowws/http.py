"""HTTP parts of the WebSocket opening handshake."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from urllib.parse import SplitResult, urlsplit

from .errors import MalformedRequestError, MalformedResponseError
from .httphead import TOKEN_CHARS, Option, scan_options, scan_tokens, write_options
from .nonce import accept_from_nonce

CRLF = b"\r\n"


def _canonical_header_key(key):
    if not key or any(char not in TOKEN_CHARS for char in key):
        return key
    return b"-".join(part[:1].upper() + part[1:].lower() for part in key.split(b"-"))


HEADER_HOST = b"Host"
HEADER_UPGRADE = b"Upgrade"
HEADER_CONNECTION = b"Connection"
HEADER_SEC_VERSION = b"Sec-WebSocket-Version"
HEADER_SEC_PROTOCOL = b"Sec-WebSocket-Protocol"
HEADER_SEC_EXTENSIONS = b"Sec-WebSocket-Extensions"
HEADER_SEC_KEY = b"Sec-WebSocket-Key"
HEADER_SEC_ACCEPT = b"Sec-WebSocket-Accept"

HEADER_HOST_CANONICAL = _canonical_header_key(HEADER_HOST)
HEADER_UPGRADE_CANONICAL = _canonical_header_key(HEADER_UPGRADE)
HEADER_CONNECTION_CANONICAL = _canonical_header_key(HEADER_CONNECTION)
HEADER_SEC_VERSION_CANONICAL = _canonical_header_key(HEADER_SEC_VERSION)
HEADER_SEC_PROTOCOL_CANONICAL = _canonical_header_key(HEADER_SEC_PROTOCOL)
HEADER_SEC_EXTENSIONS_CANONICAL = _canonical_header_key(HEADER_SEC_EXTENSIONS)
HEADER_SEC_KEY_CANONICAL = _canonical_header_key(HEADER_SEC_KEY)
HEADER_SEC_ACCEPT_CANONICAL = _canonical_header_key(HEADER_SEC_ACCEPT)

SPEC_UPGRADE = b"websocket"
SPEC_CONNECTION = b"Upgrade"
SPEC_CONNECTION_LOWER = b"upgrade"
SPEC_SEC_VERSION = b"13"

_HEAD_UPGRADE = (
    b"HTTP/1.1 101 Switching Protocols\r\nUpgrade: websocket\r\nConnection: Upgrade\r\n"
)


@dataclass
class Handshake:
    """Result of an opening handshake."""

    hijack: bool = False
    protocol: str = ""
    extensions: list = field(default_factory=list)


@dataclass(frozen=True)
class RequestLine:
    method: bytes
    uri: bytes
    major: int
    minor: int


@dataclass(frozen=True)
class ResponseLine:
    major: int
    minor: int
    status: int
    reason: bytes


def _ascii_to_int(data):
    if not data or not data.isdigit():
        raise ValueError(f"not a decimal number: {data!r}")
    return int(data)


def _split3(line):
    first = line.find(b" ")
    if first == -1:
        return line, b"", b""
    second = line.find(b" ", first + 1)
    if second == -1:
        return line, b"", b""
    return line[:first], line[first + 1 : second], line[second + 1 :]


def parse_version(data):
    """Parse ``HTTP/major.minor`` into a pair of ints; raise ValueError if malformed."""
    data = bytes(data)
    if data == b"HTTP/1.0":
        return 1, 0
    if data == b"HTTP/1.1":
        return 1, 1
    if len(data) < 8 or not data.startswith(b"HTTP/"):
        raise ValueError(f"malformed HTTP version: {data!r}")
    major, dot, minor = data[5:].partition(b".")
    if not dot:
        raise ValueError(f"malformed HTTP version: {data!r}")
    return _ascii_to_int(major), _ascii_to_int(minor)


def parse_request_line(line):
    """Parse a request line like ``GET / HTTP/1.1``."""
    method, uri, proto = _split3(bytes(line))
    try:
        major, minor = parse_version(proto)
    except ValueError as exc:
        raise MalformedRequestError() from exc
    return RequestLine(method, uri, major, minor)


def parse_response_line(line):
    """Parse a status line like ``HTTP/1.1 101 Switching Protocols``."""
    proto, status, reason = _split3(bytes(line))
    try:
        major, minor = parse_version(proto)
        code = _ascii_to_int(status)
    except ValueError as exc:
        raise MalformedResponseError() from exc
    return ResponseLine(major, minor, code, reason)


def parse_header_line(line):
    """Split a header line into a canonical key and a trimmed value.

    Raises ValueError if the line has no colon.
    """
    line = bytes(line)
    key, colon, value = line.partition(b":")
    if not colon:
        raise ValueError(f"header line without colon: {line!r}")
    return _canonical_header_key(key.strip(b" \t")), value.strip(b" \t")


def _strict(items):
    iterator = iter(items)
    while True:
        try:
            item = next(iterator)
        except StopIteration:
            return
        except ValueError as exc:
            raise MalformedRequestError() from exc
        yield item


def select_protocol(header, check):
    """Return the first subprotocol in ``header`` accepted by ``check``, or "".

    ``check`` receives each candidate as text when ``header`` is text and as
    bytes otherwise.  A malformed header raises MalformedRequestError.
    """
    as_text = isinstance(header, str)
    for token in _strict(scan_tokens(header)):
        candidate = token.decode("latin-1") if as_text else token
        if check(candidate):
            return token.decode("latin-1")
    return ""


def select_extensions(header, selected, check):
    """Return ``selected`` extended by copies of the offered options ``check`` accepts."""
    result = list(selected)
    for option in _strict(scan_options(header)):
        if check(option):
            result.append(option.clone())
    return result


def negotiate_extensions(header, dest, negotiate):
    """Return ``dest`` extended by the non-empty results of ``negotiate`` on each offer.

    Errors raised by ``negotiate`` propagate; a malformed header raises
    MalformedRequestError.
    """
    result = list(dest)
    for option in _strict(scan_options(header)):
        accepted = negotiate(option)
        if accepted is not None and accepted.size() > 0:
            result.append(accepted)
    return result


def _as_bytes(value):
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _clean_value(value):
    return _as_bytes(value).replace(b"\r", b" ").replace(b"\n", b" ").strip(b" \t")


def _render_mapping(mapping):
    entries = sorted((_as_bytes(key), values) for key, values in mapping.items())
    out = []
    for key, values in entries:
        if isinstance(values, (str, bytes, bytearray)):
            values = [values]
        for value in values:
            out.append(key + b": " + _clean_value(value) + CRLF)
    return b"".join(out)


def render_handshake_header(header):
    """Render extra handshake headers to bytes.

    Accepts None, raw text or bytes, a mapping of names to a value or a list
    of values (written sorted by name), a callable returning any of these,
    or a list or tuple of any of these.
    """
    if header is None:
        return b""
    if isinstance(header, (bytes, bytearray, memoryview)):
        return bytes(header)
    if isinstance(header, str):
        return header.encode("utf-8")
    if isinstance(header, Mapping):
        return _render_mapping(header)
    if isinstance(header, (list, tuple)):
        return b"".join(render_handshake_header(item) for item in header)
    if callable(header):
        return render_handshake_header(header())
    raise TypeError(f"unsupported handshake header: {type(header).__name__}")


def _header_line(key, value):
    return key + b": " + _as_bytes(value) + CRLF


def _request_uri(parts):
    uri = parts.path or "/"
    if parts.query:
        uri += "?" + parts.query
    return uri


def write_upgrade_request(url, nonce, protocols=(), extensions=(), header=None):
    """Return the bytes of a client upgrade request for ``url``."""
    if isinstance(url, (bytes, bytearray)):
        url = bytes(url).decode("utf-8")
    parts = url if isinstance(url, SplitResult) else urlsplit(url)
    host = parts.netloc.rpartition("@")[2]

    out = [b"GET ", _request_uri(parts).encode("utf-8"), b" HTTP/1.1\r\n"]
    out.append(_header_line(HEADER_HOST, host))
    out.append(_header_line(HEADER_UPGRADE, SPEC_UPGRADE))
    out.append(_header_line(HEADER_CONNECTION, SPEC_CONNECTION))
    out.append(_header_line(HEADER_SEC_VERSION, SPEC_SEC_VERSION))
    out.append(_header_line(HEADER_SEC_KEY, nonce))
    if protocols:
        out.append(_header_line(HEADER_SEC_PROTOCOL, ", ".join(protocols)))
    if extensions:
        out.append(_header_line(HEADER_SEC_EXTENSIONS, write_options(extensions)))
    out.append(render_handshake_header(header))
    out.append(CRLF)
    return b"".join(out)


def write_upgrade_response(nonce, handshake, header=None):
    """Return the bytes of a successful 101 upgrade response."""
    out = [_HEAD_UPGRADE, _header_line(HEADER_SEC_ACCEPT, accept_from_nonce(nonce))]
    if handshake.protocol:
        out.append(_header_line(HEADER_SEC_PROTOCOL, handshake.protocol))
    if handshake.extensions:
        out.append(_header_line(HEADER_SEC_EXTENSIONS, write_options(handshake.extensions)))
    out.append(render_handshake_header(header))
    out.append(CRLF)
    return b"".join(out)


def _status_text(code):
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""


def write_response_error(error, code, header=None):
    """Return the bytes of an error response with ``error`` as plain text body."""
    out = [
        f"HTTP/1.1 {code} {_status_text(code)}\r\n".encode("latin-1"),
        b"Content-Type: text/plain; charset=utf-8\r\n",
        render_handshake_header(header),
    ]
    if error is None:
        out.append(CRLF)
    else:
        body = str(error).encode("utf-8")
        out.append(f"Content-Length: {len(body)}\r\n\r\n".encode("ascii"))
        out.append(body)
    return b"".join(out)