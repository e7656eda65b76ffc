"""Client side of the WebSocket opening handshake."""

from __future__ import annotations

import io
import socket
import ssl
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import SplitResult, urlsplit

from .errors import (
    HandshakeBadConnectionError,
    HandshakeBadExtensionsError,
    HandshakeBadProtocolError,
    HandshakeBadSecAcceptError,
    HandshakeBadSubProtocolError,
    HandshakeBadUpgradeError,
    MalformedResponseError,
    StatusError,
)
from .http import (
    CRLF,
    HEADER_CONNECTION_CANONICAL,
    HEADER_SEC_ACCEPT_CANONICAL,
    HEADER_SEC_EXTENSIONS_CANONICAL,
    HEADER_SEC_PROTOCOL_CANONICAL,
    HEADER_UPGRADE_CANONICAL,
    SPEC_CONNECTION,
    SPEC_UPGRADE,
    Handshake,
    parse_header_line,
    parse_response_line,
    write_upgrade_request,
)
from .httphead import scan_options
from .nonce import check_accept_from_nonce, make_nonce

DEFAULT_CLIENT_READ_BUFFER_SIZE = 4096


def hostport(host, default_port):
    """Split ``host`` into a host name and a dialable ``host:port`` address.

    ``default_port`` (like ``":80"``) is appended when the host has no port.
    """
    colon = host.rfind(":")
    bracket = host.find("]")
    if colon > bracket:
        return host[:colon], host
    return host, host + default_port


def _split_addr(addr):
    host, _, port = addr.rpartition(":")
    return host.strip("[]"), int(port)


def _default_net_dial(addr, timeout):
    return socket.create_connection(_split_addr(addr), timeout=timeout)


def _parse_url(url):
    if isinstance(url, SplitResult):
        return url
    if isinstance(url, (bytes, bytearray)):
        url = bytes(url).decode("utf-8")
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid websocket url: {url!r}")
    return parts


def _remaining(deadline):
    if deadline is None:
        return None
    left = deadline - time.monotonic()
    if left <= 0:
        raise TimeoutError("websocket dial timed out")
    return left


def _set_timeout(conn, deadline):
    if deadline is not None and hasattr(conn, "settimeout"):
        conn.settimeout(_remaining(deadline))


def _close(conn):
    close = getattr(conn, "close", None)
    if close is not None:
        close()


def _send(conn, data):
    if hasattr(conn, "sendall"):
        conn.sendall(data)
        return
    conn.write(data)
    flush = getattr(conn, "flush", None)
    if flush is not None:
        flush()


class _Reader:
    """Buffered reading of lines and raw bytes from a connection."""

    def __init__(self, conn, size):
        self._recv = conn.recv if hasattr(conn, "recv") else conn.read
        self._size = size
        self.buffer = bytearray()

    def _fill(self):
        chunk = self._recv(self._size)
        if not chunk:
            return False
        self.buffer += chunk
        return True

    def read_line(self):
        while True:
            end = self.buffer.find(b"\n")
            if end >= 0:
                line = bytes(self.buffer[:end])
                del self.buffer[: end + 1]
                return line[:-1] if line.endswith(b"\r") else line
            if not self._fill():
                if not self.buffer:
                    raise EOFError("EOF")
                line = bytes(self.buffer)
                self.buffer.clear()
                return line

    def read(self, size):
        if not self.buffer and not self._fill():
            return b""
        data = bytes(self.buffer[:size])
        del self.buffer[:size]
        return data


class _ChainRaw(io.RawIOBase):
    def __init__(self, prefix, reader):
        self._prefix = bytearray(prefix)
        self._reader = reader

    def readable(self):
        return True

    def readinto(self, target):
        if self._prefix:
            data = bytes(self._prefix[: len(target)])
            del self._prefix[: len(data)]
        else:
            data = self._reader.read(len(target))
        target[: len(data)] = data
        return len(data)


def _match_selected_extensions(selected, wanted, received):
    if not selected:
        return received
    wanted_names = {option.name for option in wanted}
    scanned = False
    try:
        for option in scan_options(selected):
            scanned = True
            if option.name not in wanted_names:
                raise HandshakeBadExtensionsError()
            received.append(option)
    except ValueError as exc:
        raise MalformedResponseError() from exc
    if not scanned:
        raise HandshakeBadExtensionsError()
    return received


@dataclass
class Dialer:
    """Options for establishing a WebSocket connection to a URL.

    ``net_dial(addr, timeout)`` returns a connected socket-like object for an
    address like ``"host:port"``; ``tls_client(conn, hostname)`` wraps it for
    ``wss`` URLs, falling back to ``tls_context`` or a default SSL context.
    ``wrap_conn(conn)`` may replace the connection once it is ready for i/o.
    """

    read_buffer_size: int = 0
    timeout: Optional[float] = None
    protocols: list = field(default_factory=list)
    extensions: list = field(default_factory=list)
    header: Any = None
    on_status_error: Optional[Callable] = None
    on_header: Optional[Callable] = None
    net_dial: Optional[Callable] = None
    tls_client: Optional[Callable] = None
    tls_context: Optional[ssl.SSLContext] = None
    wrap_conn: Optional[Callable] = None

    def dial(self, url):
        """Connect to the URL host and upgrade the connection to WebSocket.

        Returns ``(conn, leftover, handshake)`` where ``leftover`` holds bytes
        the server sent right after its response (empty when there are none).
        The connection is closed if the handshake fails.
        """
        parts = _parse_url(url)
        deadline = time.monotonic() + self.timeout if self.timeout else None
        conn = self._connect(parts, deadline)
        try:
            _set_timeout(conn, deadline)
            leftover, handshake = self.upgrade(conn, parts)
        except BaseException:
            _close(conn)
            raise
        if deadline is not None and hasattr(conn, "settimeout"):
            conn.settimeout(None)
        return conn, leftover, handshake

    def _connect(self, parts, deadline):
        net_dial = self.net_dial or _default_net_dial
        if parts.scheme == "ws":
            _, addr = hostport(parts.netloc.rpartition("@")[2], ":80")
            conn = net_dial(addr, _remaining(deadline))
        elif parts.scheme == "wss":
            hostname, addr = hostport(parts.netloc.rpartition("@")[2], ":443")
            conn = net_dial(addr, _remaining(deadline))
            try:
                _set_timeout(conn, deadline)
                conn = (self.tls_client or self._tls_client)(conn, hostname)
            except BaseException:
                _close(conn)
                raise
        else:
            raise ValueError(f"unexpected websocket scheme: {parts.scheme!r}")
        if self.wrap_conn is not None:
            conn = self.wrap_conn(conn)
        return conn

    def _tls_client(self, conn, hostname):
        context = self.tls_context or ssl.create_default_context()
        return context.wrap_socket(conn, server_hostname=hostname.strip("[]"))

    def upgrade(self, conn, url):
        """Send an upgrade request over ``conn`` and validate the response.

        Returns ``(leftover, handshake)``. Managing timeouts on ``conn`` is
        left to the caller.
        """
        reader = _Reader(conn, self.read_buffer_size or DEFAULT_CLIENT_READ_BUFFER_SIZE)
        nonce = make_nonce()
        _send(
            conn,
            write_upgrade_request(url, nonce, self.protocols, self.extensions, self.header),
        )

        status_line = reader.read_line()
        response = parse_response_line(status_line)
        if response.major != 1 or response.minor < 1:
            raise HandshakeBadProtocolError()
        if response.status != 101:
            if self.on_status_error is not None:
                stream = io.BufferedReader(_ChainRaw(status_line + CRLF, reader))
                self.on_status_error(response.status, response.reason, stream)
            raise StatusError(response.status)

        handshake = Handshake()
        seen_upgrade = seen_connection = seen_accept = False
        while True:
            line = reader.read_line()
            if not line:
                break
            try:
                key, value = parse_header_line(line)
            except ValueError as exc:
                raise MalformedResponseError() from exc

            if key == HEADER_UPGRADE_CANONICAL:
                seen_upgrade = True
                if value.lower() != SPEC_UPGRADE:
                    raise HandshakeBadUpgradeError()
            elif key == HEADER_CONNECTION_CANONICAL:
                seen_connection = True
                if value.lower() != SPEC_CONNECTION.lower():
                    raise HandshakeBadConnectionError()
            elif key == HEADER_SEC_ACCEPT_CANONICAL:
                seen_accept = True
                if not check_accept_from_nonce(value, nonce):
                    raise HandshakeBadSecAcceptError()
            elif key == HEADER_SEC_PROTOCOL_CANONICAL:
                offered = value.decode("latin-1")
                if offered in self.protocols:
                    handshake.protocol = offered
                if not handshake.protocol:
                    raise HandshakeBadSubProtocolError()
            elif key == HEADER_SEC_EXTENSIONS_CANONICAL:
                handshake.extensions = _match_selected_extensions(
                    value, self.extensions, handshake.extensions
                )
            elif self.on_header is not None:
                self.on_header(key, value)

        if not seen_upgrade:
            raise HandshakeBadUpgradeError()
        if not seen_connection:
            raise HandshakeBadConnectionError()
        if not seen_accept:
            raise HandshakeBadSecAcceptError()
        return bytes(reader.buffer), handshake


DEFAULT_DIALER = Dialer()


def dial(url):
    """Dial ``url`` with a dialer that holds no options."""
    return DEFAULT_DIALER.dial(url)