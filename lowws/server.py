"""Server side of the WebSocket opening handshake."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import (
    ConnectionRejectedError,
    HandshakeBadConnectionError,
    HandshakeBadHostError,
    HandshakeBadMethodError,
    HandshakeBadProtocolError,
    HandshakeBadSecKeyError,
    HandshakeBadSecVersionError,
    HandshakeBadUpgradeError,
    HandshakeUpgradeRequiredError,
    MalformedRequestError,
)
from .http import (
    HEADER_CONNECTION_CANONICAL,
    HEADER_HOST_CANONICAL,
    HEADER_SEC_EXTENSIONS_CANONICAL,
    HEADER_SEC_KEY_CANONICAL,
    HEADER_SEC_PROTOCOL_CANONICAL,
    HEADER_SEC_VERSION_CANONICAL,
    HEADER_UPGRADE_CANONICAL,
    SPEC_CONNECTION,
    SPEC_CONNECTION_LOWER,
    SPEC_SEC_VERSION,
    SPEC_UPGRADE,
    Handshake,
    negotiate_extensions,
    parse_header_line,
    parse_request_line,
    select_extensions,
    select_protocol,
    write_response_error,
    write_upgrade_response,
)
from .nonce import NONCE_SIZE

DEFAULT_SERVER_READ_BUFFER_SIZE = 4096

_INTERNAL_SERVER_ERROR = 500


class _StreamError(Exception):
    """Reading the request from the connection failed."""


class _RequestReader:
    """Buffered reading of request lines and raw bytes from a connection."""

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
        """Return the next line without its line ending; raise EOFError at the end."""
        while True:
            end = self.buffer.find(b"\n")
            if end >= 0:
                line = bytes(self.buffer[:end])
                del self.buffer[: end + 1]
                return line[:-1] if line.endswith(b"\r") else line
            if not self._fill():
                if self.buffer:
                    raise EOFError("unexpected EOF in the middle of a line")
                raise EOFError("EOF")

    def read(self, size):
        """Return up to ``size`` bytes, buffered ones first; b"" at the end."""
        if not self.buffer and not self._fill():
            return b""
        data = bytes(self.buffer[:size])
        del self.buffer[:size]
        return data


def _send(conn, data):
    if hasattr(conn, "sendall"):
        conn.sendall(data)
        return
    conn.write(data)
    flush = getattr(conn, "flush", None)
    if flush is not None:
        flush()


def _has_token(value, token):
    return any(part.strip(b" \t").lower() == token for part in value.split(b","))


@dataclass
class Upgrader:
    """Options for upgrading a connection that carries an HTTP upgrade request.

    ``protocol(candidate)`` selects the first acceptable subprotocol (bytes);
    ``protocol_custom(value)`` replaces it and returns the selected protocol,
    raising ValueError for a malformed value. ``negotiate(option)`` returns
    the accepted option (or None / an empty option); ``extension(option)`` and
    ``extension_custom(value, accepted)`` are the older ways of doing the same
    and are used only without ``negotiate``.

    Hooks reject the handshake by raising; a ConnectionRejectedError controls
    the status, body and extra headers of the response, any other exception
    is answered with status 500. ``on_before_upgrade()`` returns extra
    headers for the successful response. ``hijack(conn, reader, method, uri,
    major, minor)`` may take the connection over after the request line by
    returning true. ``header`` is written in every response.
    """

    read_buffer_size: int = 0
    protocol: Optional[Callable] = None
    protocol_custom: Optional[Callable] = None
    extension: Optional[Callable] = None
    extension_custom: Optional[Callable] = None
    negotiate: Optional[Callable] = None
    header: Any = None
    hijack: Optional[Callable] = None
    on_request: Optional[Callable] = None
    on_host: Optional[Callable] = None
    on_header: Optional[Callable] = None
    on_before_upgrade: Optional[Callable] = None

    def upgrade(self, conn):
        """Read the upgrade request from ``conn``, answer it and return the handshake.

        A rejected request is answered with an error response and the
        rejection is raised. Failures to read the request or to parse its
        request line raise without any response. Timeouts are the caller's.
        """
        reader = _RequestReader(
            conn, self.read_buffer_size or DEFAULT_SERVER_READ_BUFFER_SIZE
        )
        request = parse_request_line(reader.read_line())

        if self.hijack is not None and self.hijack(
            conn,
            reader,
            request.method.decode("latin-1"),
            request.uri.decode("latin-1"),
            request.major,
            request.minor,
        ):
            return Handshake(hijack=True)

        handshake = Handshake()
        try:
            nonce, extra = self._check_request(reader, request, handshake)
        except _StreamError as failure:
            raise failure.__cause__ from None
        except Exception as exc:
            code, extra = 0, None
            if isinstance(exc, ConnectionRejectedError):
                code, extra = exc.code, exc.header
            _send(
                conn,
                write_response_error(
                    exc, code or _INTERNAL_SERVER_ERROR, [self.header, extra]
                ),
            )
            raise

        _send(conn, write_upgrade_response(nonce, handshake, [self.header, extra]))
        return handshake

    def _check_request(self, reader, request, handshake):
        if request.major != 1 or request.minor < 1:
            raise HandshakeBadProtocolError()
        if request.method != b"GET":
            raise HandshakeBadMethodError()
        if self.on_request is not None:
            self.on_request(request.uri)

        seen = set()
        nonce = b""
        while True:
            try:
                line = reader.read_line()
            except Exception as exc:
                raise _StreamError() from exc
            if not line:
                break
            try:
                key, value = parse_header_line(line)
            except ValueError as exc:
                raise MalformedRequestError() from exc

            if key == HEADER_HOST_CANONICAL:
                seen.add(key)
                if self.on_host is not None:
                    self.on_host(value)
            elif key == HEADER_UPGRADE_CANONICAL:
                seen.add(key)
                if value.lower() != SPEC_UPGRADE:
                    raise HandshakeBadUpgradeError()
            elif key == HEADER_CONNECTION_CANONICAL:
                seen.add(key)
                if value != SPEC_CONNECTION and not _has_token(value, SPEC_CONNECTION_LOWER):
                    raise HandshakeBadConnectionError()
            elif key == HEADER_SEC_VERSION_CANONICAL:
                seen.add(key)
                if value != SPEC_SEC_VERSION:
                    raise HandshakeUpgradeRequiredError()
            elif key == HEADER_SEC_KEY_CANONICAL:
                seen.add(key)
                if len(value) != NONCE_SIZE:
                    raise HandshakeBadSecKeyError()
                nonce = value
            elif key == HEADER_SEC_PROTOCOL_CANONICAL:
                self._select_protocol(value, handshake)
            elif key == HEADER_SEC_EXTENSIONS_CANONICAL:
                self._select_extensions(value, handshake)
            elif self.on_header is not None:
                self.on_header(key, value)

        for required, error in (
            (HEADER_HOST_CANONICAL, HandshakeBadHostError),
            (HEADER_UPGRADE_CANONICAL, HandshakeBadUpgradeError),
            (HEADER_CONNECTION_CANONICAL, HandshakeBadConnectionError),
            (HEADER_SEC_VERSION_CANONICAL, HandshakeBadSecVersionError),
            (HEADER_SEC_KEY_CANONICAL, HandshakeBadSecKeyError),
        ):
            if required not in seen:
                raise error()

        extra = self.on_before_upgrade() if self.on_before_upgrade is not None else None
        return nonce, extra

    def _select_protocol(self, value, handshake):
        if handshake.protocol:
            return
        if self.protocol_custom is not None:
            try:
                handshake.protocol = self.protocol_custom(value) or ""
            except ValueError as exc:
                raise MalformedRequestError() from exc
        elif self.protocol is not None:
            handshake.protocol = select_protocol(value, self.protocol)

    def _select_extensions(self, value, handshake):
        if self.negotiate is not None:
            handshake.extensions = negotiate_extensions(
                value, handshake.extensions, self.negotiate
            )
        elif self.extension_custom is not None:
            try:
                handshake.extensions = list(
                    self.extension_custom(value, handshake.extensions)
                )
            except ValueError as exc:
                raise MalformedRequestError() from exc
        elif self.extension is not None:
            handshake.extensions = select_extensions(
                value, handshake.extensions, self.extension
            )


DEFAULT_UPGRADER = Upgrader()


def upgrade(conn):
    """Upgrade ``conn`` with an upgrader that holds no options."""
    return DEFAULT_UPGRADER.upgrade(conn)