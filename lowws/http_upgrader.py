"""Upgrading a request received by an ``http.server`` handler to WebSocket."""

from __future__ import annotations

import contextlib
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
    NotHijackerError,
)
from .http import (
    Handshake,
    negotiate_extensions,
    parse_version,
    select_extensions,
    select_protocol,
    write_response_error,
    write_upgrade_response,
)
from .nonce import NONCE_SIZE

_INTERNAL_SERVER_ERROR = 500


def _first(headers, name):
    value = headers.get(name)
    return "" if value is None else str(value)


def _all(headers, name):
    return [str(value) for value in headers.get_all(name) or []]


def _has_token(value, token):
    return any(part.strip(" \t").lower() == token for part in value.split(","))


def _version_ok(version):
    try:
        major, minor = parse_version(str(version).encode("latin-1"))
    except (ValueError, UnicodeError):
        return False
    return not (major < 1 or (major == 1 and minor < 1))


def _write(wfile, data):
    wfile.write(data)
    flush = getattr(wfile, "flush", None)
    if flush is not None:
        flush()


def _release(handler):
    # The connection no longer speaks HTTP: the server must not read another request.
    if hasattr(handler, "close_connection"):
        handler.close_connection = True


@dataclass
class HTTPUpgrader:
    """Options for upgrading a request taken by an ``http.server`` request handler.

    The handler must offer ``command``, ``request_version``, ``headers`` (an
    ``email.message.Message``) and ``wfile``; ``connection`` is used for the
    write timeout when present. ``protocol(candidate)`` selects the first
    acceptable subprotocol (text); ``negotiate(option)`` returns the accepted
    option or None; ``extension(option)`` is the older way of selecting
    extensions and is used only without ``negotiate``. ``header`` holds extra
    response headers written in every response.
    """

    timeout: Optional[float] = None
    header: Any = None
    protocol: Optional[Callable] = None
    extension: Optional[Callable] = None
    negotiate: Optional[Callable] = None

    def upgrade(self, handler):
        """Answer the upgrade request of ``handler`` and return the handshake.

        After the call the connection belongs to the caller: frames are read
        from ``handler.rfile`` and written to ``handler.wfile``. A rejected
        request is answered with an error response and the rejection is raised.
        """
        wfile = getattr(handler, "wfile", None)
        if wfile is None:
            raise NotHijackerError()

        handshake = Handshake()
        conn = getattr(handler, "connection", None)
        try:
            nonce = self._check_request(handler, handshake)
        except Exception as exc:
            code, extra = 0, None
            if isinstance(exc, ConnectionRejectedError):
                code, extra = exc.code, exc.header
            data = write_response_error(
                exc, code or _INTERNAL_SERVER_ERROR, [self.header, extra]
            )
            with self._deadline(conn), contextlib.suppress(OSError):
                _write(wfile, data)
            _release(handler)
            raise

        with self._deadline(conn):
            _write(wfile, write_upgrade_response(nonce, handshake, self.header))
        _release(handler)
        return handshake

    @contextlib.contextmanager
    def _deadline(self, conn):
        settimeout = getattr(conn, "settimeout", None)
        if settimeout is None:
            yield
            return
        settimeout(None)
        if not self.timeout:
            yield
            return
        settimeout(self.timeout)
        try:
            yield
        finally:
            settimeout(None)

    def _check_request(self, handler, handshake):
        headers = handler.headers
        if getattr(handler, "command", "") != "GET":
            raise HandshakeBadMethodError()
        if not _version_ok(getattr(handler, "request_version", "")):
            raise HandshakeBadProtocolError()
        if not _first(headers, "Host"):
            raise HandshakeBadHostError()
        if _first(headers, "Upgrade").lower() != "websocket":
            raise HandshakeBadUpgradeError()
        connection = _first(headers, "Connection")
        if connection != "Upgrade" and not _has_token(connection, "upgrade"):
            raise HandshakeBadConnectionError()
        nonce = _first(headers, "Sec-WebSocket-Key")
        if len(nonce) != NONCE_SIZE:
            raise HandshakeBadSecKeyError()
        version = _first(headers, "Sec-WebSocket-Version")
        if version != "13":
            if version:
                raise HandshakeUpgradeRequiredError()
            raise HandshakeBadSecVersionError()

        if self.protocol is not None:
            for value in _all(headers, "Sec-WebSocket-Protocol"):
                if handshake.protocol:
                    break
                handshake.protocol = select_protocol(value, self.protocol)

        offers = _all(headers, "Sec-WebSocket-Extensions")
        if self.negotiate is not None:
            for value in offers:
                handshake.extensions = negotiate_extensions(
                    value, handshake.extensions, self.negotiate
                )
        elif self.extension is not None:
            for value in offers:
                handshake.extensions = select_extensions(
                    value, handshake.extensions, self.extension
                )
        return nonce


DEFAULT_HTTP_UPGRADER = HTTPUpgrader()


def upgrade_http(handler):
    """Upgrade the request of ``handler`` with an upgrader that holds no options."""
    return DEFAULT_HTTP_UPGRADER.upgrade(handler)