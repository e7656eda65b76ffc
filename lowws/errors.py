"""Errors raised while performing the WebSocket opening handshake."""

from __future__ import annotations


def _bad_header(name):
    return f'handshake error: bad "{name}" header'


class ConnectionRejectedError(Exception):
    """A handshake rejection that carries an HTTP status, a reason and extra headers.

    Subclasses fix the defaults for the standard rejections; any of the
    three values can still be overridden when the error is created.  Hooks
    of the server upgrader may raise this error to control the response.
    """

    default_reason = ""
    default_code = 0
    default_header = None

    def __init__(self, reason=None, code=None, header=None):
        self.reason = self.default_reason if reason is None else reason
        self.code = self.default_code if code is None else code
        self.header = self.default_header if header is None else header
        super().__init__(self.reason)

    def __str__(self):
        return self.reason

    def status_code(self):
        """Return the HTTP status code the rejection is answered with."""
        return self.code


class HandshakeBadProtocolError(ConnectionRejectedError):
    default_code = 505
    default_reason = "handshake error: bad HTTP protocol version"


class HandshakeBadMethodError(ConnectionRejectedError):
    default_code = 405
    default_reason = "handshake error: bad HTTP request method"


class HandshakeBadHostError(ConnectionRejectedError):
    default_code = 400
    default_reason = _bad_header("Host")


class HandshakeBadUpgradeError(ConnectionRejectedError):
    default_code = 400
    default_reason = _bad_header("Upgrade")


class HandshakeBadConnectionError(ConnectionRejectedError):
    default_code = 400
    default_reason = _bad_header("Connection")


class HandshakeBadSecAcceptError(ConnectionRejectedError):
    default_code = 400
    default_reason = _bad_header("Sec-WebSocket-Accept")


class HandshakeBadSecKeyError(ConnectionRejectedError):
    default_code = 400
    default_reason = _bad_header("Sec-WebSocket-Key")


class HandshakeBadSecVersionError(ConnectionRejectedError):
    default_code = 400
    default_reason = _bad_header("Sec-WebSocket-Version")


class HandshakeUpgradeRequiredError(ConnectionRejectedError):
    """The client asked for a protocol version this endpoint does not speak."""

    default_code = 426
    default_reason = _bad_header("Sec-WebSocket-Version")
    default_header = "Sec-WebSocket-Version: 13\r\n"


class MalformedRequestError(ConnectionRejectedError):
    default_code = 400
    default_reason = "malformed HTTP request"


class NotHijackerError(ConnectionRejectedError):
    default_code = 500
    default_reason = "given response writer does not allow hijacking the connection"


class _MessageError(Exception):
    default_message = ""

    def __init__(self, message=None):
        super().__init__(self.default_message if message is None else message)


class MalformedResponseError(_MessageError):
    """The server response could not be parsed."""

    default_message = "malformed HTTP response"


class HandshakeBadSubProtocolError(_MessageError):
    """The server selected a subprotocol the client did not offer."""

    default_message = 'unexpected protocol in "Sec-WebSocket-Protocol" header'


class HandshakeBadExtensionsError(_MessageError):
    """The server accepted an extension the client did not offer."""

    default_message = 'unexpected extensions in "Sec-WebSocket-Protocol" header'


class StatusError(Exception):
    """The server answered the upgrade request with an unexpected status."""

    def __init__(self, status):
        self.status = int(status)
        super().__init__(f"unexpected HTTP response status: {self.status}")