import io
import re
import socket

import pytest

from lowws.dialer import Dialer, dial, hostport
from lowws.errors import (
    HandshakeBadConnectionError,
    HandshakeBadExtensionsError,
    HandshakeBadProtocolError,
    HandshakeBadSecAcceptError,
    HandshakeBadSubProtocolError,
    HandshakeBadUpgradeError,
    StatusError,
)
from lowws.frame import compile_frame, new_text_frame
from lowws.httphead import Option
from lowws.nonce import accept_from_nonce, make_nonce
from lowws.read import read_frame


class ScriptedConn:
    def __init__(self, respond=None):
        self.respond = respond
        self.written = bytearray()
        self.incoming = bytearray()
        self.closed = False

    def sendall(self, data):
        self.written += data
        if self.respond is not None and self.written.endswith(b"\r\n\r\n"):
            self.incoming += self.respond(bytes(self.written))

    def recv(self, size):
        data = bytes(self.incoming[:size])
        del self.incoming[:size]
        return data

    def close(self):
        self.closed = True


UPGRADE_OK = [(b"Connection", b"Upgrade"), (b"Upgrade", b"websocket")]


def responder(status=b"HTTP/1.1 101 Switching Protocols", headers=(), accept="valid", tail=b""):
    def respond(request):
        lines = [status] + [k + b": " + v for k, v in headers]
        if accept == "valid":
            key = re.search(rb"Sec-WebSocket-Key: (\S+)\r\n", request).group(1)
            lines.append(b"Sec-WebSocket-Accept: " + accept_from_nonce(key))
        elif accept == "invalid":
            lines.append(b"Sec-WebSocket-Accept: " + accept_from_nonce(make_nonce()))
        return b"\r\n".join(lines) + b"\r\n\r\n" + tail

    return respond


def parse_request(data):
    head = data.split(b"\r\n\r\n")[0]
    first, *lines = head.split(b"\r\n")
    headers = dict(line.split(b": ", 1) for line in lines)
    return first, headers


def test_request_plain():
    conn = ScriptedConn()
    with pytest.raises(EOFError):
        Dialer().upgrade(conn, "wss://example.org/chat")
    first, headers = parse_request(bytes(conn.written))
    assert first == b"GET /chat HTTP/1.1"
    key = headers.pop(b"Sec-WebSocket-Key")
    assert len(key) == 24
    assert headers == {
        b"Host": b"example.org",
        b"Upgrade": b"websocket",
        b"Connection": b"Upgrade",
        b"Sec-WebSocket-Version": b"13",
    }
    assert conn.written.endswith(b"\r\n\r\n")


def test_request_with_options():
    dialer = Dialer(
        protocols=["foo", "bar"],
        extensions=[Option("foo", {"bar": "1"}), Option("baz")],
        header={"Origin": ["who knows"]},
    )
    conn = ScriptedConn()
    with pytest.raises(EOFError):
        dialer.upgrade(conn, "wss://example.org/chat")
    first, headers = parse_request(bytes(conn.written))
    assert first == b"GET /chat HTTP/1.1"
    headers.pop(b"Sec-WebSocket-Key")
    assert headers == {
        b"Host": b"example.org",
        b"Upgrade": b"websocket",
        b"Connection": b"Upgrade",
        b"Sec-WebSocket-Version": b"13",
        b"Sec-WebSocket-Protocol": b"foo, bar",
        b"Sec-WebSocket-Extensions": b"foo;bar=1,baz",
        b"Origin": b"who knows",
    }


def test_handshake_base():
    conn = ScriptedConn(responder(headers=UPGRADE_OK))
    leftover, hs = Dialer().upgrade(conn, "ws://example.org")
    assert leftover == b""
    assert hs.protocol == ""
    assert hs.extensions == []


def test_handshake_protocol_selected():
    dialer = Dialer(protocols=["xml", "json", "soap"])
    conn = ScriptedConn(
        responder(headers=UPGRADE_OK + [(b"Sec-WebSocket-Protocol", b"json")])
    )
    _, hs = dialer.upgrade(conn, "ws://example.org")
    assert hs.protocol == "json"


def test_handshake_protocol_not_echoed():
    dialer = Dialer(protocols=["xml", "json", "soap"])
    _, hs = dialer.upgrade(ScriptedConn(responder(headers=UPGRADE_OK)), "ws://example.org")
    assert hs.protocol == ""


def test_handshake_extensions_selected():
    dialer = Dialer(
        protocols=["xml", "json", "soap"],
        extensions=[Option("foo", {"bar": "1"}), Option("baz")],
    )
    conn = ScriptedConn(
        responder(
            headers=UPGRADE_OK
            + [(b"Sec-WebSocket-Protocol", b"json"), (b"Sec-WebSocket-Extensions", b"foo;bar=1")]
        )
    )
    _, hs = dialer.upgrade(conn, "ws://example.org")
    assert hs.protocol == "json"
    assert hs.extensions == [Option(b"foo", {b"bar": b"1"})]


def test_handshake_extensions_not_echoed():
    dialer = Dialer(extensions=[Option("foo", {"bar": "1"}), Option("baz")])
    _, hs = dialer.upgrade(ScriptedConn(responder(headers=UPGRADE_OK)), "ws://example.org")
    assert hs.extensions == []


def test_handshake_with_frames_leftover():
    frame = new_text_frame(b"hello, gopherizer!")
    conn = ScriptedConn(responder(headers=UPGRADE_OK, tail=compile_frame(frame)))
    leftover, _ = Dialer().upgrade(conn, "ws://example.org")
    got = read_frame(io.BytesIO(leftover))
    assert got.header == frame.header
    assert got.payload == b"hello, gopherizer!"


def test_handshake_with_body_leftover():
    conn = ScriptedConn(responder(headers=UPGRADE_OK, tail=b"hello, gopher!"))
    leftover, _ = Dialer().upgrade(conn, "ws://example.org")
    assert leftover == b"hello, gopher!"


@pytest.mark.parametrize(
    "respond, error",
    [
        (responder(status=b"HTTP/2.1 101 Switching Protocols", accept="none"),
         HandshakeBadProtocolError),
        (responder(headers=[(b"Connection", b"Upgrade")]), HandshakeBadUpgradeError),
        (responder(headers=[(b"Connection", b"Upgrade"), (b"Upgrade", b"oops")]),
         HandshakeBadUpgradeError),
        (responder(headers=[(b"Upgrade", b"websocket")]), HandshakeBadConnectionError),
        (responder(headers=[(b"Connection", b"oops!"), (b"Upgrade", b"websocket")]),
         HandshakeBadConnectionError),
        (responder(headers=UPGRADE_OK, accept="invalid"), HandshakeBadSecAcceptError),
        (responder(headers=UPGRADE_OK, accept="none"), HandshakeBadSecAcceptError),
        (responder(headers=UPGRADE_OK + [(b"Sec-WebSocket-Protocol", b"oops!")]),
         HandshakeBadSubProtocolError),
        (responder(headers=UPGRADE_OK + [(b"Sec-WebSocket-Extensions", b"foo,bar;baz=1")]),
         HandshakeBadExtensionsError),
    ],
)
def test_handshake_errors(respond, error):
    with pytest.raises(error):
        Dialer().upgrade(ScriptedConn(respond), "ws://example.org")


def test_bad_status_calls_hook():
    response = b"HTTP/1.1 400 Bad Request\r\nContent-Length: 24\r\n\r\n<error description here>"
    seen = []
    dialer = Dialer(on_status_error=lambda status, reason, r: seen.append((status, reason, r.read())))
    with pytest.raises(StatusError) as info:
        dialer.upgrade(ScriptedConn(lambda _: response), "ws://example.org")
    assert info.value.status == 400
    assert str(info.value) == "unexpected HTTP response status: 400"
    assert seen == [(400, b"Bad Request", response)]


def test_on_header_receives_other_headers():
    seen = []
    dialer = Dialer(on_header=lambda k, v: seen.append((k, v)))
    conn = ScriptedConn(responder(headers=UPGRADE_OK + [(b"x-custom", b"value")]))
    dialer.upgrade(conn, "ws://example.org")
    assert seen == [(b"X-Custom", b"value")]


def test_dial_uses_net_dial_and_returns_conn():
    conn = ScriptedConn(responder(headers=UPGRADE_OK))
    addrs = []

    def net_dial(addr, timeout):
        addrs.append((addr, timeout))
        return conn

    got, leftover, hs = Dialer(net_dial=net_dial).dial("ws://example.org/x")
    assert got is conn
    assert leftover == b""
    assert addrs == [("example.org:80", None)]
    assert not conn.closed


def test_dial_closes_conn_on_error():
    def on_header(key, value):
        raise RuntimeError("rejected")

    conn = ScriptedConn(responder(headers=UPGRADE_OK + [(b"X-Other", b"1")]))
    dialer = Dialer(net_dial=lambda addr, timeout: conn, on_header=on_header)
    with pytest.raises(RuntimeError, match="rejected"):
        dialer.dial("ws://example.org")
    assert conn.closed


def test_dial_wss_uses_tls_client_and_wrap_conn():
    conn = ScriptedConn(responder(headers=UPGRADE_OK))
    calls = []

    def tls_client(raw, hostname):
        calls.append(("tls", hostname))
        return raw

    def wrap_conn(raw):
        calls.append(("wrap", raw is conn))
        return raw

    dialer = Dialer(
        net_dial=lambda addr, timeout: calls.append(("dial", addr)) or conn,
        tls_client=tls_client,
        wrap_conn=wrap_conn,
    )
    got, _, _ = dialer.dial("wss://example.org:8443/chat")
    assert got is conn
    assert calls == [("dial", "example.org:8443"), ("tls", "example.org"), ("wrap", True)]


def test_dial_unexpected_scheme():
    with pytest.raises(ValueError, match="unexpected websocket scheme"):
        Dialer(net_dial=lambda addr, timeout: ScriptedConn()).dial("http://example.org")


def test_dial_invalid_url():
    with pytest.raises(ValueError):
        dial("not a url")


def test_dial_timeout():
    client, server = socket.socketpair()
    try:
        timeouts = []

        def net_dial(addr, timeout):
            timeouts.append(timeout)
            return client

        with pytest.raises(TimeoutError):
            Dialer(timeout=0.1, net_dial=net_dial).dial("ws://example.org")
        assert 0 < timeouts[0] <= 0.1
    finally:
        client.close()
        server.close()


@pytest.mark.parametrize(
    "host, port, exp_hostname, exp_hostport",
    [
        ("foo", ":80", "foo", "foo:80"),
        ("foo:1234", ":80", "foo", "foo:1234"),
        ("127.0.0.1", ":80", "127.0.0.1", "127.0.0.1:80"),
        ("127.0.0.1:1234", ":80", "127.0.0.1", "127.0.0.1:1234"),
        ("[0:0:0:0:0:0:0:1]", ":80", "[0:0:0:0:0:0:0:1]", "[0:0:0:0:0:0:0:1]:80"),
        ("[0:0:0:0:0:0:0:1]:1234", ":80", "[0:0:0:0:0:0:0:1]", "[0:0:0:0:0:0:0:1]:1234"),
    ],
)
def test_hostport(host, port, exp_hostname, exp_hostport):
    assert hostport(host, port) == (exp_hostname, exp_hostport)