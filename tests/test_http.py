import pytest

from lowws.errors import (
    HandshakeBadMethodError,
    HandshakeUpgradeRequiredError,
    MalformedRequestError,
    MalformedResponseError,
)
from lowws.http import (
    HEADER_SEC_KEY_CANONICAL,
    Handshake,
    RequestLine,
    ResponseLine,
    negotiate_extensions,
    parse_header_line,
    parse_request_line,
    parse_response_line,
    parse_version,
    render_handshake_header,
    select_extensions,
    select_protocol,
    write_response_error,
    write_upgrade_request,
    write_upgrade_response,
)
from lowws.httphead import Option

NONCE = b"dGhlIHNhbXBsZSBub25jZQ=="


@pytest.mark.parametrize(
    "data, major, minor",
    [
        (b"HTTP/1.1", 1, 1),
        (b"HTTP/1.0", 1, 0),
        (b"HTTP/1.2", 1, 2),
        (b"HTTP/42.1092", 42, 1092),
    ],
)
def test_parse_version(data, major, minor):
    assert parse_version(data) == (major, minor)


@pytest.mark.parametrize(
    "data", [b"HTTP/1", b"HTTP/11", b"FTP/1.1x", b"HTTP/111", b"HTTP/a.1", b"HTTP/1.b"]
)
def test_parse_version_malformed(data):
    with pytest.raises(ValueError):
        parse_version(data)


def test_parse_request_line():
    assert parse_request_line(b"GET /ws HTTP/1.1") == RequestLine(b"GET", b"/ws", 1, 1)


def test_parse_request_line_malformed():
    with pytest.raises(MalformedRequestError):
        parse_request_line(b"GET /ws FOO/1.1")


def test_parse_response_line():
    line = parse_response_line(b"HTTP/1.1 101 Switching Protocols")
    assert line == ResponseLine(1, 1, 101, b"Switching Protocols")


@pytest.mark.parametrize("line", [b"HTTP/1.1 abc Reason", b"HTTP/1.1 101", b""])
def test_parse_response_line_malformed(line):
    with pytest.raises(MalformedResponseError):
        parse_response_line(line)


def test_parse_header_line_canonicalizes_key():
    assert parse_header_line(b"sec-websocket-key:  abc \t") == (
        HEADER_SEC_KEY_CANONICAL,
        b"abc",
    )
    assert HEADER_SEC_KEY_CANONICAL == b"Sec-Websocket-Key"


def test_parse_header_line_without_colon():
    with pytest.raises(ValueError):
        parse_header_line(b"no colon here")


def test_select_protocol_calls_check_in_order():
    calls = []

    def check(candidate):
        calls.append(candidate)
        return False

    assert select_protocol("jsonrpc, soap, grpc", check) == ""
    assert calls == ["jsonrpc", "soap", "grpc"]


def test_select_protocol_picks_first_match():
    assert select_protocol("a, b, c, d", lambda p: p in {"b", "d"}) == "b"


def test_select_protocol_bytes_header_passes_bytes():
    assert select_protocol(b"a, b", lambda p: p == b"b") == "b"


def test_select_protocol_malformed():
    with pytest.raises(MalformedRequestError):
        select_protocol("=[", lambda p: False)


def _negotiate(option):
    if option.name in (b"b", b"d"):
        return option.clone()
    return Option(b"")


def test_negotiate_extensions_across_headers():
    dest = []
    for value in [b"a;foo=1", b"b;bar=2", b"c", b"d;baz=3"]:
        dest = negotiate_extensions(value, dest, _negotiate)
    assert dest == [Option("b", {"bar": "2"}), Option("d", {"baz": "3"})]


def test_negotiate_extensions_malformed():
    with pytest.raises(MalformedRequestError):
        negotiate_extensions(b"=[", [], lambda option: None)


def test_negotiate_extensions_error_propagates():
    def refuse(option):
        raise HandshakeBadMethodError()

    with pytest.raises(HandshakeBadMethodError):
        negotiate_extensions(b"a", [], refuse)


def test_select_extensions():
    result = select_extensions(b"a;foo=1, b;bar=2", [Option(b"x")], lambda o: o.name == b"b")
    assert result == [Option(b"x"), Option(b"b", {b"bar": b"2"})]


def test_select_extensions_malformed():
    with pytest.raises(MalformedRequestError):
        select_extensions(b"=[", [], lambda o: True)


def test_write_upgrade_request():
    request = write_upgrade_request(
        "wss://example.org/chat",
        NONCE,
        ["foo", "bar"],
        [Option("foo", {"bar": "1"}), Option("baz")],
        {"Origin": ["who knows"]},
    )
    assert request == (
        b"GET /chat HTTP/1.1\r\n"
        b"Host: example.org\r\n"
        b"Upgrade: websocket\r\n"
        b"Connection: Upgrade\r\n"
        b"Sec-WebSocket-Version: 13\r\n"
        b"Sec-WebSocket-Key: " + NONCE + b"\r\n"
        b"Sec-WebSocket-Protocol: foo, bar\r\n"
        b"Sec-WebSocket-Extensions: foo;bar=1,baz\r\n"
        b"Origin: who knows\r\n"
        b"\r\n"
    )


def test_write_upgrade_request_minimal_uri():
    request = write_upgrade_request("ws://example.org", NONCE)
    assert request.startswith(b"GET / HTTP/1.1\r\nHost: example.org\r\n")
    assert request.endswith(b"\r\n\r\n")
    assert b"Sec-WebSocket-Protocol" not in request
    with_query = write_upgrade_request("ws://example.org/a?x=1", NONCE)
    assert with_query.startswith(b"GET /a?x=1 HTTP/1.1\r\n")


def test_write_upgrade_response():
    handshake = Handshake(protocol="chat", extensions=[Option("b", {"bar": "2"})])
    response = write_upgrade_response(NONCE, handshake, "X-Test: 1\r\n")
    assert response == (
        b"HTTP/1.1 101 Switching Protocols\r\n"
        b"Upgrade: websocket\r\n"
        b"Connection: Upgrade\r\n"
        b"Sec-WebSocket-Accept: s3pPLMBiTxaQ9kYGzzhZRbK+xOo=\r\n"
        b"Sec-WebSocket-Protocol: chat\r\n"
        b"Sec-WebSocket-Extensions: b;bar=2\r\n"
        b"X-Test: 1\r\n"
        b"\r\n"
    )


def test_write_response_error_bad_method():
    error = HandshakeBadMethodError()
    body = b"handshake error: bad HTTP request method"
    assert write_response_error(error, 405) == (
        b"HTTP/1.1 405 Method Not Allowed\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"Content-Length: " + str(len(body)).encode() + b"\r\n\r\n" + body
    )


def test_write_response_error_upgrade_required_header():
    error = HandshakeUpgradeRequiredError()
    response = write_response_error(error, error.status_code(), error.header)
    assert response.startswith(
        b"HTTP/1.1 426 Upgrade Required\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"Sec-WebSocket-Version: 13\r\n"
        b"Content-Length: "
    )
    assert response.endswith(b'handshake error: bad "Sec-WebSocket-Version" header')


def test_write_response_error_without_error():
    assert write_response_error(None, 200) == (
        b"HTTP/1.1 200 OK\r\nContent-Type: text/plain; charset=utf-8\r\n\r\n"
    )


def test_render_handshake_header_variants():
    assert render_handshake_header(None) == b""
    assert render_handshake_header("A: 1\r\n") == b"A: 1\r\n"
    assert render_handshake_header(b"B: 2\r\n") == b"B: 2\r\n"
    assert render_handshake_header(lambda: "C: 3\r\n") == b"C: 3\r\n"
    assert render_handshake_header(["A: 1\r\n", None, b"B: 2\r\n"]) == b"A: 1\r\nB: 2\r\n"


def test_render_handshake_header_mapping_sorted():
    rendered = render_handshake_header({"Zeta": "z", "Alpha": ["a1", "a2\nx"]})
    assert rendered == b"Alpha: a1\r\nAlpha: a2 x\r\nZeta: z\r\n"


def test_render_handshake_header_rejects_unknown():
    with pytest.raises(TypeError):
        render_handshake_header(42)