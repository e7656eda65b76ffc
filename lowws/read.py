"""Reading frames from a byte stream."""

from __future__ import annotations

from .frame import Frame, Header, OpCode, StatusCode

ERR_HEADER_LENGTH_MSB = "header error: the most significant bit must be 0"


class HeaderError(Exception):
    """A frame header could not be decoded."""


def _read_exact(stream, size):
    data = bytearray()
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            if data:
                raise EOFError(f"unexpected EOF: read {len(data)} of {size} bytes")
            raise EOFError("EOF")
        data += chunk
    return bytes(data)


def read_header(stream):
    """Read one frame header from a stream with a ``read(n)`` method.

    Raises EOFError if the stream ends before the header is complete.
    """
    first, second = _read_exact(stream, 2)

    fin = bool(first & 0x80)
    rsv = (first & 0x70) >> 4
    opcode = OpCode(first & 0x0F)
    masked = bool(second & 0x80)

    extra = 4 if masked else 0
    length = second & 0x7F
    if length == 126:
        extra += 2
    elif length == 127:
        extra += 8

    if extra == 0:
        return Header(fin=fin, rsv=rsv, opcode=opcode, length=length)

    rest = _read_exact(stream, extra)
    if length == 126:
        length = int.from_bytes(rest[:2], "big")
        rest = rest[2:]
    elif length == 127:
        if rest[0] & 0x80:
            raise HeaderError(ERR_HEADER_LENGTH_MSB)
        length = int.from_bytes(rest[:8], "big")
        rest = rest[8:]

    mask = rest[:4] if masked else bytes(4)
    return Header(fin=fin, rsv=rsv, opcode=opcode, masked=masked, mask=mask, length=length)


def read_frame(stream):
    """Read a whole frame; the payload is returned as received, still masked."""
    header = read_header(stream)
    payload = _read_exact(stream, header.length) if header.length > 0 else b""
    return Frame(header, payload)


def parse_close_frame_data(payload):
    """Return the status code and reason of a close frame payload.

    Without a status code the empty code and an empty reason are returned.
    Bytes of the reason that are not valid UTF-8 are kept as surrogate
    escapes, so a later UTF-8 check of the reason still detects them.
    """
    if len(payload) < 2:
        return StatusCode(0), ""
    code = StatusCode(int.from_bytes(payload[:2], "big"))
    reason = bytes(payload[2:]).decode("utf-8", errors="surrogateescape")
    return code, reason