"""WebSocket frame model: op codes, status codes, headers and frames."""

from __future__ import annotations

import dataclasses
import secrets
import struct
from dataclasses import dataclass
from typing import ClassVar, Union

from .cipher import cipher

MAX_CONTROL_FRAME_PAYLOAD_SIZE = 125
MAX_HEADER_SIZE = 14

_BIT0 = 0x80
_BIT5 = 0x04
_BIT6 = 0x02
_BIT7 = 0x01

_ZERO_MASK = bytes(4)


class OpCode(int):
    """A 4-bit frame operation code."""

    CONTINUATION: ClassVar["OpCode"]
    TEXT: ClassVar["OpCode"]
    BINARY: ClassVar["OpCode"]
    CLOSE: ClassVar["OpCode"]
    PING: ClassVar["OpCode"]
    PONG: ClassVar["OpCode"]

    def __new__(cls, value):
        value = int(value)
        if not 0 <= value <= 0xF:
            raise ValueError(f"op code out of range: {value}")
        return super().__new__(cls, value)

    def is_control(self):
        """Report whether this is a control op code."""
        return self & 0x8 != 0

    def is_data(self):
        """Report whether this is a data op code."""
        return self & 0x8 == 0

    def is_reserved(self):
        """Report whether this op code is reserved by the specification."""
        return 0x3 <= self <= 0x7 or 0xB <= self <= 0xF

    def __repr__(self):
        return f"OpCode(0x{int(self):x})"


OpCode.CONTINUATION = OpCode(0x0)
OpCode.TEXT = OpCode(0x1)
OpCode.BINARY = OpCode(0x2)
OpCode.CLOSE = OpCode(0x8)
OpCode.PING = OpCode(0x9)
OpCode.PONG = OpCode(0xA)


@dataclass(frozen=True)
class StatusCodeRange:
    """Inclusive range of close status codes."""

    min: int
    max: int


STATUS_RANGE_NOT_IN_USE = StatusCodeRange(0, 999)
STATUS_RANGE_PROTOCOL = StatusCodeRange(1000, 2999)
STATUS_RANGE_APPLICATION = StatusCodeRange(3000, 3999)
STATUS_RANGE_PRIVATE = StatusCodeRange(4000, 4999)


class StatusCode(int):
    """Encoded reason for closing a WebSocket connection."""

    NORMAL_CLOSURE: ClassVar["StatusCode"]
    GOING_AWAY: ClassVar["StatusCode"]
    PROTOCOL_ERROR: ClassVar["StatusCode"]
    UNSUPPORTED_DATA: ClassVar["StatusCode"]
    NO_MEANING_YET: ClassVar["StatusCode"]
    NO_STATUS_RCVD: ClassVar["StatusCode"]
    ABNORMAL_CLOSURE: ClassVar["StatusCode"]
    INVALID_FRAME_PAYLOAD_DATA: ClassVar["StatusCode"]
    POLICY_VIOLATION: ClassVar["StatusCode"]
    MESSAGE_TOO_BIG: ClassVar["StatusCode"]
    MANDATORY_EXT: ClassVar["StatusCode"]
    INTERNAL_SERVER_ERROR: ClassVar["StatusCode"]
    TLS_HANDSHAKE: ClassVar["StatusCode"]

    def __new__(cls, value):
        value = int(value)
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"status code out of range: {value}")
        return super().__new__(cls, value)

    def in_range(self, r):
        """Report whether the code lies in the given range."""
        return r.min <= self <= r.max

    def is_empty(self):
        """Report whether the code is zero, i.e. carries no meaning."""
        return self == 0

    def is_not_used(self):
        return self.in_range(STATUS_RANGE_NOT_IN_USE)

    def is_application_spec(self):
        return self.in_range(STATUS_RANGE_APPLICATION)

    def is_private_spec(self):
        return self.in_range(STATUS_RANGE_PRIVATE)

    def is_protocol_spec(self):
        return self.in_range(STATUS_RANGE_PROTOCOL)

    def is_protocol_defined(self):
        """Report whether the protocol specification defines this code."""
        return self in _PROTOCOL_DEFINED

    def is_protocol_reserved(self):
        """Report whether the code must never be sent in a close frame."""
        return self in _PROTOCOL_RESERVED

    def __repr__(self):
        return f"StatusCode({int(self)})"


StatusCode.NORMAL_CLOSURE = StatusCode(1000)
StatusCode.GOING_AWAY = StatusCode(1001)
StatusCode.PROTOCOL_ERROR = StatusCode(1002)
StatusCode.UNSUPPORTED_DATA = StatusCode(1003)
StatusCode.NO_MEANING_YET = StatusCode(1004)
StatusCode.NO_STATUS_RCVD = StatusCode(1005)
StatusCode.ABNORMAL_CLOSURE = StatusCode(1006)
StatusCode.INVALID_FRAME_PAYLOAD_DATA = StatusCode(1007)
StatusCode.POLICY_VIOLATION = StatusCode(1008)
StatusCode.MESSAGE_TOO_BIG = StatusCode(1009)
StatusCode.MANDATORY_EXT = StatusCode(1010)
StatusCode.INTERNAL_SERVER_ERROR = StatusCode(1011)
StatusCode.TLS_HANDSHAKE = StatusCode(1015)

_PROTOCOL_DEFINED = frozenset(
    {
        StatusCode.NORMAL_CLOSURE,
        StatusCode.GOING_AWAY,
        StatusCode.PROTOCOL_ERROR,
        StatusCode.UNSUPPORTED_DATA,
        StatusCode.INVALID_FRAME_PAYLOAD_DATA,
        StatusCode.POLICY_VIOLATION,
        StatusCode.MESSAGE_TOO_BIG,
        StatusCode.MANDATORY_EXT,
        StatusCode.INTERNAL_SERVER_ERROR,
        StatusCode.NO_STATUS_RCVD,
        StatusCode.ABNORMAL_CLOSURE,
        StatusCode.TLS_HANDSHAKE,
    }
)

_PROTOCOL_RESERVED = frozenset(
    {StatusCode.NO_STATUS_RCVD, StatusCode.ABNORMAL_CLOSURE, StatusCode.TLS_HANDSHAKE}
)


@dataclass(frozen=True)
class Header:
    """WebSocket frame header."""

    fin: bool = False
    rsv: int = 0
    opcode: OpCode = OpCode.CONTINUATION
    masked: bool = False
    mask: bytes = _ZERO_MASK
    length: int = 0

    def __post_init__(self):
        if not isinstance(self.opcode, OpCode):
            object.__setattr__(self, "opcode", OpCode(self.opcode))
        mask = bytes(self.mask)
        if len(mask) != 4:
            raise ValueError(f"mask must be 4 bytes long, got {len(mask)}")
        object.__setattr__(self, "mask", mask)

    def rsv1(self):
        return self.rsv & _BIT5 != 0

    def rsv2(self):
        return self.rsv & _BIT6 != 0

    def rsv3(self):
        return self.rsv & _BIT7 != 0


Payload = Union[bytes, bytearray]


@dataclass(frozen=True)
class Frame:
    """WebSocket frame: a header and its payload."""

    header: Header
    payload: Payload = b""


def rsv(r1, r2, r3):
    """Build the rsv value from its three bits."""
    value = 0
    if r1:
        value |= _BIT5
    if r2:
        value |= _BIT6
    if r3:
        value |= _BIT7
    return value


def rsv_bits(rsv):
    """Split an rsv value into its three bits."""
    return rsv & _BIT5 != 0, rsv & _BIT6 != 0, rsv & _BIT7 != 0


def new_frame(op, fin, payload):
    """Create a frame with the given op code, fin flag and payload."""
    if payload is None:
        payload = b""
    return Frame(Header(fin=fin, opcode=OpCode(op), length=len(payload)), payload)


def new_text_frame(payload):
    return new_frame(OpCode.TEXT, True, payload)


def new_binary_frame(payload):
    return new_frame(OpCode.BINARY, True, payload)


def new_ping_frame(payload):
    return new_frame(OpCode.PING, True, payload)


def new_pong_frame(payload):
    return new_frame(OpCode.PONG, True, payload)


def new_close_frame(payload):
    return new_frame(OpCode.CLOSE, True, payload)


def new_close_frame_body(code, reason):
    """Encode a close code and reason, cropping the reason to fit a control frame."""
    if isinstance(reason, str):
        reason = reason.encode("utf-8")
    reason = bytes(reason)[: MAX_CONTROL_FRAME_PAYLOAD_SIZE - 2]
    return struct.pack(">H", int(code)) + reason


def mask_frame(frame):
    """Return a masked copy of the frame using a fresh random mask."""
    return mask_frame_with(frame, new_mask())


def mask_frame_with(frame, mask):
    """Return a copy of the frame masked with ``mask``; the original is untouched."""
    copied = dataclasses.replace(frame, payload=bytearray(frame.payload))
    return mask_frame_in_place_with(copied, mask)


def mask_frame_in_place(frame):
    """Mask the frame payload in place with a fresh random mask."""
    return mask_frame_in_place_with(frame, new_mask())


def mask_frame_in_place_with(frame, mask):
    """Mask the frame payload in place and return the frame with the mask set."""
    header = dataclasses.replace(frame.header, masked=True, mask=bytes(mask))
    cipher(frame.payload, mask, 0)
    return Frame(header, frame.payload)


def unmask_frame(frame):
    """Return an unmasked copy of the frame; the original is untouched."""
    copied = dataclasses.replace(frame, payload=bytearray(frame.payload))
    return unmask_frame_in_place(copied)


def unmask_frame_in_place(frame):
    """Unmask the frame payload in place and return the frame with the mask cleared."""
    cipher(frame.payload, frame.header.mask, 0)
    header = dataclasses.replace(frame.header, masked=False, mask=_ZERO_MASK)
    return Frame(header, frame.payload)


def new_mask():
    """Return a new random 4-byte mask."""
    return secrets.token_bytes(4)


def _encode_header(header):
    if header.length < 0:
        raise ValueError(f"negative frame length: {header.length}")
    if header.length > 0x7FFFFFFFFFFFFFFF:
        raise ValueError(f"frame length too large: {header.length}")
    if not 0 <= header.rsv <= 0x7:
        raise ValueError(f"rsv out of range: {header.rsv}")

    first = (_BIT0 if header.fin else 0) | (header.rsv << 4) | int(header.opcode)
    second = _BIT0 if header.masked else 0
    if header.length < 126:
        out = bytes((first, second | header.length))
    elif header.length <= 0xFFFF:
        out = bytes((first, second | 126)) + struct.pack(">H", header.length)
    else:
        out = bytes((first, second | 127)) + struct.pack(">Q", header.length)
    if header.masked:
        out += header.mask
    return out


def compile_frame(frame):
    """Return the wire representation of the frame."""
    return _encode_header(frame.header) + bytes(frame.payload)


def _close_frame(code):
    return new_close_frame(new_close_frame_body(code, ""))


COMPILED_PING = compile_frame(new_ping_frame(None))
COMPILED_PONG = compile_frame(new_pong_frame(None))
COMPILED_CLOSE = compile_frame(new_close_frame(None))

COMPILED_CLOSE_NORMAL_CLOSURE = compile_frame(_close_frame(StatusCode.NORMAL_CLOSURE))
COMPILED_CLOSE_GOING_AWAY = compile_frame(_close_frame(StatusCode.GOING_AWAY))
COMPILED_CLOSE_PROTOCOL_ERROR = compile_frame(_close_frame(StatusCode.PROTOCOL_ERROR))
COMPILED_CLOSE_UNSUPPORTED_DATA = compile_frame(_close_frame(StatusCode.UNSUPPORTED_DATA))
COMPILED_CLOSE_NO_MEANING_YET = compile_frame(_close_frame(StatusCode.NO_MEANING_YET))
COMPILED_CLOSE_INVALID_FRAME_PAYLOAD_DATA = compile_frame(
    _close_frame(StatusCode.INVALID_FRAME_PAYLOAD_DATA)
)
COMPILED_CLOSE_POLICY_VIOLATION = compile_frame(_close_frame(StatusCode.POLICY_VIOLATION))
COMPILED_CLOSE_MESSAGE_TOO_BIG = compile_frame(_close_frame(StatusCode.MESSAGE_TOO_BIG))
COMPILED_CLOSE_MANDATORY_EXT = compile_frame(_close_frame(StatusCode.MANDATORY_EXT))
COMPILED_CLOSE_INTERNAL_SERVER_ERROR = compile_frame(
    _close_frame(StatusCode.INTERNAL_SERVER_ERROR)
)
COMPILED_CLOSE_TLS_HANDSHAKE = compile_frame(_close_frame(StatusCode.TLS_HANDSHAKE))