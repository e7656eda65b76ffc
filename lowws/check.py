"""Protocol checks of frame headers and close frame data."""

from __future__ import annotations

import enum

from .frame import MAX_CONTROL_FRAME_PAYLOAD_SIZE, OpCode, StatusCode


class State(enum.IntFlag):
    """State of a WebSocket endpoint, used to check frames more strictly."""

    SERVER_SIDE = 0x1
    CLIENT_SIDE = 0x2
    EXTENDED = 0x4
    FRAGMENTED = 0x8

    def server_side(self):
        return bool(self & State.SERVER_SIDE)

    def client_side(self):
        return bool(self & State.CLIENT_SIDE)

    def extended(self):
        return bool(self & State.EXTENDED)

    def fragmented(self):
        return bool(self & State.FRAGMENTED)


class ProtocolError(Exception):
    """A frame or close payload violates the protocol."""


ERR_OPCODE_RESERVED = "use of reserved op code"
ERR_CONTROL_PAYLOAD_OVERFLOW = "control frame payload limit exceeded"
ERR_CONTROL_NOT_FINAL = "control frame is not final"
ERR_NON_ZERO_RSV = "non-zero rsv bits with no extension negotiated"
ERR_MASK_REQUIRED = "frames from client to server must be masked"
ERR_MASK_UNEXPECTED = "frames from server to client must be not masked"
ERR_CONTINUATION_EXPECTED = "unexpected non-continuation data frame"
ERR_CONTINUATION_UNEXPECTED = "unexpected continuation data frame"
ERR_STATUS_CODE_NOT_IN_USE = "status code is not in use"
ERR_STATUS_CODE_APPLICATION_LEVEL = "status code is only application level"
ERR_STATUS_CODE_NO_MEANING = "status code has no meaning yet"
ERR_STATUS_CODE_UNKNOWN = "status code is not defined in spec"
ERR_INVALID_UTF8 = "invalid utf8 sequence in close reason"


def check_header(header, state):
    """Raise ProtocolError if ``header`` is not valid for an endpoint in ``state``.

    A zero state means neither side, not fragmented and not extended.
    """
    state = State(state)
    op = header.opcode
    if op.is_reserved():
        raise ProtocolError(ERR_OPCODE_RESERVED)
    if op.is_control():
        if header.length > MAX_CONTROL_FRAME_PAYLOAD_SIZE:
            raise ProtocolError(ERR_CONTROL_PAYLOAD_OVERFLOW)
        if not header.fin:
            raise ProtocolError(ERR_CONTROL_NOT_FINAL)

    if header.rsv != 0 and not state.extended():
        raise ProtocolError(ERR_NON_ZERO_RSV)
    if state.server_side() and not header.masked:
        raise ProtocolError(ERR_MASK_REQUIRED)
    if state.client_side() and header.masked:
        raise ProtocolError(ERR_MASK_UNEXPECTED)
    if state.fragmented() and not op.is_control() and op != OpCode.CONTINUATION:
        raise ProtocolError(ERR_CONTINUATION_EXPECTED)
    if not state.fragmented() and op == OpCode.CONTINUATION:
        raise ProtocolError(ERR_CONTINUATION_UNEXPECTED)


def _valid_utf8(reason):
    try:
        if isinstance(reason, str):
            reason.encode("utf-8")
        else:
            bytes(reason).decode("utf-8")
    except UnicodeError:
        return False
    return True


def check_close_frame_data(code, reason):
    """Raise ProtocolError unless the close code and reason are valid to receive.

    An empty (zero) code is rejected too; a close frame without any status
    code should not be checked at all.
    """
    code = StatusCode(code)
    if code.is_not_used():
        raise ProtocolError(ERR_STATUS_CODE_NOT_IN_USE)
    if code.is_protocol_reserved():
        raise ProtocolError(ERR_STATUS_CODE_APPLICATION_LEVEL)
    if code == StatusCode.NO_MEANING_YET:
        raise ProtocolError(ERR_STATUS_CODE_NO_MEANING)
    if code.is_protocol_spec() and not code.is_protocol_defined():
        raise ProtocolError(ERR_STATUS_CODE_UNKNOWN)
    if not _valid_utf8(reason):
        raise ProtocolError(ERR_INVALID_UTF8)