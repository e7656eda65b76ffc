"""XOR masking of WebSocket payloads."""

from __future__ import annotations

MASK_SIZE = 4


def cipher(payload, mask, offset=0):
    """Apply the XOR mask to ``payload`` in place.

    ``payload`` must be a writable buffer (a ``bytearray`` or a writable
    ``memoryview``).  ``offset`` is the number of payload bytes already
    processed before this chunk, so that a stream can be ciphered piece
    by piece.  Masking and unmasking are the same operation.
    """
    if len(mask) != MASK_SIZE:
        raise ValueError(f"mask must be {MASK_SIZE} bytes long, got {len(mask)}")
    if isinstance(payload, bytes):
        raise TypeError("payload must be a writable buffer, not bytes")
    size = len(payload)
    if size == 0:
        return
    start = offset % MASK_SIZE
    key = bytes(mask[start:]) + bytes(mask[:start])
    stream = (key * (size // MASK_SIZE + 1))[:size]
    value = int.from_bytes(payload, "little") ^ int.from_bytes(stream, "little")
    payload[:] = value.to_bytes(size, "little")