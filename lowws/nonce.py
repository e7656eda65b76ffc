"""Sec-WebSocket-Key nonces and their Sec-WebSocket-Accept values."""

from __future__ import annotations

import base64
import hashlib
import secrets

NONCE_KEY_SIZE = 16
NONCE_SIZE = 24
ACCEPT_SIZE = 28

_MAGIC = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def _as_bytes(value):
    if isinstance(value, str):
        return value.encode("ascii")
    return bytes(value)


def make_nonce():
    """Return a fresh base64-encoded 16-byte random nonce."""
    return base64.b64encode(secrets.token_bytes(NONCE_KEY_SIZE))


def accept_from_nonce(nonce):
    """Return the Sec-WebSocket-Accept value for the given nonce."""
    nonce = _as_bytes(nonce)
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes long, got {len(nonce)}")
    return base64.b64encode(hashlib.sha1(nonce + _MAGIC).digest())


def check_accept_from_nonce(accept, nonce):
    """Report whether ``accept`` is the right answer to ``nonce``."""
    accept = _as_bytes(accept)
    if len(accept) != ACCEPT_SIZE:
        return False
    return secrets.compare_digest(accept_from_nonce(nonce), accept)