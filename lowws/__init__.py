"""Low-level WebSocket (RFC 6455) frames, masking, checks and opening handshakes."""

__version__ = "0.1.0"