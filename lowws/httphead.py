"""Parsing and writing of comma separated HTTP header tokens and options."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

TOKEN_CHARS = frozenset(
    b"!#$%&'*+-.^_`|~0123456789"
    b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)

_WHITESPACE = frozenset(b" \t")
_COMMA, _SEMICOLON, _EQUALS, _QUOTE, _BACKSLASH = b',;="\\'


def _to_bytes(value):
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


@dataclass
class Option:
    """A header option: a name followed by optional ``;key=value`` parameters.

    A parameter given without a value is stored with the value ``None``.
    """

    name: bytes
    parameters: dict = field(default_factory=dict)

    def __post_init__(self):
        self.name = _to_bytes(self.name)
        items = self.parameters
        if isinstance(items, Mapping):
            items = items.items()
        self.parameters = {
            _to_bytes(key): None if value is None else _to_bytes(value)
            for key, value in items
        }

    def size(self):
        """Return the number of name and parameter bytes; zero means an empty option."""
        return len(self.name) + sum(
            len(key) + len(value or b"") for key, value in self.parameters.items()
        )

    def clone(self):
        """Return an independent copy of the option."""
        return Option(self.name, dict(self.parameters))

    def set_parameter(self, key, value=None):
        """Set a parameter, replacing any previous value for the same key."""
        self.parameters[_to_bytes(key)] = None if value is None else _to_bytes(value)

    def __str__(self):
        return write_options([self]).decode("latin-1")


class _Lexer:
    def __init__(self, data):
        self.data = _to_bytes(data)
        self.pos = 0

    def skip_whitespace(self):
        while self.pos < len(self.data) and self.data[self.pos] in _WHITESPACE:
            self.pos += 1

    def peek(self):
        return self.data[self.pos] if self.pos < len(self.data) else None

    def advance(self):
        self.pos += 1

    def token(self):
        start = self.pos
        while self.pos < len(self.data) and self.data[self.pos] in TOKEN_CHARS:
            self.pos += 1
        if self.pos == start:
            raise ValueError(f"expected a token at offset {start}")
        return self.data[start : self.pos]

    def quoted(self):
        start = self.pos
        self.pos += 1
        out = bytearray()
        while self.pos < len(self.data):
            char = self.data[self.pos]
            self.pos += 1
            if char == _QUOTE:
                return bytes(out)
            if char == _BACKSLASH:
                if self.pos >= len(self.data):
                    break
                char = self.data[self.pos]
                self.pos += 1
            out.append(char)
        raise ValueError(f"unterminated quoted string at offset {start}")


def scan_tokens(data):
    """Yield the tokens of a comma separated list such as ``a, b, c``.

    Raises ValueError when the list turns out to be malformed or holds no
    token at all.  Tokens are produced lazily, so a consumer that stops
    early does not see errors further on.
    """
    lexer = _Lexer(data)
    found = False
    while True:
        lexer.skip_whitespace()
        char = lexer.peek()
        if char is None:
            break
        if char == _COMMA:
            lexer.advance()
            continue
        token = lexer.token()
        found = True
        yield token
    if not found:
        raise ValueError("no tokens in header value")


def scan_options(data):
    """Yield the options of a header value such as ``foo;bar=1, baz``.

    Parameter values may be tokens or quoted strings.  Raises ValueError when
    the value is malformed; options before the error are still produced.
    """
    lexer = _Lexer(data)
    while True:
        lexer.skip_whitespace()
        char = lexer.peek()
        if char is None:
            return
        if char == _COMMA:
            lexer.advance()
            continue
        option = Option(lexer.token())
        lexer.skip_whitespace()
        while lexer.peek() == _SEMICOLON:
            lexer.advance()
            lexer.skip_whitespace()
            key = lexer.token()
            lexer.skip_whitespace()
            value = None
            if lexer.peek() == _EQUALS:
                lexer.advance()
                lexer.skip_whitespace()
                value = lexer.quoted() if lexer.peek() == _QUOTE else lexer.token()
                lexer.skip_whitespace()
            option.set_parameter(key, value)
        if lexer.peek() not in (None, _COMMA):
            raise ValueError(f"unexpected byte at offset {lexer.pos}")
        yield option


def _render_value(value):
    if value and all(char in TOKEN_CHARS for char in value):
        return value
    escaped = value.replace(b"\\", b"\\\\").replace(b'"', b'\\"')
    return b'"' + escaped + b'"'


def _render_option(option):
    parts = [option.name]
    for key, value in option.parameters.items():
        parts.append(b";" + key)
        if value is not None:
            parts.append(b"=" + _render_value(value))
    return b"".join(parts)


def write_options(options):
    """Render options as a header value like ``foo;bar=1,baz``."""
    return b",".join(_render_option(option) for option in options)