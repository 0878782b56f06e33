"""Instruction pattern strings compiled to key/mask/shift triples for decoding."""

from __future__ import annotations

from dataclasses import dataclass

_MAX_BINARY_CHARS = 64
_MAX_HEX_CHARS = 16
_U64 = (1 << 64) - 1
_HEX_DIGITS = "0123456789abcdef"


class PatternError(ValueError):
    """Raised for a malformed instruction pattern string."""


@dataclass(frozen=True)
class Pattern:
    """A compiled pattern: an instruction matches when its masked bits equal ``key``."""

    key: int
    mask: int
    shift: int

    def matches(self, inst: int) -> bool:
        """Tell whether the instruction word ``inst`` fits this pattern."""
        return (((inst & _U64) >> self.shift) & self.mask) == self.key


def _compile(text: str, limit: int, width: int, digit_value) -> Pattern:
    if len(text) > limit:
        raise PatternError("pattern too long")
    key = mask = shift = 0
    full = (1 << width) - 1
    for c in text:
        if c == " ":
            continue
        value = digit_value(c)
        if c == "?":
            key <<= width
            mask <<= width
            shift += width
        else:
            key = (key << width) | value
            mask = (mask << width) | full
            shift = 0
    return Pattern(key=key >> shift, mask=mask >> shift, shift=shift)


def _binary_digit(c: str) -> int:
    if c not in "01?":
        raise PatternError(f"invalid character '{c}' in pattern string")
    return 1 if c == "1" else 0


def _hex_digit(c: str) -> int:
    if c == "?":
        return 0
    if c not in _HEX_DIGITS:
        raise PatternError(f"invalid character '{c}' in pattern string")
    return _HEX_DIGITS.index(c)


def pattern_decode(text: str) -> Pattern:
    """Compile a pattern of '0', '1' and '?' bits; spaces are ignored."""
    return _compile(text, _MAX_BINARY_CHARS, 1, _binary_digit)


def pattern_decode_hex(text: str) -> Pattern:
    """Compile a pattern of lower-case hex digits and '?' nibbles; spaces are ignored."""
    return _compile(text, _MAX_HEX_CHARS, 4, _hex_digit)