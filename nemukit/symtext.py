"""Symbol and property type names, value validation, escaping and name hashing."""

from __future__ import annotations

import enum

_DIGITS = frozenset("0123456789")
_XDIGITS = frozenset("0123456789abcdefABCDEF")
_TRISTATE_CHARS = frozenset("yYmMnN")

_FNV_OFFSET = 2166136261
_FNV_PRIME = 0x01000193
_U32 = 0xFFFFFFFF


class SymbolType(enum.Enum):
    """The value type of a configuration symbol."""

    UNKNOWN = "unknown"
    BOOLEAN = "bool"
    TRISTATE = "tristate"
    INT = "integer"
    HEX = "hex"
    STRING = "string"


class PropType(enum.Enum):
    """The kind of a property attached to a symbol or menu entry."""

    UNKNOWN = "unknown"
    PROMPT = "prompt"
    COMMENT = "comment"
    MENU = "menu"
    DEFAULT = "default"
    CHOICE = "choice"
    SELECT = "select"
    IMPLY = "imply"
    RANGE = "range"
    SYMBOL = "symbol"


def sym_type_name(sym_type: SymbolType) -> str:
    """Return the name a symbol type is shown with, or '???' for anything else."""
    if isinstance(sym_type, SymbolType):
        return sym_type.value
    return "???"


def prop_get_type_name(prop_type: PropType) -> str:
    """Return the name of a property type, or 'unknown' for anything else."""
    if isinstance(prop_type, PropType):
        return prop_type.value
    return "unknown"


def _valid_int(text: str) -> bool:
    digits = text[1:] if text.startswith("-") else text
    if not digits or digits[0] not in _DIGITS:
        return False
    if digits[0] == "0" and len(digits) > 1:
        return False
    return all(c in _DIGITS for c in digits)


def _valid_hex(text: str) -> bool:
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    return bool(text) and all(c in _XDIGITS for c in text)


def sym_string_valid(sym_type: SymbolType, text: str) -> bool:
    """Tell whether ``text`` is a well-formed value for a symbol of ``sym_type``."""
    if sym_type is SymbolType.STRING:
        return True
    if sym_type is SymbolType.INT:
        return _valid_int(text)
    if sym_type is SymbolType.HEX:
        return _valid_hex(text)
    if sym_type in (SymbolType.BOOLEAN, SymbolType.TRISTATE):
        return bool(text) and text[0] in _TRISTATE_CHARS
    return False


def sym_escape_string_value(text: str) -> str:
    """Quote ``text`` in double quotes, escaping '"' and '\\' with a backslash."""
    escaped = "".join("\\" + c if c in '"\\' else c for c in text)
    return f'"{escaped}"'


def strhash(name: str) -> int:
    """Return the 32-bit FNV-1 hash of ``name`` as used for the symbol table."""
    value = _FNV_OFFSET
    for byte in name.encode("utf-8"):
        # bytes are taken as signed chars, so high bytes are sign-extended
        operand = byte if byte < 0x80 else (byte - 0x100) & _U32
        value = ((value ^ operand) * _FNV_PRIME) & _U32
    return value