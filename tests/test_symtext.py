import pytest

from nemukit.symtext import (
    PropType,
    SymbolType,
    prop_get_type_name,
    strhash,
    sym_escape_string_value,
    sym_string_valid,
    sym_type_name,
)


@pytest.mark.parametrize(
    "sym_type, name",
    [
        (SymbolType.BOOLEAN, "bool"),
        (SymbolType.TRISTATE, "tristate"),
        (SymbolType.INT, "integer"),
        (SymbolType.HEX, "hex"),
        (SymbolType.STRING, "string"),
        (SymbolType.UNKNOWN, "unknown"),
    ],
)
def test_sym_type_name(sym_type, name):
    assert sym_type_name(sym_type) == name


def test_sym_type_name_of_foreign_value():
    assert sym_type_name(42) == "???"


@pytest.mark.parametrize(
    "prop_type, name",
    [
        (PropType.PROMPT, "prompt"),
        (PropType.COMMENT, "comment"),
        (PropType.MENU, "menu"),
        (PropType.DEFAULT, "default"),
        (PropType.CHOICE, "choice"),
        (PropType.SELECT, "select"),
        (PropType.IMPLY, "imply"),
        (PropType.RANGE, "range"),
        (PropType.SYMBOL, "symbol"),
        (PropType.UNKNOWN, "unknown"),
    ],
)
def test_prop_get_type_name(prop_type, name):
    assert prop_get_type_name(prop_type) == name


def test_prop_get_type_name_of_foreign_value():
    assert prop_get_type_name("bogus") == "unknown"


@pytest.mark.parametrize(
    "text, ok",
    [
        ("0", True),
        ("123", True),
        ("-5", True),
        ("-0", True),
        ("", False),
        ("-", False),
        ("012", False),
        ("12a", False),
        ("+1", False),
        (" 1", False),
    ],
)
def test_int_validation(text, ok):
    assert sym_string_valid(SymbolType.INT, text) is ok


@pytest.mark.parametrize(
    "text, ok",
    [
        ("0x1f", True),
        ("0XAB", True),
        ("deadBEEF", True),
        ("0", True),
        ("0x", False),
        ("", False),
        ("0xg", False),
        ("-1", False),
    ],
)
def test_hex_validation(text, ok):
    assert sym_string_valid(SymbolType.HEX, text) is ok


@pytest.mark.parametrize("sym_type", [SymbolType.BOOLEAN, SymbolType.TRISTATE])
@pytest.mark.parametrize(
    "text, ok",
    [("y", True), ("M", True), ("no", True), ("N", True), ("x", False), ("", False)],
)
def test_tristate_validation(sym_type, text, ok):
    assert sym_string_valid(sym_type, text) is ok


def test_string_always_valid_and_unknown_never():
    assert sym_string_valid(SymbolType.STRING, "") is True
    assert sym_string_valid(SymbolType.STRING, "anything at all") is True
    assert sym_string_valid(SymbolType.UNKNOWN, "y") is False


def test_escape_plain_text():
    assert sym_escape_string_value("abc") == '"abc"'
    assert sym_escape_string_value("") == '""'


def test_escape_quote_and_backslash():
    assert sym_escape_string_value('a"b') == '"a\\"b"'
    assert sym_escape_string_value("a\\b") == '"a\\\\b"'


def test_escape_length_invariant():
    text = 'x"y\\z""'
    specials = text.count('"') + text.count("\\")
    assert len(sym_escape_string_value(text)) == len(text) + 2 + specials


def test_strhash_empty_is_offset_basis():
    assert strhash("") == 2166136261


@pytest.mark.parametrize("name", ["CONFIG_ISA", "MODULES", "a", "é"])
def test_strhash_range_and_determinism(name):
    value = strhash(name)
    assert 0 <= value < 2**32
    assert strhash(name) == value


def test_strhash_distinguishes_names():
    names = ["A", "B", "AB", "BA", "CONFIG_CC", "CONFIG_ENGINE"]
    assert len({strhash(n) for n in names}) == len(names)