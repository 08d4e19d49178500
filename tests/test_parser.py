"""Blueprint reader behaviour on well-formed and hostile input."""
from __future__ import annotations

from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from simlint.blueprint.parser import ParseError, ParseErrorKind, parse_blueprint, parse_value
from simlint.blueprint.values import LuaTable
from simlint.engine.config import MAX_BLUEPRINT_FILE_BYTES, MAX_TABLE_DEPTH

DATA_DIR = Path(__file__).resolve().parents[1] / "simlint" / "assets" / "data"


def _kind(text: str) -> ParseErrorKind:
    with pytest.raises(ParseError) as excinfo:
        parse_blueprint(text)
    return excinfo.value.kind


def test_empty_table() -> None:
    root = parse_blueprint("{}")
    assert isinstance(root, LuaTable)
    assert len(root) == 0
    assert root.array_length() == 0


def test_trailing_content_rejected() -> None:
    assert _kind("{} extra") is ParseErrorKind.TRAILING_CONTENT


def test_unclosed_string() -> None:
    assert _kind('{ x = "unclosed') is ParseErrorKind.UNCLOSED_STRING


def test_unexpected_eof_inside_table() -> None:
    assert _kind("{ a = 1,") is ParseErrorKind.UNEXPECTED_EOF


def test_unexpected_character() -> None:
    error = None
    try:
        parse_blueprint("{ a = @ }")
    except ParseError as exc:
        error = exc
    assert error is not None
    assert error.kind is ParseErrorKind.UNEXPECTED_CHAR
    assert error.char == "@"
    assert error.position == 6


def test_invalid_number() -> None:
    assert _kind("{ a = 1.2.3 }") is ParseErrorKind.INVALID_NUMBER


def test_division_folds_to_single_number() -> None:
    assert parse_value("10 / 20") == pytest.approx(0.5)
    root = parse_blueprint("{ RateOfFire = 10/20 }")
    assert root.get_num("RateOfFire") == pytest.approx(0.5)


def test_division_chain_and_zero_divisor() -> None:
    assert parse_value("8/4/2") == pytest.approx(4.0)
    assert parse_value("5/0") == pytest.approx(5.0)


def test_input_too_large_checked_first() -> None:
    # not even a table: the size bound must trip before any scanning
    assert _kind("x" * (MAX_BLUEPRINT_FILE_BYTES + 1)) is ParseErrorKind.INPUT_TOO_LARGE


def test_nesting_depth_limit() -> None:
    ok = "{" * MAX_TABLE_DEPTH + "}" * MAX_TABLE_DEPTH
    assert isinstance(parse_blueprint(ok), LuaTable)
    deep = "{" * (MAX_TABLE_DEPTH + 1) + "}" * (MAX_TABLE_DEPTH + 1)
    assert _kind(deep) is ParseErrorKind.NESTED_TOO_DEEP


def test_string_escapes() -> None:
    root = parse_blueprint(r'{ s = "a\"b\n", t = ' + "'it\\'s' }")
    assert root.get_str("s") == 'a"b\n'
    assert root.get_str("t") == "it's"
    assert _kind(r'{ s = "bad \q" }') is ParseErrorKind.INVALID_ESCAPE


def test_comments_are_skipped() -> None:
    text = "-- header\n{ a = 1, --[[ block\ncomment ]] b = 2 -- trailing\n}"
    root = parse_blueprint(text)
    assert root.get_num("a") == 1.0
    assert root.get_num("b") == 2.0


def test_type_tags_are_dropped() -> None:
    root = parse_blueprint("UnitBlueprint { Audio = { Fire = Sound { Cue = 'Boom' } } }")
    audio = root.get_table("Audio")
    assert audio is not None
    assert audio.get_table("Fire").get_str("Cue") == "Boom"


def test_positional_and_explicit_keys() -> None:
    root = parse_blueprint("{ 'a', 'b'; [5] = 'e', 'c', ['name'] = 'n' }")
    assert root.array_length() == 2
    assert root.array() == ["a", "b"]
    assert root.get_index(5) == "e"
    assert root.get_index(6) == "c"
    assert root.get_index(0) is None
    assert root.get_str("name") == "n"


def test_non_finite_keys_fall_back_to_positions() -> None:
    root = parse_blueprint("{ [1e999] = 'x', 1e999 = 'y', [1e999/1e999] = 'z', [2.5] = 'w' }")
    assert root.array() == ["x", "y", "z", "w"]


def test_booleans_and_bare_identifiers() -> None:
    root = parse_blueprint("{ t = true, f = false, other = trueish }")
    assert root.get_bool("t") is True
    assert root.get_bool("f") is False
    assert root.get_str("other") == "trueish"
    # booleans are not numbers
    assert root.get_num("t") is None


def test_signed_and_fractional_numbers() -> None:
    root = parse_blueprint("{ -1.5, 2e3, .5, +4 }")
    assert root.array() == [-1.5, 2000.0, 0.5, 4.0]


def test_parsing_is_deterministic() -> None:
    text = (DATA_DIR / "units" / "xsl0103_unit.bp").read_text()
    assert parse_blueprint(text) == parse_blueprint(text)


def test_sample_unit_files_parse() -> None:
    for path in sorted((DATA_DIR / "units").glob("*_unit.bp")) + sorted((DATA_DIR / "units").glob("u*.lua")):
        root = parse_blueprint(path.read_text())
        assert isinstance(root, LuaTable)
        assert root.get_table("Weapon") is not None
