"""Constrained reader for blueprint data literals.

Blueprints look like Lua table constructors. This reader understands
only the literal subset: tables, quoted strings, numbers, booleans and
bare identifiers. Nothing is evaluated. A number followed by ``/`` and
another number is folded into their quotient because rates are written
as tick fractions (``RateOfFire = 10/20``).
"""
from __future__ import annotations

import re
from enum import Enum
from math import isfinite
from typing import Optional

from simlint.blueprint.values import LuaKey, LuaTable, LuaValue, is_number
from simlint.engine.config import MAX_BLUEPRINT_FILE_BYTES, MAX_TABLE_DEPTH
from simlint.engine.logger import ChannelLogger

_WHITESPACE = re.compile(r"\s+")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_TYPE_TAG = re.compile(r"[A-Za-z_]+")
_NUMBER = re.compile(r"[+-]?[0-9.eE+\-]*")
_STRING_RUN = {
    '"': re.compile(r'[^"\\]+'),
    "'": re.compile(r"[^'\\]+"),
}
_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


class ParseErrorKind(Enum):
    UNEXPECTED_EOF = "unexpected end of input"
    UNEXPECTED_CHAR = "unexpected character"
    INVALID_NUMBER = "invalid number"
    UNCLOSED_STRING = "unclosed string"
    INPUT_TOO_LARGE = "input exceeds maximum size"
    TRAILING_CONTENT = "trailing content after value"
    NESTED_TOO_DEEP = "nesting too deep"
    INVALID_ESCAPE = "invalid escape in string"


class ParseError(Exception):
    """Raised when blueprint text is not a well-formed data literal."""

    def __init__(
        self,
        kind: ParseErrorKind,
        position: Optional[int] = None,
        char: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.position = position
        self.char = char
        message = kind.value
        if char is not None:
            message = f"{message}: {char!r}"
        if position is not None:
            message = f"{message} at offset {position}"
        super().__init__(message)


class BlueprintReader:
    """Recursive-descent reader over a single source string.

    Holds the scan position and the current table depth. The depth is
    checked explicitly on every table entry so hostile input fails with
    ``NESTED_TOO_DEEP`` instead of exhausting the interpreter stack.
    """

    def __init__(self, text: str, *, max_depth: int = MAX_TABLE_DEPTH) -> None:
        self.text = text
        self.pos = 0
        self.depth = 0
        self.max_depth = max_depth

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _error(self, kind: ParseErrorKind) -> ParseError:
        if self.at_end():
            return ParseError(ParseErrorKind.UNEXPECTED_EOF, self.pos)
        char = self.peek() if kind is ParseErrorKind.UNEXPECTED_CHAR else None
        return ParseError(kind, self.pos, char)

    def _expect(self, char: str) -> None:
        self.skip_whitespace_and_comments()
        if self.peek() != char:
            raise self._error(ParseErrorKind.UNEXPECTED_CHAR)
        self.pos += 1

    def skip_whitespace_and_comments(self) -> None:
        text = self.text
        while self.pos < len(text):
            match = _WHITESPACE.match(text, self.pos)
            if match:
                self.pos = match.end()
                continue
            if text.startswith("--", self.pos):
                if text.startswith("--[[", self.pos):
                    end = text.find("]]", self.pos + 4)
                    self.pos = len(text) if end < 0 else end + 2
                else:
                    newline = text.find("\n", self.pos)
                    self.pos = len(text) if newline < 0 else newline + 1
                continue
            break

    def skip_type_tag(self) -> None:
        """Drop a leading ``UnitBlueprint`` style tag in front of the root table."""

        self.skip_whitespace_and_comments()
        match = _TYPE_TAG.match(self.text, self.pos)
        if not match:
            return
        start = self.pos
        self.pos = match.end()
        self.skip_whitespace_and_comments()
        if self.peek() != "{":
            self.pos = start

    def parse_value(self) -> LuaValue:
        self.skip_whitespace_and_comments()
        if self.at_end():
            raise ParseError(ParseErrorKind.UNEXPECTED_EOF, self.pos)
        char = self.peek()
        if char == "{":
            return self.parse_table()
        if char in _STRING_RUN:
            return self.parse_string()
        if char.isdigit() or char in "+-.":
            return self.parse_number()
        if char.isalpha() or char == "_":
            return self.parse_identifier()
        raise self._error(ParseErrorKind.UNEXPECTED_CHAR)

    def parse_identifier(self) -> LuaValue:
        match = _IDENTIFIER.match(self.text, self.pos)
        if not match:
            raise self._error(ParseErrorKind.UNEXPECTED_CHAR)
        name = match.group(0)
        self.pos = match.end()
        if name == "true":
            return True
        if name == "false":
            return False
        self.skip_whitespace_and_comments()
        if self.peek() == "{":
            # Sound { ... } and friends: the tag is dropped, the table kept.
            return self.parse_table()
        return name

    def parse_table(self) -> LuaTable:
        if self.depth >= self.max_depth:
            raise ParseError(ParseErrorKind.NESTED_TOO_DEEP, self.pos)
        self.depth += 1
        try:
            return self._parse_table_body()
        finally:
            self.depth -= 1

    def _parse_table_body(self) -> LuaTable:
        self._expect("{")
        table = LuaTable()
        next_index = 1
        while True:
            self.skip_whitespace_and_comments()
            if self.at_end():
                raise ParseError(ParseErrorKind.UNEXPECTED_EOF, self.pos)
            if self.peek() == "}":
                self.pos += 1
                return table

            if self.peek() == "[":
                self.pos += 1
                key_value = self.parse_value()
                self._expect("]")
                self._expect("=")
                value = self.parse_value()
                positional = False
            else:
                first = self.parse_value()
                self.skip_whitespace_and_comments()
                if self.peek() == "=":
                    self.pos += 1
                    key_value, value = first, self.parse_value()
                    positional = False
                else:
                    key_value, value = None, first
                    positional = True

            key = None if positional else _table_key(key_value)
            if key is None:
                key = next_index
            if isinstance(key, int):
                next_index = max(key, next_index) + 1
            table[key] = value

            self.skip_whitespace_and_comments()
            char = self.peek()
            if char in (",", ";"):
                self.pos += 1
            elif char == "}":
                self.pos += 1
                return table
            else:
                raise self._error(ParseErrorKind.UNEXPECTED_CHAR)

    def parse_string(self) -> str:
        quote = self.peek()
        run = _STRING_RUN[quote]
        text = self.text
        self.pos += 1
        parts = []
        while True:
            if self.pos >= len(text):
                raise ParseError(ParseErrorKind.UNCLOSED_STRING, self.pos)
            match = run.match(text, self.pos)
            if match:
                parts.append(match.group(0))
                self.pos = match.end()
                continue
            char = text[self.pos]
            if char == quote:
                self.pos += 1
                return "".join(parts)
            # backslash
            self.pos += 1
            if self.pos >= len(text):
                raise ParseError(ParseErrorKind.INVALID_ESCAPE, self.pos)
            escaped = _ESCAPES.get(text[self.pos])
            if escaped is None:
                raise ParseError(ParseErrorKind.INVALID_ESCAPE, self.pos, text[self.pos])
            parts.append(escaped)
            self.pos += 1

    def _number_literal(self) -> float:
        self.skip_whitespace_and_comments()
        start = self.pos
        match = _NUMBER.match(self.text, start)
        literal = match.group(0) if match else ""
        if literal in ("", "+", "-"):
            raise ParseError(ParseErrorKind.INVALID_NUMBER, start)
        try:
            number = float(literal)
        except ValueError:
            raise ParseError(ParseErrorKind.INVALID_NUMBER, start) from None
        self.pos = start + len(literal)
        return number

    def parse_number(self) -> float:
        operands = [self._number_literal()]
        while True:
            self.skip_whitespace_and_comments()
            if self.peek() != "/":
                break
            self.pos += 1
            operands.append(self._number_literal())
        # a / b / c reads as a / (b / c); a zero divisor leaves the dividend as is
        value = operands.pop()
        while operands:
            dividend = operands.pop()
            value = dividend if value == 0.0 else dividend / value
        return value


def _table_key(value: LuaValue) -> Optional[LuaKey]:
    """Map an explicit key onto the closed text/positive-integer key set."""

    if isinstance(value, str):
        return value
    if is_number(value) and isfinite(value) and value >= 1.0 and value == int(value):
        return int(value)
    return None


def parse_blueprint(text: str, logger: Optional[ChannelLogger] = None) -> LuaValue:
    """Parse a whole blueprint file.

    Raises ``ParseError``. The size bound is checked before any scanning.
    """

    if len(text) > MAX_BLUEPRINT_FILE_BYTES or len(text.encode("utf-8")) > MAX_BLUEPRINT_FILE_BYTES:
        raise ParseError(ParseErrorKind.INPUT_TOO_LARGE)
    reader = BlueprintReader(text)
    reader.skip_type_tag()
    value = reader.parse_value()
    reader.skip_whitespace_and_comments()
    if not reader.at_end():
        raise ParseError(ParseErrorKind.TRAILING_CONTENT, reader.pos)
    if logger and logger.enabled:
        logger.debug("Parsed blueprint chars=%d root=%s", len(text), type(value).__name__)
    return value


def parse_value(text: str) -> LuaValue:
    """Parse a single leading value, ignoring whatever follows it."""

    if len(text) > MAX_BLUEPRINT_FILE_BYTES or len(text.encode("utf-8")) > MAX_BLUEPRINT_FILE_BYTES:
        raise ParseError(ParseErrorKind.INPUT_TOO_LARGE)
    return BlueprintReader(text).parse_value()


__all__ = [
    "BlueprintReader",
    "ParseError",
    "ParseErrorKind",
    "parse_blueprint",
    "parse_value",
]
