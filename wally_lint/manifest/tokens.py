"""TOML tokenizer for Wally manifests.

Covers the part of TOML that manifests actually use: table headers, key/value
pairs, strings, booleans, numbers, date-times, arrays and inline tables.
The scanner walks the text one character at a time and records the line and
column of every token, so diagnostics can point at the exact source text.
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based line/character position inside a document."""

    line: int
    character: int


@dataclass(frozen=True)
class Range:
    """Span between two positions. ``contains`` is inclusive at both ends."""

    start: Position
    end: Position

    def contains(self, position: Position) -> bool:
        return self.start <= position <= self.end

    def contains_range(self, other: Range) -> bool:
        return self.start <= other.start and other.end <= self.end


ORIGIN = Position(0, 0)
EMPTY_RANGE = Range(ORIGIN, ORIGIN)


class TokenCategory(Enum):
    """Coarse token classes the manifest parser reasons about."""

    NEWLINE = "newline"
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    KEY_VAL_SEP = "key_val_sep"
    DOT = "dot"
    KEY = "key"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE_TIME = "date_time"
    FLOAT = "float"
    INTEGER = "integer"
    L_SQUARE = "l_square"
    R_SQUARE = "r_square"
    COMMA = "comma"
    L_CURLY = "l_curly"
    R_CURLY = "r_curly"
    UNKNOWN = "unknown"


class TokenKind(Enum):
    """Every token shape the scanner can produce."""

    NEWLINE = "newline"
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    KEY_VAL_SEP = "key_val_sep"
    DOT = "dot"
    UNQUOTED_KEY = "unquoted_key"
    QUOTED_KEY = "quoted_key"
    BASIC_STRING = "basic_string"
    LITERAL_STRING = "literal_string"
    BASIC_MULTILINE_STRING = "basic_multiline_string"
    LITERAL_MULTILINE_STRING = "literal_multiline_string"
    TRUE = "true"
    FALSE = "false"
    DECIMAL_INT = "decimal_int"
    HEX_INT = "hex_int"
    OCT_INT = "oct_int"
    BIN_INT = "bin_int"
    FLOAT = "float"
    SPECIAL_FLOAT = "special_float"
    OFFSET_DATE_TIME = "offset_date_time"
    LOCAL_DATE_TIME = "local_date_time"
    LOCAL_DATE = "local_date"
    LOCAL_TIME = "local_time"
    L_SQUARE = "l_square"
    R_SQUARE = "r_square"
    COMMA = "comma"
    L_CURLY = "l_curly"
    R_CURLY = "r_curly"
    UNKNOWN = "unknown"


_CATEGORIES: dict[TokenKind, TokenCategory] = {
    TokenKind.NEWLINE: TokenCategory.NEWLINE,
    TokenKind.WHITESPACE: TokenCategory.WHITESPACE,
    TokenKind.COMMENT: TokenCategory.COMMENT,
    TokenKind.KEY_VAL_SEP: TokenCategory.KEY_VAL_SEP,
    TokenKind.DOT: TokenCategory.DOT,
    TokenKind.UNQUOTED_KEY: TokenCategory.KEY,
    TokenKind.QUOTED_KEY: TokenCategory.KEY,
    TokenKind.BASIC_STRING: TokenCategory.STRING,
    TokenKind.LITERAL_STRING: TokenCategory.STRING,
    TokenKind.BASIC_MULTILINE_STRING: TokenCategory.STRING,
    TokenKind.LITERAL_MULTILINE_STRING: TokenCategory.STRING,
    TokenKind.TRUE: TokenCategory.BOOLEAN,
    TokenKind.FALSE: TokenCategory.BOOLEAN,
    TokenKind.DECIMAL_INT: TokenCategory.INTEGER,
    TokenKind.HEX_INT: TokenCategory.INTEGER,
    TokenKind.OCT_INT: TokenCategory.INTEGER,
    TokenKind.BIN_INT: TokenCategory.INTEGER,
    TokenKind.FLOAT: TokenCategory.FLOAT,
    TokenKind.SPECIAL_FLOAT: TokenCategory.FLOAT,
    TokenKind.OFFSET_DATE_TIME: TokenCategory.DATE_TIME,
    TokenKind.LOCAL_DATE_TIME: TokenCategory.DATE_TIME,
    TokenKind.LOCAL_DATE: TokenCategory.DATE_TIME,
    TokenKind.LOCAL_TIME: TokenCategory.DATE_TIME,
    TokenKind.L_SQUARE: TokenCategory.L_SQUARE,
    TokenKind.R_SQUARE: TokenCategory.R_SQUARE,
    TokenKind.COMMA: TokenCategory.COMMA,
    TokenKind.L_CURLY: TokenCategory.L_CURLY,
    TokenKind.R_CURLY: TokenCategory.R_CURLY,
    TokenKind.UNKNOWN: TokenCategory.UNKNOWN,
}

TRIVIA = frozenset({TokenCategory.NEWLINE, TokenCategory.WHITESPACE, TokenCategory.COMMENT})


@dataclass
class Token:
    """A single lexical token with its source span."""

    kind: TokenKind
    text: str
    start: Position
    end: Position
    category: TokenCategory = field(init=False)

    def __post_init__(self):
        self.category = _CATEGORIES[self.kind]

    @property
    def range(self) -> Range:
        return Range(self.start, self.end)


@dataclass
class TokenizeError:
    """A lexical problem found while scanning."""

    message: str
    position: Position


@dataclass
class TokenizeResult:
    tokens: list[Token] = field(default_factory=list)
    errors: list[TokenizeError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Character classes and literal shapes
# ---------------------------------------------------------------------------

_BARE_KEY_CHARS = frozenset(string.ascii_letters + string.digits + "_-")
_VALUE_CHARS = frozenset(string.ascii_letters + string.digits + "_-+.:")
_DIGITS = frozenset(string.digits)

_DECIMAL_INT_RE = re.compile(r"[+-]?(?:0|[1-9](?:_?\d)*)")
_HEX_INT_RE = re.compile(r"0x[0-9A-Fa-f](?:_?[0-9A-Fa-f])*")
_OCT_INT_RE = re.compile(r"0o[0-7](?:_?[0-7])*")
_BIN_INT_RE = re.compile(r"0b[01](?:_?[01])*")
_FLOAT_RE = re.compile(
    r"[+-]?(?:0|[1-9](?:_?\d)*)"
    r"(?:\.\d(?:_?\d)*(?:[eE][+-]?\d(?:_?\d)*)?|[eE][+-]?\d(?:_?\d)*)"
)
_SPECIAL_FLOAT_RE = re.compile(r"[+-]?(?:inf|nan)")
_DATE = r"\d{4}-\d{2}-\d{2}"
_TIME = r"\d{2}:\d{2}:\d{2}(?:\.\d+)?"
_LOCAL_DATE_RE = re.compile(_DATE)
_LOCAL_TIME_RE = re.compile(_TIME)
_LOCAL_DATE_TIME_RE = re.compile(_DATE + r"[Tt ]" + _TIME)
_OFFSET_DATE_TIME_RE = re.compile(_DATE + r"[Tt ]" + _TIME + r"(?:[Zz]|[+-]\d{2}:\d{2})")

_VALUE_SHAPES: list[tuple[re.Pattern, TokenKind]] = [
    (_HEX_INT_RE, TokenKind.HEX_INT),
    (_OCT_INT_RE, TokenKind.OCT_INT),
    (_BIN_INT_RE, TokenKind.BIN_INT),
    (_DECIMAL_INT_RE, TokenKind.DECIMAL_INT),
    (_FLOAT_RE, TokenKind.FLOAT),
    (_SPECIAL_FLOAT_RE, TokenKind.SPECIAL_FLOAT),
    (_OFFSET_DATE_TIME_RE, TokenKind.OFFSET_DATE_TIME),
    (_LOCAL_DATE_TIME_RE, TokenKind.LOCAL_DATE_TIME),
    (_LOCAL_DATE_RE, TokenKind.LOCAL_DATE),
    (_LOCAL_TIME_RE, TokenKind.LOCAL_TIME),
]


def _classify_value(text: str) -> TokenKind | None:
    if text == "true":
        return TokenKind.TRUE
    if text == "false":
        return TokenKind.FALSE
    for pattern, kind in _VALUE_SHAPES:
        if pattern.fullmatch(text):
            return kind
    return None


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class _Scanner:
    """Single-pass scanner that tracks key/value context.

    Strings in key position become ``QUOTED_KEY`` tokens, bare words become
    ``UNQUOTED_KEY`` tokens, and bare words after ``=`` are classified as
    booleans, numbers or date-times.
    """

    def __init__(self, text: str):
        self.text = text
        self.offset = 0
        self.line = 0
        self.character = 0
        self.result = TokenizeResult()
        self._contexts: list[str] = []  # "array" | "table"
        self._expect_value = False

    def position(self) -> Position:
        return Position(self.line, self.character)

    def peek(self, ahead: int = 0) -> str:
        index = self.offset + ahead
        return self.text[index] if index < len(self.text) else ""

    def advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.offset >= len(self.text):
                return
            char = self.text[self.offset]
            self.offset += 1
            if char == "\n":
                self.line += 1
                self.character = 0
            else:
                self.character += 1

    def emit(self, kind: TokenKind, start_offset: int, start: Position) -> Token:
        token = Token(
            kind=kind,
            text=self.text[start_offset:self.offset],
            start=start,
            end=self.position(),
        )
        self.result.tokens.append(token)
        return token

    def error(self, message: str, position: Position) -> None:
        self.result.errors.append(TokenizeError(message=message, position=position))

    def at_newline(self) -> bool:
        char = self.peek()
        return char == "\n" or (char == "\r" and self.peek(1) == "\n")

    def run(self) -> TokenizeResult:
        while self.offset < len(self.text):
            char = self.peek()
            start_offset, start = self.offset, self.position()

            if self.at_newline():
                self.advance(2 if char == "\r" else 1)
                self.emit(TokenKind.NEWLINE, start_offset, start)
                if not self._contexts:
                    self._expect_value = False
            elif char in (" ", "\t"):
                while self.peek() in (" ", "\t"):
                    self.advance()
                self.emit(TokenKind.WHITESPACE, start_offset, start)
            elif char == "#":
                while self.peek() and not self.at_newline():
                    self.advance()
                self.emit(TokenKind.COMMENT, start_offset, start)
            elif char == "=":
                self.advance()
                self.emit(TokenKind.KEY_VAL_SEP, start_offset, start)
                self._expect_value = True
            elif char == ",":
                self.advance()
                self.emit(TokenKind.COMMA, start_offset, start)
                if self._contexts and self._contexts[-1] == "table":
                    self._expect_value = False
            elif char == "[":
                self.advance()
                self.emit(TokenKind.L_SQUARE, start_offset, start)
                if self._expect_value:
                    self._contexts.append("array")
            elif char == "]":
                self.advance()
                self.emit(TokenKind.R_SQUARE, start_offset, start)
                if self._expect_value:
                    if self._contexts and self._contexts[-1] == "array":
                        self._contexts.pop()
                    else:
                        self.error("Unexpected ']'", start)
            elif char == "{":
                self.advance()
                self.emit(TokenKind.L_CURLY, start_offset, start)
                if self._expect_value:
                    self._contexts.append("table")
                    self._expect_value = False
                else:
                    self.error("Inline table outside of a value", start)
            elif char == "}":
                self.advance()
                self.emit(TokenKind.R_CURLY, start_offset, start)
                if self._contexts and self._contexts[-1] == "table":
                    self._contexts.pop()
                    self._expect_value = True
                else:
                    self.error("Unexpected '}'", start)
            elif char in ('"', "'"):
                self._scan_string(char, start_offset, start)
            elif self._expect_value and char in _VALUE_CHARS:
                self._scan_value(start_offset, start)
            elif not self._expect_value and char in _BARE_KEY_CHARS:
                while self.peek() in _BARE_KEY_CHARS:
                    self.advance()
                self.emit(TokenKind.UNQUOTED_KEY, start_offset, start)
            elif char == ".":
                self.advance()
                self.emit(TokenKind.DOT, start_offset, start)
            else:
                self.advance()
                self.emit(TokenKind.UNKNOWN, start_offset, start)
                self.error(f"Unexpected character {char!r}", start)

        if self._contexts:
            self.error("Unclosed array or inline table", self.position())
        return self.result

    def _scan_string(self, quote: str, start_offset: int, start: Position) -> None:
        basic = quote == '"'
        if self.text.startswith(quote * 3, self.offset):
            self.advance(3)
            terminated = False
            while self.offset < len(self.text):
                if self.text.startswith(quote * 3, self.offset):
                    self.advance(3)
                    # Up to two quotes may sit right before the closing delimiter
                    extra = 0
                    while self.peek() == quote and extra < 2:
                        self.advance()
                        extra += 1
                    terminated = True
                    break
                if basic and self.peek() == "\\":
                    self.advance(2)
                    continue
                self.advance()
            kind = TokenKind.BASIC_MULTILINE_STRING if basic else TokenKind.LITERAL_MULTILINE_STRING
        else:
            self.advance()
            terminated = False
            while self.offset < len(self.text) and not self.at_newline():
                char = self.peek()
                if basic and char == "\\":
                    self.advance()
                    if self.peek() and not self.at_newline():
                        self.advance()
                    continue
                self.advance()
                if char == quote:
                    terminated = True
                    break
            kind = TokenKind.BASIC_STRING if basic else TokenKind.LITERAL_STRING

        if not terminated:
            self.error("Unterminated string", start)
        if not self._expect_value:
            kind = TokenKind.QUOTED_KEY
        self.emit(kind, start_offset, start)

    def _scan_value(self, start_offset: int, start: Position) -> None:
        while self.peek() in _VALUE_CHARS:
            self.advance()
        # Date-times may use a space instead of 'T' between date and time
        if (
            _LOCAL_DATE_RE.fullmatch(self.text[start_offset:self.offset])
            and self.peek() == " "
            and self.peek(1) in _DIGITS
        ):
            self.advance()
            while self.peek() in _VALUE_CHARS:
                self.advance()

        text = self.text[start_offset:self.offset]
        kind = _classify_value(text)
        if kind is None:
            self.error(f"Invalid value {text!r}", start)
            kind = TokenKind.UNKNOWN
        self.emit(kind, start_offset, start)


def tokenize(text: str) -> TokenizeResult:
    """Split manifest text into positioned tokens.

    Never raises: lexical problems are collected in ``TokenizeResult.errors``
    and the offending text is still emitted as an ``UNKNOWN`` token.
    """
    return _Scanner(text).run()


def significant_tokens(tokens: list[Token]) -> list[Token]:
    """Drop whitespace, newline and comment tokens."""
    return [t for t in tokens if t.category not in TRIVIA]
