"""Tokenizer for the template language.

The lexer is a small state machine: each state handles one kind of input
and returns the next state. Items are produced lazily as the consumer asks
for them.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterator, Optional

LEFT_DELIM = "{{"
RIGHT_DELIM = "}}"
LEFT_COMMENT = "/*"
RIGHT_COMMENT = "*/"

_DECIMAL = "0123456789"
_HEX = "0123456789abcdefABCDEF"


class ItemType(IntEnum):
    """Kinds of lexical items. Keywords sort after ``KEYWORD``."""

    ERROR = 0
    BOOL = 1
    CHAR = 2
    CHAR_CONSTANT = 3
    COMPLEX = 4
    COLON_EQUALS = 5
    EOF = 6
    FIELD = 7
    IDENTIFIER = 8
    LEFT_DELIM = 9
    LEFT_PAREN = 10
    NUMBER = 11
    PIPE = 12
    RAW_STRING = 13
    RIGHT_DELIM = 14
    RIGHT_PAREN = 15
    STRING = 16
    TEXT = 17
    VARIABLE = 18
    KEYWORD = 19
    DOT = 20
    BLOCK = 21
    DEFINE = 22
    ELSE = 23
    END = 24
    IF = 25
    NIL = 26
    RANGE = 27
    TEMPLATE = 28
    WITH = 29

    @property
    def is_keyword(self) -> bool:
        return self > ItemType.KEYWORD

    def __str__(self) -> str:
        name = _ITEM_NAMES.get(self)
        return name if name is not None else f"item{int(self)}"


_ITEM_NAMES = {
    ItemType.ERROR: "error",
    ItemType.BOOL: "bool",
    ItemType.CHAR: "char",
    ItemType.CHAR_CONSTANT: "charconst",
    ItemType.COMPLEX: "complex",
    ItemType.COLON_EQUALS: ":=",
    ItemType.EOF: "EOF",
    ItemType.FIELD: "field",
    ItemType.IDENTIFIER: "identifier",
    ItemType.LEFT_DELIM: "left delim",
    ItemType.LEFT_PAREN: "(",
    ItemType.NUMBER: "number",
    ItemType.PIPE: "pipe",
    ItemType.RAW_STRING: "raw string",
    ItemType.RIGHT_DELIM: "right delim",
    ItemType.RIGHT_PAREN: ")",
    ItemType.STRING: "string",
    ItemType.VARIABLE: "variable",
    ItemType.DOT: ".",
    ItemType.BLOCK: "block",
    ItemType.DEFINE: "define",
    ItemType.ELSE: "else",
    ItemType.IF: "if",
    ItemType.END: "end",
    ItemType.NIL: "nil",
    ItemType.RANGE: "range",
    ItemType.TEMPLATE: "template",
    ItemType.WITH: "with",
}

_KEYWORDS = {
    ".": ItemType.DOT,
    "block": ItemType.BLOCK,
    "define": ItemType.DEFINE,
    "else": ItemType.ELSE,
    "end": ItemType.END,
    "if": ItemType.IF,
    "range": ItemType.RANGE,
    "nil": ItemType.NIL,
    "template": ItemType.TEMPLATE,
    "with": ItemType.WITH,
}

_SIMPLE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def quote(text: str) -> str:
    """Return ``text`` as a double-quoted literal with escapes."""
    parts = ['"']
    for ch in text:
        if ch in _SIMPLE_ESCAPES:
            parts.append(_SIMPLE_ESCAPES[ch])
        elif ch.isprintable():
            parts.append(ch)
        elif ord(ch) < 0x80:
            parts.append(f"\\x{ord(ch):02x}")
        elif ord(ch) < 0x10000:
            parts.append(f"\\u{ord(ch):04x}")
        else:
            parts.append(f"\\U{ord(ch):08x}")
    parts.append('"')
    return "".join(parts)


def _format_rune(ch: Optional[str]) -> str:
    if ch is None:
        return "EOF"
    text = f"U+{ord(ch):04X}"
    if ch.isprintable():
        text += f" '{ch}'"
    return text


def _is_space(ch: Optional[str]) -> bool:
    return ch is not None and ch in " \t\n\r"


def _is_alphanumeric(ch: Optional[str]) -> bool:
    return ch is not None and (ch == "_" or ch.isalpha() or ch.isdecimal())


@dataclass(frozen=True)
class Item:
    """A token or text string returned from the lexer."""

    typ: ItemType
    pos: int
    val: str

    def __str__(self) -> str:
        if self.typ == ItemType.EOF:
            return "EOF"
        if self.typ == ItemType.ERROR:
            return self.val
        if self.typ.is_keyword:
            return f"<{self.val}>"
        if len(self.val) > 10:
            return quote(self.val[:10]) + "..."
        return quote(self.val)


_State = Callable[[], Optional["_State"]]


class Lexer:
    """Scanner producing :class:`Item` values from template text."""

    def __init__(self, name: str, text: str, left: str = "", right: str = "") -> None:
        self.name = name
        self.text = text
        self.left_delim = left or LEFT_DELIM
        self.right_delim = right or RIGHT_DELIM
        self._pos = 0
        self._start = 0
        self._width = 0
        self._last_pos = 0
        self._paren_depth = 0
        self._items: deque[Item] = deque()
        self._state: Optional[_State] = self._lex_text

    # -- consumer interface -------------------------------------------------

    def next_item(self) -> Item:
        """Return the next item; after the end, keep returning EOF."""
        while not self._items and self._state is not None:
            self._state = self._state()
        if self._items:
            item = self._items.popleft()
        else:
            item = Item(ItemType.EOF, len(self.text), "")
        self._last_pos = item.pos
        return item

    def __iter__(self) -> Iterator[Item]:
        """Yield items up to and including the first EOF or error."""
        while True:
            item = self.next_item()
            yield item
            if item.typ in (ItemType.EOF, ItemType.ERROR):
                return

    def line_number(self) -> int:
        """Line of the most recently returned item, counting from 1."""
        return 1 + self.text.count("\n", 0, self._last_pos)

    # -- scanning primitives ------------------------------------------------

    def _next(self) -> Optional[str]:
        if self._pos >= len(self.text):
            self._width = 0
            return None
        ch = self.text[self._pos]
        self._width = 1
        self._pos += 1
        return ch

    def _peek(self) -> Optional[str]:
        ch = self._next()
        self._backup()
        return ch

    def _backup(self) -> None:
        self._pos -= self._width

    def _emit(self, typ: ItemType) -> None:
        self._items.append(Item(typ, self._start, self.text[self._start:self._pos]))
        self._start = self._pos

    def _ignore(self) -> None:
        self._start = self._pos

    def _accept(self, valid: str) -> bool:
        ch = self._next()
        if ch is not None and ch in valid:
            return True
        self._backup()
        return False

    def _accept_run(self, valid: str) -> None:
        while True:
            ch = self._next()
            if ch is None or ch not in valid:
                break
        self._backup()

    def _error(self, message: str) -> None:
        self._items.append(Item(ItemType.ERROR, self._start, message))
        return None

    def _at_terminator(self) -> bool:
        ch = self._peek()
        if ch is None or _is_space(ch):
            return True
        if ch in ",|:)(":
            return True
        return ch == self.right_delim[0]

    # -- states -------------------------------------------------------------

    def _lex_text(self) -> Optional[_State]:
        found = self.text.find(self.left_delim, self._pos)
        if found >= 0:
            self._pos = found
            if self._pos > self._start:
                self._emit(ItemType.TEXT)
            return self._lex_left_delim
        self._pos = len(self.text)
        if self._pos > self._start:
            self._emit(ItemType.TEXT)
        self._emit(ItemType.EOF)
        return None

    def _lex_left_delim(self) -> Optional[_State]:
        self._pos += len(self.left_delim)
        if self.text.startswith(LEFT_COMMENT, self._pos):
            return self._lex_comment
        self._emit(ItemType.LEFT_DELIM)
        self._paren_depth = 0
        return self._lex_inside_action

    def _lex_comment(self) -> Optional[_State]:
        self._pos += len(LEFT_COMMENT)
        end = self.text.find(RIGHT_COMMENT + self.right_delim, self._pos)
        if end < 0:
            return self._error("unclosed comment")
        self._pos = end + len(RIGHT_COMMENT) + len(self.right_delim)
        self._ignore()
        return self._lex_text

    def _lex_right_delim(self) -> Optional[_State]:
        self._pos += len(self.right_delim)
        self._emit(ItemType.RIGHT_DELIM)
        return self._lex_text

    def _lex_inside_action(self) -> Optional[_State]:
        if self.text.startswith(self.right_delim, self._pos):
            if self._paren_depth == 0:
                return self._lex_right_delim
            return self._error("unclosed left paren")
        ch = self._next()
        if ch is None or ch == "\n":
            return self._error("unclosed action")
        if _is_space(ch):
            self._ignore()
        elif ch == ":":
            if self._next() != "=":
                return self._error("expected :=")
            self._emit(ItemType.COLON_EQUALS)
        elif ch == "|":
            self._emit(ItemType.PIPE)
        elif ch == '"':
            return self._lex_quote
        elif ch == "`":
            return self._lex_raw_quote
        elif ch == "$":
            return self._lex_identifier
        elif ch == "'":
            return self._lex_char
        elif ch == ".":
            if self._pos < len(self.text) and self.text[self._pos] not in _DECIMAL:
                return self._lex_identifier
            self._backup()
            return self._lex_number
        elif ch in "+-" or ch in _DECIMAL:
            self._backup()
            return self._lex_number
        elif _is_alphanumeric(ch):
            self._backup()
            return self._lex_identifier
        elif ch == "(":
            self._emit(ItemType.LEFT_PAREN)
            self._paren_depth += 1
        elif ch == ")":
            self._emit(ItemType.RIGHT_PAREN)
            self._paren_depth -= 1
            if self._paren_depth < 0:
                return self._error(f"unexpected right paren {_format_rune(ch)}")
            if self._peek() == ".":
                return self._error("cannot evaluate field of parenthesized expression")
        elif 0x20 <= ord(ch) <= 0x7E:
            self._emit(ItemType.CHAR)
        else:
            return self._error(f"unrecognized character in action: {_format_rune(ch)}")
        return self._lex_inside_action

    def _lex_identifier(self) -> Optional[_State]:
        while True:
            ch = self._next()
            if _is_alphanumeric(ch):
                continue
            if ch == "." and self.text[self._start] in ".$":
                continue
            self._backup()
            word = self.text[self._start:self._pos]
            if not self._at_terminator():
                return self._error(f"bad character {_format_rune(ch)}")
            keyword = _KEYWORDS.get(word)
            if keyword is not None:
                self._emit(keyword)
            elif word.startswith("."):
                self._emit(ItemType.FIELD)
            elif word.startswith("$"):
                self._emit(ItemType.VARIABLE)
            elif word in ("true", "false"):
                self._emit(ItemType.BOOL)
            else:
                self._emit(ItemType.IDENTIFIER)
            return self._lex_inside_action

    def _lex_quoted(self, closing: str, typ: ItemType, message: str) -> Optional[_State]:
        while True:
            ch = self._next()
            if ch == "\\":
                escaped = self._next()
                if escaped is not None and escaped != "\n":
                    continue
                return self._error(message)
            if ch is None or ch == "\n":
                return self._error(message)
            if ch == closing:
                break
        self._emit(typ)
        return self._lex_inside_action

    def _lex_char(self) -> Optional[_State]:
        return self._lex_quoted("'", ItemType.CHAR_CONSTANT, "unterminated character constant")

    def _lex_quote(self) -> Optional[_State]:
        return self._lex_quoted('"', ItemType.STRING, "unterminated quoted string")

    def _lex_raw_quote(self) -> Optional[_State]:
        while True:
            ch = self._next()
            if ch is None or ch == "\n":
                return self._error("unterminated raw quoted string")
            if ch == "`":
                break
        self._emit(ItemType.RAW_STRING)
        return self._lex_inside_action

    def _lex_number(self) -> Optional[_State]:
        if not self._scan_number():
            return self._error(f"bad number syntax: {quote(self.text[self._start:self._pos])}")
        sign = self._peek()
        if sign is not None and sign in "+-":
            if not self._scan_number() or self.text[self._pos - 1] != "i":
                return self._error(f"bad number syntax: {quote(self.text[self._start:self._pos])}")
            self._emit(ItemType.COMPLEX)
        else:
            self._emit(ItemType.NUMBER)
        return self._lex_inside_action

    def _scan_number(self) -> bool:
        self._accept("+-")
        digits = _DECIMAL
        if self._accept("0") and self._accept("xX"):
            digits = _HEX
        self._accept_run(digits)
        if self._accept("."):
            self._accept_run(digits)
        if self._accept("eE"):
            self._accept("+-")
            self._accept_run(_DECIMAL)
        self._accept("i")
        if _is_alphanumeric(self._peek()):
            self._next()
            return False
        return True


def lex(name: str, text: str, left: str = "", right: str = "") -> Lexer:
    """Create a lexer; empty delimiters mean ``{{`` and ``}}``."""
    return Lexer(name, text, left, right)