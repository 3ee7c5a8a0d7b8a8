"""Parse-tree nodes for the template language.

Every node renders back to template source through ``str()``, and
``copy()`` returns an independent deep copy of a node and everything
below it.
"""

from __future__ import annotations

import math
import re
from copy import deepcopy
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Iterator, Optional

from tmplzap.lexer import ItemType, quote


class NodeType(IntEnum):
    """Identifies the kind of a parse-tree node."""

    TEXT = 0
    ACTION = 1
    BOOL = 2
    BLOCK = 3
    COMMAND = 4
    DEFINE = 5
    DOT = 6
    ELSE = 7
    END = 8
    FIELD = 9
    IDENTIFIER = 10
    IF = 11
    LIST = 12
    NIL = 13
    NUMBER = 14
    PIPE = 15
    RANGE = 16
    STRING = 17
    TEMPLATE = 18
    VARIABLE = 19
    WITH = 20


class Node:
    """Base class of all parse-tree nodes."""

    node_type: ClassVar[NodeType]

    def copy(self) -> "Node":
        """Return a deep copy of this node and all its components."""
        return deepcopy(self)


@dataclass
class ListNode(Node):
    """A sequence of nodes in lexical order."""

    node_type = NodeType.LIST
    nodes: list[Node] = field(default_factory=list)

    def append(self, node: Node) -> None:
        self.nodes.append(node)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __str__(self) -> str:
        return "".join(str(node) for node in self.nodes)


@dataclass
class TextNode(Node):
    """Plain text; may span newlines."""

    node_type = NodeType.TEXT
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass
class VariableNode(Node):
    """A ``$`` variable, possibly followed by field names."""

    node_type = NodeType.VARIABLE
    ident: list[str]

    def __str__(self) -> str:
        return ".".join(self.ident)


@dataclass
class CommandNode(Node):
    """One element of a pipeline: its arguments in lexical order."""

    node_type = NodeType.COMMAND
    args: list[Node] = field(default_factory=list)

    def append(self, arg: Node) -> None:
        self.args.append(arg)

    def __str__(self) -> str:
        parts = []
        for arg in self.args:
            if isinstance(arg, PipeNode):
                parts.append(f"({arg})")
            else:
                parts.append(str(arg))
        return " ".join(parts)


@dataclass
class PipeNode(Node):
    """A pipeline of commands with optional variable declarations."""

    node_type = NodeType.PIPE
    line: int
    decl: list[VariableNode] = field(default_factory=list)
    cmds: list[CommandNode] = field(default_factory=list)

    def append(self, command: CommandNode) -> None:
        self.cmds.append(command)

    def __str__(self) -> str:
        prefix = ""
        if self.decl:
            prefix = ", ".join(str(v) for v in self.decl) + " := "
        return prefix + " | ".join(str(c) for c in self.cmds)


@dataclass
class ActionNode(Node):
    """A simple action such as a field evaluation."""

    node_type = NodeType.ACTION
    line: int
    pipe: PipeNode

    def __str__(self) -> str:
        return f"{{{{{self.pipe}}}}}"


@dataclass
class IdentifierNode(Node):
    """An identifier; always a function name."""

    node_type = NodeType.IDENTIFIER
    ident: str

    def __str__(self) -> str:
        return self.ident


@dataclass
class DotNode(Node):
    """The cursor, spelled ``.``."""

    node_type = NodeType.DOT

    def __str__(self) -> str:
        return "."


@dataclass
class NilNode(Node):
    """The untyped ``nil`` constant."""

    node_type = NodeType.NIL

    def __str__(self) -> str:
        return "nil"


@dataclass
class FieldNode(Node):
    """A field chain such as ``.x.y``; the periods are not stored."""

    node_type = NodeType.FIELD
    ident: list[str]

    def __str__(self) -> str:
        return "".join("." + name for name in self.ident)


@dataclass
class BoolNode(Node):
    """A boolean constant."""

    node_type = NodeType.BOOL
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass
class NumberNode(Node):
    """A numeric constant, stored under every type that can hold it."""

    node_type = NodeType.NUMBER
    text: str
    is_int: bool = False
    is_uint: bool = False
    is_float: bool = False
    is_complex: bool = False
    int_value: int = 0
    uint_value: int = 0
    float_value: float = 0.0
    complex_value: complex = 0j

    def __str__(self) -> str:
        return self.text

    def _simplify_complex(self) -> None:
        self.is_float = self.complex_value.imag == 0
        if self.is_float:
            self.float_value = self.complex_value.real
            self.is_int = _fits_int64(self.float_value)
            if self.is_int:
                self.int_value = int(self.float_value)
            self.is_uint = _fits_uint64(self.float_value)
            if self.is_uint:
                self.uint_value = int(self.float_value)


@dataclass
class StringNode(Node):
    """A string constant: the original quoted text and its value."""

    node_type = NodeType.STRING
    quoted: str
    text: str

    def __str__(self) -> str:
        return self.quoted


@dataclass
class EndNode(Node):
    """An ``{{end}}`` action; never part of a finished tree."""

    node_type = NodeType.END

    def __str__(self) -> str:
        return "{{end}}"


@dataclass
class ElseNode(Node):
    """An ``{{else}}`` action; never part of a finished tree."""

    node_type = NodeType.ELSE
    line: int

    def __str__(self) -> str:
        return "{{else}}"


@dataclass
class BranchNode(Node):
    """Common shape of ``if``, ``range`` and ``with``."""

    keyword: ClassVar[str] = ""
    line: int
    pipe: PipeNode
    body: ListNode
    else_body: Optional[ListNode] = None

    def __str__(self) -> str:
        if not self.keyword:
            raise TypeError("unknown branch type")
        head = f"{{{{{self.keyword} {self.pipe}}}}}{self.body}"
        if self.else_body is not None:
            return f"{head}{{{{else}}}}{self.else_body}{{{{end}}}}"
        return f"{head}{{{{end}}}}"


@dataclass
class IfNode(BranchNode):
    """An ``{{if}}`` action."""

    node_type = NodeType.IF
    keyword = "if"


@dataclass
class RangeNode(BranchNode):
    """A ``{{range}}`` action."""

    node_type = NodeType.RANGE
    keyword = "range"


@dataclass
class WithNode(BranchNode):
    """A ``{{with}}`` action."""

    node_type = NodeType.WITH
    keyword = "with"


@dataclass
class TemplateNode(Node):
    """A ``{{template}}`` invocation."""

    node_type = NodeType.TEMPLATE
    line: int
    name: str
    pipe: Optional[PipeNode] = None

    def __str__(self) -> str:
        if self.pipe is None:
            return f"{{{{template {quote(self.name)}}}}}"
        return f"{{{{template {quote(self.name)} {self.pipe}}}}}"


@dataclass
class DefineNode(Node):
    """A ``{{define}}`` action, optionally extending a parent template."""

    node_type = NodeType.DEFINE
    line: int
    name: str
    parent: str
    body: ListNode

    def __str__(self) -> str:
        if self.parent:
            return f"{{{{define {quote(self.name)} {quote(self.parent)}}}}}{self.body}{{{{end}}}}"
        return f"{{{{define {quote(self.name)}}}}}{self.body}{{{{end}}}}"


@dataclass
class BlockNode(Node):
    """A ``{{block}}`` action: a named, replaceable part of a template."""

    node_type = NodeType.BLOCK
    line: int
    name: str
    body: ListNode

    def __str__(self) -> str:
        return f"{{{{block {quote(self.name)}}}}}{self.body}{{{{end}}}}"


# -- number parsing ----------------------------------------------------------

_INT64_MIN = -(2**63)
_INT64_LIMIT = 2**63
_UINT64_LIMIT = 2**64

_FLOAT = r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
_FLOAT_RE = re.compile(rf"[+-]?{_FLOAT}")
_COMPLEX_RE = re.compile(rf"\(?([+-]?{_FLOAT})([+-]{_FLOAT})i\)?")

_BASE_DIGITS = {2: "01", 8: "01234567", 10: "0123456789", 16: "0123456789abcdefABCDEF"}

_SIMPLE_CHAR_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "f": 0x0C,
    "n": 0x0A,
    "r": 0x0D,
    "t": 0x09,
    "v": 0x0B,
    "\\": 0x5C,
}

_HEX_ESCAPE_WIDTH = {"x": 2, "u": 4, "U": 8}


def _fits_int64(value: float) -> bool:
    return value.is_integer() and _INT64_MIN <= value < _INT64_LIMIT


def _fits_uint64(value: float) -> bool:
    return value.is_integer() and 0 <= value < _UINT64_LIMIT


def _parse_unsigned(text: str) -> Optional[int]:
    """Parse an unsigned integer with base taken from its prefix."""
    lower = text.lower()
    if lower.startswith("0x"):
        base, digits = 16, text[2:]
    elif lower.startswith("0b"):
        base, digits = 2, text[2:]
    elif lower.startswith("0o"):
        base, digits = 8, text[2:]
    elif len(text) > 1 and text[0] == "0":
        base, digits = 8, text[1:]
    else:
        base, digits = 10, text
    if not digits or any(ch not in _BASE_DIGITS[base] for ch in digits):
        return None
    value = int(digits, base)
    return value if value < _UINT64_LIMIT else None


def _parse_signed(text: str) -> Optional[int]:
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    magnitude = _parse_unsigned(text)
    if magnitude is None:
        return None
    value = sign * magnitude
    return value if _INT64_MIN <= value < _INT64_LIMIT else None


def _parse_float(text: str) -> Optional[float]:
    if not _FLOAT_RE.fullmatch(text):
        return None
    value = float(text)
    return None if math.isinf(value) else value


def _unquote_char(text: str, quote_char: str) -> tuple[int, str]:
    """Decode one possibly escaped character; return its code and the rest."""
    if not text:
        raise ValueError("invalid syntax")
    ch = text[0]
    if ch == quote_char:
        raise ValueError("invalid syntax")
    if ch != "\\":
        return ord(ch), text[1:]
    if len(text) < 2:
        raise ValueError("invalid syntax")
    ch, rest = text[1], text[2:]
    if ch in _SIMPLE_CHAR_ESCAPES:
        return _SIMPLE_CHAR_ESCAPES[ch], rest
    if ch in _HEX_ESCAPE_WIDTH:
        width = _HEX_ESCAPE_WIDTH[ch]
        digits = rest[:width]
        if len(digits) < width or any(d not in _BASE_DIGITS[16] for d in digits):
            raise ValueError("invalid syntax")
        value = int(digits, 16)
        if ch != "x" and (value > 0x10FFFF or 0xD800 <= value < 0xE000):
            raise ValueError("invalid syntax")
        return value, rest[width:]
    if ch in _BASE_DIGITS[8]:
        digits = ch + rest[:2]
        if len(digits) < 3 or any(d not in _BASE_DIGITS[8] for d in digits):
            raise ValueError("invalid syntax")
        value = int(digits, 8)
        if value > 0xFF:
            raise ValueError("invalid syntax")
        return value, rest[2:]
    if ch in "'\"" and ch == quote_char:
        return ord(ch), rest
    raise ValueError("invalid syntax")


def parse_number(text: str, typ: ItemType) -> NumberNode:
    """Build a :class:`NumberNode` from the text of a number item.

    Raises :class:`ValueError` when the text is not a valid constant.
    """
    node = NumberNode(text)
    if typ == ItemType.CHAR_CONSTANT:
        code, tail = _unquote_char(text[1:], text[0])
        if tail != "'":
            raise ValueError(f"malformed character constant: {text}")
        node.is_int = node.is_uint = node.is_float = True
        node.int_value = node.uint_value = code
        node.float_value = float(code)
        return node
    if typ == ItemType.COMPLEX:
        match = _COMPLEX_RE.fullmatch(text)
        if match is None:
            raise ValueError(f"illegal number syntax: {quote(text)}")
        node.complex_value = complex(float(match.group(1)), float(match.group(2)))
        node.is_complex = True
        node._simplify_complex()
        return node
    if text.endswith("i"):
        imaginary = _parse_float(text[:-1])
        if imaginary is not None:
            node.is_complex = True
            node.complex_value = complex(0.0, imaginary)
            node._simplify_complex()
            return node
    unsigned = _parse_unsigned(text)
    if unsigned is not None:
        node.is_uint = True
        node.uint_value = unsigned
    signed = _parse_signed(text)
    if signed is not None:
        node.is_int = True
        node.int_value = signed
        if signed == 0:
            node.is_uint = True
            node.uint_value = 0
    if node.is_int:
        node.is_float = True
        node.float_value = float(node.int_value)
    elif node.is_uint:
        node.is_float = True
        node.float_value = float(node.uint_value)
    else:
        value = _parse_float(text)
        if value is not None:
            node.is_float = True
            node.float_value = value
            if _fits_int64(value):
                node.is_int = True
                node.int_value = int(value)
            if _fits_uint64(value):
                node.is_uint = True
                node.uint_value = int(value)
    if not (node.is_int or node.is_uint or node.is_float):
        raise ValueError(f"illegal number syntax: {quote(text)}")
    return node