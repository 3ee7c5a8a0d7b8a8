"""Parser turning template text into trees of nodes.

Every ``{{define}}`` found in the input becomes its own :class:`Tree` in the
tree set passed to the parser; the remaining top-level text becomes the tree
with the name given by the caller.
"""

from __future__ import annotations

from typing import Any, Mapping, NoReturn, Optional

from tmplzap.lexer import Item, ItemType, Lexer, lex, quote
from tmplzap.nodes import (
    ActionNode,
    BlockNode,
    BoolNode,
    CommandNode,
    DefineNode,
    DotNode,
    ElseNode,
    EndNode,
    FieldNode,
    IdentifierNode,
    IfNode,
    ListNode,
    NilNode,
    Node,
    NodeType,
    PipeNode,
    RangeNode,
    StringNode,
    TemplateNode,
    TextNode,
    VariableNode,
    WithNode,
    _unquote_char,
    parse_number,
)

FuncMap = Optional[Mapping[str, Any]]

_OPERANDS = frozenset(
    {
        ItemType.BOOL,
        ItemType.CHAR_CONSTANT,
        ItemType.COMPLEX,
        ItemType.DOT,
        ItemType.FIELD,
        ItemType.IDENTIFIER,
        ItemType.NUMBER,
        ItemType.NIL,
        ItemType.RAW_STRING,
        ItemType.STRING,
        ItemType.VARIABLE,
    }
)

_QUOTED = (ItemType.STRING, ItemType.RAW_STRING)


class ParseError(ValueError):
    """Raised when template text cannot be parsed."""


def _unquote(text: str) -> str:
    """Decode a double-quoted or back-quoted string literal."""
    if len(text) < 2 or text[0] != text[-1] or text[0] not in '"`':
        raise ValueError("invalid syntax")
    quote_char, body = text[0], text[1:-1]
    if quote_char == "`":
        if "`" in body:
            raise ValueError("invalid syntax")
        return body
    if "\n" in body:
        raise ValueError("invalid syntax")
    out = bytearray()
    rest = body
    while rest:
        single_byte = rest[0] == "\\" and len(rest) > 1 and rest[1] in "x01234567"
        code, rest = _unquote_char(rest, quote_char)
        if single_byte:
            out.append(code)
        else:
            out.extend(chr(code).encode("utf-8"))
    return out.decode("utf-8", "surrogateescape")


def is_empty_tree(node: Optional[Node]) -> bool:
    """Report whether a node holds nothing but white space."""
    if node is None:
        return True
    if isinstance(node, (ActionNode, IfNode, RangeNode, TemplateNode, WithNode)):
        return False
    if isinstance(node, (BlockNode, DefineNode)):
        return is_empty_tree(node.body)
    if isinstance(node, ListNode):
        return all(is_empty_tree(child) for child in node)
    if isinstance(node, TextNode):
        return not node.text.strip()
    raise TypeError(f"unknown node: {node}")


class Tree:
    """A single parsed template."""

    def __init__(self, name: str, *funcs: FuncMap) -> None:
        self.name = name
        self.root: Optional[DefineNode] = None
        self._funcs: list[FuncMap] = list(funcs)
        self._lex: Optional[Lexer] = None
        self._token: list[Optional[Item]] = [None, None]
        self._peek_count = 0
        self._vars: list[str] = []
        self._blocks: dict[str, BlockNode] = {}

    def __repr__(self) -> str:
        return f"Tree(name={self.name!r}, root={self.root!r})"

    # -- public interface ---------------------------------------------------

    def parse(
        self,
        text: str,
        left_delim: str,
        right_delim: str,
        tree_set: dict[str, "Tree"],
        *funcs: FuncMap,
    ) -> "Tree":
        """Parse ``text``, adding this tree and every definition to ``tree_set``.

        Empty delimiters stand for ``{{`` and ``}}``.
        """
        self._start_parse(list(funcs), lex(self.name, text, left_delim, right_delim))
        try:
            self._parse(tree_set)
            self._add(tree_set)
        finally:
            self._stop_parse()
        return self

    # -- token stream -------------------------------------------------------

    def _next(self) -> Item:
        if self._peek_count > 0:
            self._peek_count -= 1
        else:
            self._token[0] = self._lex.next_item()
        return self._token[self._peek_count]

    def _backup(self) -> None:
        self._peek_count += 1

    def _backup2(self, first: Item) -> None:
        self._token[1] = first
        self._peek_count = 2

    def _peek(self) -> Item:
        if self._peek_count > 0:
            return self._token[self._peek_count - 1]
        self._peek_count = 1
        self._token[0] = self._lex.next_item()
        return self._token[0]

    # -- errors -------------------------------------------------------------

    def _errorf(self, message: str) -> NoReturn:
        self.root = None
        line = self._lex.line_number() if self._lex is not None else 0
        raise ParseError(f"template: {self.name}:{line}: {message}")

    def _error(self, err: Exception) -> NoReturn:
        self._errorf(str(err))

    def _expect(self, expected: ItemType, context: str) -> Item:
        token = self._next()
        if token.typ != expected:
            self._errorf(f"expected {expected} in {context}; got {token}")
        return token

    def _expect_one_of(self, first: ItemType, second: ItemType, context: str) -> Item:
        token = self._next()
        if token.typ not in (first, second):
            self._errorf(f"expected {first} or {second} in {context}; got {token}")
        return token

    def _unexpected(self, token: Item, context: str) -> NoReturn:
        self._errorf(f"unexpected {token} in {context}")

    def _unquote(self, token: Item) -> str:
        try:
            return _unquote(token.val)
        except ValueError as err:
            self._error(err)

    # -- state --------------------------------------------------------------

    def _start_parse(self, funcs: list[FuncMap], lexer: Lexer) -> None:
        self.root = None
        self._lex = lexer
        self._vars = ["$"]
        self._funcs = funcs

    def _stop_parse(self) -> None:
        self._lex = None
        self._vars = []
        self._funcs = []

    def _add(self, tree_set: dict[str, "Tree"]) -> None:
        existing = tree_set.get(self.name)
        if existing is None or is_empty_tree(existing.root):
            tree_set[self.name] = self
            return
        if not is_empty_tree(self.root):
            self._errorf(f"template: multiple definition of template {quote(self.name)}")

    # -- grammar ------------------------------------------------------------

    def _parse(self, tree_set: dict[str, "Tree"]) -> None:
        body = ListNode()
        while self._peek().typ != ItemType.EOF:
            if self._peek().typ == ItemType.LEFT_DELIM:
                delim = self._next()
                if self._next().typ == ItemType.DEFINE:
                    definition = Tree("definition")
                    definition._start_parse(self._funcs, self._lex)
                    definition._parse_definition(tree_set)
                    continue
                self._backup2(delim)
            node = self._text_or_action()
            if node.node_type == NodeType.END:
                self._errorf(f"unexpected {node}")
            body.append(node)
        self.root = DefineNode(1, self.name, "", body)

    def _parse_definition(self, tree_set: dict[str, "Tree"]) -> None:
        context = "define clause"
        line = self._lex.line_number()
        self.name = self._unquote(self._expect_one_of(*_QUOTED, context))
        parent = ""
        token = self._next()
        if token.typ == ItemType.RIGHT_DELIM:
            body, end = self._item_list()
            if end.node_type != NodeType.END:
                self._errorf(f"unexpected {end} in {context}")
        elif token.typ in _QUOTED:
            parent = self._unquote(token)
            if not parent:
                self._errorf("parent template name can't be empty in define clause")
            self._expect(ItemType.RIGHT_DELIM, context)
            body = self._block_list(context)
        else:
            self._unexpected(token, context)
        self.root = DefineNode(line, self.name, parent, body)
        self._add(tree_set)
        self._stop_parse()

    def _block_list(self, context: str) -> ListNode:
        """Parse ``{{block}}`` actions up to ``{{end}}``; only space may surround them."""
        blocks = ListNode()
        while True:
            token = self._next()
            if token.typ == ItemType.EOF:
                self._errorf("unexpected EOF")
            elif token.typ == ItemType.TEXT:
                if token.val.strip():
                    self._unexpected(token, context)
            elif token.typ == ItemType.LEFT_DELIM:
                token = self._next()
                if token.typ == ItemType.BLOCK:
                    blocks.append(self._block_control())
                elif token.typ == ItemType.END:
                    self._end_control()
                    return blocks
                else:
                    self._unexpected(token, context)

    def _item_list(self) -> tuple[ListNode, Node]:
        items = ListNode()
        while self._peek().typ != ItemType.EOF:
            node = self._text_or_action()
            if node.node_type in (NodeType.END, NodeType.ELSE):
                return items, node
            items.append(node)
        self._errorf("unexpected EOF")

    def _text_or_action(self) -> Node:
        token = self._next()
        if token.typ == ItemType.TEXT:
            return TextNode(token.val)
        if token.typ == ItemType.LEFT_DELIM:
            return self._action()
        self._unexpected(token, "input")

    def _action(self) -> Node:
        token = self._next()
        controls = {
            ItemType.BLOCK: self._block_control,
            ItemType.ELSE: self._else_control,
            ItemType.END: self._end_control,
            ItemType.IF: lambda: IfNode(*self._parse_control("if")),
            ItemType.RANGE: lambda: RangeNode(*self._parse_control("range")),
            ItemType.TEMPLATE: self._template_control,
            ItemType.WITH: lambda: WithNode(*self._parse_control("with")),
        }
        control = controls.get(token.typ)
        if control is not None:
            return control()
        self._backup()
        line = self._lex.line_number()
        return ActionNode(line, self._pipeline("command"))

    def _pipeline(self, context: str) -> PipeNode:
        decl: list[VariableNode] = []
        while True:
            first = self._peek()
            if first.typ == ItemType.VARIABLE:
                self._next()
                following = self._peek()
                is_comma = following.typ == ItemType.CHAR and following.val == ","
                if following.typ == ItemType.COLON_EQUALS or is_comma:
                    self._next()
                    variable = VariableNode(first.val.split("."))
                    if len(variable.ident) != 1:
                        self._errorf(f"illegal variable in declaration: {first.val}")
                    decl.append(variable)
                    self._vars.append(first.val)
                    if is_comma:
                        if context == "range" and len(decl) < 2:
                            continue
                        self._errorf(f"too many declarations in {context}")
                else:
                    self._backup2(first)
            break
        pipe = PipeNode(self._lex.line_number(), decl)
        while True:
            token = self._next()
            if token.typ in (ItemType.RIGHT_DELIM, ItemType.RIGHT_PAREN):
                if not pipe.cmds:
                    self._errorf(f"missing value for {context}")
                if token.typ == ItemType.RIGHT_PAREN:
                    self._backup()
                return pipe
            if token.typ in _OPERANDS:
                self._backup()
                pipe.append(self._command())
            else:
                self._unexpected(token, context)

    def _parse_control(
        self, context: str
    ) -> tuple[int, PipeNode, ListNode, Optional[ListNode]]:
        line = self._lex.line_number()
        depth = len(self._vars)
        pipe = self._pipeline(context)
        body, following = self._item_list()
        else_body = None
        if following.node_type == NodeType.ELSE:
            else_body, following = self._item_list()
            if following.node_type != NodeType.END:
                self._errorf(f"expected end; found {following}")
        del self._vars[depth:]
        return line, pipe, body, else_body

    def _end_control(self) -> EndNode:
        self._expect(ItemType.RIGHT_DELIM, "end")
        return EndNode()

    def _else_control(self) -> ElseNode:
        self._expect(ItemType.RIGHT_DELIM, "else")
        return ElseNode(self._lex.line_number())

    def _template_control(self) -> TemplateNode:
        token = self._next()
        if token.typ not in _QUOTED:
            self._unexpected(token, "template invocation")
        name = self._unquote(token)
        pipe = None
        if self._next().typ != ItemType.RIGHT_DELIM:
            self._backup()
            pipe = self._pipeline("template")
        return TemplateNode(self._lex.line_number(), name, pipe)

    def _block_control(self) -> BlockNode:
        context = "block definition"
        line = self._lex.line_number()
        name = self._unquote(self._expect_one_of(*_QUOTED, context))
        self._expect(ItemType.RIGHT_DELIM, context)
        body, end = self._item_list()
        if end.node_type != NodeType.END:
            self._errorf(f"expected end in {context}; found {end}")
        block = BlockNode(line, name, body)
        if name in self._blocks:
            self._errorf(f"duplicated block name {quote(name)}")
        self._blocks[name] = block
        return block

    def _command(self) -> CommandNode:
        cmd = CommandNode()
        while True:
            token = self._next()
            typ = token.typ
            if typ in (ItemType.RIGHT_DELIM, ItemType.RIGHT_PAREN):
                self._backup()
                break
            if typ == ItemType.PIPE:
                break
            if typ == ItemType.LEFT_PAREN:
                inner = self._pipeline("parenthesized expression")
                if self._next().typ != ItemType.RIGHT_PAREN:
                    self._errorf("missing right paren in parenthesized expression")
                cmd.append(inner)
            elif typ == ItemType.ERROR:
                self._errorf(token.val)
            elif typ == ItemType.IDENTIFIER:
                if not self._has_function(token.val):
                    self._errorf(f"function {quote(token.val)} not defined")
                cmd.append(IdentifierNode(token.val))
            elif typ == ItemType.DOT:
                cmd.append(DotNode())
            elif typ == ItemType.NIL:
                cmd.append(NilNode())
            elif typ == ItemType.VARIABLE:
                cmd.append(self._use_var(token.val))
            elif typ == ItemType.FIELD:
                cmd.append(FieldNode(token.val[1:].split(".")))
            elif typ == ItemType.BOOL:
                cmd.append(BoolNode(token.val == "true"))
            elif typ in (ItemType.CHAR_CONSTANT, ItemType.COMPLEX, ItemType.NUMBER):
                try:
                    cmd.append(parse_number(token.val, typ))
                except ValueError as err:
                    self._error(err)
            elif typ in _QUOTED:
                cmd.append(StringNode(token.val, self._unquote(token)))
            else:
                self._unexpected(token, "command")
        if not cmd.args:
            self._errorf("empty command")
        return cmd

    def _has_function(self, name: str) -> bool:
        return any(
            funcs is not None and funcs.get(name) is not None for funcs in self._funcs
        )

    def _use_var(self, name: str) -> VariableNode:
        variable = VariableNode(name.split("."))
        if variable.ident[0] in self._vars:
            return variable
        self._errorf(f"undefined variable {quote(variable.ident[0])}")


def parse(
    text: str, name: str, left_delim: str, right_delim: str, *funcs: FuncMap
) -> dict[str, Tree]:
    """Parse ``text`` and return a map from template name to :class:`Tree`.

    The top-level template gets ``name``. Raises :class:`ParseError`.
    """
    tree_set: dict[str, Tree] = {}
    Tree(name).parse(text, left_delim, right_delim, tree_set, *funcs)
    return tree_set