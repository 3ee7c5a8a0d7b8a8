"""Resolution of template inheritance.

A ``{{define "child" "parent"}}`` template is replaced by a copy of its
parent in which every block the child overrides holds the child's content.
Afterwards every ``{{block}}`` is flattened into its content, so the result
only uses actions the standard template languages know.
"""

from __future__ import annotations

from typing import Mapping

from tmplzap.lexer import quote
from tmplzap.nodes import BlockNode, BranchNode, DefineNode, ListNode, Node
from tmplzap.parser import Tree


class CompileError(ValueError):
    """Raised when a set of templates cannot be compiled."""


def compile_tree_set(tree_set: Mapping[str, Tree]) -> None:
    """Inline parents and blocks of every tree in ``tree_set``, in place."""
    for name in tree_set:
        for dependent in reversed(_parent_chain(tree_set, name)):
            _inline_parent(tree_set, dependent)
    for tree in tree_set.values():
        _inline_blocks(tree.root.body)


def _parent_chain(tree_set: Mapping[str, Tree], name: str) -> list[str]:
    """Names that need their parent inlined, starting with ``name``.

    Raises :class:`CompileError` for a missing template or a cycle.
    """
    chain: list[str] = []
    while True:
        tree = tree_set.get(name)
        if tree is None or tree.root is None:
            raise CompileError(f"template not found: {quote(name)}")
        parent = tree.root.parent
        if not parent:
            return chain
        if name in chain:
            chain.append(name)
            listed = ", ".join(quote(n) for n in chain)
            raise CompileError(f"impossible recursion: []string{{{listed}}}")
        chain.append(name)
        name = parent


def _inline_parent(tree_set: Mapping[str, Tree], name: str) -> None:
    child = tree_set[name].root
    merged = tree_set[child.parent].root.copy()
    merged.name = child.name
    overrides = _collect_blocks(child.body)
    for block_name, block in _collect_blocks(merged.body).items():
        replacement = overrides.get(block_name)
        if replacement is not None:
            block.body = replacement.body
    tree_set[name].root = merged


def _collect_blocks(node: Node, found: dict[str, BlockNode] | None = None) -> dict[str, BlockNode]:
    """Map every block name below ``node`` to its block node."""
    if found is None:
        found = {}
    if isinstance(node, BlockNode):
        found[node.name] = node
        _collect_blocks(node.body, found)
    elif isinstance(node, DefineNode):
        _collect_blocks(node.body, found)
    elif isinstance(node, BranchNode):
        _collect_blocks(node.body, found)
        if node.else_body is not None:
            _collect_blocks(node.else_body, found)
    elif isinstance(node, ListNode):
        for child in node:
            _collect_blocks(child, found)
    return found


def _inline_blocks(node: Node) -> None:
    """Replace every block inside ``node`` with its content."""
    if isinstance(node, BlockNode):
        raise CompileError("block node can't be replaced by itself")
    if isinstance(node, DefineNode):
        _inline_blocks(node.body)
    elif isinstance(node, BranchNode):
        _inline_blocks(node.body)
        if node.else_body is not None:
            _inline_blocks(node.else_body)
    elif isinstance(node, ListNode):
        for index, child in enumerate(node.nodes):
            if isinstance(child, BlockNode):
                node.nodes[index] = child.body
                _inline_blocks(child.body)
            else:
                _inline_blocks(child)