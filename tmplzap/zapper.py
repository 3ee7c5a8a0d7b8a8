"""Compiling extended templates into plain ones.

Templates may contain ``{{block "name"}}...{{end}}`` actions marking
replaceable parts, and ``{{define "child" "parent"}}`` may extend another
template by overriding its blocks::

    {{define "base"}}<body>{{block "content"}}placeholder{{end}}</body>{{end}}
    {{define "page" "base"}}{{block "content"}}<p>Hello</p>{{end}}{{end}}

A :class:`Zapper` parses such templates and writes them out with the
inheritance resolved, as definitions any standard engine of the same
template language can execute::

    zapper = Zapper().parse_files("base.html", "page.html")
    zapper.zap(sys.stdout)
"""

from __future__ import annotations

import glob
import os
from typing import Any, Mapping, TextIO, Union

from tmplzap.compile import compile_tree_set
from tmplzap.lexer import quote
from tmplzap.parser import Tree, is_empty_tree, parse

BUILTINS: Mapping[str, Any] = {
    name: True
    for name in (
        "and",
        "call",
        "html",
        "index",
        "js",
        "len",
        "not",
        "or",
        "print",
        "printf",
        "println",
        "urlquery",
    )
}


class ZapError(ValueError):
    """Raised for problems with the set of templates given to a zapper."""


class Zapper:
    """Collects templates and compiles them into standard ones."""

    def __init__(self) -> None:
        self._trees: dict[str, Tree] = {}
        self._left_delim = ""
        self._right_delim = ""
        self._funcs: dict[str, Any] = {}

    def delims(self, left: str, right: str) -> "Zapper":
        """Set the action delimiters for later parsing; empty means the default."""
        self._left_delim = left
        self._right_delim = right
        return self

    def funcs(self, funcs: Mapping[str, Any]) -> "Zapper":
        """Add function names that templates may call."""
        self._funcs.update(funcs)
        return self

    def zap(self, out: TextIO) -> None:
        """Compile every parsed template and write the result to ``out``."""
        compile_tree_set(self._trees)
        for tree in self._trees.values():
            out.write(str(tree.root))

    def parse(self, text: str) -> "Zapper":
        """Parse ``text`` and add its templates."""
        return self._parse(text, "source")

    def parse_files(self, *filenames: Union[str, os.PathLike]) -> "Zapper":
        """Parse the named files and add their templates."""
        if not filenames:
            raise ZapError("zapper: no files named in call to ParseFiles")
        for filename in filenames:
            name = os.fspath(filename)
            with open(name, encoding="utf-8") as handle:
                text = handle.read()
            self._parse(text, name)
        return self

    def parse_glob(self, pattern: str) -> "Zapper":
        """Parse every file matching ``pattern`` and add their templates."""
        filenames = sorted(glob.glob(pattern))
        if not filenames:
            raise ZapError(f"zapper: pattern matches no files: `{pattern}`")
        return self.parse_files(*filenames)

    def _parse(self, text: str, name: str) -> "Zapper":
        trees = parse(text, name, self._left_delim, self._right_delim, BUILTINS, self._funcs)
        for key, tree in trees.items():
            if is_empty_tree(tree.root):
                continue
            if key in self._trees:
                raise ZapError(f"zapper: duplicated template {quote(key)}")
            self._trees[key] = tree
        return self