"""Template inheritance compiler for the double-brace template language."""

__version__ = "0.1.0"
__all__ = ["lexer", "nodes", "parser", "compile", "zapper"]