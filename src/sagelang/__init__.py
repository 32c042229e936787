"""Tokenizer, parser and tooling for the SAGE specification notation."""

from __future__ import annotations

from sagelang.ast_nodes import Document
from sagelang.lexer import tokenize
from sagelang.parser import parse

__version__ = "0.1.0"

__all__ = ["Document", "__version__", "parse", "parse_source", "tokenize"]


def parse_source(source: str, filename: str = "<input>") -> Document:
    """Tokenize and parse ``source`` in one step."""
    return parse(tokenize(source, filename), filename)
