"""Shared test helpers for the SAGE test suite."""

from __future__ import annotations

from sagelang.ast_nodes import Document
from sagelang.lexer import Lexer
from sagelang.parser import Parser
from sagelang.validator import check_source


def parse_doc(source: str) -> Document:
    """Lex and parse source, return the Document."""
    tokens = Lexer(source, "test.sage").lex()
    return Parser(tokens, "test.sage").parse()


def parse_one(source: str):
    """Parse source that should yield exactly one top-level node."""
    doc = parse_doc(source)
    assert len(doc.body) == 1, doc.body
    return doc.body[0]


def codes(source: str, **kwargs) -> list[str]:
    """Diagnostic codes produced by checking source."""
    return [d.code for d in check_source(source, "test.sage", **kwargs).diagnostics]


def iter_nodes(node: object):
    """Yield every dataclass node reachable from node, depth first."""
    if isinstance(node, list):
        for item in node:
            yield from iter_nodes(item)
        return
    if not hasattr(node, "__dataclass_fields__") or not hasattr(node, "span"):
        return
    yield node
    for name in node.__dataclass_fields__:
        if name != "span":
            yield from iter_nodes(getattr(node, name))
