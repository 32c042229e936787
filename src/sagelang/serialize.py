"""Plain-data and text views of parsed SAGE documents."""

from __future__ import annotations

from enum import Enum
from typing import Any

from sagelang.ast_nodes import (
    FunctionDecl,
    GenericType,
    ModuleDecl,
    NamedType,
    OperationDecl,
    RecordType,
    RefineDecl,
    SpecDecl,
    TypeDecl,
    TypeExpr,
)
from sagelang.source import Position, Span


def _position_to_dict(pos: Position) -> dict[str, int]:
    return {"line": pos.line, "col": pos.col, "offset": pos.offset}


def span_to_dict(span: Span) -> dict[str, Any]:
    return {
        "file": span.file,
        "start": _position_to_dict(span.start),
        "end": _position_to_dict(span.end),
    }


def node_to_dict(node: object, *, spans: bool = True) -> Any:
    """Convert an AST node (or list of nodes) into JSON-ready data.

    Every dataclass node becomes a dict whose ``"kind"`` is its class name.
    Enums are rendered by value.
    """
    if isinstance(node, list):
        return [node_to_dict(item, spans=spans) for item in node]
    if isinstance(node, Enum):
        return node.value
    if isinstance(node, Span):
        return span_to_dict(node)
    if not hasattr(node, "__dataclass_fields__"):
        return node

    data: dict[str, Any] = {"kind": type(node).__name__}
    for field_name in node.__dataclass_fields__:  # type: ignore[attr-defined]
        if field_name == "span" and not spans:
            continue
        data[field_name] = node_to_dict(getattr(node, field_name), spans=spans)
    return data


# ── Text rendering ───────────────────────────────────────────────


def format_type(type_expr: TypeExpr | None) -> str:
    """Render a type expression the way it is written in source."""
    if type_expr is None:
        return ""
    if isinstance(type_expr, NamedType):
        return type_expr.name
    if isinstance(type_expr, GenericType):
        args = ", ".join(format_type(a) for a in type_expr.args)
        return f"{type_expr.name}<{args}>"
    if isinstance(type_expr, RecordType):
        fields = ", ".join(f"{f.name}: {format_type(f.type_expr)}" for f in type_expr.fields)
        return f"{{ {fields} }}" if fields else "{}"
    return str(type_expr)


def format_signature(decl: object) -> str | None:
    """One-line header for a declaration, as shown on hover."""
    if isinstance(decl, (FunctionDecl, OperationDecl)):
        keyword = "@fn" if isinstance(decl, FunctionDecl) else "@op"
        params = ", ".join(
            f"{p.name}: {format_type(p.type_expr)}" if p.type_expr else p.name
            for p in decl.params
        )
        ret = f" -> {format_type(decl.return_type)}" if decl.return_type else ""
        return f"{keyword} {decl.name}({params}){ret}"
    if isinstance(decl, TypeDecl):
        fields = ", ".join(f"{f.name}: {format_type(f.type_expr)}" for f in decl.fields)
        return f"@type {decl.name} = {{ {fields} }}"
    if isinstance(decl, SpecDecl):
        return f"@spec {decl.name}"
    if isinstance(decl, RefineDecl):
        header = f"@refine {decl.parent}"
        if decl.child:
            header += f" as {decl.child}"
        if decl.tag:
            header += f" [{decl.tag}]"
        return header
    if isinstance(decl, ModuleDecl):
        return f"@mod {decl.name}"
    return None
