"""AST node definitions for the SAGE specification notation.

A parsed file is a flat, ordered list of top-level nodes. Declarations do
not own each other; cross references (refinement parent/child, impl target)
are by name only. Conditions and values are kept as reconstructed text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from sagelang.source import Span

# ── Type expressions ─────────────────────────────────────────────


@dataclass(frozen=True)
class NamedType:
    name: str
    span: Span


@dataclass(frozen=True)
class GenericType:
    name: str
    args: list[TypeExpr]
    span: Span


@dataclass(frozen=True)
class FieldDef:
    name: str
    type_expr: TypeExpr
    span: Span


@dataclass(frozen=True)
class RecordType:
    fields: list[FieldDef]
    span: Span


TypeExpr = Union[NamedType, GenericType, RecordType]


# ── Contracts ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Requirement:
    condition: str
    span: Span


@dataclass(frozen=True)
class Ensures:
    condition: str
    span: Span


Contract = Union[Requirement, Ensures]


# ── Statements ───────────────────────────────────────────────────


@dataclass(frozen=True)
class NaturalText:
    text: str
    span: Span


@dataclass(frozen=True)
class DecisionMarker:
    text: str
    span: Span


@dataclass(frozen=True)
class LetBinding:
    name: str
    value: str
    decision: bool  # prefixed with !!
    span: Span


@dataclass(frozen=True)
class Conditional:
    condition: str
    then: str
    otherwise: str | None
    decision: bool  # prefixed with !!
    span: Span


@dataclass(frozen=True)
class ReturnStmt:
    value: str
    span: Span


@dataclass(frozen=True)
class RawLine:
    """Fallback for a line no construct parser recognized."""

    text: str
    span: Span


Statement = Union[NaturalText, DecisionMarker, LetBinding, Conditional, ReturnStmt, RawLine]


# ── Function parts ───────────────────────────────────────────────


@dataclass(frozen=True)
class Param:
    name: str
    type_expr: TypeExpr | None  # untyped parameters are allowed
    span: Span


# ── Specification parts ──────────────────────────────────────────


@dataclass(frozen=True)
class Property:
    description: str
    span: Span


@dataclass(frozen=True)
class StateField:
    name: str
    type_expr: TypeExpr
    span: Span


@dataclass(frozen=True)
class Invariant:
    expression: str
    span: Span


# ── Refinement parts ─────────────────────────────────────────────


@dataclass(frozen=True)
class Preserves:
    description: str
    checked: bool  # ✓ prefix
    span: Span


@dataclass(frozen=True)
class MapsClause:
    description: str
    mappings: list[str]  # indented follow-up lines
    span: Span


@dataclass(frozen=True)
class CompareWith:
    target: str
    advantages: str | None
    disadvantages: str | None
    span: Span


class InferredKind(Enum):
    REQ = "req"
    ENS = "ens"
    EFFECT = "effect"


# ── Top-level declarations ───────────────────────────────────────


@dataclass(frozen=True)
class ModuleDecl:
    name: str
    description: str | None
    span: Span


@dataclass(frozen=True)
class TypeDecl:
    name: str
    fields: list[FieldDef]
    span: Span


@dataclass(frozen=True)
class FunctionDecl:
    name: str
    params: list[Param]
    return_type: TypeExpr | None
    description: str | None
    contracts: list[Contract]  # @req/@ens in source order
    body: list[Statement]
    span: Span

    @property
    def requires(self) -> list[Requirement]:
        return [c for c in self.contracts if isinstance(c, Requirement)]

    @property
    def ensures(self) -> list[Ensures]:
        return [c for c in self.contracts if isinstance(c, Ensures)]


@dataclass(frozen=True)
class OperationDecl:
    name: str
    params: list[Param]
    return_type: TypeExpr | None
    description: str | None
    contracts: list[Contract]
    body: list[Statement]
    span: Span

    @property
    def requires(self) -> list[Requirement]:
        return [c for c in self.contracts if isinstance(c, Requirement)]

    @property
    def ensures(self) -> list[Ensures]:
        return [c for c in self.contracts if isinstance(c, Ensures)]


@dataclass(frozen=True)
class SpecDecl:
    name: str
    description: str | None
    properties: list[Property]
    state: list[StateField]
    invariants: list[Invariant]
    span: Span


@dataclass(frozen=True)
class RefineDecl:
    parent: str
    child: str | None
    tag: str | None  # e.g. "alternative"
    description: str | None
    decisions: list[DecisionMarker]
    state: list[StateField]
    preserves: list[Preserves]
    maps: list[MapsClause]
    compare_with: CompareWith | None
    span: Span


@dataclass(frozen=True)
class ImplDecl:
    target: str | None
    body: str  # raw text
    span: Span


@dataclass(frozen=True)
class SectionSeparator:
    span: Span


@dataclass(frozen=True)
class InferredAnnotation:
    annotation: InferredKind
    condition: str
    reason: str | None
    span: Span


Declaration = Union[
    ModuleDecl, TypeDecl, FunctionDecl, SpecDecl,
    OperationDecl, RefineDecl, ImplDecl,
]

TopLevel = Union[
    ModuleDecl, TypeDecl, FunctionDecl, SpecDecl, OperationDecl,
    RefineDecl, ImplDecl, InferredAnnotation, SectionSeparator,
    NaturalText, DecisionMarker, LetBinding, Conditional, ReturnStmt, RawLine,
]


@dataclass(frozen=True)
class Document:
    body: list[TopLevel]
    span: Span
