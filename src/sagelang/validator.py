"""Two-pass validator for parsed SAGE documents.

Pass 1: Register every declared name (modules, types, functions, specs,
        operations and refinement children).
Pass 2: Check each node (empty names and conditions, raw fallback lines,
        refinements of undeclared parents, inferred annotations without
        a reason).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sagelang.ast_nodes import (
    Declaration,
    Document,
    Ensures,
    FunctionDecl,
    ImplDecl,
    InferredAnnotation,
    ModuleDecl,
    OperationDecl,
    RawLine,
    RefineDecl,
    SpecDecl,
    Statement,
    TypeDecl,
)
from sagelang.errors import CompileError, Diagnostic, DiagnosticLabel, Severity
from sagelang.lexer import tokenize
from sagelang.parser import parse
from sagelang.source import Span
from sagelang.tokens import Token

_DECL_KINDS: dict[type, str] = {
    ModuleDecl: "module",
    TypeDecl: "type",
    FunctionDecl: "function",
    SpecDecl: "specification",
    OperationDecl: "operation",
    RefineDecl: "refinement",
    ImplDecl: "implementation",
}


def declared_name(decl: Declaration) -> str | None:
    """The name a declaration introduces, if it introduces one."""
    if isinstance(decl, RefineDecl):
        return decl.child
    if isinstance(decl, ImplDecl):
        return None
    return decl.name


class Validator:
    """Domain checks over a single document."""

    def __init__(self, *, warn_raw_lines: bool = True) -> None:
        self.warn_raw_lines = warn_raw_lines
        self.diagnostics: list[Diagnostic] = []
        self.declared: dict[str, Declaration] = {}

    # ── Public API ──────────────────────────────────────────────

    def validate(self, document: Document) -> list[Diagnostic]:
        """Run both passes. Raises nothing; findings land in self.diagnostics."""
        for node in document.body:
            if type(node) in _DECL_KINDS:
                self._register(node)

        for node in document.body:
            if isinstance(node, (ModuleDecl, SpecDecl)):
                self._check_named(node)
                if isinstance(node, SpecDecl):
                    for sf in node.state:
                        self._check_field_name(sf.name, "state field", sf.span)
            elif isinstance(node, TypeDecl):
                self._check_named(node)
                for fd in node.fields:
                    self._check_field_name(fd.name, "field", fd.span)
            elif isinstance(node, (FunctionDecl, OperationDecl)):
                self._check_callable(node)
            elif isinstance(node, RefineDecl):
                self._check_refine(node)
            elif isinstance(node, InferredAnnotation):
                self._check_inferred(node)
            else:
                self._check_statement(node)

        return self.diagnostics

    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.diagnostics)

    def has_warnings(self) -> bool:
        return any(d.severity == Severity.WARNING for d in self.diagnostics)

    # ── Error helpers ───────────────────────────────────────────

    def _emit(
        self, severity: Severity, code: str, message: str, span: Span,
        notes: list[str] | None = None,
    ) -> None:
        self.diagnostics.append(Diagnostic(
            severity=severity,
            code=code,
            message=message,
            labels=[DiagnosticLabel(span=span)],
            notes=notes or [],
        ))

    def _error(self, code: str, message: str, span: Span) -> None:
        self._emit(Severity.ERROR, code, message, span)

    def _warning(self, code: str, message: str, span: Span, notes: list[str] | None = None) -> None:
        self._emit(Severity.WARNING, code, message, span, notes)

    def _note(self, code: str, message: str, span: Span) -> None:
        self._emit(Severity.NOTE, code, message, span)

    # ── Pass 1: Registration ────────────────────────────────────

    def _register(self, decl: Declaration) -> None:
        name = declared_name(decl)
        if not name:
            return
        existing = self.declared.get(name)
        if existing is None:
            self.declared[name] = decl
        elif type(existing) is type(decl):
            self._warning(
                "W200",
                f"duplicate {_DECL_KINDS[type(decl)]} '{name}'",
                decl.span,
                notes=[f"first declared at {existing.span}"],
            )

    # ── Pass 2: Checks ──────────────────────────────────────────

    def _check_named(self, decl: Declaration) -> None:
        if not decl.name.strip():
            self._error("E100", f"{_DECL_KINDS[type(decl)]} declaration has an empty name", decl.span)

    def _check_field_name(self, name: str, what: str, span: Span) -> None:
        if not name.strip():
            self._error("E101", f"{what} has an empty name", span)

    def _check_callable(self, decl: FunctionDecl | OperationDecl) -> None:
        self._check_named(decl)
        for param in decl.params:
            self._check_field_name(param.name, "parameter", param.span)
        for contract in decl.contracts:
            if not contract.condition.strip():
                keyword = "@ens" if isinstance(contract, Ensures) else "@req"
                self._error("E110", f"{keyword} clause has an empty condition", contract.span)
        for stmt in decl.body:
            self._check_statement(stmt)

    def _check_refine(self, decl: RefineDecl) -> None:
        if not decl.parent.strip():
            self._error("E100", "refinement has an empty parent name", decl.span)
            return
        if decl.parent not in self.declared:
            self._warning(
                "W210",
                f"refinement of undeclared '{decl.parent}'",
                decl.span,
                notes=["the parent may be declared in another file"],
            )
        for sf in decl.state:
            self._check_field_name(sf.name, "state field", sf.span)

    def _check_inferred(self, node: InferredAnnotation) -> None:
        if not node.condition:
            self._error("E110", f"@inferred_{node.annotation.value} has an empty condition", node.span)
        if node.reason is None:
            self._note("N300", f"@inferred_{node.annotation.value} has no '←' reason", node.span)

    def _check_statement(self, stmt: Statement) -> None:
        if isinstance(stmt, RawLine) and self.warn_raw_lines:
            self._warning("W100", f"unrecognized line: {stmt.text}", stmt.span)


# ── Pipeline ───────────────────────────────────────────────────


@dataclass
class CheckResult:
    tokens: list[Token]
    document: Document
    diagnostics: list[Diagnostic] = field(default_factory=list)
    ok: bool = True

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]


def check_source(
    source: str,
    filename: str = "<input>",
    *,
    strict: bool = False,
    warn_raw_lines: bool = True,
    raise_on_error: bool = False,
) -> CheckResult:
    """Tokenize, parse and validate ``source``.

    The result is not ``ok`` when any error exists, or in strict mode when
    any warning exists. With ``raise_on_error`` a failing result raises
    CompileError carrying the failing diagnostics instead.
    """
    tokens = tokenize(source, filename)
    document = parse(tokens, filename)
    validator = Validator(warn_raw_lines=warn_raw_lines)
    diagnostics = validator.validate(document)

    ok = not validator.has_errors() and not (strict and validator.has_warnings())
    if not ok and raise_on_error:
        failing = {Severity.ERROR, Severity.WARNING} if strict else {Severity.ERROR}
        raise CompileError([d for d in diagnostics if d.severity in failing])
    return CheckResult(tokens, document, diagnostics, ok)
