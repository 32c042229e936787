"""SAGE Language Server, a pygls-based LSP for .sage files.

Provides diagnostics, hover, completion, go-to-definition and document
symbols via stdio transport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from sagelang import __version__
from sagelang.ast_nodes import (
    Declaration,
    Document,
    FunctionDecl,
    ModuleDecl,
    OperationDecl,
    RefineDecl,
    SpecDecl,
    TypeDecl,
)
from sagelang.errors import Diagnostic, Severity
from sagelang.serialize import format_signature, format_type
from sagelang.tokens import AT_KEYWORDS, PLAIN_KEYWORDS, Token
from sagelang.validator import check_source, declared_name

logger = logging.getLogger(__name__)

# ── Conversion helpers ────────────────────────────────────────────

_SEVERITY_MAP = {
    Severity.ERROR: lsp.DiagnosticSeverity.Error,
    Severity.WARNING: lsp.DiagnosticSeverity.Warning,
    Severity.NOTE: lsp.DiagnosticSeverity.Information,
}

KEYWORD_DOCS: dict[str, str] = {
    "@mod": "Module declaration: `@mod name` with an optional description.",
    "@type": "Record type: `@type Name = { field: Type, ... }`.",
    "@fn": "Function: `@fn name(params) -> Type`, then `@req`/`@ens` and a body.",
    "@spec": "Abstract specification with `@property`, `@state` and `@invariant`.",
    "@op": "Operation, shaped like `@fn`.",
    "@refine": "Refinement: `@refine Parent as Child [tag]`.",
    "@impl": "Implementation block; its body is kept as raw text.",
    "@req": "Precondition that must hold on entry.",
    "@ens": "Postcondition that holds on exit.",
    "@invariant": "Condition that always holds; may wrap onto following lines.",
    "@property": "Informal property of a specification.",
    "@decision": "Design decision recorded in a refinement.",
    "@preserves": "Properties of the parent a refinement keeps, checked with ✓.",
    "@state": "State fields, one `name: Type` per line.",
    "@maps": "How the refinement maps onto its parent.",
    "@compare_with": "Comparison against another refinement.",
    "@inferred_req": "Machine-inferred precondition: `cond ← \"reason\"`.",
    "@inferred_ens": "Machine-inferred postcondition: `cond ← \"reason\"`.",
    "@inferred_effect": "Machine-inferred effect: `effect ← \"reason\"`.",
}

_KEYWORD_COMPLETIONS = sorted(AT_KEYWORDS) + sorted(PLAIN_KEYWORDS)


def span_to_range(span: object) -> lsp.Range:
    """Convert a 1-indexed, end-exclusive Span to a 0-indexed LSP Range."""
    sl = getattr(span, "start_line", 1)
    sc = getattr(span, "start_col", 1)
    el = getattr(span, "end_line", sl)
    ec = getattr(span, "end_col", sc)
    return lsp.Range(
        start=lsp.Position(line=sl - 1, character=sc - 1),
        end=lsp.Position(line=el - 1, character=max(ec - 1, 0)),
    )


def declarations_by_name(document: Document) -> dict[str, Declaration]:
    """First declaration introducing each name in the document."""
    found: dict[str, Declaration] = {}
    for node in document.body:
        if isinstance(node, (ModuleDecl, TypeDecl, FunctionDecl, SpecDecl, OperationDecl, RefineDecl)):
            name = declared_name(node)
            if name and name not in found:
                found[name] = node
    return found


# ── Per-document state ────────────────────────────────────────────


@dataclass
class DocumentState:
    """Cached analysis results for a single open document."""

    source: str = ""
    tokens: list[Token] = field(default_factory=list)
    document: Document | None = None
    declarations: dict[str, Declaration] = field(default_factory=dict)
    diagnostics: list[lsp.Diagnostic] = field(default_factory=list)


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "sage-lsp", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)
_state: dict[str, DocumentState] = {}


def _to_lsp_diag(d: Diagnostic) -> lsp.Diagnostic:
    span = d.span
    span_range = (
        span_to_range(span) if span is not None
        else lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0))
    )
    return lsp.Diagnostic(
        range=span_range,
        severity=_SEVERITY_MAP[d.severity],
        source="sage",
        code=d.code,
        message=f"[{d.code}] {d.message}",
    )


def _analyze(uri: str, source: str) -> DocumentState:
    """Run tokenize → parse → validate, cache results, return state."""
    ds = DocumentState(source=source)
    try:
        result = check_source(source, uri)
    except Exception as e:
        logger.exception("analysis failed for %s", uri)
        ds.diagnostics = [lsp.Diagnostic(
            range=lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0)),
            severity=lsp.DiagnosticSeverity.Error, source="sage",
            message=f"[internal] {e}",
        )]
        _state[uri] = ds
        return ds

    ds.tokens = result.tokens
    ds.document = result.document
    ds.declarations = declarations_by_name(result.document)
    ds.diagnostics = [_to_lsp_diag(d) for d in result.diagnostics]
    _state[uri] = ds
    return ds


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_@"


def _get_word_at(source: str, line: int, character: int) -> str:
    """Extract the word (including a leading @) at the 0-indexed position."""
    lines = source.splitlines()
    if line < 0 or line >= len(lines):
        return ""
    text = lines[line]
    if character < 0 or character >= len(text):
        # Cursor right after the word
        if 0 < character <= len(text):
            character -= 1
        else:
            return ""

    start = character
    while start > 0 and _is_word_char(text[start - 1]):
        start -= 1

    end = character
    while end < len(text) and _is_word_char(text[end]):
        end += 1

    return text[start:end]


def _publish(uri: str, ds: DocumentState) -> None:
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    logger.info("opened %s", uri)
    _publish(uri, _analyze(uri, params.text_document.text))


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    # Full sync: the last change carries the whole text
    source = params.content_changes[-1].text if params.content_changes else ""
    _publish(uri, _analyze(uri, source))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    logger.info("closed %s", params.text_document.uri)
    _state.pop(params.text_document.uri, None)


def hover_text(ds: DocumentState, word: str) -> str | None:
    if word in KEYWORD_DOCS:
        return f"**{word}**\n\n{KEYWORD_DOCS[word]}"
    decl = ds.declarations.get(word)
    if decl is None:
        return None
    content = f"```sage\n{format_signature(decl)}\n```"
    description = getattr(decl, "description", None)
    if description:
        content += f"\n\n{description}"
    return content


@server.feature(lsp.TEXT_DOCUMENT_HOVER)
def hover(params: lsp.HoverParams) -> lsp.Hover | None:
    ds = _state.get(params.text_document.uri)
    if ds is None:
        return None

    word = _get_word_at(ds.source, params.position.line, params.position.character)
    content = hover_text(ds, word) if word else None
    if content is None:
        return None
    return lsp.Hover(contents=lsp.MarkupContent(
        kind=lsp.MarkupKind.Markdown,
        value=content,
    ))


def completion_items(ds: DocumentState | None) -> list[lsp.CompletionItem]:
    items: list[lsp.CompletionItem] = []
    for kw in _KEYWORD_COMPLETIONS:
        items.append(lsp.CompletionItem(
            label=kw,
            kind=lsp.CompletionItemKind.Keyword,
            documentation=KEYWORD_DOCS.get(kw),
        ))

    if ds is not None:
        for name, decl in ds.declarations.items():
            kind = {
                TypeDecl: lsp.CompletionItemKind.Class,
                FunctionDecl: lsp.CompletionItemKind.Function,
                OperationDecl: lsp.CompletionItemKind.Method,
                ModuleDecl: lsp.CompletionItemKind.Module,
            }.get(type(decl), lsp.CompletionItemKind.Interface)
            items.append(lsp.CompletionItem(
                label=name,
                kind=kind,
                detail=format_signature(decl),
            ))

    seen: set[str] = set()
    unique: list[lsp.CompletionItem] = []
    for item in items:
        if item.label not in seen:
            seen.add(item.label)
            unique.append(item)
    return unique


@server.feature(
    lsp.TEXT_DOCUMENT_COMPLETION,
    lsp.CompletionOptions(trigger_characters=["@"]),
)
def completion(params: lsp.CompletionParams) -> lsp.CompletionList:
    ds = _state.get(params.text_document.uri)
    return lsp.CompletionList(is_incomplete=False, items=completion_items(ds))


@server.feature(lsp.TEXT_DOCUMENT_DEFINITION)
def definition(params: lsp.DefinitionParams) -> lsp.Location | None:
    uri = params.text_document.uri
    ds = _state.get(uri)
    if ds is None:
        return None

    word = _get_word_at(ds.source, params.position.line, params.position.character)
    decl = ds.declarations.get(word) if word else None
    if decl is None:
        return None
    # Single-file analysis: definitions live in the same document
    return lsp.Location(uri=uri, range=span_to_range(decl.span))


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(params: lsp.DocumentSymbolParams) -> list[lsp.DocumentSymbol]:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.document is None:
        return []
    symbols: list[lsp.DocumentSymbol] = []
    for node in ds.document.body:
        sym = _decl_to_symbol(node)
        if sym is not None:
            symbols.append(sym)
    return symbols


def _symbol(name: str, kind: lsp.SymbolKind, span: object, detail: str | None = None,
            children: list[lsp.DocumentSymbol] | None = None) -> lsp.DocumentSymbol:
    return lsp.DocumentSymbol(
        name=name or "<unnamed>",
        kind=kind,
        range=span_to_range(span),
        selection_range=span_to_range(span),
        detail=detail,
        children=children or None,
    )


def _decl_to_symbol(decl: object) -> lsp.DocumentSymbol | None:
    """Convert a top-level declaration to an LSP DocumentSymbol."""
    if isinstance(decl, ModuleDecl):
        return _symbol(decl.name, lsp.SymbolKind.Module, decl.span, decl.description)
    if isinstance(decl, TypeDecl):
        fields = [
            _symbol(f.name, lsp.SymbolKind.Field, f.span, format_type(f.type_expr))
            for f in decl.fields
        ]
        return _symbol(decl.name, lsp.SymbolKind.Struct, decl.span, children=fields)
    if isinstance(decl, (FunctionDecl, OperationDecl)):
        params = [
            _symbol(p.name, lsp.SymbolKind.Variable, p.span, format_type(p.type_expr) or None)
            for p in decl.params
        ]
        kind = lsp.SymbolKind.Function if isinstance(decl, FunctionDecl) else lsp.SymbolKind.Method
        return _symbol(decl.name, kind, decl.span, format_signature(decl), params)
    if isinstance(decl, SpecDecl):
        state = [
            _symbol(s.name, lsp.SymbolKind.Field, s.span, format_type(s.type_expr))
            for s in decl.state
        ]
        return _symbol(decl.name, lsp.SymbolKind.Interface, decl.span, decl.description, state)
    if isinstance(decl, RefineDecl):
        state = [
            _symbol(s.name, lsp.SymbolKind.Field, s.span, format_type(s.type_expr))
            for s in decl.state
        ]
        return _symbol(
            decl.child or decl.parent, lsp.SymbolKind.Class, decl.span,
            format_signature(decl), state,
        )
    return None


# ── Entry point ──────────────────────────────────────────────────


def main() -> None:
    """Start the SAGE language server on stdio."""
    server.start_io()
