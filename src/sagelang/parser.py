"""Parser for the SAGE specification notation.

Transforms a token stream into a flat Document using recursive descent for
declarations. Conditions, values and bodies are captured as reconstructed
text rather than parsed into expression trees.

The parser is total. Each construct routine returns ``None`` when the
tokens do not match its shape; the dispatcher then rewinds and captures
the line as a RawLine, so malformed input only ever degrades locally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sagelang.ast_nodes import (
    CompareWith,
    Conditional,
    Contract,
    DecisionMarker,
    Document,
    Ensures,
    FieldDef,
    FunctionDecl,
    GenericType,
    ImplDecl,
    InferredAnnotation,
    InferredKind,
    Invariant,
    LetBinding,
    MapsClause,
    ModuleDecl,
    NamedType,
    NaturalText,
    OperationDecl,
    Param,
    Preserves,
    Property,
    RawLine,
    RecordType,
    RefineDecl,
    Requirement,
    ReturnStmt,
    SectionSeparator,
    SpecDecl,
    Statement,
    StateField,
    TopLevel,
    TypeDecl,
    TypeExpr,
)
from sagelang.source import START, Position, Span
from sagelang.tokens import AT_KEYWORD_KINDS, TOP_LEVEL_KINDS, Token, TokenKind

logger = logging.getLogger(__name__)

_TRIVIA = frozenset({TokenKind.NEWLINE, TokenKind.COMMENT})
_LINE_END = frozenset({TokenKind.NEWLINE, TokenKind.COMMENT, TokenKind.EOF})
_BODY_END = TOP_LEVEL_KINDS | {TokenKind.DASH3, TokenKind.EOF}

# First tokens of a line that stop an invariant from wrapping onto it.
_INVARIANT_STOP = AT_KEYWORD_KINDS | {
    TokenKind.NEWLINE, TokenKind.EOF, TokenKind.STRING,
    TokenKind.COMMENT, TokenKind.DASH3,
}

# First tokens of an indented line that end a @maps clause.
_MAPS_STOP = _INVARIANT_STOP | {TokenKind.CHECKMARK, TokenKind.BANG2}

_INFERRED_KINDS: dict[TokenKind, InferredKind] = {
    TokenKind.INFERRED_REQ: InferredKind.REQ,
    TokenKind.INFERRED_ENS: InferredKind.ENS,
    TokenKind.INFERRED_EFFECT: InferredKind.EFFECT,
}

_COMPARE_KEYS = ("advantages", "disadvantages")

_Mark = tuple[int, "Token | None"]


def _token_text(tok: Token) -> str:
    if tok.kind == TokenKind.STRING:
        return f'"{tok.value}"'
    return tok.value


def _render(tokens: list[Token]) -> str:
    """Rebuild readable text from tokens: space-joined, strings re-quoted."""
    return ' '.join(_token_text(t) for t in tokens)


def _brace_delta(tokens: list[Token]) -> int:
    depth = 0
    for tok in tokens:
        if tok.kind == TokenKind.LBRACE:
            depth += 1
        elif tok.kind == TokenKind.RBRACE:
            depth -= 1
    return depth


def _strip_quotes(text: str) -> str:
    text = text.strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text.strip()


class Parser:
    """Parses a list of tokens into a SAGE Document."""

    def __init__(self, tokens: list[Token], filename: str | None = None) -> None:
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            end = tokens[-1].span.end if tokens else START
            file = tokens[-1].span.file if tokens else (filename or "<input>")
            tokens = [*tokens, Token(TokenKind.EOF, "", Span(file, end, end))]
        self.tokens = tokens
        self.filename = filename or tokens[-1].span.file
        self.pos = 0
        self._last: Token | None = None

        self._top_level: dict[TokenKind, Callable[[], TopLevel | None]] = {
            TokenKind.MOD: self._parse_module_decl,
            TokenKind.TYPE: self._parse_type_decl,
            TokenKind.FN: self._parse_function_decl,
            TokenKind.SPEC: self._parse_spec_decl,
            TokenKind.OP: self._parse_operation_decl,
            TokenKind.REFINE: self._parse_refine_decl,
            TokenKind.IMPL: self._parse_impl_decl,
            TokenKind.INFERRED_REQ: self._parse_inferred_annotation,
            TokenKind.INFERRED_ENS: self._parse_inferred_annotation,
            TokenKind.INFERRED_EFFECT: self._parse_inferred_annotation,
            TokenKind.DASH3: self._parse_section_separator,
            **self._statement_table(),
        }
        self._statements: dict[TokenKind, Callable[[], Statement | None]] = (
            self._statement_table()
        )

    def _statement_table(self) -> dict[TokenKind, Callable[[], Statement | None]]:
        return {
            TokenKind.STRING: self._parse_natural_text,
            TokenKind.BANG2: self._parse_decision_or_statement,
            TokenKind.LET: self._parse_let_binding,
            TokenKind.IF: self._parse_conditional,
            TokenKind.RET: self._parse_return,
        }

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, kinds: frozenset[TokenKind] | set[TokenKind]) -> bool:
        return self._current().kind in kinds

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        if tok.kind not in _TRIVIA and tok.kind != TokenKind.EOF:
            self._last = tok
        return tok

    def _accept(self, kind: TokenKind) -> Token | None:
        """Consume and return the current token if it has ``kind``."""
        if self._at(kind):
            return self._advance()
        return None

    def _skip_blank(self) -> None:
        while self._at_any(_TRIVIA):
            self._advance()

    def _mark(self) -> _Mark:
        return (self.pos, self._last)

    def _reset(self, mark: _Mark) -> None:
        self.pos, self._last = mark

    def _span_from(self, start: Span) -> Span:
        """Span from ``start`` to the end of the last significant token."""
        end: Position = self._last.span.end if self._last is not None else start.end
        return Span(start.file, start.start, max(end, start.end))

    def _line_tokens(self) -> list[Token]:
        tokens: list[Token] = []
        while not self._at_any(_LINE_END):
            tokens.append(self._advance())
        return tokens

    def _line_text(self) -> str:
        """Consume the rest of the line and return it as reconstructed text."""
        return _render(self._line_tokens())

    def _string_or_line(self) -> str:
        tok = self._accept(TokenKind.STRING)
        if tok is not None:
            return tok.value
        return self._line_text()

    def _take_description(self) -> str | None:
        """Consume an optional description string, possibly on a later line."""
        mark = self._mark()
        self._skip_blank()
        if self._at(TokenKind.STRING) and self._peek(1).kind != TokenKind.BANG2:
            return self._advance().value
        self._reset(mark)
        return None

    # ── Top-level parsing ────────────────────────────────────────

    def parse(self) -> Document:
        """Parse the entire token stream into a Document."""
        body: list[TopLevel] = []
        self._skip_blank()
        while not self._at(TokenKind.EOF):
            body.append(self._parse_top_level())
            self._skip_blank()
        end = self._current().span.end
        return Document(body=body, span=Span(self.filename, START, end))

    def _parse_top_level(self) -> TopLevel:
        return self._dispatch(self._top_level)

    def _dispatch(self, table: dict[TokenKind, Callable[[], TopLevel | None]]) -> TopLevel:
        tok = self._current()
        routine = table.get(tok.kind)
        if routine is not None:
            mark = self._mark()
            node = routine()
            if node is not None:
                return node
            logger.debug("unrecognized %s construct at %s; keeping raw line", tok.kind.name, tok.span)
            self._reset(mark)
        return self._parse_raw_line()

    def _parse_raw_line(self) -> RawLine:
        start = self._advance()
        tokens = [start, *self._line_tokens()]
        return RawLine(_render(tokens), self._span_from(start.span))

    def _parse_section_separator(self) -> SectionSeparator:
        tok = self._advance()
        return SectionSeparator(tok.span)

    # ── @mod ─────────────────────────────────────────────────────

    def _parse_module_decl(self) -> ModuleDecl | None:
        start = self._advance().span
        name = self._accept(TokenKind.IDENTIFIER)
        if name is None:
            return None
        description = self._take_description()
        return ModuleDecl(name.value, description, self._span_from(start))

    # ── @type and type expressions ───────────────────────────────

    def _parse_type_decl(self) -> TypeDecl | None:
        start = self._advance().span
        name = self._accept(TokenKind.IDENTIFIER)
        if name is None or self._accept(TokenKind.ASSIGN) is None:
            return None
        if self._accept(TokenKind.LBRACE) is None:
            return None
        fields = self._parse_field_list()
        if fields is None:
            return None
        return TypeDecl(name.value, fields, self._span_from(start))

    def _parse_field_list(self) -> list[FieldDef] | None:
        """Parse ``name: type`` entries after an opening brace.

        Shared by type declarations and inline record types. Accepts
        trailing commas and an ``...`` marker for elided fields. Running
        out of input before the closing brace is tolerated.
        """
        fields: list[FieldDef] = []
        while True:
            self._skip_blank()
            if self._accept(TokenKind.RBRACE) is not None or self._at(TokenKind.EOF):
                return fields
            if self._accept(TokenKind.ELLIPSIS) is not None:
                self._skip_blank()
                if self._accept(TokenKind.RBRACE) is not None or self._at(TokenKind.EOF):
                    return fields
                return None
            field = self._parse_field_def()
            if field is None:
                return None
            fields.append(field)
            self._skip_blank()
            self._accept(TokenKind.COMMA)

    def _parse_field_def(self) -> FieldDef | None:
        name = self._accept(TokenKind.IDENTIFIER)
        if name is None or self._accept(TokenKind.COLON) is None:
            return None
        type_expr = self._parse_type_expr()
        if type_expr is None:
            return None
        return FieldDef(name.value, type_expr, self._span_from(name.span))

    def _parse_type_expr(self) -> TypeExpr | None:
        tok = self._current()
        if tok.kind == TokenKind.LBRACE:
            self._advance()
            fields = self._parse_field_list()
            if fields is None:
                return None
            return RecordType(fields, self._span_from(tok.span))
        if tok.kind == TokenKind.LPAREN and self._peek(1).kind == TokenKind.RPAREN:
            self._advance()
            self._advance()
            return NamedType("()", self._span_from(tok.span))
        if tok.kind != TokenKind.IDENTIFIER:
            return None
        self._advance()
        if self._accept(TokenKind.LESS) is None:
            return NamedType(tok.value, tok.span)
        args: list[TypeExpr] = []
        while True:
            arg = self._parse_type_expr()
            if arg is None:
                return None
            args.append(arg)
            if self._accept(TokenKind.COMMA) is None:
                break
        if self._accept(TokenKind.GREATER) is None:
            return None
        return GenericType(tok.value, args, self._span_from(tok.span))

    # ── @fn / @op ────────────────────────────────────────────────

    def _parse_function_decl(self) -> FunctionDecl | None:
        parts = self._parse_signature_and_body()
        if parts is None:
            return None
        return FunctionDecl(*parts)

    def _parse_operation_decl(self) -> OperationDecl | None:
        parts = self._parse_signature_and_body()
        if parts is None:
            return None
        return OperationDecl(*parts)

    def _parse_signature_and_body(self) -> tuple | None:
        """Shared shape of @fn and @op: header, description, contracts, body."""
        start = self._advance().span
        name = self._accept(TokenKind.IDENTIFIER)
        if name is None:
            return None

        params: list[Param] = []
        if self._at(TokenKind.LPAREN):
            parsed = self._parse_param_list()
            if parsed is None:
                return None
            params = parsed

        return_type = None
        if self._accept(TokenKind.ARROW) is not None:
            return_type = self._parse_type_expr()
            if return_type is None:
                return None

        description = self._take_description()

        contracts: list[Contract] = []
        self._skip_blank()
        while self._at_any({TokenKind.REQ, TokenKind.ENS}):
            kw = self._advance()
            condition = self._line_text()
            if kw.kind == TokenKind.REQ:
                contracts.append(Requirement(condition, self._span_from(kw.span)))
            else:
                contracts.append(Ensures(condition, self._span_from(kw.span)))
            self._skip_blank()

        body = self._parse_body()
        return (
            name.value, params, return_type, description,
            contracts, body, self._span_from(start),
        )

    def _parse_param_list(self) -> list[Param] | None:
        self._advance()  # (
        params: list[Param] = []
        while True:
            self._skip_blank()
            if self._accept(TokenKind.RPAREN) is not None:
                return params
            name = self._accept(TokenKind.IDENTIFIER)
            if name is None:
                return None
            type_expr = None
            if self._accept(TokenKind.COLON) is not None:
                type_expr = self._parse_type_expr()
                if type_expr is None:
                    return None
            params.append(Param(name.value, type_expr, self._span_from(name.span)))
            self._skip_blank()
            self._accept(TokenKind.COMMA)

    # ── Statements ───────────────────────────────────────────────

    def _parse_body(self) -> list[Statement]:
        stmts: list[Statement] = []
        self._skip_blank()
        while not self._at_any(_BODY_END):
            stmts.append(self._dispatch(self._statements))
            self._skip_blank()
        return stmts

    def _parse_natural_text(self) -> NaturalText | DecisionMarker:
        tok = self._advance()
        if self._accept(TokenKind.BANG2) is not None:
            return DecisionMarker(tok.value, self._span_from(tok.span))
        return NaturalText(tok.value, tok.span)

    def _parse_decision_or_statement(self) -> Statement | None:
        nxt = self._peek(1).kind
        if nxt == TokenKind.LET:
            return self._parse_let_binding()
        if nxt == TokenKind.IF:
            return self._parse_conditional()
        return self._parse_decision_marker()

    def _parse_decision_marker(self) -> DecisionMarker:
        start = self._advance().span  # !!
        text = self._string_or_line()
        return DecisionMarker(text.strip(), self._span_from(start))

    def _parse_let_binding(self) -> LetBinding | None:
        start = self._current().span
        decision = self._accept(TokenKind.BANG2) is not None
        if self._accept(TokenKind.LET) is None:
            return None
        name = self._accept(TokenKind.IDENTIFIER)
        if name is None or self._accept(TokenKind.ASSIGN) is None:
            return None

        tokens = self._line_tokens()
        depth = _brace_delta(tokens)
        lines = [_render(tokens)]
        # Multi-line object literal: keep reading lines until braces balance.
        while depth > 0:
            self._accept(TokenKind.COMMENT)
            if not self._at(TokenKind.NEWLINE) or self._peek(1).kind in _BODY_END:
                break
            self._advance()
            tokens = self._line_tokens()
            depth += _brace_delta(tokens)
            lines.append(_render(tokens))
        value = '\n'.join(line for line in lines if line)
        return LetBinding(name.value, value.strip(), decision, self._span_from(start))

    def _parse_conditional(self) -> Conditional | None:
        start = self._current().span
        decision = self._accept(TokenKind.BANG2) is not None
        if self._accept(TokenKind.IF) is None:
            return None

        condition: list[Token] = []
        while not self._at_any(_LINE_END | {TokenKind.FAT_ARROW}):
            condition.append(self._advance())
        then = ""
        if self._accept(TokenKind.FAT_ARROW) is not None:
            then = self._line_text()

        otherwise = None
        mark = self._mark()
        self._skip_blank()
        if self._accept(TokenKind.ELSE) is not None:
            self._accept(TokenKind.FAT_ARROW)
            otherwise = self._line_text().strip()
        else:
            self._reset(mark)

        return Conditional(
            _render(condition), then.strip(), otherwise,
            decision, self._span_from(start),
        )

    def _parse_return(self) -> ReturnStmt:
        start = self._advance().span
        return ReturnStmt(self._line_text().strip(), self._span_from(start))

    # ── @spec ────────────────────────────────────────────────────

    def _parse_spec_decl(self) -> SpecDecl | None:
        start = self._advance().span
        name = self._accept(TokenKind.IDENTIFIER)
        if name is None:
            return None
        description = self._take_description()

        properties: list[Property] = []
        state: list[StateField] = []
        invariants: list[Invariant] = []
        while True:
            self._skip_blank()
            tok = self._current()
            if tok.kind == TokenKind.PROPERTY:
                self._advance()
                properties.append(Property(self._string_or_line(), self._span_from(tok.span)))
            elif tok.kind == TokenKind.STATE:
                fields = self._parse_clause(self._parse_state_block)
                if fields is None:
                    break
                state.extend(fields)
            elif tok.kind == TokenKind.INVARIANT:
                invariants.append(self._parse_invariant())
            else:
                break

        return SpecDecl(
            name.value, description, properties, state, invariants,
            self._span_from(start),
        )

    def _parse_clause(self, routine: Callable[[], object | None]):
        """Run a clause routine, rewinding to the clause start if it fails.

        A failed clause ends the enclosing declaration; its line is then
        picked up as a raw line at top level.
        """
        mark = self._mark()
        result = routine()
        if result is None:
            logger.debug("malformed clause at %s", self.tokens[mark[0]].span)
            self._reset(mark)
        return result

    def _parse_state_block(self) -> list[StateField] | None:
        self._advance()  # @state
        fields: list[StateField] = []
        self._skip_blank()
        while self._at(TokenKind.IDENTIFIER) and self._peek(1).kind == TokenKind.COLON:
            name = self._advance()
            self._advance()  # :
            type_expr = self._parse_type_expr()
            if type_expr is None:
                return None
            fields.append(StateField(name.value, type_expr, self._span_from(name.span)))
            self._skip_blank()
        return fields

    def _parse_invariant(self) -> Invariant:
        start = self._advance().span
        parts = [self._line_text()]
        # Invariants may wrap onto following lines.
        while True:
            self._accept(TokenKind.COMMENT)
            if not self._at(TokenKind.NEWLINE) or self._peek(1).kind in _INVARIANT_STOP:
                break
            self._advance()
            parts.append(self._line_text())
        expression = ' '.join(p for p in parts if p)
        return Invariant(expression.strip(), self._span_from(start))

    # ── @refine ──────────────────────────────────────────────────

    def _parse_refine_decl(self) -> RefineDecl | None:
        start = self._advance().span
        parent = self._accept(TokenKind.IDENTIFIER)
        if parent is None:
            return None

        child = tag = None
        if self._accept(TokenKind.AS) is not None:
            child_tok = self._accept(TokenKind.IDENTIFIER)
            if child_tok is None:
                return None
            child = child_tok.value
            if self._accept(TokenKind.LBRACKET) is not None:
                tag_tok = self._accept(TokenKind.IDENTIFIER)
                if tag_tok is None or self._accept(TokenKind.RBRACKET) is None:
                    return None
                tag = tag_tok.value

        description: str | None = None
        decisions: list[DecisionMarker] = []
        state: list[StateField] = []
        preserves: list[Preserves] = []
        maps: list[MapsClause] = []
        compare_with: CompareWith | None = None

        while True:
            self._skip_blank()
            tok = self._current()
            if tok.kind == TokenKind.DECISION:
                self._advance()
                text = self._string_or_line()
                self._accept(TokenKind.BANG2)
                decisions.append(DecisionMarker(text, self._span_from(tok.span)))
            elif tok.kind == TokenKind.STRING and self._peek(1).kind == TokenKind.BANG2:
                decisions.append(self._parse_natural_text())
            elif tok.kind == TokenKind.STRING and description is None:
                description = self._advance().value
            elif tok.kind == TokenKind.BANG2:
                decisions.append(self._parse_decision_marker())
            elif tok.kind == TokenKind.STATE:
                fields = self._parse_clause(self._parse_state_block)
                if fields is None:
                    break
                state.extend(fields)
            elif tok.kind == TokenKind.PRESERVES:
                preserves.extend(self._parse_preserves())
            elif tok.kind == TokenKind.MAPS:
                maps.append(self._parse_maps_clause())
            elif tok.kind == TokenKind.COMPARE_WITH:
                parsed = self._parse_clause(self._parse_compare_with)
                if parsed is None:
                    break
                compare_with = parsed
            else:
                break

        return RefineDecl(
            parent=parent.value, child=child, tag=tag, description=description,
            decisions=decisions, state=state, preserves=preserves, maps=maps,
            compare_with=compare_with, span=self._span_from(start),
        )

    def _parse_preserves(self) -> list[Preserves]:
        self._advance()  # @preserves
        claims: list[Preserves] = []
        self._skip_blank()
        bare = self._accept(TokenKind.STRING)
        if bare is not None:
            claims.append(Preserves(bare.value, False, bare.span))
            self._skip_blank()
        while self._at(TokenKind.CHECKMARK):
            check = self._advance()
            claims.append(Preserves(self._string_or_line(), True, self._span_from(check.span)))
            self._skip_blank()
        return claims

    def _parse_maps_clause(self) -> MapsClause:
        start = self._advance().span
        description = self._string_or_line()
        mappings: list[str] = []
        while True:
            self._accept(TokenKind.COMMENT)
            nxt = self._peek(1)
            if (not self._at(TokenKind.NEWLINE)
                    or nxt.kind in _MAPS_STOP
                    or nxt.span.start_col <= 1):
                break
            self._advance()
            mappings.append(self._line_text())
        return MapsClause(description, mappings, self._span_from(start))

    def _parse_compare_with(self) -> CompareWith | None:
        start = self._advance().span
        target = self._accept(TokenKind.IDENTIFIER)
        if target is None:
            return None
        found: dict[str, str] = {}
        mark = self._mark()
        self._skip_blank()
        while (self._at(TokenKind.IDENTIFIER)
               and self._current().value in _COMPARE_KEYS
               and self._peek(1).kind == TokenKind.COLON):
            key = self._advance().value
            self._advance()  # :
            found[key] = self._string_or_line()
            mark = self._mark()
            self._skip_blank()
        self._reset(mark)
        return CompareWith(
            target.value, found.get("advantages"), found.get("disadvantages"),
            self._span_from(start),
        )

    # ── @impl ────────────────────────────────────────────────────

    def _parse_impl_decl(self) -> ImplDecl:
        start = self._advance().span
        target = self._accept(TokenKind.IDENTIFIER)
        self._skip_blank()

        lines: list[str] = []
        line: list[Token] = []
        while not self._at_any(_BODY_END | {TokenKind.COMMENT}):
            tok = self._advance()
            if tok.kind == TokenKind.NEWLINE:
                lines.append(_render(line))
                line = []
            else:
                line.append(tok)
        lines.append(_render(line))
        body = '\n'.join(lines).strip()
        return ImplDecl(
            target.value if target is not None else None, body,
            self._span_from(start),
        )

    # ── Inferred annotations ─────────────────────────────────────

    def _parse_inferred_annotation(self) -> InferredAnnotation:
        tok = self._advance()
        condition = self._line_text()
        reason = None
        if "←" in condition:
            condition, _, rest = condition.partition("←")
            reason = _strip_quotes(rest) or None
        return InferredAnnotation(
            _INFERRED_KINDS[tok.kind], _strip_quotes(condition), reason,
            self._span_from(tok.span),
        )


def parse(tokens: list[Token], filename: str | None = None) -> Document:
    """Parse ``tokens`` into a Document; never raises on malformed input."""
    return Parser(tokens, filename).parse()
