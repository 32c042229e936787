"""Lexer for the SAGE specification notation.

Produces a stream of tokens from source text. The lexer is total: it has no
error channel, characters it does not recognize are skipped, and the token
list always ends with an EOF token.
"""

from __future__ import annotations

from sagelang.source import Position, Span
from sagelang.tokens import (
    AT_KEYWORDS,
    PLAIN_KEYWORDS,
    SINGLE_CHAR,
    SYMBOLS,
    TWO_CHAR_OPERATORS,
    Token,
    TokenKind,
)


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == '_')


def _is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == '_')


def _is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'


class Lexer:
    """Tokenizes SAGE source text."""

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: list[Token] = []

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        while self.pos < len(self.source):
            self._skip_spaces()
            if self.pos >= len(self.source):
                break
            ch = self.source[self.pos]
            if ch == '\n':
                self._lex_newline()
            elif ch == '\r':
                self._advance()
            elif ch == '#':
                self._lex_comment()
            elif ch == '-' and self._peek(1) == '-' and self._peek(2) == '-':
                self._lex_section_separator()
            elif ch == '"':
                self._lex_string()
            elif ch == "'":
                self._lex_fixed(TokenKind.PRIME, 1)
            elif self.source[self.pos:self.pos + 2] in TWO_CHAR_OPERATORS:
                self._lex_fixed(TWO_CHAR_OPERATORS[self.source[self.pos:self.pos + 2]], 2)
            elif ch == '.' and self._peek(1) == '.' and self._peek(2) == '.':
                self._lex_fixed(TokenKind.ELLIPSIS, 3)
            elif ch in SYMBOLS:
                self._lex_fixed(SYMBOLS[ch], 1)
            elif ch in SINGLE_CHAR:
                self._lex_fixed(SINGLE_CHAR[ch], 1)
            elif ch == '@':
                self._lex_at_keyword()
            elif _is_digit(ch):
                self._lex_number()
            elif _is_ident_start(ch):
                self._lex_identifier()
            else:
                self._advance()

        loc = self._loc()
        self.tokens.append(Token(TokenKind.EOF, "", Span(self.filename, loc, loc)))
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _loc(self) -> Position:
        return Position(self.pos, self.line, self.col)

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _emit(self, kind: TokenKind, value: str, start: Position) -> Token:
        tok = Token(kind, value, Span(self.filename, start, self._loc()))
        self.tokens.append(tok)
        return tok

    def _skip_spaces(self) -> None:
        """Skip spaces and tabs (but not newlines)."""
        while self.pos < len(self.source) and self.source[self.pos] in (' ', '\t'):
            self._advance()

    def _lex_fixed(self, kind: TokenKind, length: int) -> None:
        start = self._loc()
        text = self.source[self.pos:self.pos + length]
        for _ in range(length):
            self._advance()
        self._emit(kind, text, start)

    # ── Newlines and comments ────────────────────────────────────

    def _lex_newline(self) -> None:
        start = self._loc()
        self.pos += 1
        end = Position(self.pos, self.line, self.col + 1)
        self.tokens.append(Token(TokenKind.NEWLINE, "\n", Span(self.filename, start, end)))
        self.line += 1
        self.col = 1

    def _lex_comment(self) -> None:
        start = self._loc()
        self._advance()  # skip #
        text = []
        while self.pos < len(self.source) and self.source[self.pos] != '\n':
            text.append(self._advance())
        self._emit(TokenKind.COMMENT, ''.join(text).strip(), start)

    def _lex_section_separator(self) -> None:
        start = self._loc()
        text = []
        while self.pos < len(self.source) and self.source[self.pos] == '-':
            text.append(self._advance())
        self._emit(TokenKind.DASH3, ''.join(text), start)

    # ── Strings ──────────────────────────────────────────────────

    def _lex_string(self) -> None:
        start = self._loc()
        self._advance()  # skip opening "
        text = []
        while self.pos < len(self.source) and self.source[self.pos] != '"':
            if self.source[self.pos] == '\\':
                self._advance()
                if self.pos < len(self.source):
                    # Escaped character is kept literally: \n -> n
                    text.append(self._advance())
            else:
                text.append(self._advance())
        if self.pos < len(self.source):
            self._advance()  # skip closing "
        self._emit(TokenKind.STRING, ''.join(text), start)

    # ── Words and numbers ────────────────────────────────────────

    def _lex_at_keyword(self) -> None:
        start = self._loc()
        text = [self._advance()]  # @
        while self.pos < len(self.source) and _is_ident_char(self.source[self.pos]):
            text.append(self._advance())
        word = ''.join(text)
        # Unknown @words degrade to identifiers
        self._emit(AT_KEYWORDS.get(word, TokenKind.IDENTIFIER), word, start)

    def _lex_number(self) -> None:
        start = self._loc()
        text = []
        while self.pos < len(self.source) and (
            _is_digit(self.source[self.pos]) or self.source[self.pos] == '.'
        ):
            text.append(self._advance())
        self._emit(TokenKind.NUMBER, ''.join(text), start)

    def _lex_identifier(self) -> None:
        start = self._loc()
        text = []
        while self.pos < len(self.source) and _is_ident_char(self.source[self.pos]):
            text.append(self._advance())
        word = ''.join(text)
        self._emit(PLAIN_KEYWORDS.get(word, TokenKind.IDENTIFIER), word, start)


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize ``source``; never raises."""
    return Lexer(source, filename).lex()
