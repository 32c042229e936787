"""Tests for the SAGE lexer."""

from __future__ import annotations

import pytest

from sagelang.lexer import Lexer, tokenize
from sagelang.tokens import AT_KEYWORDS, TokenKind


def lex(source: str) -> list[tuple[TokenKind, str]]:
    """Helper: lex source and return (kind, value) pairs, excluding EOF."""
    tokens = Lexer(source).lex()
    return [(t.kind, t.value) for t in tokens if t.kind != TokenKind.EOF]


def kinds(source: str) -> list[TokenKind]:
    """Helper: lex source and return just the token kinds, excluding EOF."""
    tokens = Lexer(source).lex()
    return [t.kind for t in tokens if t.kind != TokenKind.EOF]


class TestLexerBasic:
    def test_empty_source(self):
        tokens = Lexer("").lex()
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.EOF

    def test_always_ends_with_eof(self):
        assert tokenize("@mod x\n")[-1].kind == TokenKind.EOF

    def test_identifier(self):
        assert lex("login_user2") == [(TokenKind.IDENTIFIER, "login_user2")]

    def test_plain_keywords(self):
        assert kinds("let if else ret as") == [
            TokenKind.LET, TokenKind.IF, TokenKind.ELSE, TokenKind.RET, TokenKind.AS,
        ]

    def test_keyword_prefix_is_identifier(self):
        assert lex("letter") == [(TokenKind.IDENTIFIER, "letter")]

    @pytest.mark.parametrize("word", sorted(AT_KEYWORDS))
    def test_at_keywords(self, word):
        assert lex(word) == [(AT_KEYWORDS[word], word)]

    def test_unknown_at_word_is_identifier(self):
        assert lex("@unknown") == [(TokenKind.IDENTIFIER, "@unknown")]

    def test_lone_at(self):
        assert lex("@ x") == [(TokenKind.IDENTIFIER, "@"), (TokenKind.IDENTIFIER, "x")]

    def test_number(self):
        assert lex("3.14") == [(TokenKind.NUMBER, "3.14")]

    def test_number_allows_repeated_dots(self):
        assert lex("1.2.3") == [(TokenKind.NUMBER, "1.2.3")]

    def test_number_then_identifier(self):
        assert lex("42abc") == [(TokenKind.NUMBER, "42"), (TokenKind.IDENTIFIER, "abc")]


class TestLexerStrings:
    def test_simple_string(self):
        assert lex('"Users can log in"') == [(TokenKind.STRING, "Users can log in")]

    def test_escape_keeps_character_literally(self):
        assert lex('"hello\\nworld"') == [(TokenKind.STRING, "hellonworld")]

    def test_escaped_quote(self):
        assert lex('"say \\"hi\\""') == [(TokenKind.STRING, 'say "hi"')]

    def test_unterminated_string_runs_to_end(self):
        assert lex('"never closed') == [(TokenKind.STRING, "never closed")]

    def test_string_may_span_lines(self):
        assert lex('"a\nb"') == [(TokenKind.STRING, "a\nb")]

    def test_string_position_after_newline(self):
        tokens = tokenize('"a\nb" x')
        assert tokens[1].span.start_line == 2
        assert tokens[1].span.start_col == 4


class TestLexerOperators:
    def test_two_char_operators(self):
        assert kinds("-> => !! != == >= <= &&") == [
            TokenKind.ARROW, TokenKind.FAT_ARROW, TokenKind.BANG2,
            TokenKind.NOT_EQUAL, TokenKind.EQUAL, TokenKind.GREATER_EQUAL,
            TokenKind.LESS_EQUAL, TokenKind.AND,
        ]

    def test_single_char_operators(self):
        assert kinds("= < > + - * / ! ? | &") == [
            TokenKind.ASSIGN, TokenKind.LESS, TokenKind.GREATER, TokenKind.PLUS,
            TokenKind.MINUS, TokenKind.STAR, TokenKind.SLASH, TokenKind.BANG,
            TokenKind.QUESTION, TokenKind.PIPE, TokenKind.AMPERSAND,
        ]

    def test_punctuation(self):
        assert kinds("( ) { } [ ] : ; , .") == [
            TokenKind.LPAREN, TokenKind.RPAREN, TokenKind.LBRACE, TokenKind.RBRACE,
            TokenKind.LBRACKET, TokenKind.RBRACKET, TokenKind.COLON,
            TokenKind.SEMICOLON, TokenKind.COMMA, TokenKind.DOT,
        ]

    def test_prime(self):
        assert kinds("balance'") == [TokenKind.IDENTIFIER, TokenKind.PRIME]

    def test_ellipsis(self):
        assert lex("...") == [(TokenKind.ELLIPSIS, "...")]

    def test_dot_access(self):
        assert kinds("user.id") == [TokenKind.IDENTIFIER, TokenKind.DOT, TokenKind.IDENTIFIER]

    def test_nested_generic_closers_are_separate(self):
        assert kinds(">>>") == [TokenKind.GREATER] * 3

    def test_math_symbols(self):
        assert kinds("∀ ∃ ∈ ⟹ ∑ ✓ ←") == [
            TokenKind.FOR_ALL, TokenKind.EXISTS, TokenKind.ELEMENT_OF,
            TokenKind.IMPLIES, TokenKind.SUMMATION, TokenKind.CHECKMARK,
            TokenKind.LEFT_ARROW,
        ]


class TestLexerSeparatorsAndTrivia:
    def test_section_separator(self):
        assert lex("---") == [(TokenKind.DASH3, "---")]

    def test_long_separator_is_one_token(self):
        assert lex("--------") == [(TokenKind.DASH3, "--------")]

    def test_two_dashes_are_minus(self):
        assert kinds("--") == [TokenKind.MINUS, TokenKind.MINUS]

    def test_comment_text_is_trimmed(self):
        assert lex("#   a note   ") == [(TokenKind.COMMENT, "a note")]

    def test_comment_stops_at_newline(self):
        assert kinds("# note\nx") == [TokenKind.COMMENT, TokenKind.NEWLINE, TokenKind.IDENTIFIER]

    def test_newline_tokens(self):
        assert kinds("a\n\nb") == [
            TokenKind.IDENTIFIER, TokenKind.NEWLINE, TokenKind.NEWLINE, TokenKind.IDENTIFIER,
        ]

    def test_carriage_return_skipped(self):
        assert kinds("a\r\nb") == [TokenKind.IDENTIFIER, TokenKind.NEWLINE, TokenKind.IDENTIFIER]

    def test_unknown_characters_skipped(self):
        assert lex("`~$%^") == []

    def test_non_ascii_letters_skipped(self):
        assert lex("café") == [(TokenKind.IDENTIFIER, "caf")]


class TestLexerPositions:
    def test_first_token_position(self):
        tok = tokenize("@mod todo")[0]
        assert (tok.span.start.line, tok.span.start.col, tok.span.start.offset) == (1, 1, 0)
        assert tok.span.end.offset == 4
        assert tok.span.end.col == 5

    def test_second_line_position(self):
        tokens = tokenize("a\n  b")
        b = tokens[2]
        assert b.value == "b"
        assert (b.span.start.line, b.span.start.col, b.span.start.offset) == (2, 3, 4)

    def test_newline_span(self):
        nl = tokenize("a\nb")[1]
        assert nl.span.start.offset == 1
        assert nl.span.end.offset == 2
        assert nl.span.end.line == 1

    def test_eof_position(self):
        eof = tokenize("ab\n")[-1]
        assert eof.span.start.offset == 3
        assert eof.span.start.line == 2
        assert eof.span.start.col == 1

    def test_filename_recorded(self):
        assert tokenize("x", "auth.sage")[0].span.file == "auth.sage"

    def test_offsets_never_decrease(self):
        source = '@fn login(email: Str) -> Session\n@req len(email) > 0 # note\n!! "bcrypt"\n---\n'
        tokens = tokenize(source)
        for prev, cur in zip(tokens, tokens[1:]):
            assert prev.span.start.offset <= cur.span.start.offset
            assert cur.span.end.offset >= cur.span.start.offset
