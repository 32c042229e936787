"""Token kinds and token representation for the SAGE lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sagelang.source import Span


class TokenKind(Enum):
    # Declarations (@ prefixed)
    MOD = auto()
    TYPE = auto()
    FN = auto()
    SPEC = auto()
    OP = auto()
    REFINE = auto()
    IMPL = auto()

    # Clauses (@ prefixed)
    REQ = auto()
    ENS = auto()
    INVARIANT = auto()
    PROPERTY = auto()
    DECISION = auto()
    PRESERVES = auto()
    STATE = auto()
    MAPS = auto()
    COMPARE_WITH = auto()

    # Inferred annotations (@ prefixed)
    INFERRED_REQ = auto()
    INFERRED_ENS = auto()
    INFERRED_EFFECT = auto()

    # Plain keywords
    LET = auto()
    IF = auto()
    ELSE = auto()
    RET = auto()
    AS = auto()

    # Literals
    STRING = auto()
    NUMBER = auto()
    IDENTIFIER = auto()

    # Operators
    ARROW = auto()
    FAT_ARROW = auto()
    BANG2 = auto()
    DASH3 = auto()
    ASSIGN = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    LESS = auto()
    GREATER = auto()
    LESS_EQUAL = auto()
    GREATER_EQUAL = auto()
    AND = auto()
    AMPERSAND = auto()
    PIPE = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    BANG = auto()
    QUESTION = auto()
    PRIME = auto()
    ELLIPSIS = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COLON = auto()
    SEMICOLON = auto()
    COMMA = auto()
    DOT = auto()

    # Math symbols
    FOR_ALL = auto()
    EXISTS = auto()
    ELEMENT_OF = auto()
    IMPLIES = auto()
    SUMMATION = auto()
    CHECKMARK = auto()
    LEFT_ARROW = auto()

    # Trivia
    COMMENT = auto()
    NEWLINE = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    span: Span


AT_KEYWORDS: dict[str, TokenKind] = {
    "@mod": TokenKind.MOD,
    "@type": TokenKind.TYPE,
    "@fn": TokenKind.FN,
    "@spec": TokenKind.SPEC,
    "@op": TokenKind.OP,
    "@refine": TokenKind.REFINE,
    "@impl": TokenKind.IMPL,
    "@req": TokenKind.REQ,
    "@ens": TokenKind.ENS,
    "@invariant": TokenKind.INVARIANT,
    "@property": TokenKind.PROPERTY,
    "@decision": TokenKind.DECISION,
    "@preserves": TokenKind.PRESERVES,
    "@state": TokenKind.STATE,
    "@maps": TokenKind.MAPS,
    "@compare_with": TokenKind.COMPARE_WITH,
    "@inferred_req": TokenKind.INFERRED_REQ,
    "@inferred_ens": TokenKind.INFERRED_ENS,
    "@inferred_effect": TokenKind.INFERRED_EFFECT,
}

PLAIN_KEYWORDS: dict[str, TokenKind] = {
    "let": TokenKind.LET,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "ret": TokenKind.RET,
    "as": TokenKind.AS,
}

SYMBOLS: dict[str, TokenKind] = {
    "∀": TokenKind.FOR_ALL,
    "∃": TokenKind.EXISTS,
    "∈": TokenKind.ELEMENT_OF,
    "⟹": TokenKind.IMPLIES,
    "∑": TokenKind.SUMMATION,
    "✓": TokenKind.CHECKMARK,
    "←": TokenKind.LEFT_ARROW,
}

# Checked before SINGLE_CHAR so the longer match wins.
TWO_CHAR_OPERATORS: dict[str, TokenKind] = {
    "!!": TokenKind.BANG2,
    "!=": TokenKind.NOT_EQUAL,
    "->": TokenKind.ARROW,
    "=>": TokenKind.FAT_ARROW,
    "==": TokenKind.EQUAL,
    ">=": TokenKind.GREATER_EQUAL,
    "<=": TokenKind.LESS_EQUAL,
    "&&": TokenKind.AND,
}

SINGLE_CHAR: dict[str, TokenKind] = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "<": TokenKind.LESS,
    ">": TokenKind.GREATER,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
    "?": TokenKind.QUESTION,
    "|": TokenKind.PIPE,
    "&": TokenKind.AMPERSAND,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "!": TokenKind.BANG,
    "=": TokenKind.ASSIGN,
}

AT_KEYWORD_KINDS: frozenset[TokenKind] = frozenset(AT_KEYWORDS.values())

# Kinds that end a function/operation body or an implementation block.
TOP_LEVEL_KINDS: frozenset[TokenKind] = frozenset({
    TokenKind.MOD,
    TokenKind.TYPE,
    TokenKind.FN,
    TokenKind.SPEC,
    TokenKind.OP,
    TokenKind.REFINE,
    TokenKind.IMPL,
    TokenKind.INFERRED_REQ,
    TokenKind.INFERRED_ENS,
    TokenKind.INFERRED_EFFECT,
})
