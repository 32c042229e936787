"""Pygments lexer for the SAGE specification notation."""

from pygments.lexer import RegexLexer, words
from pygments.token import (
    Comment,
    Generic,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
)


class SageLexer(RegexLexer):
    """Pygments lexer for SAGE specifications."""

    name = "SAGE"
    aliases = ["sage"]
    filenames = ["*.sage"]
    mimetypes = ["text/x-sage"]

    tokens = {
        "root": [
            (r"[ \t\r]+", Text),
            (r"\n", Text),
            (r"#.*$", Comment.Single),
            # Section separator
            (r"^-{3,}[ \t]*$", Generic.Heading),
            # Decision markers stand out from everything else
            (r"!!", Generic.Strong),
            (r'"', String, "string"),
            (r"[0-9][0-9.]*", Number),
            # Declarations
            (
                words(
                    ("@mod", "@type", "@fn", "@spec", "@op", "@refine", "@impl"),
                    suffix=r"\b",
                ),
                Keyword.Declaration,
            ),
            # Clauses
            (
                words(
                    (
                        "@req",
                        "@ens",
                        "@invariant",
                        "@property",
                        "@decision",
                        "@preserves",
                        "@state",
                        "@maps",
                        "@compare_with",
                    ),
                    suffix=r"\b",
                ),
                Keyword.Namespace,
            ),
            (
                words(
                    ("@inferred_req", "@inferred_ens", "@inferred_effect"),
                    suffix=r"\b",
                ),
                Name.Decorator,
            ),
            (r"\b(let|if|else|ret|as)\b", Keyword),
            # Math and annotation symbols
            (r"[∀∃∈⟹∑]", Operator.Word),
            (r"✓", Generic.Inserted),
            (r"←", Operator),
            (r"->|=>|==|!=|<=|>=|&&|\.\.\.", Operator),
            (r"[+\-*/<>=!?&|']", Operator),
            # Field and parameter names (word followed by colon)
            (r"[a-z_][a-zA-Z0-9_]*(?=\s*:)", Name.Attribute),
            (r"[A-Z][a-zA-Z0-9_]*", Name.Class),
            (r"[a-zA-Z_][a-zA-Z0-9_]*", Name),
            (r"[(){}\[\],;:.]", Punctuation),
            (r"@\w*", Name),
            (r".", Text),
        ],
        "string": [
            (r"\\.", String.Escape),
            (r'[^"\\]+', String),
            (r'"', String, "#pop"),
        ],
    }
