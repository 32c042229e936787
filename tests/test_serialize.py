"""Tests for plain-data and text views of documents."""

from __future__ import annotations

import json

from sagelang.serialize import format_signature, format_type, node_to_dict
from tests.helpers import parse_doc, parse_one


class TestNodeToDict:
    def test_document_kind(self):
        data = node_to_dict(parse_doc("@mod a"))
        assert data["kind"] == "Document"
        assert data["body"][0] == {
            "kind": "ModuleDecl",
            "name": "a",
            "description": None,
            "span": {
                "file": "test.sage",
                "start": {"line": 1, "col": 1, "offset": 0},
                "end": {"line": 1, "col": 7, "offset": 6},
            },
        }

    def test_without_spans(self):
        data = node_to_dict(parse_doc("@type T = { a: List<Int> }"), spans=False)
        assert "span" not in data
        field = data["body"][0]["fields"][0]
        assert field == {
            "kind": "FieldDef",
            "name": "a",
            "type_expr": {
                "kind": "GenericType",
                "name": "List",
                "args": [{"kind": "NamedType", "name": "Int"}],
            },
        }

    def test_enum_by_value(self):
        data = node_to_dict(parse_one("@inferred_ens done"), spans=False)
        assert data == {
            "kind": "InferredAnnotation",
            "annotation": "ens",
            "condition": "done",
            "reason": None,
        }

    def test_json_ready(self):
        doc = parse_doc('@refine A as B [alt]\n@preserves\n✓ "x"\n@maps a -> b\n  c -> d')
        text = json.dumps(node_to_dict(doc), ensure_ascii=False)
        assert '"RefineDecl"' in text
        assert '"checked": true' in text


class TestFormatting:
    def test_format_nested_type(self):
        td = parse_one("@type T = { a: Map<Str, List<Int>>, b: { c: Int } }")
        assert format_type(td.fields[0].type_expr) == "Map<Str, List<Int>>"
        assert format_type(td.fields[1].type_expr) == "{ c: Int }"

    def test_format_missing_type(self):
        assert format_type(None) == ""

    def test_function_signature(self):
        fn = parse_one("@fn login(email: Str, token) -> Result<Session, Error>")
        assert format_signature(fn) == "@fn login(email: Str, token) -> Result<Session, Error>"

    def test_refine_signature(self):
        ref = parse_one("@refine Auth as Jwt [alternative]")
        assert format_signature(ref) == "@refine Auth as Jwt [alternative]"

    def test_type_signature(self):
        td = parse_one("@type P = { x: Int, y: Int }")
        assert format_signature(td) == "@type P = { x: Int, y: Int }"

    def test_no_signature_for_statements(self):
        assert format_signature(parse_one('"prose"')) is None
