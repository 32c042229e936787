"""Tests for the SAGE CLI, config, and error rendering."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from sagelang.cli import main
from sagelang.config import SageConfig, discover_config, find_config, load_config
from sagelang.errors import (
    CompileError,
    Diagnostic,
    DiagnosticLabel,
    DiagnosticRenderer,
    Severity,
    Suggestion,
)
from sagelang.source import SourceFile, Span


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a small spec project in a temp dir."""
    (tmp_path / "sage.toml").write_text(
        '[package]\nname = "bank"\nversion = "1.0.0"\n'
        "[check]\nstrict = false\n"
    )
    specs = tmp_path / "specs"
    specs.mkdir()
    (specs / "auth.sage").write_text(
        '@mod auth "Authentication"\n'
        "@spec Auth\n"
        "@invariant sessions >= 0\n"
        "@refine Auth as Jwt [alternative]\n"
        '@decision "Use RS256"\n'
    )
    return tmp_path


# --- CLI tests ---


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("check", "parse", "tokens", "highlight", "lsp"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_lsp_help(self, runner):
        result = runner.invoke(main, ["lsp", "--help"])
        assert result.exit_code == 0


class TestCheckCommand:
    def test_clean_project(self, runner, tmp_project):
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 0
        assert "checked 1 file(s): 0 error(s), 0 warning(s)" in result.output

    def test_single_file(self, runner, tmp_project):
        result = runner.invoke(main, ["check", str(tmp_project / "specs" / "auth.sage")])
        assert result.exit_code == 0
        assert "checked 1 file(s)" in result.output

    def test_warning_passes(self, runner, tmp_project):
        (tmp_project / "specs" / "odd.sage").write_text("what is this\n")
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 0
        assert "W100" in result.output
        assert "1 warning(s)" in result.output

    def test_strict_flag_fails_on_warning(self, runner, tmp_project):
        (tmp_project / "specs" / "odd.sage").write_text("what is this\n")
        result = runner.invoke(main, ["check", "--strict", str(tmp_project)])
        assert result.exit_code == 1

    def test_strict_from_config(self, runner, tmp_project):
        (tmp_project / "sage.toml").write_text("[check]\nstrict = true\n")
        (tmp_project / "specs" / "odd.sage").write_text("what is this\n")
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 1

    def test_error_fails(self, runner, tmp_project):
        (tmp_project / "specs" / "bad.sage").write_text("@fn f\n@req\n")
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 1
        assert "E110" in result.output

    def test_include_patterns(self, runner, tmp_project):
        (tmp_project / "sage.toml").write_text('[check]\ninclude = ["drafts/*.sage"]\n')
        drafts = tmp_project / "drafts"
        drafts.mkdir()
        (drafts / "d.sage").write_text("@mod draft\n")
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 0
        assert "checked 1 file(s)" in result.output

    def test_no_config_uses_defaults(self, runner, tmp_path):
        (tmp_path / "a.sage").write_text("@mod a\n")
        result = runner.invoke(main, ["check", str(tmp_path)])
        assert result.exit_code == 0
        assert "checked 1 file(s)" in result.output

    def test_no_files(self, runner, tmp_path):
        result = runner.invoke(main, ["check", str(tmp_path)])
        assert result.exit_code == 0
        assert "no .sage files found" in result.output

    def test_broken_config(self, runner, tmp_path):
        (tmp_path / "sage.toml").write_text("[check\n")
        (tmp_path / "a.sage").write_text("@mod a\n")
        result = runner.invoke(main, ["check", str(tmp_path)])
        assert result.exit_code == 1
        assert "error:" in result.output


class TestInspectCommands:
    def test_parse_tree(self, runner, tmp_project):
        result = runner.invoke(main, ["parse", str(tmp_project / "specs" / "auth.sage")])
        assert result.exit_code == 0
        assert "ModuleDecl" in result.output
        assert "name: 'auth'" in result.output
        assert "RefineDecl" in result.output

    def test_parse_json(self, runner, tmp_project):
        result = runner.invoke(main, ["parse", "--json", str(tmp_project / "specs" / "auth.sage")])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["kind"] == "Document"
        assert [n["kind"] for n in data["body"]] == ["ModuleDecl", "SpecDecl", "RefineDecl"]

    def test_parse_json_without_spans(self, runner, tmp_project):
        path = str(tmp_project / "specs" / "auth.sage")
        result = runner.invoke(main, ["parse", "--json", "--no-spans", path])
        assert '"span"' not in result.output

    def test_tokens(self, runner, tmp_project):
        result = runner.invoke(main, ["tokens", str(tmp_project / "specs" / "auth.sage")])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "1:1 MOD '@mod'"
        assert lines[-1].endswith("EOF ''")

    def test_highlight(self, runner, tmp_project):
        result = runner.invoke(main, ["highlight", str(tmp_project / "specs" / "auth.sage")])
        assert result.exit_code == 0
        assert "Authentication" in result.output

    def test_highlight_html(self, runner, tmp_project):
        result = runner.invoke(main, ["highlight", "--html", str(tmp_project / "specs" / "auth.sage")])
        assert result.exit_code == 0
        assert "<html" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["parse", str(tmp_path / "nope.sage")])
        assert result.exit_code != 0


# --- Config tests ---


class TestConfig:
    def test_find_config(self, tmp_project):
        assert find_config(tmp_project / "specs") == tmp_project / "sage.toml"

    def test_find_config_from_file(self, tmp_project):
        found = find_config(tmp_project / "specs" / "auth.sage")
        assert found == tmp_project / "sage.toml"

    def test_find_config_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            find_config(tmp_path)

    def test_load_config(self, tmp_project):
        config = load_config(tmp_project / "sage.toml")
        assert config.package.name == "bank"
        assert config.package.version == "1.0.0"
        assert config.check.strict is False
        assert config.check.include == ["**/*.sage"]

    def test_load_config_defaults(self, tmp_path):
        path = tmp_path / "sage.toml"
        path.write_text("")
        config = load_config(path)
        assert config.package.name == "untitled"
        assert config.check.warn_raw_lines is True

    def test_discover_without_file(self, tmp_path):
        config, path = discover_config(tmp_path)
        assert path is None
        assert config == SageConfig()


# --- Error rendering tests ---


class TestDiagnosticRenderer:
    def _span(self, path: str, start: int, end: int) -> Span:
        src = SourceFile(Path(path))
        return Span(path, src.position_at(start), src.position_at(end))

    def test_render_with_source(self, tmp_path):
        path = tmp_path / "a.sage"
        path.write_text("@mod a\nwhat is this\n")
        span = self._span(str(path), 7, 19)
        diag = Diagnostic(
            severity=Severity.WARNING,
            code="W100",
            message="unrecognized line: what is this",
            labels=[DiagnosticLabel(span=span, message="not a construct")],
            notes=["raw lines are kept verbatim"],
            suggestions=[Suggestion(message="quote it", replacement='"what is this"')],
        )
        output = DiagnosticRenderer(color=False).render(diag)
        lines = output.splitlines()
        assert lines[0] == "warning[W100]: unrecognized line: what is this"
        assert f"--> {path}:2:1" in output
        assert "   2 | what is this" in output
        assert "^" * 12 in output
        assert "not a construct" in output
        assert "note: raw lines are kept verbatim" in output
        assert 'try: "what is this"' in output

    def test_render_registered_source(self):
        renderer = DiagnosticRenderer(color=False)
        renderer.add_source("<input>", "@fn f\n@req\n")
        src = SourceFile.from_text("@fn f\n@req\n")
        span = Span("<input>", src.position_at(6), src.position_at(10))
        diag = Diagnostic(Severity.ERROR, "E110", "@req clause has an empty condition",
                          [DiagnosticLabel(span)])
        output = renderer.render(diag)
        assert "error[E110]" in output
        assert "   2 | @req" in output
        assert "^^^^" in output

    def test_render_colored(self):
        renderer = DiagnosticRenderer(color=True)
        diag = Diagnostic(Severity.NOTE, "N300", "no reason")
        assert "\033[" in renderer.render(diag)

    def test_primary_span(self):
        src = SourceFile.from_text("abc")
        first = Span("<input>", src.position_at(0), src.position_at(1))
        second = Span("<input>", src.position_at(1), src.position_at(2))
        diag = Diagnostic(Severity.ERROR, "E100", "x", [
            DiagnosticLabel(first, style="secondary"), DiagnosticLabel(second),
        ])
        assert diag.span == second
        assert Diagnostic(Severity.ERROR, "E100", "x").span is None

    def test_compile_error(self):
        diag = Diagnostic(Severity.ERROR, "E110", "empty condition")
        err = CompileError([diag])
        assert err.diagnostics == [diag]
        assert "1 error(s): empty condition" in str(err)
