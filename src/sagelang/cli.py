"""SAGE command line tools."""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path

import click

from sagelang import __version__
from sagelang.config import SageConfig, discover_config
from sagelang.errors import DiagnosticRenderer, Severity
from sagelang.lexer import tokenize
from sagelang.parser import parse
from sagelang.serialize import node_to_dict
from sagelang.validator import check_source

logger = logging.getLogger(__name__)


def _collect_files(target: Path, config: SageConfig) -> list[Path]:
    """The .sage files to check: ``target`` itself, or its matches for the include globs."""
    if target.is_file():
        return [target]
    found: set[Path] = set()
    for pattern in config.check.include:
        found.update(p for p in target.glob(pattern) if p.is_file())
    return sorted(found)


def _check_files(files: list[Path], config: SageConfig, *, strict: bool) -> bool:
    """Validate each file and render its diagnostics. Returns True if all passed."""
    renderer = DiagnosticRenderer(color=True)
    ok = True
    errors = warnings = 0

    for path in files:
        source = path.read_text()
        filename = str(path)
        renderer.add_source(filename, source)
        result = check_source(
            source, filename,
            strict=strict, warn_raw_lines=config.check.warn_raw_lines,
        )
        logger.debug("%s: %d node(s), %d diagnostic(s)",
                     filename, len(result.document.body), len(result.diagnostics))
        for diag in result.diagnostics:
            click.echo(renderer.render(diag), err=True)
            if diag.severity == Severity.ERROR:
                errors += 1
            elif diag.severity == Severity.WARNING:
                warnings += 1
        ok = ok and result.ok

    click.echo(f"checked {len(files)} file(s): {errors} error(s), {warnings} warning(s)")
    return ok


@click.group()
@click.version_option(__version__, prog_name="sage")
@click.option("-v", "--verbose", is_flag=True, help="Log parser recoveries and internals.")
def main(verbose: bool) -> None:
    """Tools for the SAGE specification notation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True))
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
def check(path: str, strict: bool) -> None:
    """Validate .sage files under PATH (or a single file)."""
    target = Path(path)
    try:
        config, config_path = discover_config(target)
        if config_path is not None:
            logger.info("using %s", config_path)
        files = _collect_files(target, config)
        if not files:
            click.echo("warning: no .sage files found", err=True)
            return
        ok = _check_files(files, config, strict=strict or config.check.strict)
    except (OSError, tomllib.TOMLDecodeError) as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)
    if not ok:
        raise SystemExit(1)


def _read(file: str) -> str:
    try:
        return Path(file).read_text()
    except OSError as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)


@main.command(name="parse")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit the document as JSON.")
@click.option("--no-spans", is_flag=True, help="Leave source spans out of the JSON.")
def parse_cmd(file: str, as_json: bool, no_spans: bool) -> None:
    """Show the parsed document of a .sage file."""
    document = parse(tokenize(_read(file), file), file)
    if as_json:
        data = node_to_dict(document, spans=not no_spans)
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        _dump_ast(document, 0)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def tokens(file: str) -> None:
    """Print the token stream of a .sage file, one token per line."""
    for tok in tokenize(_read(file), file):
        click.echo(f"{tok.span.start_line}:{tok.span.start_col} {tok.kind.name} {tok.value!r}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--html", is_flag=True, help="Emit a standalone HTML page instead of ANSI colours.")
def highlight(file: str, html: bool) -> None:
    """Print a .sage file with syntax highlighting."""
    from pygments import highlight as pygments_highlight
    from pygments.formatters import HtmlFormatter, TerminalFormatter

    from sagelang.highlight import SageLexer

    formatter = HtmlFormatter(full=True, title=file) if html else TerminalFormatter()
    click.echo(pygments_highlight(_read(file), SageLexer(), formatter), nl=False)


@main.command()
def lsp() -> None:
    """Start the SAGE language server."""
    from sagelang.lsp import main as lsp_main

    lsp_main()


def _dump_ast(node: object, depth: int) -> None:
    """Print a readable AST dump."""
    indent = "  " * depth
    name = type(node).__name__

    if hasattr(node, "__dataclass_fields__"):
        fields = node.__dataclass_fields__  # type: ignore[union-attr]
        click.echo(f"{indent}{name}")
        for field_name in fields:
            if field_name == "span":
                continue
            value = getattr(node, field_name)
            if isinstance(value, list):
                if value and hasattr(value[0], "__dataclass_fields__"):
                    click.echo(f"{indent}  {field_name}:")
                    for item in value:
                        _dump_ast(item, depth + 2)
                elif value:
                    click.echo(f"{indent}  {field_name}: {value!r}")
            elif hasattr(value, "__dataclass_fields__"):
                click.echo(f"{indent}  {field_name}:")
                _dump_ast(value, depth + 2)
            elif hasattr(value, "value") and not isinstance(value, (str, bool)):
                click.echo(f"{indent}  {field_name}: {value.value}")
            elif value is not None and value is not False:
                click.echo(f"{indent}  {field_name}: {value!r}")
    else:
        click.echo(f"{indent}{name}: {node!r}")
