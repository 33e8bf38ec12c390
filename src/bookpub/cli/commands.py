"""CLI command implementations"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from sqlmodel import SQLModel

from bookpub.config import Settings, load_config
from bookpub.core.pipeline import run_assemble, run_load, run_lookup
from bookpub.core.reference.parser import ReferenceParser, reference_to_tags
from bookpub.crud.database import init_db, make_engine


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _parser(settings: Settings) -> ReferenceParser:
    try:
        return ReferenceParser.from_settings(settings)
    except ValueError as e:
        _fail("Could not load title table", e)


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize database schema. Use --reset to clear existing data."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        init_db(engine)
        SQLModel.metadata.drop_all(engine)
        typer.echo("Existing data cleared.")
    init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")


def load_cmd(
    path: Annotated[str, typer.Argument(help="YAML or JSON file holding a list of nodes")],
    ):
    """Import content nodes into the local store."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    init_db(engine)
    try:
        counts = run_load(engine, Path(path), (settings.index_kind,))
    except ValueError as e:
        _fail(str(e))
    except Exception as e:
        _fail("Load failed", e)
    typer.echo(
        f"Load complete - "
        f"{counts['created']} created, "
        f"{counts['updated']} updated, "
        f"{counts['unchanged']} unchanged"
    )


def parse_cmd(
    macro: Annotated[str, typer.Argument(help="A [[book::...]] macro or its body")],
    ):
    """Print the references in a macro and their search tags as JSON."""
    settings = _settings()
    refs = _parser(settings).parse_wikilink(macro)
    if not refs:
        typer.echo("No references found.")
        raise typer.Exit(1)
    out = [
        {"reference": ref.model_dump(mode="json"), "tags": [list(t) for t in reference_to_tags(ref)]}
        for ref in refs
    ]
    typer.echo(json.dumps(out, indent=2))


def lookup_cmd(
    macro: Annotated[str, typer.Argument(help="A [[book::...]] macro or its body")],
    ):
    """List stored nodes matching each reference in a macro."""
    settings = _settings()
    parser = _parser(settings)
    engine = make_engine(settings.db_url)
    init_db(engine)
    try:
        results = run_lookup(engine, macro, parser, (settings.index_kind,))
    except Exception as e:
        _fail("Lookup failed", e)
    if not results:
        typer.echo("No references found.")
        raise typer.Exit(1)
    for ref, nodes in results:
        tags = " ".join(f"{k}={v}" for k, v in reference_to_tags(ref))
        typer.echo(f"{tags}: {len(nodes)} match(es)")
        for node in nodes:
            typer.echo(f"  {node.id}")


def assemble_cmd(
    root: Annotated[str, typer.Argument(help="Root node id or 'kind:owner:d' coordinate")],
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    fmt: Annotated[Optional[str], typer.Option("--format", help="adoc or md")] = None,
    workers: Annotated[Optional[int], typer.Option("--max-workers", help="Concurrent store queries; 1 = sequential")] = None,
    ):
    """Resolve a root node and write the assembled document + sidecar JSON."""
    settings = _settings(overrides={"output_dir": out, "output_format": fmt, "max_workers": workers})
    engine = make_engine(settings.db_url)
    init_db(engine)
    try:
        doc, (doc_path, json_path) = run_assemble(
            engine, root, settings, Path(settings.output_dir), settings.output_format,
        )
    except LookupError as e:
        _fail(str(e))
    except Exception as e:
        _fail("Assemble failed", e)
    typer.echo(f"  {doc.title} -> {doc_path}")
    typer.echo(f"Assembled {len(doc.sections)} section(s) to {json_path.parent}/")
