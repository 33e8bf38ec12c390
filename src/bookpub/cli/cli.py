"""CLI entrypoint: Typer app definition, logging setup and command registration"""

import logging
from typing import Annotated

import typer

from bookpub.cli.commands import _settings, assemble_cmd, init_cmd, load_cmd, lookup_cmd, parse_cmd


app = typer.Typer(name="bookpub", no_args_is_help=True, help="Book reference resolution and document assembly")


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log at DEBUG level")] = False,
    ):
    level = "DEBUG" if verbose else _settings().log_level
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)


app.command(name="init")(init_cmd)
app.command(name="load")(load_cmd)
app.command(name="parse")(parse_cmd)
app.command(name="lookup")(lookup_cmd)
app.command(name="assemble")(assemble_cmd)
