"""Command-line entry point for YMLite."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import typer

import ymlite

app = typer.Typer(help="YMLite: load restricted YAML documents and print them as JSON.")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    )


def _load(path: Path, quote_aware_comments: bool):
    if str(path) == "-":
        return ymlite.load(sys.stdin, quote_aware_comments=quote_aware_comments)
    return ymlite.load_path(path, quote_aware_comments=quote_aware_comments)


@app.command()
def main(
    files: list[Path] = typer.Argument(..., help="Documents to load; '-' reads standard input."),
    indent: int = typer.Option(2, "--indent", "-i", help="Spaces per JSON indentation level."),
    compact: bool = typer.Option(False, "--compact", help="Print each document on a single line."),
    quote_aware_comments: bool = typer.Option(
        False,
        "--quote-aware-comments",
        help="Keep '#' characters that appear inside quoted values.",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging verbosity."),
) -> None:
    """Parse each document and print its value tree as JSON."""
    _configure_logging(log_level)
    logger = logging.getLogger(__name__)

    for path in files:
        try:
            data = _load(path, quote_aware_comments)
        except (ymlite.ParseError, ymlite.LoadError) as exc:
            typer.secho(f"{path}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        logger.info("Loaded %s", path)
        typer.echo(json.dumps(data, indent=None if compact else indent, ensure_ascii=False))


if __name__ == "__main__":
    app()
