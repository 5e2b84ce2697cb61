"""
Human-readable output formatting.

Centralizes CLI output formatting so commands stay thin; every printer has a
plain-text form and listings also have a JSON-lines form.
"""
from __future__ import annotations

import json
from typing import Mapping

import typer

from ..errors import HTTPStatusError, MantaBucketsError
from ..models import BucketEntry, BucketObjectEntry


def print_bucket(entry: BucketEntry, *, as_json: bool = False, long: bool = False) -> None:
    """Print one bucket listing record."""
    if as_json:
        typer.echo(entry.model_dump_json(by_alias=True, exclude_none=True))
    elif long:
        typer.echo(f"{entry.mtime or '-':<24}  {entry.name}/")
    else:
        typer.echo(f"{entry.name}/")


def print_object(entry: BucketObjectEntry, *, as_json: bool = False, long: bool = False) -> None:
    """
    Print one object listing record.

    Long format shows mtime, size, content type and MD5 before the name.
    """
    if as_json:
        typer.echo(entry.model_dump_json(by_alias=True))
    elif long:
        typer.echo(
            f"{entry.mtime:<24}  {_format_bytes(entry.size):>10}  "
            f"{entry.content_type:<24}  {entry.content_md5}  {entry.name}"
        )
    else:
        typer.echo(entry.name)


def print_headers(headers: Mapping[str, str], *, as_json: bool = False) -> None:
    """Print response headers, sorted by name."""
    if as_json:
        typer.echo(json.dumps(dict(sorted(headers.items())), indent=2))
        return
    for key, value in sorted(headers.items()):
        typer.echo(f"{key}: {value}")


def print_error(exc: BaseException) -> None:
    """Print an error on stderr, with the service error code when known."""
    kind = exc.kind if isinstance(exc, MantaBucketsError) else type(exc).__name__
    typer.echo(f"Error ({kind}): {exc}", err=True)
    if isinstance(exc, HTTPStatusError) and exc.code:
        typer.echo(f"  service code: {exc.code}", err=True)


def _format_bytes(size: int) -> str:
    """Format byte count in human-readable form."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.1f} {unit}" if unit != 'B' else f"{size} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"
