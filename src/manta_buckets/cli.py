"""
Manta buckets CLI

Thin command-line front end over MantaBucketsClient:
- check: Probe whether the service supports buckets
- mb / rb: Create / delete a bucket
- ls: List buckets, or the objects in a bucket
- put / get / head / rm: Upload, download, inspect, delete an object
- chattr: Replace an object's metadata
"""
from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import typer

from .cli_context import CLIContext
from .errors import InvalidArgument
from .operations import run_and_exit
from .operations.printers import print_bucket, print_headers, print_object
from .transfer import ObjectDownload

app = typer.Typer(name="manta-buckets", help="Manta buckets CLI")


class ChecksumMismatch(ValueError):
    """Downloaded bytes do not match the object's content-md5 header."""


def _parse_meta(values: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse repeated ``--meta key=value`` options into a metadata map.

    Raises:
        InvalidArgument: If an entry has no '=' or an empty key
    """
    metadata: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise InvalidArgument(f"Invalid metadata '{item}'. Use key=value")
        metadata[key] = value
    return metadata


def _context(ctx: typer.Context) -> CLIContext:
    if ctx.obj is None:
        ctx.obj = CLIContext()
    return ctx.obj


def _run(ctx: typer.Context, command):
    """Run ``command(client)`` on a fresh client and map errors to exit codes."""
    context = _context(ctx)

    async def _main():
        async with context.client() as client:
            return await command(client)

    return run_and_exit(lambda: asyncio.run(_main()))


async def _write_download(download: ObjectDownload, target: Path) -> None:
    """
    Stream a download into ``target`` atomically (temp file + rename).

    Raises:
        TransportError: If the body is truncated
        ChecksumMismatch: If the received bytes do not match the content-md5 header
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".manta.tmp.", dir=target.parent)
    temp_path = Path(temp_path)
    try:
        with os.fdopen(fd, "wb") as out:
            async for chunk in download.stream:
                out.write(chunk)
        _verify_md5(download)
        os.replace(temp_path, target)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def _verify_md5(download: ObjectDownload) -> None:
    expected = download.content_md5
    if expected and download.stream.content_md5 != expected:
        raise ChecksumMismatch(
            f"MD5 mismatch: content-md5 header {expected}, received {download.stream.content_md5}"
        )


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests to stderr"),
) -> None:
    """Manage buckets and bucket objects on a Manta service."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    _context(ctx)


@app.command()
def check(ctx: typer.Context) -> None:
    """Report whether the service supports the buckets API."""
    supported = _run(ctx, lambda client: client.is_buckets_supported())
    typer.echo("buckets supported" if supported else "buckets not supported")
    if not supported:
        raise typer.Exit(code=1)


@app.command()
def mb(ctx: typer.Context, bucket: str = typer.Argument(..., help="Bucket to create")) -> None:
    """Create a bucket."""
    _run(ctx, lambda client: client.create_bucket(bucket))


@app.command()
def rb(ctx: typer.Context, bucket: str = typer.Argument(..., help="Bucket to delete")) -> None:
    """Delete an empty bucket."""
    _run(ctx, lambda client: client.delete_bucket(bucket))


@app.command()
def ls(
    ctx: typer.Context,
    bucket: Optional[str] = typer.Argument(None, help="Bucket to list; omit to list buckets"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Only names starting with this prefix"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum number of records"),
    marker: Optional[str] = typer.Option(None, "--marker", help="Start listing after this name"),
    long: bool = typer.Option(False, "--long", "-l", help="Long listing format"),
    as_json: bool = typer.Option(False, "--json", "-j", help="Print records as JSON lines"),
) -> None:
    """List buckets, or the objects in BUCKET."""

    async def _list(client):
        if bucket is None:
            async with client.list_buckets(prefix=prefix, limit=limit, marker=marker) as stream:
                async for entry in stream:
                    print_bucket(entry, as_json=as_json, long=long)
        else:
            async with client.list_bucket_objects(bucket, prefix=prefix, limit=limit, marker=marker) as stream:
                async for entry in stream:
                    print_object(entry, as_json=as_json, long=long)

    _run(ctx, _list)


@app.command()
def put(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    bucket: str = typer.Argument(..., help="Target bucket"),
    name: str = typer.Argument(..., help="Object name"),
    meta: Optional[List[str]] = typer.Option(None, "--meta", "-m", help="Metadata key=value (repeatable)"),
    content_type: Optional[str] = typer.Option(None, "--content-type", help="Stored content type"),
) -> None:
    """Upload FILE as object NAME in BUCKET."""

    async def _put(client):
        metadata = _parse_meta(meta)
        with open(file, "rb") as f:
            return await client.create_bucket_object(
                f,
                bucket,
                name,
                metadata=metadata,
                content_type=content_type,
                content_length=file.stat().st_size,
            )

    _run(ctx, _put)


@app.command()
def get(
    ctx: typer.Context,
    bucket: str = typer.Argument(..., help="Bucket"),
    name: str = typer.Argument(..., help="Object name"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
) -> None:
    """Download an object, verifying its content-md5."""

    async def _get(client):
        async with await client.get_bucket_object(bucket, name) as download:
            if output is not None:
                await _write_download(download, output)
                return
            stdout = typer.get_binary_stream("stdout")
            async for chunk in download.stream:
                stdout.write(chunk)
            stdout.flush()
            _verify_md5(download)

    _run(ctx, _get)


@app.command()
def head(
    ctx: typer.Context,
    bucket: str = typer.Argument(..., help="Bucket"),
    name: str = typer.Argument(..., help="Object name"),
    as_json: bool = typer.Option(False, "--json", "-j", help="Print headers as JSON"),
) -> None:
    """Show an object's headers (size, MD5, metadata)."""
    response = _run(ctx, lambda client: client.head_bucket_object(bucket, name))
    print_headers(response.headers, as_json=as_json)


@app.command()
def chattr(
    ctx: typer.Context,
    bucket: str = typer.Argument(..., help="Bucket"),
    name: str = typer.Argument(..., help="Object name"),
    meta: List[str] = typer.Option(..., "--meta", "-m", help="Metadata key=value (repeatable)"),
) -> None:
    """Replace an object's metadata without re-uploading it."""

    async def _chattr(client):
        return await client.put_bucket_object_metadata(bucket, name, metadata=_parse_meta(meta))

    _run(ctx, _chattr)


@app.command()
def rm(
    ctx: typer.Context,
    bucket: str = typer.Argument(..., help="Bucket"),
    name: str = typer.Argument(..., help="Object name"),
) -> None:
    """Delete an object."""
    _run(ctx, lambda client: client.delete_bucket_object(bucket, name))


if __name__ == "__main__":
    app()
