"""
CLI compress command: compress one file to a target size.

Usage:
    mediafit compress clip.mp4 --target 50MB
    mediafit compress photo.jpg --target 2MB -o small.jpg --json
"""

from __future__ import annotations

import json
import mimetypes
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from ..config.loader import ON_UNREACHABLE_CHOICES
from ..engine.compressor import MediaCompressor
from ..errors import MediafitError
from ..models import CompressionResult
from ..validation import ValidationError, guess_mime_type, parse_size


def resolve_mime(input_file: Path, mime: Optional[str]) -> str:
    mime_type = mime or guess_mime_type(input_file)
    if not mime_type:
        raise click.UsageError(f"Could not detect the type of {input_file.name}; pass --mime")
    return mime_type


def resolve_target(target: str) -> int:
    try:
        return parse_size(target)
    except ValidationError as e:
        raise click.BadParameter(e.message, param_hint="--target")


def default_output_path(input_file: Path, result: CompressionResult) -> Path:
    """<stem>.compressed<ext> next to the input, with the output format's extension."""
    suffix = input_file.suffix
    if result.output_mime_type and result.output_mime_type != guess_mime_type(input_file):
        suffix = mimetypes.guess_extension(result.output_mime_type) or suffix
    return input_file.with_name(f"{input_file.stem}.compressed{suffix}")


@click.command("compress")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--target", "-t", required=True, help="Target size, e.g. 10MB, 500KB or bytes")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file")
@click.option("--mime", help="MIME type (default: detect from extension)")
@click.option(
    "--on-unreachable",
    type=click.Choice(ON_UNREACHABLE_CHOICES),
    help="What to return when the target cannot be reached",
)
@click.option("--timeout", type=float, help="Per-trial timeout in seconds")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def compress_cmd(
    ctx: click.Context,
    input_file: Path,
    target: str,
    output: Optional[Path],
    mime: Optional[str],
    on_unreachable: Optional[str],
    timeout: Optional[float],
    as_json: bool,
) -> None:
    """Compress INPUT_FILE to at most the target size."""
    settings = ctx.obj["settings"]
    if on_unreachable:
        settings = replace(settings, on_unreachable=on_unreachable)
    if timeout:
        settings = replace(settings, trial_timeout_seconds=timeout, video_timeout_seconds=timeout)

    target_bytes = resolve_target(target)
    mime_type = resolve_mime(input_file, mime)
    data = input_file.read_bytes()

    compressor = MediaCompressor(settings)
    try:
        result = compressor.compress(data, mime_type, target_bytes, filename=input_file.name)
    except MediafitError as e:
        raise click.ClickException(str(e))

    out_path = None
    if result.was_compressed or output:
        out_path = output or default_output_path(input_file, result)
        out_path.write_bytes(result.output_bytes)

    if as_json:
        summary = result.summary()
        summary["output"] = str(out_path) if out_path else None
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo()
    if result.was_compressed:
        icon, color = ("✓", "green") if result.target_reached else ("⚠", "yellow")
        click.secho(f"{icon} {input_file.name}: {result.original_size:,} → {result.compressed_size:,} bytes "
                    f"({result.compression_ratio:.0%})", fg=color, bold=True)
    else:
        click.secho(f"• {input_file.name}: kept original ({result.original_size:,} bytes)", fg="cyan")

    click.echo(f"  Target:     {target_bytes:,} bytes")
    click.echo(f"  Trials:     {result.trials_run}")
    if result.rungs_tried:
        click.echo(f"  Rungs:      {', '.join(result.rungs_tried)}")
    if result.params_used:
        params = ", ".join(f"{k}={v}" for k, v in result.params_used.items())
        click.echo(f"  Parameters: {params}")
    if result.final_resolution:
        click.echo(f"  Resolution: {result.original_resolution} → {result.final_resolution}")
    if out_path:
        click.echo(f"  Written to: {out_path}")
    if result.warning:
        click.secho(f"  ⚠ {result.warning}", fg="yellow")
    click.echo()
