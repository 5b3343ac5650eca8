"""
CLI info commands: probe metadata and preview the search plan.

Usage:
    mediafit probe clip.mp4 [--json]
    mediafit plan clip.mp4 --target 50MB [--json]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click

from ..engine.compressor import MediaCompressor
from ..errors import MediafitError
from ..media.probe import probe_image, probe_media
from ..validation import media_category
from .compress import resolve_mime, resolve_target


@click.command("probe")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mime", help="MIME type (default: detect from extension)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def probe(ctx: click.Context, input_file: Path, mime: Optional[str], as_json: bool) -> None:
    """Show the metadata the engine reads from INPUT_FILE."""
    settings = ctx.obj["settings"]
    mime_type = resolve_mime(input_file, mime)
    media_type = media_category(mime_type)
    if media_type is None:
        raise click.ClickException(f"Unsupported media type: {mime_type}")

    try:
        if media_type in ("video", "audio"):
            result = probe_media(input_file, media_type, settings)
        else:
            result = probe_image(input_file.read_bytes())
    except MediafitError as e:
        raise click.ClickException(str(e))

    data = {"file": str(input_file), "mime_type": mime_type, "media_type": media_type, **result.model_dump()}

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo()
    click.secho(f"🔎 {input_file.name}", bold=True)
    for key, value in data.items():
        if value is not None and key != "file":
            click.echo(f"  {key + ':':18} {value}")
    click.echo()


@click.command("plan")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--target", "-t", required=True, help="Target size, e.g. 10MB, 500KB or bytes")
@click.option("--mime", help="MIME type (default: detect from extension)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def plan(ctx: click.Context, input_file: Path, target: str, mime: Optional[str], as_json: bool) -> None:
    """Show the initial guess and rung ladder without encoding anything."""
    settings = ctx.obj["settings"]
    target_bytes = resolve_target(target)
    mime_type = resolve_mime(input_file, mime)

    compressor = MediaCompressor(settings)
    try:
        request, probe_result, media_plan = compressor.preview(
            input_file.read_bytes(), mime_type, target_bytes, filename=input_file.name
        )
    except MediafitError as e:
        raise click.ClickException(str(e))

    data = {
        "file": str(input_file),
        "media_type": request.media_type,
        "original_size": request.original_size,
        "target_size": request.target_size,
        "effective_target": request.effective_target,
        "needs_compression": request.needs_compression,
        "below_margin": request.below_margin,
        "probe": probe_result.model_dump() if probe_result else None,
        "plan": media_plan.describe() if media_plan else None,
    }

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo()
    click.secho(f"📐 Plan for {input_file.name} ({request.media_type})", bold=True)
    click.echo(f"  Original:  {request.original_size:,} bytes")
    click.echo(f"  Target:    {request.effective_target:,} bytes (after safety margin)")

    if request.below_margin:
        click.secho("  Target is within the safety margin, the original would be kept", fg="yellow")
        click.echo()
        return

    if media_plan is None:
        click.secho("  Already within target, nothing to do", fg="green")
        click.echo()
        return

    click.echo(f"  Reduction: {request.reduction_needed:.1%}")
    click.echo(f"  Attempts:  up to {media_plan.policy.max_attempts} per rung")
    click.echo()
    click.echo("  Rungs:")
    for rung in media_plan.rungs:
        click.echo(f"    {rung.rank:>5}  {rung.name:24} [{rung.low}, {rung.high}] start {rung.initial}")
    click.echo()
