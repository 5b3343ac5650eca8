"""
CLI config commands: settings and external tool availability.

Usage:
    mediafit check-config [--json]
"""

from __future__ import annotations

import json

import click

from ..config.validator import EnvironmentValidator


@click.command("check-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_config(ctx: click.Context, as_json: bool) -> None:
    """Check settings and which media types can be compressed here."""
    settings = ctx.obj["settings"]
    validator = EnvironmentValidator(settings)
    results = validator.validate_all()
    codecs = validator.image_codecs()

    if as_json:
        click.echo(json.dumps({
            "settings": settings.to_dict(),
            "media": {name: status.to_dict() for name, status in results.items()},
            "image_codecs": codecs,
        }, indent=2))
        return

    click.echo("\n📋 Media Support\n")

    unavailable = []
    for name, status in results.items():
        if status.available:
            click.secho(f"  ✓ {name}", fg="green", nl=False)
            tools = ", ".join(status.present) or "built in"
            click.echo(f" ({tools})")
        else:
            unavailable.append((name, status))
            click.secho(f"  ✗ {name}", fg="red", nl=False)
            click.echo(f" (missing: {', '.join(status.missing)})")

    click.echo("\n🖼  Image codecs\n")
    for codec, available in codecs.items():
        mark, color = ("✓", "green") if available else ("✗", "yellow")
        click.secho(f"  {mark} {codec}", fg=color)

    click.echo("\n⚙  Settings\n")
    click.echo(f"  Safety margin:   {settings.safety_margin_bytes:,} bytes")
    click.echo(f"  On unreachable:  {settings.on_unreachable}")
    click.echo(f"  Trial timeout:   {settings.trial_timeout_seconds:.0f}s")
    video_timeout = settings.video_timeout_seconds
    click.echo(f"  Video timeout:   {f'{video_timeout:.0f}s' if video_timeout else 'from duration'}")
    click.echo(f"  Video preset:    {settings.video_preset}")

    click.echo()
    click.secho(f"Summary: {len(results) - len(unavailable)} of {len(results)} media types available", bold=True)

    if unavailable:
        click.echo("\n📖 Setup Guide:\n")
        for name, status in unavailable:
            if status.guidance:
                click.echo(f"  {name}:")
                click.echo(f"    → {status.guidance}")
