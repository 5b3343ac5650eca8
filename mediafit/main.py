"""
mediafit: CLI Entry Point

Usage:
    mediafit compress INPUT --target 10MB [-o OUT] [--json]
    mediafit probe INPUT [--json]
    mediafit plan INPUT --target 10MB [--json]
    mediafit check-config [--json]
"""

from __future__ import annotations

# Load .env before anything reads env vars
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))

from pathlib import Path
from typing import Optional

import click

from .cli.compress import compress_cmd
from .cli.config import check_config
from .cli.info import plan, probe
from .config import load_settings
from .logging_config import setup_logging
from .validation import ConfigurationError


@click.group()
@click.option(
    "--config", "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML settings file (default: MEDIAFIT_CONFIG_FILE)",
)
@click.option("--log-level", help="DEBUG, INFO, WARNING or ERROR (default: LOG_LEVEL or INFO)")
@click.option("--log-format", type=click.Choice(["text", "json"]), help="Log output format")
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[Path],
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """mediafit: Compress media files to a target size."""
    setup_logging(level=log_level, format_type=log_format)
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = load_settings(config_file)
    except ConfigurationError as e:
        raise click.ClickException(f"Configuration error: {e}")


cli.add_command(compress_cmd)
cli.add_command(probe)
cli.add_command(plan)
cli.add_command(check_config)


if __name__ == "__main__":
    cli()
