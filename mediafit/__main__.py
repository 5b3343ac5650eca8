"""Allow ``python -m mediafit``."""

from .main import cli

cli(prog_name="mediafit")
