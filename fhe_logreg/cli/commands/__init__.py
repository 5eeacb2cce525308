"""
fhe-logreg CLI commands.

Each module holds one command or command group; ``main`` registers them.
"""

import sys

import click

from ...config import RunConfig
from ..output import print_error


def require_config(ctx: click.Context) -> RunConfig:
    """Return the loaded config, or exit with the load error."""
    config = ctx.obj.get("config")
    if config is None:
        print_error("Configuration error", ctx.obj.get("config_error"))
        sys.exit(1)
    return config
