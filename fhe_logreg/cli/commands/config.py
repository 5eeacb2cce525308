"""Configuration management commands."""

import sys
from pathlib import Path

import click

from ...config import DEFAULT_CONFIG_FILE, init_config
from ...errors import ConfigError
from ..output import OutputFormatter, console, print_error, print_success
from . import require_config


@click.group()
def config():
    """Manage run configuration.

    \b
    Commands for creating and inspecting the YAML configuration.
    Values can be overridden with FHE_LOGREG_* environment variables.
    """
    pass


@config.command()
@click.option("--path", "-p", default=DEFAULT_CONFIG_FILE, type=click.Path(dir_okay=False), help="File to create")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def init(path: str, force: bool):
    """Write a configuration file with the defaults.

    \b
    Example:
      fhe-logreg config init
      fhe-logreg config init --path run.yaml --force
    """
    try:
        config_file = init_config(Path(path), overwrite=force)
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)

    print_success(f"Configuration saved to {config_file}")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Review the modulus chain: fhe-logreg schedule")
    console.print("  2. Train: fhe-logreg train data.csv")


@config.command()
@click.pass_context
def show(ctx: click.Context):
    """Show the effective configuration (file + environment).

    \b
    Example:
      fhe-logreg config show
      fhe-logreg --output json config show
    """
    cfg = require_config(ctx)
    formatter = OutputFormatter(ctx.obj.get("output_format", "table"))

    if formatter.format == "json":
        formatter.print_dict(cfg.model_dump())
        return

    for section, values in cfg.model_dump().items():
        formatter.print_dict(values, title=section)
