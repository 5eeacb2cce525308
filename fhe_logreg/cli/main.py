"""
fhe-logreg CLI - Main entry point.

Train, inspect and export logistic-regression models trained over
CKKS-encrypted data.
"""

from typing import Optional

import click

from .. import __version__
from ..config import RunConfig, load_config
from ..errors import ConfigError
from .commands import config as config_cmd
from .commands import schedule as schedule_cmd
from .commands import training
from .output import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="fhe-logreg")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    help="Path to config file (default: ./fhe-logreg.yaml)",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured log level",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output (same as --log-level DEBUG)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    output: str,
    log_level: Optional[str],
    verbose: bool,
):
    """
    fhe-logreg - Logistic regression over encrypted data.

    Runs gradient descent on CKKS ciphertexts, with every intermediate
    value kept on a planned level and scale.

    \b
    Quick Start:
      1. Configure: fhe-logreg config init
      2. Inspect the level plan: fhe-logreg schedule
      3. Train: fhe-logreg train data.csv
      4. Score: fhe-logreg evaluate data.csv
      5. Export: fhe-logreg export-weights --output weights.csv

    For more help on a command: fhe-logreg <command> --help
    """
    ctx.ensure_object(dict)
    ctx.obj["output_format"] = output
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path

    try:
        config = load_config(config_path)
        ctx.obj["config"] = config
        ctx.obj["config_error"] = None
    except ConfigError as e:
        # config commands still run without a valid config
        config = RunConfig()
        ctx.obj["config"] = None
        ctx.obj["config_error"] = str(e)

    level = "DEBUG" if verbose else (log_level or config.logging.level)
    setup_logging(level, rich=config.logging.rich)


# Register commands
cli.add_command(training.train)
cli.add_command(training.evaluate)
cli.add_command(training.export_weights)
cli.add_command(schedule_cmd.schedule)
cli.add_command(config_cmd.config)


# ============================================================================
# Entry Point
# ============================================================================


def main():
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
