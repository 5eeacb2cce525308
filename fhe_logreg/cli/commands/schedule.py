"""Level schedule inspection."""

import sys
from typing import Optional

import click

from ...errors import FHELogRegError
from ...fhe.schedule import training_schedule
from ..output import OutputFormatter, print_error, print_success
from . import require_config


@click.command()
@click.option(
    "--forward-mode",
    "-m",
    type=click.Choice(["client", "homomorphic"]),
    help="Forward pass mode (overrides config)",
)
@click.pass_context
def schedule(ctx: click.Context, forward_mode: Optional[str]):
    """Show the planned level of every step and check it fits the chain.

    \b
    Examples:
      fhe-logreg schedule
      fhe-logreg schedule --forward-mode homomorphic
    """
    cfg = require_config(ctx)
    formatter = OutputFormatter(ctx.obj.get("output_format", "table"))
    mode = forward_mode or cfg.training.forward_mode

    try:
        params = cfg.ckks.to_parameters()
        params.validate()
        plan = training_schedule(mode)
    except FHELogRegError as e:
        print_error(str(e), details=type(e).__name__)
        sys.exit(1)

    formatter.print_table(
        plan.rows(params.max_level),
        columns=[
            {"key": "step", "header": "Step", "style": "cyan"},
            {"key": "depth", "header": "Depth"},
            {"key": "level", "header": "Level"},
            {"key": "description", "header": "Computes", "style": "dim"},
        ],
        title=f"Level schedule ({mode} forward pass, L_max={params.max_level})",
    )

    try:
        plan.validate(params.max_level)
    except FHELogRegError as e:
        print_error(str(e))
        sys.exit(1)
    print_success(
        f"Chain {params.modulus_chain} holds the required depth {plan.required_depth}"
    )
