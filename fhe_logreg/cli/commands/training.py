"""Training, evaluation and weight export commands."""

import sys
from pathlib import Path
from typing import Optional

import click

from ...data import load_dataset
from ...errors import FHELogRegError
from ...training import (
    CheckpointStore,
    EncryptedLogisticRegression,
    TrainingConfig,
    export_weights_csv,
)
from ...training.plain import compute_accuracy, log_loss
from ..output import OutputFormatter, console, format_duration, print_error, print_success, progress_bar
from . import require_config


def _load_data(cfg, data_path: Optional[str]):
    data_path = data_path or cfg.data.path
    if data_path is None:
        print_error("No dataset given", "pass DATA or set data.path in the config")
        sys.exit(1)
    return load_dataset(
        data_path,
        label_column=cfg.data.label_column,
        add_bias=cfg.data.add_bias,
        normalize=cfg.data.standardize,
        clip=cfg.data.clip,
    )


def _load_checkpoint(checkpoint_dir: str):
    checkpoint = CheckpointStore(checkpoint_dir).load()
    if checkpoint is None:
        print_error(f"No checkpoint found in {checkpoint_dir}")
        sys.exit(1)
    return checkpoint


@click.command()
@click.argument("data", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--iterations", "-n", type=int, help="Total iterations (overrides config)")
@click.option("--learning-rate", "-r", type=float, help="Learning rate (overrides config)")
@click.option("--checkpoint-dir", "-d", type=click.Path(file_okay=False), help="Checkpoint directory")
@click.option("--fresh", is_flag=True, help="Ignore and remove an existing checkpoint")
@click.pass_context
def train(
    ctx: click.Context,
    data: Optional[str],
    iterations: Optional[int],
    learning_rate: Optional[float],
    checkpoint_dir: Optional[str],
    fresh: bool,
):
    """Train on encrypted data.

    \b
    Resumes from the checkpoint directory when it holds a checkpoint.
    Every iteration ends with a refresh (decrypt + re-encrypt) of the
    weights and a new checkpoint.

    \b
    Examples:
      fhe-logreg train data.csv
      fhe-logreg train data.csv --iterations 10 --checkpoint-dir ./ckpt
      fhe-logreg train data.csv --fresh
      fhe-logreg train                  # data.path from the config
    """
    cfg = require_config(ctx)
    formatter = OutputFormatter(ctx.obj.get("output_format", "table"))

    checkpoint_dir = checkpoint_dir or cfg.checkpoint.directory
    total = iterations or cfg.training.iterations

    try:
        dataset = _load_data(cfg, data)
        backend = cfg.ckks.create_backend()
        trainer = EncryptedLogisticRegression(
            backend,
            TrainingConfig(
                learning_rate=learning_rate if learning_rate is not None else cfg.training.learning_rate,
                iterations=total,
                batch_size=cfg.training.batch_size,
                forward_mode=cfg.training.forward_mode,
                reduction=cfg.training.reduction,
                max_workers=cfg.training.max_workers,
                checkpoint_dir=checkpoint_dir,
            ),
        )
        if fresh and trainer.store:
            trainer.store.clear()

        checkpoint = trainer.store.load() if trainer.store else None

        with progress_bar(total, description="Training") as progress:
            task_id = progress.task_ids[0]
            progress.update(task_id, completed=checkpoint.iteration if checkpoint else 0)
            trainer.register_progress_callback(lambda m: progress.update(task_id, completed=m.iteration))
            result = trainer.train(dataset, resume=not fresh)

    except FHELogRegError as e:
        print_error(str(e), details=type(e).__name__)
        sys.exit(1)

    if result.iterations_run == 0:
        print_success(f"Checkpoint already at iteration {result.final_iteration}; nothing to do")
    else:
        formatter.print_table(
            [
                {
                    "iteration": m.iteration,
                    "batch": m.batch_size,
                    "accuracy": m.accuracy,
                    "loss": m.loss,
                    "level": m.result_level,
                    "time": format_duration(m.seconds),
                }
                for m in result.history
            ],
            title="Training history",
        )
        print_success(
            f"Trained iterations {result.start_iteration + 1}..{result.final_iteration}; "
            f"checkpoint in {checkpoint_dir}"
        )

    formatter.print_table(
        [{"feature": name, "weight": float(w)} for name, w in zip(dataset.feature_names, result.weights)],
        title="Weights",
    )
    if ctx.obj.get("verbose"):
        formatter.print_dict(result.backend_stats, title="Backend operations")


@click.command()
@click.argument("data", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--checkpoint-dir", "-d", type=click.Path(file_okay=False), help="Checkpoint directory")
@click.pass_context
def evaluate(ctx: click.Context, data: Optional[str], checkpoint_dir: Optional[str]):
    """Score saved weights on a dataset (plaintext).

    \b
    Example:
      fhe-logreg evaluate test.csv --checkpoint-dir ./ckpt
    """
    cfg = require_config(ctx)
    formatter = OutputFormatter(ctx.obj.get("output_format", "table"))
    checkpoint_dir = checkpoint_dir or cfg.checkpoint.directory

    try:
        dataset = _load_data(cfg, data)
        checkpoint = _load_checkpoint(checkpoint_dir)
        weights = checkpoint.weight_vector
        if len(weights) != dataset.num_features:
            print_error(
                f"Checkpoint has {len(weights)} weights but the dataset has "
                f"{dataset.num_features} features"
            )
            sys.exit(1)
    except FHELogRegError as e:
        print_error(str(e), details=type(e).__name__)
        sys.exit(1)

    formatter.print_dict(
        {
            "iteration": checkpoint.iteration,
            "samples": dataset.num_samples,
            "accuracy": compute_accuracy(weights, dataset.features, dataset.labels),
            "log_loss": log_loss(weights, dataset.features, dataset.labels),
        },
        title="Evaluation",
    )


@click.command("export-weights")
@click.option("--checkpoint-dir", "-d", type=click.Path(file_okay=False), help="Checkpoint directory")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False), required=True, help="CSV file to write")
@click.pass_context
def export_weights(ctx: click.Context, checkpoint_dir: Optional[str], output_path: str):
    """Export checkpointed weights to CSV.

    \b
    Example:
      fhe-logreg export-weights --checkpoint-dir ./ckpt --output weights.csv
    """
    cfg = require_config(ctx)
    checkpoint_dir = checkpoint_dir or cfg.checkpoint.directory

    try:
        checkpoint = _load_checkpoint(checkpoint_dir)
        path = export_weights_csv(checkpoint.weights, Path(output_path))
    except (FHELogRegError, OSError) as e:
        print_error(f"Export failed: {e}")
        sys.exit(1)

    print_success(f"Wrote {len(checkpoint.weights)} weights (iteration {checkpoint.iteration}) to {path}")
    console.print(f"  Checkpoint: {CheckpointStore(checkpoint_dir).path}")
