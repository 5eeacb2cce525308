"""
Configuration management for fhe-logreg.

Handles loading and saving run configuration from:
- a YAML file (``--config``, ``$FHE_LOGREG_CONFIG`` or ./fhe-logreg.yaml)
- environment variables (``FHE_LOGREG_*``, also read from a ``.env`` file)
- command line overrides
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .fhe.backend import CKKSParameters, HEBackend, create_backend

# Default configuration file, looked up in the working directory
DEFAULT_CONFIG_FILE = "fhe-logreg.yaml"

# Environment variable prefix
ENV_PREFIX = "FHE_LOGREG_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class CKKSSettings(BaseModel):
    """Scheme setup."""

    backend: str = Field(default="simulated", description="HE backend (simulated/seal)")
    ring_degree: int = Field(default=16384, description="Polynomial ring degree N")
    modulus_chain: List[int] = Field(
        default_factory=lambda: [60, 40, 40, 40, 40, 40, 60],
        description="Coefficient modulus bit sizes; the last prime is the special prime",
    )
    scale_bits: int = Field(default=40, description="log2 of the nominal scale")
    noise_stddev: float = Field(default=0.0, description="Simulated encryption noise")
    seed: Optional[int] = Field(default=None, description="Seed for simulated noise")

    @field_validator("backend")
    @classmethod
    def _check_backend(cls, v: str) -> str:
        if v not in ("simulated", "seal"):
            raise ValueError("backend must be 'simulated' or 'seal'")
        return v

    @field_validator("noise_stddev")
    @classmethod
    def _check_noise(cls, v: float) -> float:
        if v < 0:
            raise ValueError("noise_stddev must be >= 0")
        return v

    def to_parameters(self) -> CKKSParameters:
        return CKKSParameters(
            ring_degree=self.ring_degree,
            modulus_chain=list(self.modulus_chain),
            scale_bits=self.scale_bits,
        )

    def create_backend(self) -> HEBackend:
        """Scheme setup and key generation."""
        if self.backend == "simulated":
            return create_backend(
                "simulated", self.to_parameters(),
                noise_stddev=self.noise_stddev, seed=self.seed,
            )
        return create_backend(self.backend, self.to_parameters())


class TrainingSettings(BaseModel):
    """Gradient-descent settings."""

    learning_rate: float = Field(default=0.1, description="Learning rate")
    iterations: int = Field(default=5, description="Number of iterations")
    batch_size: Optional[int] = Field(default=None, description="Mini-batch size (None = full batch)")
    forward_mode: str = Field(default="client", description="Linear products: client/homomorphic")
    reduction: str = Field(default="sequential", description="Derivative sum: sequential/tree")
    max_workers: int = Field(default=1, description="Worker threads for per-sample work")

    @field_validator("forward_mode")
    @classmethod
    def _check_forward_mode(cls, v: str) -> str:
        if v not in ("client", "homomorphic"):
            raise ValueError("forward_mode must be 'client' or 'homomorphic'")
        return v

    @field_validator("reduction")
    @classmethod
    def _check_reduction(cls, v: str) -> str:
        if v not in ("sequential", "tree"):
            raise ValueError("reduction must be 'sequential' or 'tree'")
        return v

    @field_validator("iterations", "max_workers")
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("batch_size")
    @classmethod
    def _check_batch_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("batch_size must be >= 1")
        return v


class DataSettings(BaseModel):
    """Dataset ingestion."""

    path: Optional[str] = Field(default=None, description="Training data (CSV with header)")
    label_column: int = Field(default=-1, description="Label column index")
    add_bias: bool = Field(default=True, description="Prepend a constant 1.0 feature")
    standardize: bool = Field(default=False, description="Z-score feature columns")
    clip: Optional[float] = Field(default=None, description="Clip features to [-clip, clip]")


class CheckpointSettings(BaseModel):
    directory: str = Field(default="./checkpoints", description="Checkpoint directory")


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Log level")
    rich: bool = Field(default=True, description="Use rich log formatting")

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(LOG_LEVELS)}")
        return level


class RunConfig(BaseModel):
    """Main configuration model."""

    ckks: CKKSSettings = Field(default_factory=CKKSSettings)
    training: TrainingSettings = Field(default_factory=TrainingSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    checkpoint: CheckpointSettings = Field(default_factory=CheckpointSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _env_overrides() -> Dict[str, Dict[str, Any]]:
    """Collect ``FHE_LOGREG_*`` overrides as a nested dict."""
    overrides: Dict[str, Dict[str, Any]] = {}

    def put(section: str, key: str, value: Any) -> None:
        overrides.setdefault(section, {})[key] = value

    if env_val := os.environ.get(f"{ENV_PREFIX}BACKEND"):
        put("ckks", "backend", env_val)
    if env_val := os.environ.get(f"{ENV_PREFIX}RING_DEGREE"):
        put("ckks", "ring_degree", env_val)
    if env_val := os.environ.get(f"{ENV_PREFIX}MODULUS_CHAIN"):
        put("ckks", "modulus_chain", [bits.strip() for bits in env_val.split(",")])
    if env_val := os.environ.get(f"{ENV_PREFIX}SCALE_BITS"):
        put("ckks", "scale_bits", env_val)

    if env_val := os.environ.get(f"{ENV_PREFIX}LEARNING_RATE"):
        put("training", "learning_rate", env_val)
    if env_val := os.environ.get(f"{ENV_PREFIX}ITERATIONS"):
        put("training", "iterations", env_val)
    if env_val := os.environ.get(f"{ENV_PREFIX}FORWARD_MODE"):
        put("training", "forward_mode", env_val)
    if env_val := os.environ.get(f"{ENV_PREFIX}MAX_WORKERS"):
        put("training", "max_workers", env_val)

    if env_val := os.environ.get(f"{ENV_PREFIX}CHECKPOINT_DIR"):
        put("checkpoint", "directory", env_val)
    if env_val := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        put("logging", "level", env_val)

    return overrides


def _resolve_config_file(path: Optional[Union[str, Path]]) -> Optional[Path]:
    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        return config_file
    if env_val := os.environ.get(f"{ENV_PREFIX}CONFIG"):
        return _resolve_config_file(env_val)
    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.exists() else None


def load_config(path: Optional[Union[str, Path]] = None) -> RunConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Defaults
    """
    load_dotenv(find_dotenv(usecwd=True))
    config_data: Dict[str, Any] = {}

    config_file = _resolve_config_file(path)
    if config_file is not None:
        try:
            with open(config_file, "r") as f:
                file_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")
        except IOError as e:
            raise ConfigError(f"Failed to read config file: {e}")
        if not isinstance(file_data, dict):
            raise ConfigError(f"Config file {config_file} must contain a mapping")
        config_data.update(file_data)

    for section, values in _env_overrides().items():
        merged = dict(config_data.get(section) or {})
        merged.update(values)
        config_data[section] = merged

    try:
        return RunConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")


def save_config(config: RunConfig, path: Union[str, Path]) -> Path:
    """Save configuration to ``path``."""
    path = Path(path)
    try:
        with open(path, "w") as f:
            yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to write config file: {e}")
    return path


def init_config(path: Union[str, Path] = DEFAULT_CONFIG_FILE, overwrite: bool = False) -> Path:
    """
    Write a configuration file holding the defaults.

    Returns:
        Path to the created config file
    """
    path = Path(path)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config file already exists: {path}")
    return save_config(RunConfig(), path)
