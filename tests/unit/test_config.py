"""
Configuration Tests
"""

import os

import pytest
import yaml


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("FHE_LOGREG_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:

    def test_defaults(self):
        from fhe_logreg.config import load_config

        config = load_config()
        assert config.ckks.backend == "simulated"
        assert config.ckks.modulus_chain == [60, 40, 40, 40, 40, 40, 60]
        assert config.training.forward_mode == "client"
        assert config.checkpoint.directory == "./checkpoints"

    def test_yaml_file(self, tmp_path):
        from fhe_logreg.config import load_config

        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump({
            "ckks": {"ring_degree": 32768, "modulus_chain": [60, 40, 40, 40, 40, 40, 40, 60]},
            "training": {"learning_rate": 0.5, "reduction": "tree"},
        }))

        config = load_config(path)
        assert config.ckks.ring_degree == 32768
        assert config.ckks.to_parameters().max_level == 6
        assert config.training.learning_rate == 0.5
        assert config.training.reduction == "tree"
        assert config.training.iterations == 5

    def test_default_file_in_working_directory(self, tmp_path):
        from fhe_logreg.config import DEFAULT_CONFIG_FILE, load_config

        (tmp_path / DEFAULT_CONFIG_FILE).write_text("training:\n  iterations: 9\n")
        assert load_config().training.iterations == 9

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        from fhe_logreg.config import load_config

        path = tmp_path / "run.yaml"
        path.write_text("training:\n  iterations: 9\n  learning_rate: 0.2\n")
        monkeypatch.setenv("FHE_LOGREG_ITERATIONS", "3")
        monkeypatch.setenv("FHE_LOGREG_MODULUS_CHAIN", "60, 40, 40, 40, 40, 40, 40, 60")

        config = load_config(path)
        assert config.training.iterations == 3
        assert config.training.learning_rate == 0.2
        assert config.ckks.modulus_chain == [60, 40, 40, 40, 40, 40, 40, 60]

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        from fhe_logreg.config import load_config

        path = tmp_path / "elsewhere.yaml"
        path.write_text("ckks:\n  scale_bits: 30\n")
        monkeypatch.setenv("FHE_LOGREG_CONFIG", str(path))
        assert load_config().ckks.scale_bits == 30


class TestInvalidConfig:

    def test_missing_file(self, tmp_path):
        from fhe_logreg.config import load_config
        from fhe_logreg.errors import ConfigError

        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        from fhe_logreg.config import load_config
        from fhe_logreg.errors import ConfigError

        path = tmp_path / "bad.yaml"
        path.write_text("training: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        from fhe_logreg.config import load_config
        from fhe_logreg.errors import ConfigError

        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    @pytest.mark.parametrize("section,key,value", [
        ("ckks", "backend", "palisade"),
        ("training", "forward_mode", "server"),
        ("training", "reduction", "random"),
        ("training", "iterations", 0),
        ("training", "batch_size", -2),
        ("logging", "level", "verbose"),
    ])
    def test_rejected_values(self, tmp_path, section, key, value):
        from fhe_logreg.config import load_config
        from fhe_logreg.errors import ConfigError

        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump({section: {key: value}}))
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_unknown_log_level_from_env(self, monkeypatch):
        """Test an unknown FHE_LOGREG_LOG_LEVEL is rejected."""
        from fhe_logreg.config import load_config
        from fhe_logreg.errors import ConfigError

        monkeypatch.setenv("FHE_LOGREG_LOG_LEVEL", "verbose")
        with pytest.raises(ConfigError, match="level must be one of"):
            load_config()

    def test_log_level_is_normalized(self, monkeypatch):
        from fhe_logreg.config import load_config

        monkeypatch.setenv("FHE_LOGREG_LOG_LEVEL", "warning")
        assert load_config().logging.level == "WARNING"


class TestInitConfig:

    def test_writes_defaults(self, tmp_path):
        from fhe_logreg.config import RunConfig, init_config, load_config

        path = init_config(tmp_path / "fresh.yaml")
        assert load_config(path) == RunConfig()

    def test_refuses_to_overwrite(self, tmp_path):
        from fhe_logreg.config import init_config
        from fhe_logreg.errors import ConfigError

        path = init_config(tmp_path / "fresh.yaml")
        with pytest.raises(ConfigError, match="already exists"):
            init_config(path)
        init_config(path, overwrite=True)


class TestBackendFromConfig:

    def test_simulated_backend(self):
        from fhe_logreg.config import CKKSSettings
        from fhe_logreg.fhe import SimulatedCKKSBackend

        backend = CKKSSettings(ring_degree=32768).create_backend()
        assert isinstance(backend, SimulatedCKKSBackend)
        assert backend.slot_count == 16384
        assert backend.max_level == 5
