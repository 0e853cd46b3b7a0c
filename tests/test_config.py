"""Tests for configuration loading and validation."""

import logging
import os

import pytest

from flowdelta.config import DEFAULT_CONFIG, AnalysisConfig, load_config
from flowdelta.exceptions import ConfigurationError, InvalidConfigError
from flowdelta.logging_config import apply_verbosity, get_logger, setup_logging


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user and project config files and FLOWDELTA_* variables out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("FLOWDELTA_"):
            monkeypatch.delenv(key)
    return home


class TestAnalysisConfig:
    """Test default values and validation."""

    def test_defaults(self):
        assert DEFAULT_CONFIG.mutation_threshold == 50.0
        assert DEFAULT_CONFIG.dont_enforce_one_to_n is False
        assert DEFAULT_CONFIG.significance_level == 0.05
        assert DEFAULT_CONFIG.min_effective_samples == 4.0
        assert DEFAULT_CONFIG.workers is None

    @pytest.mark.parametrize(
        "field,value",
        [
            ("mutation_threshold", 150.0),
            ("mutation_threshold", -1.0),
            ("significance_level", 0.0),
            ("min_effective_samples", -2.0),
            ("large_cluster_min_requests", 0),
            ("workers", 0),
            ("verbosity", "loud"),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(InvalidConfigError) as exc_info:
            AnalysisConfig(**{field: value})
        assert exc_info.value.key == field

    def test_frozen(self):
        with pytest.raises(AttributeError):
            DEFAULT_CONFIG.mutation_threshold = 10.0


class TestLoadConfig:
    """Test merging of config files, environment and overrides."""

    def test_no_sources(self):
        assert load_config() == AnalysisConfig()

    def test_overrides(self):
        config = load_config(mutation_threshold=25.0, dont_enforce_one_to_n=True)
        assert config.mutation_threshold == 25.0
        assert config.dont_enforce_one_to_n is True

    def test_none_overrides_ignored(self, monkeypatch):
        monkeypatch.setenv("FLOWDELTA_MUTATION_THRESHOLD", "30")
        config = load_config(mutation_threshold=None, workers=None)
        assert config.mutation_threshold == 30.0
        assert config.workers is None

    def test_verbose_and_quiet(self):
        assert load_config(verbose=True).verbosity == "verbose"
        assert load_config(quiet=True).verbosity == "quiet"
        assert load_config(verbose=False, quiet=False).verbosity == "normal"

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("FLOWDELTA_BONFERRONI_CORRECTION", "yes")
        monkeypatch.setenv("FLOWDELTA_WORKERS", "3")
        config = load_config()
        assert config.bonferroni_correction is True
        assert config.workers == 3

    def test_bad_env_value(self, monkeypatch):
        monkeypatch.setenv("FLOWDELTA_DONT_ENFORCE_ONE_TO_N", "maybe")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_project_file_then_explicit_file(self, tmp_path):
        (tmp_path / "flowdelta.toml").write_text("mutation_threshold = 20.0\nworkers = 2\n")
        explicit = tmp_path / "run.toml"
        explicit.write_text("mutation_threshold = 35.0\n")

        assert load_config().mutation_threshold == 20.0
        config = load_config(config_file=explicit)
        assert config.mutation_threshold == 35.0
        assert config.workers == 2

    def test_global_file(self, isolated_config):
        (isolated_config / ".flowdelta.toml").write_text("significance_level = 0.01\n")
        assert load_config().significance_level == 0.01

    def test_env_beats_files_and_overrides_beat_env(self, tmp_path, monkeypatch):
        (tmp_path / "flowdelta.toml").write_text("mutation_threshold = 20.0\n")
        monkeypatch.setenv("FLOWDELTA_MUTATION_THRESHOLD", "40")
        assert load_config().mutation_threshold == 40.0
        assert load_config(mutation_threshold=60.0).mutation_threshold == 60.0

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(config_file=tmp_path / "absent.toml")

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "run.toml"
        path.write_text("no_such_option = 1\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=path)

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "run.toml"
        path.write_text("mutation_threshold = = 1\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=path)

    def test_invalid_value_in_file(self, tmp_path):
        path = tmp_path / "run.toml"
        path.write_text("mutation_threshold = 500.0\n")
        with pytest.raises(InvalidConfigError):
            load_config(config_file=path)


class TestLogging:
    """Test logger setup driven by verbosity."""

    def test_levels(self):
        assert setup_logging(verbose=True).level == logging.DEBUG
        assert setup_logging(quiet=True).level == logging.ERROR
        assert setup_logging(verbose=True, verbosity="normal").level == logging.INFO

    def test_apply_verbosity(self):
        setup_logging()
        apply_verbosity(load_config(quiet=True).verbosity)
        assert get_logger("traces.index").getEffectiveLevel() == logging.ERROR

    def test_namespaced(self):
        assert get_logger("clusters.report").name == "flowdelta.clusters.report"
        assert get_logger("flowdelta.api").name == "flowdelta.api"
