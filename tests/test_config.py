"""Tests for the configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from release_planner.config import Config, _apply_env_overrides, get_config, load_config, reset_config


def _env(tmp_path: Path, **extra) -> dict:
	env = {
		"RELEASE_PLANNER_DATA_DIR": str(tmp_path / "data"),
		"RELEASE_PLANNER_CONFIG_DIR": str(tmp_path / "config"),
	}
	env.update(extra)
	return env


def test_config_defaults():
	"""Config should have sensible defaults."""
	config = Config()
	assert config.config_dir.is_absolute()
	assert config.data_dir.is_absolute()
	assert config.db_path == config.data_dir / "release_planner.db"
	assert config.log_dir == config.data_dir / "logs"
	assert config.config_file == config.config_dir / "config.toml"
	assert config.max_save_attempts == 3
	assert config.stamp_tolerance_ms == 1000


def test_config_env_overrides():
	"""Environment variables should override defaults."""
	config = Config()
	with patch.dict(os.environ, {
		"RELEASE_PLANNER_DATA_DIR": "/tmp/test-data",
		"RELEASE_PLANNER_CONFIG_DIR": "/tmp/test-config",
		"RELEASE_PLANNER_MAX_SAVE_ATTEMPTS": "5",
		"RELEASE_PLANNER_LOG_LEVEL": "debug",
	}):
		config = _apply_env_overrides(config)
		assert config.data_dir == Path("/tmp/test-data")
		assert config.config_dir == Path("/tmp/test-config")
		# Derived paths should be recomputed
		assert config.db_path == Path("/tmp/test-data/release_planner.db")
		assert config.max_save_attempts == 5
		assert config.log_level == "DEBUG"


def test_config_env_rejects_non_integer():
	with patch.dict(os.environ, {"RELEASE_PLANNER_STAMP_TOLERANCE_MS": "soon"}):
		with pytest.raises(ValueError, match="stamp_tolerance_ms must be an integer"):
			_apply_env_overrides(Config())


def test_config_ensure_dirs(tmp_path: Path):
	"""ensure_dirs should create all required directories."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
	)
	assert not config.config_dir.exists()
	assert not config.data_dir.exists()

	config.ensure_dirs()

	assert config.config_dir.exists()
	assert config.data_dir.exists()
	assert config.log_dir.exists()


def test_load_config_creates_dirs(tmp_path: Path):
	"""load_config should create directories."""
	with patch.dict(os.environ, _env(tmp_path)):
		config = load_config()
		assert config.data_dir.exists()
		assert config.config_dir.exists()


def test_load_config_reads_toml(tmp_path: Path):
	"""config.toml values apply, and env vars still win over them."""
	config_dir = tmp_path / "config"
	config_dir.mkdir()
	(config_dir / "config.toml").write_text(
		"max_save_attempts = 4\n"
		"stamp_tolerance_ms = 250\n"
		"unknown_key = 1\n"
	)

	with patch.dict(os.environ, _env(tmp_path, RELEASE_PLANNER_STAMP_TOLERANCE_MS="500")):
		config = load_config()

	assert config.max_save_attempts == 4
	assert config.stamp_tolerance_ms == 500
	assert not hasattr(config, "unknown_key")


def test_get_config_is_cached(tmp_path: Path):
	reset_config()
	try:
		with patch.dict(os.environ, _env(tmp_path)):
			first = get_config()
			assert get_config() is first
			reset_config()
			assert get_config() is not first
	finally:
		reset_config()
