"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "release-planner"
APP_AUTHOR = "release-planner"

ENV_PREFIX = "RELEASE_PLANNER_"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Save tunables
	max_save_attempts: int = 3
	stamp_tolerance_ms: int = 1000
	dependent_write_concurrency: int = 8
	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.db_path = self.data_dir / "release_planner.db"
		self.log_dir = self.data_dir / "logs"

	@property
	def config_file(self) -> Path:
		return self.config_dir / "config.toml"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


PATH_FIELDS = {"config_dir", "data_dir"}
INT_FIELDS = {"max_save_attempts", "stamp_tolerance_ms", "dependent_write_concurrency"}


def _coerce(key: str, val):
	if key in PATH_FIELDS:
		return Path(os.path.expanduser(str(val)))
	if key in INT_FIELDS:
		try:
			return int(val)
		except (TypeError, ValueError) as e:
			raise ValueError(f"Config value for {key} must be an integer, got {val!r}") from e
	if key == "log_level":
		return str(val).upper()
	return val


def _apply_env_overrides(config: Config) -> Config:
	"""Apply RELEASE_PLANNER_* environment variable overrides."""
	env_map = {
		f"{ENV_PREFIX}CONFIG_DIR": "config_dir",
		f"{ENV_PREFIX}DATA_DIR": "data_dir",
		f"{ENV_PREFIX}MAX_SAVE_ATTEMPTS": "max_save_attempts",
		f"{ENV_PREFIX}STAMP_TOLERANCE_MS": "stamp_tolerance_ms",
		f"{ENV_PREFIX}DEPENDENT_WRITE_CONCURRENCY": "dependent_write_concurrency",
		f"{ENV_PREFIX}LOG_LEVEL": "log_level",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, _coerce(attr, val))
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_file
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if key in Config.__dataclass_fields__ and Config.__dataclass_fields__[key].init:
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	env_config_dir = os.getenv(f"{ENV_PREFIX}CONFIG_DIR")
	if env_config_dir:
		config.config_dir = Path(env_config_dir)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config


def reset_config() -> None:
	"""Drop the cached config so the next get_config() reloads it."""
	global _config
	_config = None
