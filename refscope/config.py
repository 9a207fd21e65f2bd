"""refscope runtime configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
	value = os.getenv(name)
	if value is None:
		return default
	return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
	value = os.getenv(name)
	if value is None:
		return default
	try:
		return int(value)
	except ValueError:
		return default


# Base directory for relative cache paths and the default config file location
APP_BASE_DIR = Path(os.getenv("REFSCOPE_APP_BASE", os.getcwd())).resolve()
CONFIG_FILE = os.getenv("REFSCOPE_CONFIG_FILE", "refscope-projects.yml")
CACHE_DIR_NAME = ".cache"

# Lifecycle tuning
POLL_INTERVAL_SECONDS = _env_int("REFSCOPE_POLL_SECONDS", 10)
INITIAL_DELAY_SECONDS = _env_int("REFSCOPE_INITIAL_DELAY_SECONDS", 7)
BUILD_TIMEOUT_SECONDS = _env_int("REFSCOPE_BUILD_TIMEOUT_SECONDS", 600)
SHUTDOWN_GRACE_SECONDS = _env_int("REFSCOPE_SHUTDOWN_GRACE_SECONDS", 30)
LIFECYCLE_ENABLED = _env_bool("REFSCOPE_LIFECYCLE_ENABLED", True)

# Server settings
HOST = os.getenv("REFSCOPE_HOST", "127.0.0.1")
PORT = _env_int("REFSCOPE_PORT", 8000)
LOG_LEVEL = os.getenv("REFSCOPE_LOG_LEVEL", "INFO").upper()


def resolve_config_path(location: str | os.PathLike | None = None) -> Path:
	"""Absolute path of the project configuration file.

	Relative locations are taken against APP_BASE_DIR.
	"""
	path = Path(location or CONFIG_FILE)
	if not path.is_absolute():
		path = APP_BASE_DIR / path
	return path.resolve()
