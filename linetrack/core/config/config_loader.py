"""Configuration loading for linetrack.

Settings live in config/linetrack.yaml. A handful of values can be
overridden from the environment so containers don't need a custom file:

    DATABASE_URL         database.url
    LINETRACK_REPOS_DIR  git.repos_dir
    GITHUB_PAT           git.access_token
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "linetrack.yaml"

DEFAULT_FILE_EXTENSIONS = [
    ".cs", ".razor", ".cshtml", ".xaml",
    ".js", ".jsx", ".ts", ".tsx",
    ".html", ".css", ".scss", ".less",
]

_DEFAULTS: Dict[str, Any] = {
    "database": {
        "url": "sqlite:///data/linetrack.db",
        "echo": False,
    },
    "git": {
        "repos_dir": "data/repos",
        "command_timeout_seconds": 300,
        "access_token": None,
    },
    "analysis": {
        "top_files_limit": 10,
        "default_file_extensions": DEFAULT_FILE_EXTENSIONS,
    },
    "retry": {
        "poll_interval_seconds": 300,
        "max_retry_count": 3,
        "base_backoff_minutes": 5,
        "max_backoff_minutes": 60,
    },
}


@dataclass
class DatabaseSettings:
    url: str
    echo: bool = False


@dataclass
class GitSettings:
    repos_dir: str
    command_timeout_seconds: int = 300
    access_token: Optional[str] = None


@dataclass
class AnalysisSettings:
    top_files_limit: int = 10
    default_file_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_FILE_EXTENSIONS)
    )


@dataclass
class RetrySettings:
    poll_interval_seconds: float = 300.0
    max_retry_count: int = 3
    base_backoff_minutes: float = 5.0
    max_backoff_minutes: float = 60.0


@dataclass
class Settings:
    """Typed view over the merged YAML + environment configuration."""

    database: DatabaseSettings
    git: GitSettings
    analysis: AnalysisSettings
    retry: RetrySettings


def get_config_path() -> Path:
    """Directory containing linetrack.yaml.

    LINETRACK_CONFIG_DIR wins; otherwise config/ at the repository root.
    """
    env_dir = os.environ.get("LINETRACK_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(__file__).parent.parent.parent.parent / "config"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        config["database"]["url"] = database_url

    repos_dir = os.getenv("LINETRACK_REPOS_DIR")
    if repos_dir:
        config["git"]["repos_dir"] = repos_dir

    token = os.getenv("GITHUB_PAT")
    if token:
        config["git"]["access_token"] = token

    return config


@lru_cache(maxsize=1)
def load_unified_config() -> Dict[str, Any]:
    """Load linetrack.yaml merged over built-in defaults.

    A missing file is not an error; defaults plus environment overrides
    are used instead.
    """
    config_file = get_config_path() / CONFIG_FILE_NAME
    file_config: Dict[str, Any] = {}

    if config_file.exists():
        with open(config_file, "r") as f:
            file_config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_file}")
    else:
        logger.warning(f"{config_file} not found, using default configuration")

    return _apply_env_overrides(_deep_merge(_DEFAULTS, file_config))


def reload_configs() -> None:
    """Drop cached configuration so the next read hits disk again."""
    load_unified_config.cache_clear()


def get_settings() -> Settings:
    """Build a typed Settings object from the unified config."""
    config = load_unified_config()
    database = config["database"]
    git = config["git"]
    analysis = config["analysis"]
    retry = config["retry"]

    return Settings(
        database=DatabaseSettings(
            url=database["url"],
            echo=bool(database.get("echo", False)),
        ),
        git=GitSettings(
            repos_dir=git["repos_dir"],
            command_timeout_seconds=int(git["command_timeout_seconds"]),
            access_token=git.get("access_token"),
        ),
        analysis=AnalysisSettings(
            top_files_limit=int(analysis["top_files_limit"]),
            default_file_extensions=[
                ext.lower() for ext in analysis["default_file_extensions"]
            ],
        ),
        retry=RetrySettings(
            poll_interval_seconds=float(retry["poll_interval_seconds"]),
            max_retry_count=int(retry["max_retry_count"]),
            base_backoff_minutes=float(retry["base_backoff_minutes"]),
            max_backoff_minutes=float(retry["max_backoff_minutes"]),
        ),
    )
