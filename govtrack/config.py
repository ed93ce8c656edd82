"""
Configuration management for govtrack data directories.

The configuration is stored as a TOML file in the data directory
(``.govtrack/govtrack.toml``). It holds defaults for new records, the
web host/port for HTTP consumers, and similarity thresholds.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

DATA_DIR_NAME = ".govtrack"
CONFIG_FILENAME = "govtrack.toml"
CONFIG_VERSION = 1

ENV_DATA_DIR = "GOVTRACK_DATA_DIR"


@dataclass
class WebConfig:
    """
    Listen address for an external HTTP front-end.

    govtrack itself serves nothing; these values are persisted in
    govtrack.toml for front-ends that share the data directory.
    """
    host: str = "localhost"
    port: int = 3000


@dataclass
class SimilarityConfig:
    """Default thresholds for similarity searches."""
    threshold: float = 0.3
    duplicate_threshold: float = 0.5


@dataclass
class TrackerConfig:
    """Complete data directory configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    default_priority: int = 2
    default_issue_type: str = "report"

    web: WebConfig = field(default_factory=WebConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def find_data_dir(start: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the data directory.

    Priority:
    1. GOVTRACK_DATA_DIR environment variable
    2. A ``.govtrack/`` directory in ``start`` (default: cwd) or any parent

    Returns None if neither is found.
    """
    env = os.environ.get(ENV_DATA_DIR)
    if env:
        return Path(env).expanduser()

    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / DATA_DIR_NAME
        if candidate.is_dir():
            return candidate
    return None


def load_config(data_dir: Path) -> TrackerConfig:
    """
    Load configuration from a data directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = data_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    defaults = data.get("defaults", {})
    web = data.get("web", {})
    similarity = data.get("similarity", {})

    return TrackerConfig(
        path=data_dir,
        version=version,
        created=store.get("created", ""),
        default_priority=defaults.get("priority", 2),
        default_issue_type=defaults.get("issue_type", "report"),
        web=WebConfig(
            host=web.get("host", "localhost"),
            port=web.get("port", 3000),
        ),
        similarity=SimilarityConfig(
            threshold=similarity.get("threshold", 0.3),
            duplicate_threshold=similarity.get("duplicate_threshold", 0.5),
        ),
    )


def save_config(config: TrackerConfig) -> None:
    """
    Save configuration to the data directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "defaults": {
            "priority": config.default_priority,
            "issue_type": config.default_issue_type,
        },
        "web": {
            "host": config.web.host,
            "port": config.web.port,
        },
        "similarity": {
            "threshold": config.similarity.threshold,
            "duplicate_threshold": config.similarity.duplicate_threshold,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(data_dir: Path) -> TrackerConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if (data_dir / CONFIG_FILENAME).exists():
        return load_config(data_dir)
    config = TrackerConfig(path=data_dir)
    save_config(config)
    return config
