"""Configuration for feed_shelf.

Configuration is read from a YAML file:

    name: feed_shelf
    log_level: INFO
    data_dir: ~/.feed_shelf/data
    default_refresh_period: 1800
    write_queue_size: 0
    sources:
      - title: Simon Willison
        url: https://simonwillison.net/atom/everything/
        refresh_period: 600

Config location: ~/.feed_shelf/config.yaml (or FEED_SHELF_CONFIG env var).
FEED_SHELF_DATA_DIR and FEED_SHELF_LOG_LEVEL override the file values.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import yaml

from feed_shelf.models.schemas import SourceConfig

DEFAULT_REFRESH_PERIOD = 30 * 60


def _default_home() -> Path:
    return Path.home() / ".feed_shelf"


@dataclass
class ServerConfig:
    """Server configuration."""

    name: str = "feed_shelf"
    log_level: str = "INFO"
    data_dir: Path = field(default_factory=lambda: _default_home() / "data")
    default_refresh_period: float = DEFAULT_REFRESH_PERIOD
    # 0 means unbounded
    write_queue_size: int = 0
    sources: List[SourceConfig] = field(default_factory=list)
    config_path: Optional[Path] = None


def _get_config_path() -> Path:
    """Get the config path, respecting FEED_SHELF_CONFIG env var."""
    env_path = os.environ.get("FEED_SHELF_CONFIG")
    if env_path:
        return Path(env_path)
    return _default_home() / "config.yaml"


def _parse_sources(raw_sources) -> List[SourceConfig]:
    sources = []
    for entry in raw_sources or []:
        if not isinstance(entry, dict) or not entry.get("url"):
            raise ValueError(f"Invalid source entry in config: {entry!r}")
        refresh_period = entry.get("refresh_period")
        sources.append(SourceConfig(
            title=str(entry.get("title") or entry["url"]),
            url=str(entry["url"]),
            refresh_period=float(refresh_period) if refresh_period else None,
        ))
    return sources


def load_config(path: Optional[Union[str, Path]] = None) -> ServerConfig:
    """Load configuration from a YAML file.

    Args:
        path: Optional config file path (defaults to FEED_SHELF_CONFIG or
            ~/.feed_shelf/config.yaml)

    Returns:
        ServerConfig. Defaults are used when the file does not exist.

    Raises:
        ValueError: If the file exists but is not a valid configuration
    """
    config_path = Path(path) if path else _get_config_path()

    raw = {}
    if config_path.exists():
        with config_path.open() as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

    config = ServerConfig(config_path=config_path)
    if "name" in raw:
        config.name = str(raw["name"])
    if "log_level" in raw:
        config.log_level = str(raw["log_level"]).upper()
    if raw.get("data_dir"):
        config.data_dir = Path(raw["data_dir"]).expanduser()
    if raw.get("default_refresh_period"):
        config.default_refresh_period = float(raw["default_refresh_period"])
    if "write_queue_size" in raw:
        config.write_queue_size = int(raw["write_queue_size"] or 0)
    config.sources = _parse_sources(raw.get("sources"))

    # Environment overrides
    if os.environ.get("FEED_SHELF_DATA_DIR"):
        config.data_dir = Path(os.environ["FEED_SHELF_DATA_DIR"]).expanduser()
    if os.environ.get("FEED_SHELF_LOG_LEVEL"):
        config.log_level = os.environ["FEED_SHELF_LOG_LEVEL"].upper()

    return config


def save_config(config: ServerConfig) -> None:
    """Write the configuration (including the current source list) back to disk."""
    config_path = config.config_path or _get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "name": config.name,
        "log_level": config.log_level,
        "data_dir": str(config.data_dir),
        "default_refresh_period": config.default_refresh_period,
        "write_queue_size": config.write_queue_size,
        "sources": [source.to_dict() for source in config.sources],
    }
    with config_path.open("w") as f:
        yaml.safe_dump(data, f, sort_keys=False)


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()
    return _config
