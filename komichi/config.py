"""
Configuration for komichi.

``Config`` holds the nested settings tree (service endpoints, exploration
parameters, representation and logging options) loaded from YAML or JSON.
``ExplorationSettings`` is the validated, flat view the engine consumes.
"""

import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

CONFIG_ENV_VAR = "KOMICHI_CONFIG"
CONFIG_FILE_NAMES = [".komichi.yml", ".komichi.yaml", "komichi.yml", "komichi.yaml"]
STRATEGIES = ("fingerprint", "embedding")


class Config:
    """Configuration tree with dotted-key access."""

    DEFAULT_CONFIG = {
        "service": {
            "appview": "https://public.api.bsky.app",
            "plc_directory": "https://plc.directory",
            "doh_url": "https://mozilla.cloudflare-dns.com/dns-query",
            "timeout": 30.0
        },
        "exploration": {
            "strategy": "fingerprint",  # Options: fingerprint, embedding
            "k": 50,
            "track_visited": True,
            "feed_limit": 50,
            "include_timeline": True,
            "persist": True,
            "expansion": {
                "enabled": False,
                "search_limit": 25,
                "keyword_count": 3
            }
        },
        "fingerprint": {
            "ngram": 3
        },
        "embedding": {
            "model": "intfloat/multilingual-e5-small",
            "prefix": "passage: ",
            "device": None
        },
        "logging": {
            "level": "INFO",
            "json": False,
            "dir": None,
            "file": False
        }
    }

    def __init__(self, config_dict: Optional[Dict] = None):
        """Initialize with optional config dictionary."""
        self.config = self._merge_configs(self.DEFAULT_CONFIG, config_dict or {})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Config":
        """Load configuration from a file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            if path.suffix in [".yaml", ".yml"]:
                data = yaml.safe_load(f) or {}
            elif path.suffix == ".json":
                data = json.load(f)
            else:
                raise ValueError(f"Unsupported config format: {path.suffix}")

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls(data)

    @classmethod
    def find_and_load(cls, start_path: Union[str, Path]) -> "Config":
        """Find and load configuration from standard locations."""
        current = Path(start_path).resolve()

        while True:
            for name in CONFIG_FILE_NAMES:
                config_path = current / name
                if config_path.exists():
                    return cls.from_file(config_path)
            if current == current.parent:
                break
            current = current.parent

        return cls()

    def get(self, key: str, default=None):
        """Get configuration value by dot-separated key."""
        value = self.config
        for k in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default
        return value

    def set(self, key: str, value):
        """Set configuration value by dot-separated key."""
        keys = key.split(".")
        config = self.config
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return copy.deepcopy(self.config)

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration as YAML (or JSON for a ``.json`` path)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            if path.suffix == ".json":
                json.dump(self.config, f, indent=2)
            else:
                yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)

    def _merge_configs(self, base: Dict, override: Dict) -> Dict:
        """Recursively merge configuration dictionaries."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result


def load_config(path: Optional[Union[str, Path]] = None,
                start_path: Union[str, Path] = ".") -> Config:
    """
    Load configuration from ``path``, then ``$KOMICHI_CONFIG``, then by search.

    An explicit path that does not exist is an error; the search falls back to
    defaults.
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        explicit = Path(explicit)
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return Config.from_file(explicit)
    return Config.find_and_load(Path(start_path))


@dataclass
class ExplorationSettings:
    """
    Validated exploration parameters.

    ``k`` caps the neighbours kept per step. ``feed_limit`` is the page size
    of feed requests and must stay within what the app view accepts.
    """

    strategy: str = "fingerprint"
    k: int = 50
    track_visited: bool = True
    feed_limit: int = 50
    include_timeline: bool = True
    persist: bool = True
    expansion_enabled: bool = False
    search_limit: int = 25
    keyword_count: int = 3
    ngram: int = 3
    embedding_model: str = "intfloat/multilingual-e5-small"
    embedding_prefix: str = "passage: "
    embedding_device: Optional[str] = None

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {STRATEGIES}, got {self.strategy!r}")

        if self.k < 1:
            raise ValueError(f"k must be at least 1, got {self.k}")

        if not (1 <= self.feed_limit <= 100):
            raise ValueError(f"feed_limit must be between 1 and 100, got {self.feed_limit}")

        if self.ngram < 1:
            raise ValueError(f"ngram must be at least 1, got {self.ngram}")

        if not (1 <= self.search_limit <= 100):
            raise ValueError(f"search_limit must be between 1 and 100, got {self.search_limit}")

        if self.keyword_count < 1:
            raise ValueError(f"keyword_count must be at least 1, got {self.keyword_count}")

    @classmethod
    def from_config(cls, config: Config) -> "ExplorationSettings":
        """Create from the ``exploration``, ``fingerprint`` and ``embedding`` sections."""
        return cls(
            strategy=config.get("exploration.strategy", "fingerprint"),
            k=int(config.get("exploration.k", 50)),
            track_visited=bool(config.get("exploration.track_visited", True)),
            feed_limit=int(config.get("exploration.feed_limit", 50)),
            include_timeline=bool(config.get("exploration.include_timeline", True)),
            persist=bool(config.get("exploration.persist", True)),
            expansion_enabled=bool(config.get("exploration.expansion.enabled", False)),
            search_limit=int(config.get("exploration.expansion.search_limit", 25)),
            keyword_count=int(config.get("exploration.expansion.keyword_count", 3)),
            ngram=int(config.get("fingerprint.ngram", 3)),
            embedding_model=config.get("embedding.model", "intfloat/multilingual-e5-small"),
            embedding_prefix=config.get("embedding.prefix", "passage: "),
            embedding_device=config.get("embedding.device"),
        )
