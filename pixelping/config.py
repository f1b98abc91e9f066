# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import json
import logging
from pathlib import Path
from typing import Any, ClassVar

import tomllib
import yaml


DEFAULT_CONFIG: dict[str, Any] = {
    # Destination display: every lit pixel becomes prefix:x:y:rr:gg:bb
    "target": {
        "prefix": "2001:4c08:2028",
        "x": 0,
        "y": 0,
        "max_width": 160,
        "max_height": 120,
    },
    "stream": {
        "rate": 100,  # full-frame passes per second (pixel clock)
        "workers": 1,
        "min_delay_ms": 10.0,  # clamp very small animation delays
    },
    "icmp": {
        "id": 0xDEAD,
        "seq": 1,
        "privileged": True,  # True=raw socket, False=unprivileged ping socket
        "sndbuf": 1 << 20,
    },
    "image": {
        "max_size": 50 * 1024 * 1024,  # 50MB - reject larger images
        "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
    },
    "log": {
        "rate_ms": 5000,
        "level": "info",
        "metrics": True,
    },
}


def load_config_file(path: str) -> dict[str, Any]:
    """Load configuration from a file (YAML, TOML, or JSON)."""
    logger = logging.getLogger("config")
    path_obj = Path(path)
    ext = path_obj.suffix.lower()

    if not path_obj.exists():
        logger.warning(f"Config file not found: {path}")
        return {}

    try:
        if ext in (".yaml", ".yml"):
            with path_obj.open(encoding="utf-8") as f:
                return yaml.safe_load(f) or {}

        elif ext == ".toml":
            with path_obj.open("rb") as f:
                return tomllib.load(f) or {}

        elif ext == ".json":
            with path_obj.open(encoding="utf-8") as f:
                return json.load(f) or {}

        else:
            logger.warning(f"Unknown config extension: {ext}")
            return {}

    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load {path}: {e}")
        return {}


def deep_update(dst: dict[str, Any], src: dict[str, Any]) -> dict[str, Any]:
    """Deep merge configuration dictionaries."""
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            deep_update(dst[k], v)
        else:
            dst[k] = v
    return dst


def load_config(path: str | None = None) -> dict[str, Any]:
    """Load configuration with defaults and optional file override."""
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))  # Deep copy

    if path:
        deep_update(cfg, load_config_file(path))

    return cfg


class Config:
    """Configuration singleton."""

    _instance: ClassVar["Config | None"] = None
    _config: ClassVar[dict[str, Any]] = load_config()

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def load(cls, path: str | None = None) -> None:
        """Load configuration from file."""
        cls._config = load_config(path)

    @classmethod
    def get(cls, key: str | None = None) -> Any:
        """Get configuration value by key path (e.g., 'stream.rate')."""
        if key is None:
            return cls._config

        keys = key.split(".")
        value = cls._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                raise KeyError(f"Configuration key not found: {key}")

        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value by key path."""
        keys = key.split(".")
        target = self._config

        for k in keys[:-1]:
            if k not in target:
                target[k] = {}
            target = target[k]

        target[keys[-1]] = value

    def update(self, updates: dict[str, Any]) -> None:
        """Update configuration with dictionary."""
        deep_update(self._config, updates)

    def __getitem__(self, key: str) -> Any:
        """Allow dict-like access."""
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        """Allow dict-like assignment."""
        self.set(key, value)
