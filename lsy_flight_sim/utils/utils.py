"""Utility module."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING

import toml
from ml_collections import ConfigDict

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def load_config(path: Path) -> ConfigDict:
    """Load a scenario config file.

    Args:
        path: Path to the config file.

    Returns:
        The configuration.
    """
    assert path.exists(), f"Configuration file not found: {path}"
    assert path.suffix == ".toml", f"Configuration file has to be a TOML file: {path}"

    with open(path, "r") as f:
        return ConfigDict(toml.load(f))


def config_hash(config: ConfigDict | dict) -> str:
    """Hash a configuration into a stable hex digest.

    Keys are sorted so that the digest does not depend on insertion order.

    Args:
        config: The configuration to hash.

    Returns:
        The SHA-256 hex digest of the canonical JSON encoding.
    """
    if isinstance(config, ConfigDict):
        config = config.to_dict()
    encoded = json.dumps(config, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a scalar to the interval [low, high]."""
    return min(max(value, low), high)
