# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for voxsync.
Handles loading and saving settings from a YAML config file.
"""

from pathlib import Path
from typing import Any, TypedDict

import yaml

CONFIG_FILENAME: str = ".voxsync.yaml"


class SyncSettings(TypedDict):
    """Type definition for sync clock and loop settings."""
    drift_threshold_ms: float
    tick_interval_ms: float
    word_rescale_tolerance_ms: float
    perf_logging: bool
    perf_warn_ms: float


class AlignmentSettings(TypedDict):
    """Type definition for word alignment settings."""
    prefix_length: int
    fuzzy_threshold: float
    fuzzy_window: int
    min_confidence: float


class EstimateSettings(TypedDict):
    """Type definition for duration estimate settings."""
    words_per_minute: float


class Config(TypedDict):
    """Type definition for the complete configuration."""
    sync: SyncSettings
    alignment: AlignmentSettings
    estimate: EstimateSettings
    # Write a trace of highlight events to ./logs/
    debug_log: bool
    log_level: str


# Default configuration values
DEFAULT_CONFIG: Config = {
    "sync": {
        # Drift beyond this is logged and counted as a resync
        "drift_threshold_ms": 200.0,
        "tick_interval_ms": 50.0,
        # Word timings are rescaled when paragraph audio differs by more than this
        "word_rescale_tolerance_ms": 100.0,
        "perf_logging": False,
        "perf_warn_ms": 5.0,
    },

    "alignment": {
        "prefix_length": 3,
        "fuzzy_threshold": 80.0,
        "fuzzy_window": 8,
        # Below this the word timeline is dropped and only paragraphs highlight
        "min_confidence": 0.5,
    },

    "estimate": {
        "words_per_minute": 150.0,
    },

    "debug_log": False,
    "log_level": "WARNING",
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.

    Args:
        base: Base dictionary to merge from.
        override: Dictionary with values that take precedence over base.

    Returns:
        New dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    config: dict[str, Any] = _deep_merge({}, DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load config from {config_path}: {e}")

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(dict(config), f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        print(f"Error saving config to {config_path}: {e}")
        return False


def get_sync_settings(config: Config) -> SyncSettings:
    """Extract sync settings from config."""
    return config.get("sync", DEFAULT_CONFIG["sync"]).copy()  # type: ignore[return-value]


def get_alignment_settings(config: Config) -> AlignmentSettings:
    """Extract alignment settings from config."""
    return config.get("alignment",
                      DEFAULT_CONFIG["alignment"]
                      ).copy()  # type: ignore[return-value]


def get_estimate_settings(config: Config) -> EstimateSettings:
    """Extract duration estimate settings from config."""
    return config.get("estimate",
                      DEFAULT_CONFIG["estimate"]
                      ).copy()  # type: ignore[return-value]
