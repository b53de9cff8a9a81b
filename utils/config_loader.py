"""Configuration management utilities."""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'configs' / 'scoring.yaml'

# Keys whose values are fractions of the final score
_FRACTION_KEYS = (
    'fusion.clinical_weight',
    'fusion.sanity_floor.min_secondary_confidence',
    'fusion.confidence.extreme_penalty',
    'fusion.confidence.anchor_only_cap',
)

# Keys on the 0-100 score scale
_SCORE_KEYS = (
    'fusion.sanity_floor.text_threshold',
    'fusion.sanity_floor.floor',
    'fusion.confidence.extreme_low',
    'fusion.confidence.extreme_high',
)


def load_config(config_path=None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file (str or Path);
            defaults to configs/scoring.yaml

    Returns:
        Dictionary containing configuration (empty dict for an empty file)

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed or its root is not a mapping
    """
    config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise yaml.YAMLError(f"Config root must be a mapping: {config_path}")

    logger.debug(f"Loaded config keys: {list(config.keys())}")

    return config


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Overlay `overrides` on `base` section by section.

    Nested mappings merge recursively; any other value replaces the base
    value outright. Neither input is modified.
    """
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_scoring_config(config_path=None) -> Dict[str, Any]:
    """
    Load the shipped defaults, overlay a user file on top and validate.

    A user file only needs the keys it changes, e.g. a single
    `fusion.sanity_floor.enabled: false`.
    """
    config = load_config()
    if config_path is not None and Path(config_path).resolve() != DEFAULT_CONFIG_PATH:
        config = merge_config(config, load_config(config_path))

    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Reject fusion and scoring settings outside their meaningful range.

    Raises:
        ValueError: naming the first offending key
    """
    for key in _FRACTION_KEYS:
        value = get_nested_config(config, key)
        if value is not None and not 0.0 <= float(value) <= 1.0:
            raise ValueError(f"{key} must be within [0, 1], got {value}")

    for key in _SCORE_KEYS:
        value = get_nested_config(config, key)
        if value is not None and not 0.0 <= float(value) <= 100.0:
            raise ValueError(f"{key} must be within [0, 100], got {value}")

    sample_rate = get_nested_config(config, 'audio.sample_rate')
    if sample_rate is not None and int(sample_rate) <= 0:
        raise ValueError(f"audio.sample_rate must be positive, got {sample_rate}")

    workers = get_nested_config(config, 'enrichment.max_workers')
    if workers is not None and int(workers) < 1:
        raise ValueError(f"enrichment.max_workers must be at least 1, got {workers}")


def get_nested_config(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get nested configuration value using dot notation.

    Example:
        get_nested_config(config, 'fusion.sanity_floor.floor', default=60)
    """
    value = config

    for key in key_path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
