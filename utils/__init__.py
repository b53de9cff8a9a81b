"""Shared utilities for the wellbeing scoring engine."""

from .config_loader import get_nested_config, load_config, load_scoring_config, merge_config, validate_config
from .result_store import ResultStore, SQLiteResultStore

__all__ = [
    'load_config',
    'get_nested_config',
    'load_scoring_config',
    'merge_config',
    'validate_config',
    'ResultStore',
    'SQLiteResultStore',
]
