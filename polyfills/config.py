"""
Configuration loading: defaults, YAML file, .env and environment overrides.
"""

import copy
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from .core.gamma_client import GammaClient
from .core.subgraph_client import SubgraphClient

DEFAULT_CONFIG = {
    'subgraph': {
        'url': SubgraphClient.SUBGRAPH_URL,
        'page_size': 1000,
        'page_delay': 0.1,
        'rate_limit_cooldown': 60,
        'max_concurrent': 5,
        'request_timeout': 30,
    },
    'gamma': {
        'url': GammaClient.GAMMA_BASE_URL,
        'max_retries': 5,
        'retry_delay': 1.0,
    },
    'cache': {
        'enabled': True,
        'path': 'polyfills_cache.db',
    },
    'output': {
        'timezone': 'America/Los_Angeles',
    },
    'logging': {
        'level': 'INFO',
    },
}


def default_config() -> dict:
    """Return a fresh copy of the default configuration"""
    return copy.deepcopy(DEFAULT_CONFIG)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides to config"""
    if os.getenv('POLYFILLS_SUBGRAPH_URL'):
        config['subgraph']['url'] = os.getenv('POLYFILLS_SUBGRAPH_URL')

    if os.getenv('POLYFILLS_GAMMA_URL'):
        config['gamma']['url'] = os.getenv('POLYFILLS_GAMMA_URL')

    if os.getenv('POLYFILLS_MAX_CONCURRENT'):
        config['subgraph']['max_concurrent'] = int(os.getenv('POLYFILLS_MAX_CONCURRENT'))

    if os.getenv('POLYFILLS_PAGE_SIZE'):
        config['subgraph']['page_size'] = int(os.getenv('POLYFILLS_PAGE_SIZE'))

    if os.getenv('POLYFILLS_CACHE_PATH'):
        config['cache']['path'] = os.getenv('POLYFILLS_CACHE_PATH')

    if os.getenv('POLYFILLS_LOG_LEVEL'):
        config['logging']['level'] = os.getenv('POLYFILLS_LOG_LEVEL').upper()

    return config


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Load configuration.

    Args:
        config_path: Optional YAML file; missing keys fall back to defaults

    Returns:
        Merged configuration dict
    """
    load_dotenv()

    config = default_config()

    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file) as f:
                _merge(config, yaml.safe_load(f) or {})
        else:
            logger.warning(f"Config file not found: {config_path}, using defaults")

    return apply_env_overrides(config)
