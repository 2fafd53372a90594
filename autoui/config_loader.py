"""
Configuration loading utilities for the auto-UI library and demo app.

Loads config.yaml, deep-merges it over built-in defaults and exposes
section/key lookups plus logging setup driven by the loaded values.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging
from copy import deepcopy

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.yaml")

# Global configuration cache
_config_cache: Optional[Dict[str, Any]] = None


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get the built-in default configuration.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'Zopio Auto-UI',
            'version': '0.1.0',
            'debug': False
        },
        'ui': {
            'page_title': 'Zopio Auto-UI',
            'locale': 'en'
        },
        'table': {
            'page_size': 10,
            'page_size_options': [10, 25, 50, 100]
        },
        'schema': {
            'path': 'schemas/product_schema.yaml'
        },
        'logging': {
            'level': 'INFO'
        }
    }


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file merged over defaults.

    Missing, empty or malformed files fall back to the defaults with a
    logged warning; this function does not raise.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        config_path = CONFIG_FILE

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        return default_config

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config
    except OSError as e:
        logger.error(f"Error reading configuration {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config

    if user_config is None:
        logger.warning(f"Configuration file is empty: {config_path}")
        return default_config

    if not isinstance(user_config, dict):
        logger.error(f"Configuration file is not a valid dictionary: {config_path}")
        logger.info("Using default configuration")
        return default_config

    config = deep_merge(default_config, user_config)
    logger.info(f"Successfully loaded configuration from {config_path}")
    return config


def get_config() -> Dict[str, Any]:
    """Return the cached configuration, loading it on first use."""
    global _config_cache

    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def reload_config() -> Dict[str, Any]:
    """Drop the cache and reload config.yaml."""
    global _config_cache

    _config_cache = None
    return get_config()


def get_config_value(section: str, key: str, default: Any = None) -> Any:
    """
    Get a single configuration value.

    Args:
        section: Top-level section name (e.g. 'table')
        key: Key within the section (e.g. 'page_size')
        default: Value returned when the section or key is missing

    Returns:
        Configured value or default
    """
    section_values = get_config().get(section)
    if not isinstance(section_values, dict):
        return default
    return section_values.get(key, default)


def get_logging_level(level_str: str) -> int:
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)


def configure_logging() -> int:
    """
    Configure root logging from the `logging` config section.

    Returns:
        The logging level that was applied
    """
    try:
        level_str = get_config_value('logging', 'level', 'INFO')
        level = get_logging_level(level_str)
        log_format = get_config_value('logging', 'format', None)
        if log_format:
            logging.basicConfig(level=level, format=log_format)
        else:
            logging.basicConfig(level=level)
        logger.info(f"Logging configured to level: {level_str}")
        return level
    except Exception as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Failed to configure logging from config: {e}, using INFO level")
        return logging.INFO
