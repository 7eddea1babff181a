# File: clinicalanalysis/config.py
# Location: clinicalanalysis/clinicalanalysis/config.py

"""
Configuration management module.

This module handles loading configuration from a JSON file.
All default values reside in config.json, which is included in
the installed package directory.

If no config_file is provided, this module loads the default
config.json from the package installation directory. A user file only
needs to contain the keys it overrides; nested sections are merged into
the defaults.
"""

import copy
import json
import os
from typing import Any, Dict, Optional

DEFAULT_CONFIG_FILE = os.path.join(os.path.dirname(__file__), "config.json")


def _read_json(config_file: str) -> Dict[str, Any]:
    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file '{config_file}' not found.")

    with open(config_file, "r", encoding="utf-8") as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing JSON configuration: {e}")

    if not isinstance(config, dict):
        raise ValueError("Configuration file must contain a JSON object")
    return config


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``.

    Parameters
    ----------
    base : dict
        Default configuration.
    overrides : dict
        Values taking precedence; nested dictionaries are merged key by key.

    Returns
    -------
    dict
        New merged configuration dictionary.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file.

    If no config_file is provided, the function loads the package-installed
    'config.json'. Otherwise the given file is merged over those defaults.

    Parameters
    ----------
    config_file : str, optional
        Path to a configuration file in JSON format. If None, defaults to
        the package-installed 'config.json'.

    Returns
    -------
    dict
        Configuration dictionary loaded from the JSON file.

    Raises
    ------
    FileNotFoundError
        If the specified configuration file does not exist.
    ValueError
        If there is an error parsing the JSON configuration file.
    """
    defaults = _read_json(DEFAULT_CONFIG_FILE)
    if not config_file:
        return defaults
    return merge_config(defaults, _read_json(config_file))


def get_service_url(config: Dict[str, Any], service: str) -> str:
    """Return the base URL configured for a backend service.

    Raises
    ------
    KeyError
        If the service has no ``base_url`` entry.
    """
    try:
        return config["services"][service]["base_url"].rstrip("/")
    except KeyError:
        raise KeyError(f"No base_url configured for service '{service}'")
