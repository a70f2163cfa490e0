#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

import toml
import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("ecosync")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path(environ=None):
    """Get the path to the configuration file.

    Checks in order:
    1. ECOSYNC_CONFIG environment variable
    2. ~/.ecosync/ directory
    """
    environ = os.environ if environ is None else environ

    if 'ECOSYNC_CONFIG' in environ:
        path = Path(environ['ECOSYNC_CONFIG']).expanduser()
        if path.exists():
            return path
        logger.warning(f"ECOSYNC_CONFIG points to missing file {path}, using defaults")

    config_dir = Path.home() / '.ecosync'
    for filename in CONFIG_FILENAMES:
        path = config_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    # If no file exists, return default path for saving
    return config_dir / 'config.json'


def _read_config_file(config_path: Path) -> dict:
    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ('.yaml', '.yml'):
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    with open(config_path, 'r') as f:
        return json.load(f)


def load_config(environ=None):
    """Load configuration from file, then apply environment overrides."""
    environ = os.environ if environ is None else environ
    config_path = get_config_path(environ)

    # Start with default config
    config = get_default_config()

    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
            if not isinstance(file_config, dict):
                raise ValueError("top level must be a mapping")
            config = merge_configs(config, file_config)
        except (OSError, ValueError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    config = apply_env_overrides(config, environ)
    configure_logging(config)
    return config


def save_config(config, config_path=None):
    """Save configuration to file, choosing the format from the suffix."""
    config_path = Path(config_path) if config_path else get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = config_path.suffix.lower()
    with open(config_path, 'w') as f:
        if suffix == '.toml':
            toml.dump(config, f)
        elif suffix in ('.yaml', '.yml'):
            yaml.safe_dump(config, f, default_flow_style=False)
        else:
            json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def configure_logging(config, debug=False):
    """Apply the configured log level to the ecosync logger tree."""
    if debug or os.environ.get('DEBUG', '').lower() in ('1', 'true', 'yes'):
        level = 'DEBUG'
    else:
        level = str(config.get('logging', {}).get('level', 'INFO')).upper()
    logger.setLevel(getattr(logging, level, logging.INFO))


def get_default_config():
    """Get default configuration."""
    return {
        "ecosystem": {
            "root": "",                 # Empty means walk upward from cwd
            "root_name": "Website",     # Identifier of the orchestration root
            "engine": "getHarsh",
            "content": "master_posts",
            "domain_suffix": ".in",
            "blog_prefix": "blog.",
            "projects_dir": "PROJECTS",
            "search_depth": 6
        },
        "git": {
            "remote": "origin",
            "timeout": 120,
            "site_branch": "site",
            "main_branch": "main",
            "review_branch": "review",
            "protected_branches": ["main", "master"],
            "branch_prefixes": [
                "config/data",
                "config/schema",
                "engine/",
                "seo/",
                "site",
                "review",
                "main"
            ]
        },
        "ports": {
            "base_port": 4000,
            "range": 1000,
            "max_attempts": 100,
            "registry": "",             # Empty means <engine>/build/temp/jekyll-ports.json
            "lock_timeout_seconds": 10,
            "stale_lock_seconds": 120,
            "kill_grace_seconds": 1
        },
        "logging": {
            "level": "INFO"
        }
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config, environ=None):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: ECOSYNC_SECTION_KEY
    For example: ECOSYNC_PORTS_BASE_PORT=5000
    """
    environ = os.environ if environ is None else environ
    env_prefix = "ECOSYNC_"

    for env_key, value in environ.items():
        if not env_key.startswith(env_prefix) or env_key == "ECOSYNC_CONFIG":
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Longest config key that prefixes the remaining parts wins
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                break

    return config
