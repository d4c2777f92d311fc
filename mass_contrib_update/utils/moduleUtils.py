"""
Mass Contrib Update
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Configuration loading for the mass update tool.

Defaults live in the package's index.json. A user file given with --config
(or MCU_CONFIG) is merged on top of it key by key.
"""

import copy
import json
import os
from typing import Any, Dict, Optional

from .index import log_message

CONFIG_ENV_VAR = "MCU_CONFIG"

DEFAULT_CONFIG = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "mass_contrib_update"
    },
    "config": {
        "api": {
            "base_url": "https://terminus.pantheon.io/api/",
            "timeout": 60,
            "page_limit": 100,
            "session_file": "~/.terminus/cache/session",
            "wake_url_template": "https://{env}-{site_name}.pantheonsite.io/pantheon_healthcheck",
            "token_env_vars": ["PANTHEON_MACHINE_TOKEN", "TERMINUS_MACHINE_TOKEN"]
        },
        "environments": {
            "preview_name": "mcu",
            "report_default": "dev",
            "clone_from": "dev",
            "core": ["dev", "test", "live"]
        },
        "workflows": {
            "poll_interval": 3,
            "timeout": 1800
        },
        "drush": {
            "ssh_binary": "ssh",
            "port": 2222,
            "host_template": "appserver.{env}.{site_id}.drush.in",
            "user_template": "{env}.{site_id}",
            "version": 8,
            "timeout": 1800
        },
        "backup": {
            "keep_for_days": 365
        },
        "commit": {
            "default_message": "Updates applied by Mass Contrib Update."
        },
        "frameworks": ["backdrop", "drupal", "drupal8"],
        "cache": {
            "sites_file": "~/.cache/mass-contrib-update/sites.json"
        },
        "debug": False
    }
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base. Lists are replaced."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_module_config(user_config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from the package's index.json file.

    Args:
        user_config_path: Optional JSON file merged over the defaults. Falls
            back to the MCU_CONFIG environment variable when not given.

    Returns:
        dict: Configuration data, or the built-in defaults if loading fails
    """
    try:
        config_path = os.path.join(os.path.dirname(__file__), "..", "index.json")
        with open(config_path, 'r') as f:
            config = merge_config(DEFAULT_CONFIG, json.load(f))
    except Exception as e:
        log_message(f"Failed to load module config: {e}", "WARNING")
        config = copy.deepcopy(DEFAULT_CONFIG)

    user_config_path = user_config_path or os.environ.get(CONFIG_ENV_VAR)
    if user_config_path:
        path = os.path.expanduser(user_config_path)
        # A config file the user asked for must exist
        with open(path, 'r') as f:
            config = merge_config(config, json.load(f))
        log_message(f"Loaded user configuration from {path}", "DEBUG")

    return config


def get_module_debug_mode(config: Dict[str, Any]) -> bool:
    """
    Get the current debug mode from configuration.

    Returns:
        bool: True if debug mode is enabled, False otherwise
    """
    return bool(config.get("config", {}).get("debug", False))
