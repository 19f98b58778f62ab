"""
Configuration management for the Braille converter.
Handles loading, saving, and merging the user's default options.
"""

import copy
import json
import logging
import os
from typing import Any, Dict, Optional
from pathlib import Path

__all__ = [
    'ConfigError',
    'ConfigManager',
    'DEFAULT_CONFIG_PATH',
]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(os.path.expanduser("~")) / ".config" / "braille_pie" / "config.json"


class ConfigError(Exception):
    """Raised when the config file cannot be read or written."""
    pass


class ConfigManager:
    """Manages the user's default conversion options."""

    DEFAULT_CONFIG = {
        # Default conversion settings, overridden by command-line flags
        "defaults": {
            "width": None,  # None means keep aspect ratio (64 if both unset)
            "height": None,
            "frame": 0,
            "dithering": "sierra2",
            "allow_blank_chars": False,
            "invert": False,
            "contrast": 0.0,
            "brighten": 0
        },

        # Logging settings
        "log": {
            "file": None
        }
    }

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize config manager.

        Args:
            config_file: Path to config file; DEFAULT_CONFIG_PATH when None
        """
        self.config_file = Path(config_file) if config_file else DEFAULT_CONFIG_PATH
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """Load config from file, or return the defaults if it doesn't exist."""
        defaults = copy.deepcopy(self.DEFAULT_CONFIG)
        if not self.config_file.exists():
            logger.debug("no config file at %s, using defaults", self.config_file)
            return defaults
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {self.config_file}:\n  Line {e.lineno}: {e.msg}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load config file: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {self.config_file} must contain a JSON object")
        for key, value in self.DEFAULT_CONFIG.items():
            if isinstance(value, dict) and key in loaded and not isinstance(loaded[key], dict):
                raise ConfigError(f"'{key}' in config file {self.config_file} must be a JSON object")
        # Merge with defaults to handle new settings
        return self._merge_configs(defaults, loaded)

    def _merge_configs(self, default: Dict, loaded: Dict) -> Dict:
        """
        Recursively merge loaded config with defaults.
        Ensures all default keys exist even if not in loaded config.
        """
        for key, value in default.items():
            if key in loaded:
                if isinstance(value, dict) and isinstance(loaded[key], dict):
                    default[key] = self._merge_configs(value, loaded[key])
                else:
                    default[key] = loaded[key]
        return default

    def save(self):
        """Save current config to file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4)
        except OSError as e:
            raise ConfigError(f"Error saving config: {e}") from e
        logger.info("saved defaults to %s", self.config_file)

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get config value by nested keys.

        Args:
            *keys: Nested keys (e.g., "defaults", "dithering")
            default: Default value if key not found

        Returns:
            Config value or default

        Example:
            config.get("defaults", "dithering")  # Returns "sierra2"
        """
        value = self.config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, *keys: str, value: Any):
        """
        Set config value by nested keys.

        Args:
            *keys: Nested keys (e.g., "defaults", "width")
            value: Value to set

        Example:
            config.set("defaults", "width", value=80)
        """
        if len(keys) == 0:
            return

        # Navigate to the parent dict
        current = self.config
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Set the final value
        current[keys[-1]] = value

    def get_defaults(self) -> Dict[str, Any]:
        """Copy of the conversion defaults section."""
        return dict(self.get("defaults", default={}))

    def update_defaults(self, values: Dict[str, Any]):
        """
        Store conversion options as the new defaults.

        Args:
            values: Option name -> value; unknown names are ignored
        """
        known = self.DEFAULT_CONFIG["defaults"]
        for key, value in values.items():
            if key in known:
                self.set("defaults", key, value=value)
