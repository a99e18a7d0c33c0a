"""Simple YAML configuration loader for Transcrify."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any
import logging

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    'storage': {
        'data_directory': 'data',
        'state_file': 'state.json',
        'credentials_file': 'credentials.enc',
        'key_file': 'credentials.key',
    },
    'audio': {
        'sample_rate': 16000,
        'channels': 1,
        'chunk_size': 1024,
    },
    'groq': {
        'base_url': 'https://api.groq.com/openai/v1',
        'transcription_model': 'whisper-large-v3',
        'purification_model': 'llama-3.3-70b-versatile',
        'purification_temperature': 0.2,
        'purification_max_tokens': 6000,
        'timeout_seconds': 60,
    },
    'limits': {
        'hourly_seconds': 7200,
        'daily_seconds': 28000,
    },
    'session': {
        'poll_interval_seconds': 0.5,
        'max_file_size_mb': 39,
        'min_duration_ms': 50,
        'success_dwell_seconds': 1.0,
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/transcrify.log',
        'console_output': True,
    },
}


class TranscrifyConfig:
    """Transcrify configuration loader."""

    def __init__(self, config_path: str):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not config:
            raise ConfigurationError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        # Relative paths are resolved against the config file location
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        # Built-in defaults are relative too, so missing keys are filled in first
        for section, key in (('storage', 'data_directory'), ('logging', 'file_path')):
            if not isinstance(config.get(section), dict):
                config[section] = {}
            path = config[section].get(key) or DEFAULTS[section][key]
            if not os.path.isabs(path):
                path = str(config_dir / path)
            config[section][key] = path

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'limits.hourly_seconds').

        Values missing from the file fall back to the built-in defaults, then
        to ``default``.

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found anywhere

        Returns:
            Configuration value or default
        """
        found, value = self._lookup(self.config, key_path)
        if found:
            return value
        found, value = self._lookup(DEFAULTS, key_path)
        return value if found else default

    @staticmethod
    def _lookup(source: Dict[str, Any], key_path: str):
        value: Any = source
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return False, None
        return True, value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'session.min_duration_ms')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_data_directory(self) -> Path:
        """Get absolute data directory path."""
        data_dir = self.get('storage.data_directory')
        return Path(data_dir).absolute()

    def get_data_file(self, key: str) -> Path:
        """Get absolute path of a file stored in the data directory.

        Args:
            key: Key under 'storage' holding the file name (e.g., 'state_file')
        """
        return self.get_data_directory() / self.get(f'storage.{key}')
