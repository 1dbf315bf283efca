"""
Configuration Management

Loads config/settings.yaml over built-in defaults. A settings file only has
to name the values it changes.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_SETTINGS: Dict[str, Any] = {
    'app': {
        'name': 'RAG Chat',
        'version': '1.0.0',
    },
    'generation': {
        'default_model': 'gpt-4o-mini',
        'temperature': 0.7,
    },
    'retrieval': {
        'max_results': 5,
        'similarity_threshold': 0.75,
    },
    'storage': {
        'passage_backend': 'memory',
    },
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dicts merged key by key, anything else replaced"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Settings loaded from <config_root>/settings.yaml"""

    def __init__(self, config_root: Optional[str] = None):
        self.config_root = Path(config_root or os.getenv('CONFIG_ROOT', 'config'))
        self.global_config: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)

    @property
    def settings_path(self) -> Path:
        return self.config_root / "settings.yaml"

    def load_global_config(self) -> dict:
        """(Re)load settings; a missing file leaves the defaults"""
        loaded: Dict[str, Any] = {}
        if self.settings_path.exists():
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"{self.settings_path} must contain a mapping")

        self.global_config = deep_merge(DEFAULT_SETTINGS, loaded)
        return self.global_config

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.

        Examples:
            config.get('generation.default_model')
            config.get('retrieval.timeout_seconds', 10)
        """
        value = self.global_config
        for key in path.split('.'):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value


# Global instance
_config_manager = None


def get_config_manager() -> ConfigManager:
    """Get global config manager"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_global_config() -> dict:
    """Convenience function to load global config"""
    return get_config_manager().load_global_config()
