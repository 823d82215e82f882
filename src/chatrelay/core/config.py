"""
Configuration Management System for chatrelay

Handles loading configuration from environment variables and config files,
and validates bridge definitions before anything is wired.
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, List, Optional, Callable
from pathlib import Path
from dataclasses import dataclass


SUPPORTED_PLATFORMS = ('discord', 'matrix')


@dataclass
class ConfigSource:
    """Configuration source definition"""
    name: str
    priority: int
    loader: Callable
    path: Optional[str] = None


class ConfigurationError(Exception):
    """Configuration-related errors"""
    pass


class ConfigurationManager:
    """
    Manages relay configuration with support for multiple sources,
    validation, and runtime overrides.
    """

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config: Dict[str, Any] = {}
        self.sources: List[ConfigSource] = []
        self.logger = logging.getLogger(__name__)

        self.defaults = {
            "app": {
                "name": "chatrelay",
                "version": "0.3.0",
                "debug": False
            },
            "relay": {
                "poll_interval": 0.05,
                "chunk_limit": 254,
                "dedupe": False
            },
            "bridges": [],
            "health": {
                "enabled": False,
                "host": "0.0.0.0",
                "port": 8080,
                "keepalive_timeout": 15
            },
            "logging": {
                "level": "INFO",
                "file": "logs/chatrelay.log",
                "max_size": "10MB",
                "backup_count": 5,
                "console": True
            }
        }

        self._setup_sources()

    def _setup_sources(self):
        """Set up configuration sources in priority order"""
        self.sources.append(ConfigSource(
            name="environment",
            priority=4,
            loader=self._load_from_env
        ))

        local_config_path = str(self.config_dir / "config.yaml")
        self.sources.append(ConfigSource(
            name="local_config",
            priority=3,
            loader=lambda: self._load_from_file(local_config_path),
            path=local_config_path
        ))

        default_config_path = str(self.config_dir / "default.yaml")
        self.sources.append(ConfigSource(
            name="default_config",
            priority=2,
            loader=lambda: self._load_from_file(default_config_path),
            path=default_config_path
        ))

        self.sources.append(ConfigSource(
            name="defaults",
            priority=1,
            loader=lambda: self.defaults
        ))

    def load_config(self) -> None:
        """Load configuration from all sources"""
        self.logger.info("Loading configuration from all sources")

        merged_config: Dict[str, Any] = {}

        # Lowest priority first so later sources override
        for source in sorted(self.sources, key=lambda x: x.priority):
            try:
                source_config = source.loader()
                if source_config:
                    merged_config = self._deep_merge(merged_config, source_config)
                    self.logger.debug(f"Loaded configuration from {source.name}")
            except Exception as e:
                self.logger.warning(f"Failed to load config from {source.name}: {e}")

        self.config = merged_config
        self._validate_config()
        self.logger.info("Configuration loaded successfully")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}

        env_mappings = {
            "CHATRELAY_DEBUG": "app.debug",
            "CHATRELAY_LOG_LEVEL": "logging.level",
            "CHATRELAY_POLL_INTERVAL": "relay.poll_interval",
            "CHATRELAY_HEALTH_PORT": "health.port",
            "CHATRELAY_BRIDGES": "bridges"
        }

        for env_var, config_key in env_mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue

            if value.lower() in ('true', 'false'):
                value = value.lower() == 'true'
            elif value.isdigit():
                value = int(value)
            elif config_key == "relay.poll_interval":
                try:
                    value = float(value)
                except ValueError:
                    self.logger.warning(f"Invalid number in {env_var}: {value}")
                    continue
            elif config_key == "bridges":
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    self.logger.warning(f"Invalid JSON in {env_var}: {value}")
                    continue

            self._set_nested_value(config, config_key, value)

        return config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file"""
        path = Path(file_path)

        if not path.exists():
            return {}

        try:
            with open(path, 'r') as f:
                if path.suffix.lower() in ['.yaml', '.yml']:
                    return yaml.safe_load(f) or {}
                elif path.suffix.lower() == '.json':
                    return json.load(f)
                else:
                    self.logger.warning(f"Unsupported config file format: {path}")
                    return {}
        except Exception as e:
            self.logger.error(f"Error loading config file {path}: {e}")
            return {}

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _set_nested_value(self, config: Dict, key_path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation"""
        keys = key_path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """Validate configuration values"""
        errors = []

        log_level = self.get('logging.level', 'INFO')
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if str(log_level).upper() not in valid_levels:
            errors.append(f"Invalid log level: {log_level}")

        poll_interval = self.get('relay.poll_interval')
        if not isinstance(poll_interval, (int, float)) or isinstance(poll_interval, bool) \
                or poll_interval <= 0:
            errors.append(f"Invalid poll interval: {poll_interval}")

        chunk_limit = self.get('relay.chunk_limit')
        if not isinstance(chunk_limit, int) or not 4 <= chunk_limit <= 254:
            errors.append(f"Invalid chunk limit: {chunk_limit}")

        health_port = self.get('health.port')
        if health_port and (not isinstance(health_port, int) or health_port < 1 or health_port > 65535):
            errors.append(f"Invalid health port: {health_port}")

        errors.extend(self._validate_bridges(self.get('bridges', [])))

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def _validate_bridges(self, bridges: Any) -> List[str]:
        """Check bridge definitions and the links between them"""
        if not isinstance(bridges, list):
            return [f"'bridges' must be a list, got {type(bridges).__name__}"]

        errors = []
        names = []
        for idx, bridge in enumerate(bridges):
            if not isinstance(bridge, dict) or not bridge.get('name'):
                errors.append(f"Bridge {idx} missing required field: name")
                continue

            name = bridge['name']
            if name in names:
                errors.append(f"Duplicate bridge name: {name}")
            names.append(name)

            platform = bridge.get('platform')
            if platform not in SUPPORTED_PLATFORMS:
                errors.append(f"Bridge '{name}' has unsupported platform: {platform}")
            elif not isinstance(bridge.get(platform), dict):
                errors.append(f"Bridge '{name}' missing '{platform}' settings")

            ignore = bridge.get('ignore', [])
            if not isinstance(ignore, list) or not all(isinstance(n, str) for n in ignore):
                errors.append(f"Bridge '{name}' ignore list must be a list of names")

            mode = bridge.get('mode')
            if mode is not None and (not isinstance(mode, str) or not mode):
                errors.append(f"Bridge '{name}' mode must be a session name")

        for bridge in bridges:
            if not isinstance(bridge, dict) or not bridge.get('name'):
                continue
            for link in bridge.get('links', []):
                if link == bridge['name']:
                    errors.append(f"Bridge '{link}' cannot be linked to itself")
                elif link not in names:
                    errors.append(f"Bridge '{bridge['name']}' links to unknown bridge: {link}")

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        keys = key.split('.')
        current = self.config

        try:
            for k in keys:
                current = current[k]
            return current
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation"""
        self._set_nested_value(self.config, key, value)

    def get_bridge_configs(self) -> List[Dict[str, Any]]:
        """Get bridge definitions"""
        return self.get('bridges', [])

    def get_link_pairs(self) -> List[tuple]:
        """
        Get unique bridge pairs to link.

        A link listed on either bridge links both directions, so
        ``a -> b`` and ``b -> a`` collapse into one pair.
        """
        pairs = []
        seen = set()
        for bridge in self.get_bridge_configs():
            for link in bridge.get('links', []):
                key = frozenset((bridge['name'], link))
                if key not in seen:
                    seen.add(key)
                    pairs.append((bridge['name'], link))
        return pairs

    def get_poll_interval(self) -> float:
        return self.get('relay.poll_interval', 0.05)

    def get_chunk_limit(self) -> int:
        return self.get('relay.chunk_limit', 254)

    def is_dedupe_enabled(self) -> bool:
        return self.get('relay.dedupe', False)

    def is_health_enabled(self) -> bool:
        return self.get('health.enabled', False)

    def resolve_secret(self, settings: Dict[str, Any], key: str) -> Optional[str]:
        """
        Read a secret either inline (``key``) or from the environment
        variable named by ``key_env``.
        """
        env_name = settings.get(f'{key}_env')
        if env_name:
            value = os.getenv(env_name, '').strip()
            if value:
                return value
            self.logger.warning(f"Environment variable {env_name} is not set")
        value = settings.get(key)
        return str(value).strip() if value else None
