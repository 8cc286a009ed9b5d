"""Configuration loading and validation for mempoolscope."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any
from .constants import (
    DEFAULT_NETWORK,
    NETWORK_ENDPOINTS,
    DEFAULT_CONNECT_TIMEOUT_SECS,
    DEFAULT_RESOURCE_TIMEOUT_SECS,
    DEFAULT_CACHE_DIR,
    DEFAULT_CACHE_DURATION_MINS,
    DEFAULT_REFRESH_INTERVAL_SECS,
    DEFAULT_LOG_MAX_BYTES,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_FILE,
    DEFAULT_ERROR_LOG_FILE,
)


class Config:
    """Configuration container with environment variable overrides."""

    def __init__(self, config_path: str = None, create_if_missing: bool = True):
        """
        Load configuration from YAML file with environment variable overrides.

        Configuration precedence (highest to lowest):
        1. Environment variables (MS_* prefix)
        2. config.local.yaml (if exists, local overrides)
        3. config.yaml (main config file)
        4. Default values

        Args:
            config_path: Path to config.yaml. If None, searches for config.yaml
                        in current directory and parent directories.
            create_if_missing: If True and config_path is None, create default config
                              if not found. If config_path is explicitly provided,
                              this is ignored (file must exist).
        """
        if config_path is None:
            config_path = self._find_config_file()
            config_file_path = Path(config_path)
            # Only create default if auto-discovered and missing
            if create_if_missing and not config_file_path.exists():
                self._create_default_config(config_path)
        else:
            config_file_path = Path(config_path)
            if not config_file_path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            self._raw = yaml.safe_load(f) or {}

        # Local overrides (gitignored)
        config_dir = Path(config_path).parent
        local_config_path = config_dir / "config.local.yaml"
        if local_config_path.exists():
            with open(local_config_path, 'r') as f:
                local_config = yaml.safe_load(f) or {}
                self._deep_merge(self._raw, local_config)

        self._apply_env_overrides()
        self._validate()

    def _find_config_file(self) -> str:
        """Find config.yaml in current directory or parents."""
        current = Path.cwd()
        for path in [current] + list(current.parents):
            config_file = path / "config.yaml"
            if config_file.exists():
                return str(config_file)
        return str(current / "config.yaml")

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _create_default_config(self, path: str):
        """Create a default config.yaml file."""
        default_config = {
            "api": {
                "network": DEFAULT_NETWORK,
                "use_custom_endpoint": False,
                "endpoint": "",
                "connect_timeout_secs": DEFAULT_CONNECT_TIMEOUT_SECS,
                "resource_timeout_secs": DEFAULT_RESOURCE_TIMEOUT_SECS,
            },
            "cache": {
                "dir": DEFAULT_CACHE_DIR,
                "duration_mins": DEFAULT_CACHE_DURATION_MINS,
            },
            "refresh": {
                "interval_secs": DEFAULT_REFRESH_INTERVAL_SECS,
            },
            "notifications": {
                "enabled": False,
                "webhook_url": "",
            },
            "logging": {
                "level": "INFO",
                "log_dir": "logs",
                "file": DEFAULT_LOG_FILE,
                "error_file": DEFAULT_ERROR_LOG_FILE,
                "console_level": "INFO",
                "rotation": {
                    "max_bytes": DEFAULT_LOG_MAX_BYTES,
                    "backup_count": DEFAULT_LOG_BACKUP_COUNT,
                    "when": "midnight"
                }
            },
        }
        with open(path, 'w') as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    def _apply_env_overrides(self):
        """Apply environment variable overrides using MS_ prefix."""
        # API settings
        if os.getenv("MS_NETWORK"):
            self._raw.setdefault("api", {})["network"] = os.getenv("MS_NETWORK")
        if os.getenv("MS_API_ENDPOINT"):
            self._raw.setdefault("api", {})["endpoint"] = os.getenv("MS_API_ENDPOINT")
        if os.getenv("MS_USE_CUSTOM_ENDPOINT"):
            self._raw.setdefault("api", {})["use_custom_endpoint"] = os.getenv("MS_USE_CUSTOM_ENDPOINT").lower() == "true"

        # Cache settings
        if os.getenv("MS_CACHE_DIR"):
            self._raw.setdefault("cache", {})["dir"] = os.getenv("MS_CACHE_DIR")
        if os.getenv("MS_CACHE_DURATION_MINS"):
            self._raw.setdefault("cache", {})["duration_mins"] = int(os.getenv("MS_CACHE_DURATION_MINS"))

        # Refresh settings
        if os.getenv("MS_REFRESH_INTERVAL_SECS"):
            self._raw.setdefault("refresh", {})["interval_secs"] = int(os.getenv("MS_REFRESH_INTERVAL_SECS"))

        # Notification settings
        if os.getenv("MS_NOTIFICATIONS_ENABLED"):
            self._raw.setdefault("notifications", {})["enabled"] = os.getenv("MS_NOTIFICATIONS_ENABLED").lower() == "true"
        if os.getenv("MS_NOTIFY_WEBHOOK"):
            self._raw.setdefault("notifications", {})["webhook_url"] = os.getenv("MS_NOTIFY_WEBHOOK")

        # Logging settings
        if os.getenv("MS_LOG_DIR"):
            self._raw.setdefault("logging", {})["log_dir"] = os.getenv("MS_LOG_DIR")
        if os.getenv("MS_LOG_LEVEL"):
            self._raw.setdefault("logging", {})["level"] = os.getenv("MS_LOG_LEVEL")
        if os.getenv("MS_CONSOLE_LEVEL"):
            self._raw.setdefault("logging", {})["console_level"] = os.getenv("MS_CONSOLE_LEVEL")

    def _validate(self):
        """Validate and normalize configuration values."""
        network = self.network
        if network not in NETWORK_ENDPOINTS:
            raise ValueError(
                f"Unknown network: {network} (expected one of {', '.join(NETWORK_ENDPOINTS)})"
            )
        if self.cache_duration_mins < 0:
            raise ValueError("cache.duration_mins must be >= 0")
        if self.refresh_interval_secs < 0:
            raise ValueError("refresh.interval_secs must be >= 0")

    @property
    def network(self) -> str:
        return self._raw.get("api", {}).get("network", DEFAULT_NETWORK)

    @property
    def use_custom_endpoint(self) -> bool:
        return bool(self._raw.get("api", {}).get("use_custom_endpoint", False))

    @property
    def api_endpoint(self) -> str:
        return self._raw.get("api", {}).get("endpoint", "") or ""

    @property
    def base_url(self) -> str:
        """Resolve the API base URL: custom endpoint when enabled, else the network preset."""
        if self.use_custom_endpoint and self.api_endpoint:
            return self.api_endpoint.rstrip("/")
        return NETWORK_ENDPOINTS[self.network]

    @property
    def connect_timeout_secs(self) -> float:
        return float(self._raw.get("api", {}).get("connect_timeout_secs", DEFAULT_CONNECT_TIMEOUT_SECS))

    @property
    def resource_timeout_secs(self) -> float:
        return float(self._raw.get("api", {}).get("resource_timeout_secs", DEFAULT_RESOURCE_TIMEOUT_SECS))

    @property
    def cache_dir(self) -> str:
        return self._raw.get("cache", {}).get("dir", DEFAULT_CACHE_DIR)

    @property
    def cache_duration_mins(self) -> int:
        return int(self._raw.get("cache", {}).get("duration_mins", DEFAULT_CACHE_DURATION_MINS))

    @property
    def refresh_interval_secs(self) -> int:
        return int(self._raw.get("refresh", {}).get("interval_secs", DEFAULT_REFRESH_INTERVAL_SECS))

    @property
    def notifications_enabled(self) -> bool:
        return bool(self._raw.get("notifications", {}).get("enabled", False))

    @property
    def notify_webhook_url(self) -> str:
        return self._raw.get("notifications", {}).get("webhook_url", "") or ""

    @property
    def log_level(self) -> str:
        return self._raw.get("logging", {}).get("level", "INFO")

    @property
    def log_dir(self) -> str:
        return self._raw.get("logging", {}).get("log_dir", "logs")

    @property
    def log_file(self) -> str:
        return self._raw.get("logging", {}).get("file", DEFAULT_LOG_FILE)

    @property
    def error_log_file(self) -> str:
        return self._raw.get("logging", {}).get("error_file", DEFAULT_ERROR_LOG_FILE)

    @property
    def console_level(self) -> str:
        return self._raw.get("logging", {}).get("console_level", "INFO")

    @property
    def log_rotation(self) -> Dict[str, Any]:
        """Get log rotation configuration with defaults."""
        rotation = self._raw.get("logging", {}).get("rotation", {})
        return {
            "max_bytes": rotation.get("max_bytes", DEFAULT_LOG_MAX_BYTES),
            "backup_count": rotation.get("backup_count", DEFAULT_LOG_BACKUP_COUNT),
            "when": rotation.get("when", "midnight")
        }
