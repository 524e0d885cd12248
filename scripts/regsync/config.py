"""
Configuration management for the source orchestration core.

Handles loading and accessing configuration from YAML files and environment variables.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Sources known to the system out of the box. A config file may replace this list.
# Scraping sources ship as testing: point their endpoint at the regulator's RSS/Atom
# feed (or plug in a site Scraper) before activating them.
DEFAULT_SOURCES: List[Dict[str, Any]] = [
    {
        "id": "fda_openfda",
        "name": "FDA OpenFDA API",
        "kind": "official_api",
        "endpoint": "https://api.fda.gov",
        "requires_auth": False,
        "priority": "high",
        "region": "United States",
        "status": "active",
    },
    {
        "id": "ema_pms",
        "name": "EMA Product Management Service",
        "kind": "official_api",
        "endpoint": "https://api.ema.europa.eu",
        "requires_auth": True,
        "priority": "high",
        "region": "European Union",
        "status": "testing",
    },
    {
        "id": "mhra_more",
        "name": "MHRA MORE Platform API",
        "kind": "official_api",
        "endpoint": "https://www.gov.uk/api/more",
        "requires_auth": True,
        "priority": "medium",
        "region": "United Kingdom",
        "status": "testing",
    },
    {
        "id": "bfarm_scraping",
        "name": "BfArM Web Scraping",
        "kind": "web_scraping",
        "endpoint": "https://www.bfarm.de",
        "requires_auth": False,
        "priority": "medium",
        "region": "Germany",
        "status": "testing",
    },
    {
        "id": "swissmedic_scraping",
        "name": "Swissmedic Web Scraping",
        "kind": "web_scraping",
        "endpoint": "https://www.swissmedic.ch",
        "requires_auth": False,
        "priority": "medium",
        "region": "Switzerland",
        "status": "testing",
    },
    {
        "id": "health_canada_scraping",
        "name": "Health Canada Web Scraping",
        "kind": "web_scraping",
        "endpoint": "https://www.canada.ca/en/health-canada",
        "requires_auth": False,
        "priority": "medium",
        "region": "Canada",
        "status": "testing",
    },
]


class Config:
    """Configuration manager for the orchestration core."""

    # Default configuration values
    DEFAULTS: Dict[str, Any] = {
        "paths": {
            "base_dir": None,  # Set dynamically
            "database": "db/regsync.db",
            "logs": "logs",
        },
        "sources": DEFAULT_SOURCES,
        "sync": {
            "max_workers": 5,
            "request_timeout": 30,
            "error_threshold": 5,
            "user_agent": "RegSync/1.0 (Regulatory Intelligence)",
        },
        "storage": {
            "backend": "sqlite",  # sqlite | memory
        },
        "scheduler": {
            "enabled": False,
            "daily_time": "06:00",
            "weekly_day": "monday",
            "weekly_time": "09:00",
            "hourly_interval_minutes": 60,
            "misfire_grace_time": 3600,
            "alert_on_failure": {
                "daily": True,
                "hourly": False,
                "weekly": True,
            },
        },
        "review": {
            "overdue_hours": 24,
        },
        "notifications": {
            "backend": "log",  # log | telegram
            "recipients": [],
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file_enabled": True,
        },
    }

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}
    _base_dir: Optional[Path] = None

    def __new__(cls) -> "Config":
        """Singleton pattern to ensure single configuration instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """Initialize configuration if not already done."""
        if self._initialized:
            return
        self._initialized = True
        self._config = copy.deepcopy(self.DEFAULTS)
        self._base_dir = self._find_base_dir()
        self._load_config_file()

    def _find_base_dir(self) -> Path:
        """Find the base directory of the installation."""
        env_base = os.environ.get("REGSYNC_BASE_DIR")
        if env_base:
            return Path(env_base)

        # scripts/regsync/config.py -> scripts/regsync -> scripts -> base
        current_file = Path(__file__).resolve()
        return current_file.parent.parent.parent

    def _load_config_file(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_path = self._base_dir / "config" / "config.yaml"
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
                self._merge_config(file_config)

        self._config["paths"]["base_dir"] = str(self._base_dir)

    def _merge_config(self, new_config: Dict[str, Any]) -> None:
        """Deep merge new configuration into existing configuration."""
        _deep_merge(self._config, new_config)

    @property
    def base_dir(self) -> Path:
        """Get the base directory path."""
        return self._base_dir

    @property
    def database_path(self) -> Path:
        """Get the record store database path."""
        return self._base_dir / self._config["paths"]["database"]

    @property
    def logs_dir(self) -> Path:
        """Get the logs directory path."""
        return self._base_dir / self._config["paths"]["logs"]

    @property
    def sources(self) -> List[Dict[str, Any]]:
        """Get the configured data source entries."""
        return self._config["sources"]

    @property
    def recipients(self) -> List[str]:
        """Operator alert recipients.

        REGSYNC_NOTIFY_RECIPIENTS (comma-separated) overrides the config file.
        """
        raw = os.environ.get("REGSYNC_NOTIFY_RECIPIENTS", "")
        if raw.strip():
            return [r.strip() for r in raw.split(",") if r.strip()]
        return [str(r) for r in self.get("notifications.recipients", [])]

    def api_key_for(self, source_id: str) -> Optional[str]:
        """Look up the API key for a source, e.g. REGSYNC_API_KEY_EMA_PMS."""
        return os.environ.get(f"REGSYNC_API_KEY_{source_id.upper()}") or None

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Supports dot notation for nested keys (e.g., 'sync.max_workers').
        """
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def reload(self) -> None:
        """Reload configuration from file."""
        self._config = copy.deepcopy(self.DEFAULTS)
        self._load_config_file()


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value


# Global configuration instance
config = Config()
