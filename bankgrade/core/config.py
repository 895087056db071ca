"""Configuration management for Bank Grade Security."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


# Environment variable -> dotted config key
ENV_OVERRIDES = {
    "BANKGRADE_OUTPUT_DIR": "output.directory",
    "BANKGRADE_REGISTRY_DIR": "registry.directory",
    "BANKGRADE_SCAN_DELAY": "scan.delay_seconds",
    "BANKGRADE_LOG_LEVEL": "logging.level",
    "BANKGRADE_DOH_URL": "modules.dns_security.resolver_url",
}

SCAN_ORDERS = ("alphabetical", "fifo")


class Config:
    """Configuration manager that loads settings from YAML and environment variables."""

    def __init__(self, config_path: Optional[str] = None, env_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config.yaml file
            env_path: Path to .env.local file
        """
        self.base_dir = Path(__file__).parent.parent.parent

        if env_path:
            load_dotenv(env_path)
        else:
            env_file = self.base_dir / ".env.local"
            if env_file.exists():
                load_dotenv(env_file)

        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = self.base_dir / "config.yaml"

        self._config = self._load_config()
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _apply_env_overrides(self) -> None:
        """Overlay BANKGRADE_* environment variables onto the YAML values."""
        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name, "").strip()
            if value:
                self.set(key, yaml.safe_load(value))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'modules.tls_probe.timeout')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation (CLI and env overrides)."""
        keys = key.split(".")
        node = self._config
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value

    @property
    def modules(self) -> Dict[str, Any]:
        """Get all module configurations."""
        return self._config.get("modules", {})

    @property
    def rate_limits(self) -> Dict[str, int]:
        """Get rate limits (requests per minute) for external services."""
        return self._config.get("rate_limits", {})

    @property
    def concurrency(self) -> Dict[str, int]:
        """Get concurrency settings."""
        return self._config.get("concurrency", {"analyzer_workers": 4})

    @property
    def scan_delay(self) -> float:
        """Seconds between the start of two consecutive targets."""
        return float(self.get("scan.delay_seconds", 5))

    @property
    def settle_delay(self) -> float:
        """Seconds to wait after the last target before archiving."""
        return float(self.get("scan.settle_seconds", 10))

    @property
    def scan_order(self) -> str:
        """Order in which targets are popped: 'alphabetical' or 'fifo'."""
        order = str(self.get("scan.order", "alphabetical")).lower()
        if order not in SCAN_ORDERS:
            raise ValueError(f"Invalid scan.order '{order}', expected one of {SCAN_ORDERS}")
        return order

    @property
    def max_redirects(self) -> int:
        return int(self.get("http.max_redirects", 10))

    @property
    def http_timeout(self) -> float:
        return float(self.get("http.timeout", 15))

    @property
    def user_agent(self) -> str:
        """Get custom user agent string."""
        return self._config.get("user_agent", "BankGradeSecurity/1.0")

    def _resolve_dir(self, configured: str) -> Path:
        path = Path(configured)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    @property
    def output_dir(self) -> Path:
        """Get output directory path (live report lives here)."""
        path = self._resolve_dir(self.get("output.directory", "./output"))
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def live_report_name(self) -> str:
        return self.get("output.live_report", "results.json")

    @property
    def history_dir(self) -> Path:
        """Get history archive directory path."""
        history = self.get("output.history_directory", "history")
        path = Path(history)
        if not path.is_absolute():
            path = self.output_dir / path
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def registry_dir(self) -> Path:
        """Get the target registry directory."""
        return self._resolve_dir(self.get("registry.directory", "./banks"))

    @property
    def registry_extension(self) -> str:
        return self.get("registry.extension", ".json")

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        log_file = self.get("logging.file", "./logs/bankgrade.log")
        path = self._resolve_dir(log_file).parent
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_module_config(self, module_name: str) -> Dict[str, Any]:
        """Get configuration for a specific module."""
        return self.modules.get(module_name, {})
