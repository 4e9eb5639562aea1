"""
Runtime configuration for TenantGuard.

Provides the endpoint bases, timeouts, pacing delays and catalog
locations used by the scanner and deployment dispatcher, loadable from a
JSON/YAML file or from TENANTGUARD_* environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from tenantguard.errors import ConfigurationError

DEFAULT_GRAPH_BASE = "https://graph.microsoft.com"
DEFAULT_EXO_INVOKE_BASE = "https://outlook.office365.com/adminapi/beta/"
DEFAULT_COMPLIANCE_INVOKE_BASE = (
    "https://ps.compliance.protection.outlook.com/adminapi/beta/"
)

BUNDLED_RULES_DIR = str(Path(__file__).resolve().parent.parent / "data" / "rules")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("human", "json")


@dataclass
class TenantGuardConfig:
    """
    Complete TenantGuard configuration.

    Attributes:
        graph_base: Base URL for Microsoft Graph
        exo_invoke_base: Base URL of the Exchange Online InvokeCommand API
        compliance_invoke_base: Base URL of the Compliance InvokeCommand API
        request_timeout: Per-request timeout in seconds
        max_pages: Page cap for list sources
        max_workers: Scan thread pool size (None = one per source)
        command_delay: Seconds between remote commands of one control
        bulk_delay: Seconds between controls in a bulk deployment
        catalog_dir: Directory holding controls.json and policies/
        rule_dirs: Directories of match rule files
        log_level: Log level name
        log_format: "human" or "json"
    """

    graph_base: str = DEFAULT_GRAPH_BASE
    exo_invoke_base: str = DEFAULT_EXO_INVOKE_BASE
    compliance_invoke_base: str = DEFAULT_COMPLIANCE_INVOKE_BASE
    request_timeout: float = 15.0
    max_pages: int = 3
    max_workers: int | None = None
    command_delay: float = 0.5
    bulk_delay: float = 0.3
    catalog_dir: str | None = None
    rule_dirs: list[str] = field(default_factory=lambda: [BUNDLED_RULES_DIR])
    log_level: str = "WARNING"
    log_format: str = "human"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )
        if self.max_pages < 1:
            raise ConfigurationError(f"max_pages must be >= 1, got {self.max_pages}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be >= 1, got {self.max_workers}"
            )
        if self.command_delay < 0 or self.bulk_delay < 0:
            raise ConfigurationError("Delays must not be negative")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(f"Invalid log format: {self.log_format}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TenantGuardConfig:
        """
        Create from dictionary.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}"
            )
        values = dict(data)
        try:
            for key in ("request_timeout", "command_delay", "bulk_delay"):
                if key in values:
                    values[key] = float(values[key])
            if "max_pages" in values:
                values["max_pages"] = int(values["max_pages"])
            if values.get("max_workers") is not None:
                values["max_workers"] = int(values["max_workers"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e
        if isinstance(values.get("rule_dirs"), str):
            values["rule_dirs"] = [values["rule_dirs"]]
        return cls(**values)

    @classmethod
    def from_file(cls, path: str) -> TenantGuardConfig:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)


_ENV_KEYS = {
    "TENANTGUARD_GRAPH_BASE": "graph_base",
    "TENANTGUARD_EXO_INVOKE_BASE": "exo_invoke_base",
    "TENANTGUARD_COMPLIANCE_INVOKE_BASE": "compliance_invoke_base",
    "TENANTGUARD_REQUEST_TIMEOUT": "request_timeout",
    "TENANTGUARD_MAX_PAGES": "max_pages",
    "TENANTGUARD_MAX_WORKERS": "max_workers",
    "TENANTGUARD_COMMAND_DELAY": "command_delay",
    "TENANTGUARD_BULK_DELAY": "bulk_delay",
    "TENANTGUARD_CATALOG_DIR": "catalog_dir",
    "TENANTGUARD_LOG_LEVEL": "log_level",
    "TENANTGUARD_LOG_FORMAT": "log_format",
}


def load_config_from_env(path: str | None = None) -> TenantGuardConfig:
    """
    Load configuration from a file and environment variables.

    Environment variables override file values:
        TENANTGUARD_CONFIG_FILE: Path to configuration file
        TENANTGUARD_REQUEST_TIMEOUT: Per-request timeout in seconds
        TENANTGUARD_MAX_PAGES: Page cap for list sources
        TENANTGUARD_CATALOG_DIR: Control catalog directory
        TENANTGUARD_RULE_DIRS: Comma-separated rule directories
        (plus the other TENANTGUARD_* keys mirroring config fields)

    Args:
        path: Optional config file, taking precedence over TENANTGUARD_CONFIG_FILE

    Returns:
        TenantGuardConfig instance
    """
    data: dict[str, Any] = {}

    config_file = path or os.getenv("TENANTGUARD_CONFIG_FILE")
    if config_file:
        data = TenantGuardConfig.from_file(config_file).to_dict()

    for env_name, key in _ENV_KEYS.items():
        value = os.getenv(env_name)
        if value:
            data[key] = value

    rule_dirs = os.getenv("TENANTGUARD_RULE_DIRS")
    if rule_dirs:
        data["rule_dirs"] = [d.strip() for d in rule_dirs.split(",") if d.strip()]

    return TenantGuardConfig.from_dict(data)
