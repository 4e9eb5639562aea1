"""
Configuration management for TenantGuard.

Provides the runtime configuration dataclass and helpers for loading it
from files and environment variables.
"""

from tenantguard.config.settings import (
    BUNDLED_RULES_DIR,
    DEFAULT_COMPLIANCE_INVOKE_BASE,
    DEFAULT_EXO_INVOKE_BASE,
    DEFAULT_GRAPH_BASE,
    TenantGuardConfig,
    load_config_from_env,
)

__all__ = [
    "BUNDLED_RULES_DIR",
    "DEFAULT_COMPLIANCE_INVOKE_BASE",
    "DEFAULT_EXO_INVOKE_BASE",
    "DEFAULT_GRAPH_BASE",
    "TenantGuardConfig",
    "load_config_from_env",
]
