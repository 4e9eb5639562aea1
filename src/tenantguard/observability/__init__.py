"""
Observability for TenantGuard.

Provides structured logging for scans and deployments.
"""

from tenantguard.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    TenantGuardLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "HumanReadableFormatter",
    "StructuredFormatter",
    "TenantGuardLogger",
    "configure_logging",
    "get_logger",
]
