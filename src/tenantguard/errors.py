"""
Error types for TenantGuard.

Scan-source and rule-evaluation errors are converted to data by the
components that raise them; deployment errors become the terminal status of
the control being deployed.
"""

from __future__ import annotations

from typing import Any


class TenantGuardError(Exception):
    """Base exception for TenantGuard errors."""

    pass


class ConfigurationError(TenantGuardError):
    """Raised when configuration is invalid."""

    pass


class AuthError(TenantGuardError):
    """Raised when no usable bearer token or tenant identity is available."""

    pass


class PreflightError(TenantGuardError):
    """Raised when the read-only probe for a method family fails."""

    def __init__(self, method_family: str, message: str):
        self.method_family = method_family
        super().__init__(f"{method_family} preflight failed: {message}")


class NoPayloadError(TenantGuardError):
    """Raised when a specification document yields no executable calls."""

    pass


class RemoteCallError(TenantGuardError):
    """
    A remote call returned an error.

    Attributes:
        status: HTTP status code (0 when no response was received)
        message: Error message reported by the backend
        data: Parsed response body, if any
    """

    retryable: bool = False

    def __init__(self, status: int, message: str, data: Any = None):
        self.status = status
        self.message = message
        self.data = data
        super().__init__(f"HTTP {status}: {message}" if status else message)


class ConflictError(RemoteCallError):
    """The object already exists in the tenant (HTTP 409 or documented code)."""

    pass


class RateLimitedError(RemoteCallError):
    """The backend throttled the request (HTTP 429)."""

    retryable = True


class ForbiddenError(RemoteCallError):
    """
    The token was rejected (HTTP 401/403 or a scope problem).

    The message carries the decoded token audience and scopes, never the
    token itself.
    """

    def __init__(
        self,
        status: int,
        message: str,
        audience: str = "",
        scopes: str = "",
        data: Any = None,
    ):
        self.audience = audience
        self.scopes = scopes
        super().__init__(status, f"{message} [aud: {audience} | scp: {scopes}]", data)


class InBandCommandError(RemoteCallError):
    """A remote command returned HTTP 200 with an embedded error record."""

    def __init__(
        self,
        status: int,
        message: str,
        data: Any = None,
        category: str = "",
    ):
        self.category = category
        super().__init__(status, message, data)


class NetworkError(RemoteCallError):
    """Transport failure with no HTTP status."""

    def __init__(self, message: str):
        super().__init__(0, message)


class EvaluationError(TenantGuardError):
    """Raised internally when a rule condition cannot be evaluated."""

    pass


class SourceFetchError(TenantGuardError):
    """Raised when one scan source fails to fetch."""

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class RuleLoadError(TenantGuardError):
    """Raised when a rule catalog file cannot be loaded."""

    def __init__(self, message: str, source_path: str | None = None):
        self.source_path = source_path
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


class CatalogError(TenantGuardError):
    """Raised when a control or specification document cannot be loaded."""

    pass
