"""
Scan source table for TenantGuard.

Each source is one read-only Microsoft Graph resource. List sources are
paginated collections; singleton sources are single policy documents.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from tenantguard.collectors.http import GraphClient
from tenantguard.errors import SourceFetchError, TenantGuardError
from tenantguard.models.snapshot import SourceResult


class SourceKind(Enum):
    """Shape of a scan source's data."""

    LIST = "list"
    SINGLETON = "singleton"


@dataclass(frozen=True)
class ScanSource:
    """
    A named scan source.

    Attributes:
        name: Snapshot key the data is stored under
        path: Graph path, including API version
        kind: List or singleton
    """

    name: str
    path: str
    kind: SourceKind = SourceKind.LIST


DEFAULT_SCAN_SOURCES: tuple[ScanSource, ...] = (
    ScanSource(
        "conditionalAccess",
        "/v1.0/identity/conditionalAccess/policies",
    ),
    ScanSource(
        "compliancePolicies",
        "/v1.0/deviceManagement/deviceCompliancePolicies",
    ),
    ScanSource(
        "deviceConfigurations",
        "/v1.0/deviceManagement/deviceConfigurations",
    ),
    ScanSource(
        "configurationPolicies",
        "/beta/deviceManagement/configurationPolicies",
    ),
    ScanSource(
        "authorizationPolicy",
        "/v1.0/policies/authorizationPolicy",
        SourceKind.SINGLETON,
    ),
    ScanSource(
        "adminConsentPolicy",
        "/v1.0/policies/adminConsentRequestPolicy",
        SourceKind.SINGLETON,
    ),
    ScanSource(
        "deviceRegistrationPolicy",
        "/v1.0/policies/deviceRegistrationPolicy",
        SourceKind.SINGLETON,
    ),
    ScanSource(
        "authMethodsPolicy",
        "/v1.0/policies/authenticationMethodsPolicy",
        SourceKind.SINGLETON,
    ),
    ScanSource(
        "authenticatorConfig",
        "/v1.0/policies/authenticationMethodsPolicy/"
        "authenticationMethodConfigurations/MicrosoftAuthenticator",
        SourceKind.SINGLETON,
    ),
    ScanSource(
        "organization",
        "/v1.0/organization",
    ),
    ScanSource(
        "groupSettings",
        "/v1.0/groupSettings",
    ),
)


def _fetch(
    client: GraphClient,
    source: ScanSource,
    token: str,
    max_pages: int,
) -> SourceResult:
    try:
        if source.kind == SourceKind.LIST:
            paged = client.get_paged(source.path, token, max_pages)
            return SourceResult(
                source=source.name,
                data=paged.items,
                pages=paged.pages,
                has_more=paged.has_more,
            )
        return SourceResult(
            source=source.name,
            data=client.get(source.path, token),
            pages=1,
        )
    except TenantGuardError as e:
        raise SourceFetchError(source.name, str(e)) from e


def fetch_source(
    client: GraphClient,
    source: ScanSource,
    token: str,
    max_pages: int = 3,
) -> SourceResult:
    """
    Fetch one scan source.

    Failures are returned as data on the result, never raised.

    Args:
        client: Graph client
        source: Source to fetch
        token: Graph bearer token
        max_pages: Page cap for list sources

    Returns:
        SourceResult with data or error set
    """
    start = time.monotonic()
    try:
        result = _fetch(client, source, token, max_pages)
    except SourceFetchError as e:
        result = SourceResult(source=source.name, error=e.message)
    result.duration_seconds = time.monotonic() - start
    return result
