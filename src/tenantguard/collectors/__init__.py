"""
Tenant configuration collectors for TenantGuard.

The scanner reads a fixed table of Microsoft Graph sources concurrently
and produces a Snapshot for the match engine.
"""

from tenantguard.collectors.http import GraphClient, HttpResponse, PagedResult
from tenantguard.collectors.scanner import ALREADY_RUNNING_MESSAGE, TenantScanner
from tenantguard.collectors.sources import (
    DEFAULT_SCAN_SOURCES,
    ScanSource,
    SourceKind,
    fetch_source,
)

__all__ = [
    "GraphClient",
    "HttpResponse",
    "PagedResult",
    "ALREADY_RUNNING_MESSAGE",
    "TenantScanner",
    "DEFAULT_SCAN_SOURCES",
    "ScanSource",
    "SourceKind",
    "fetch_source",
]
