"""
Control catalog collaborators for TenantGuard.
"""

from tenantguard.catalog.local import LocalCatalog, SpecDocumentLoader

__all__ = [
    "LocalCatalog",
    "SpecDocumentLoader",
]
