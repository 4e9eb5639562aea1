"""
Authentication collaborators for TenantGuard.

Provides bearer token providers and token claim decoding.
"""

from tenantguard.auth.tokens import (
    FAMILY_COMPLIANCE,
    FAMILY_EXO,
    FAMILY_GRAPH,
    TOKEN_SCOPES,
    AccountInfo,
    AzureIdentityTokenProvider,
    StaticTokenProvider,
    TokenDiagnostics,
    TokenProvider,
    account_from_token,
    decode_token_claims,
)

__all__ = [
    "FAMILY_COMPLIANCE",
    "FAMILY_EXO",
    "FAMILY_GRAPH",
    "TOKEN_SCOPES",
    "AccountInfo",
    "AzureIdentityTokenProvider",
    "StaticTokenProvider",
    "TokenDiagnostics",
    "TokenProvider",
    "account_from_token",
    "decode_token_claims",
]
