"""
Bearer token providers for TenantGuard.

The scanner and deployment dispatcher request tokens per method family
("graph", "exo", "compliance"). Interactive sign-in is out of scope; the
providers here wrap an azure-identity credential or pre-acquired tokens.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from tenantguard.errors import AuthError

logger = logging.getLogger(__name__)

FAMILY_GRAPH = "graph"
FAMILY_EXO = "exo"
FAMILY_COMPLIANCE = "compliance"

TOKEN_SCOPES = {
    FAMILY_GRAPH: "https://graph.microsoft.com/.default",
    FAMILY_EXO: "https://outlook.office365.com/.default",
    FAMILY_COMPLIANCE: "https://ps.compliance.protection.outlook.com/.default",
}


@dataclass(frozen=True)
class AccountInfo:
    """Signed-in account identity."""

    tenant_id: str
    email: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"tenantId": self.tenant_id, "email": self.email, "name": self.name}


@dataclass(frozen=True)
class TokenDiagnostics:
    """
    Non-secret facts decoded from a bearer token.

    Attributes:
        audience: The ``aud`` claim
        scopes: Delegated scopes (``scp``), space separated
        roles: Application roles (``roles``), space separated
        app_id: Client application id (``appid`` or ``azp``)
    """

    audience: str = "unknown"
    scopes: str = "none"
    roles: str = "none"
    app_id: str = "unknown"

    @classmethod
    def from_token(cls, token: str | None) -> TokenDiagnostics:
        """Decode diagnostics from a token, tolerating malformed input."""
        claims = decode_token_claims(token)
        if not claims:
            return cls()
        roles = claims.get("roles") or []
        if isinstance(roles, list):
            roles = " ".join(roles)
        return cls(
            audience=str(claims.get("aud") or "unknown"),
            scopes=str(claims.get("scp") or "none"),
            roles=str(roles or "none"),
            app_id=str(claims.get("appid") or claims.get("azp") or "unknown"),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "audience": self.audience,
            "scopes": self.scopes,
            "roles": self.roles,
            "app_id": self.app_id,
        }


def decode_token_claims(token: str | None) -> dict[str, Any]:
    """
    Decode the payload segment of a JWT without verifying it.

    Only used for diagnostics and account display; the backend validates
    tokens.

    Args:
        token: Bearer token

    Returns:
        Claims dictionary, empty if the token is missing or malformed
    """
    if not token:
        return {}
    parts = token.split(".")
    if len(parts) < 2:
        return {}
    payload = parts[1]
    padding = 4 - len(payload) % 4
    if padding != 4:
        payload += "=" * padding
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Could not decode token payload: {e}")
        return {}
    return claims if isinstance(claims, dict) else {}


def account_from_token(token: str | None) -> AccountInfo | None:
    """Build AccountInfo from token claims, or None without a tenant id."""
    claims = decode_token_claims(token)
    tenant_id = claims.get("tid")
    if not tenant_id:
        return None
    email = (
        claims.get("upn")
        or claims.get("preferred_username")
        or claims.get("unique_name")
        or ""
    )
    return AccountInfo(tenant_id=tenant_id, email=email, name=claims.get("name", ""))


class TokenProvider(ABC):
    """Supplies bearer tokens and tenant identity on demand."""

    @abstractmethod
    def get_token(self, family: str) -> str | None:
        """
        Get a bearer token for a method family.

        Args:
            family: "graph", "exo" or "compliance"

        Returns:
            Token string, or None when no token is available

        Raises:
            AuthError: If acquiring the token failed
        """
        pass

    @abstractmethod
    def get_account_info(self) -> AccountInfo | None:
        """Get the signed-in account, or None when not authenticated."""
        pass


class AzureIdentityTokenProvider(TokenProvider):
    """
    Token provider backed by an azure-identity credential.

    Uses DefaultAzureCredential unless a credential is supplied, which
    covers environment service principals, managed identity and the Azure
    CLI login.
    """

    def __init__(self, credential: Any = None, tenant_id: str | None = None):
        """
        Initialize provider.

        Args:
            credential: Any azure-identity TokenCredential
            tenant_id: Tenant override when token claims lack ``tid``
        """
        self._credential = credential
        self._tenant_id = tenant_id

    def _get_credential(self) -> Any:
        if self._credential is None:
            from azure.identity import DefaultAzureCredential

            self._credential = DefaultAzureCredential()
        return self._credential

    def get_token(self, family: str) -> str | None:
        scope = TOKEN_SCOPES.get(family)
        if scope is None:
            raise AuthError(f"Unknown token family: {family}")
        try:
            access_token = self._get_credential().get_token(scope)
        except Exception as e:
            raise AuthError(f"Failed to acquire {family} token: {e}") from e
        return access_token.token if access_token else None

    def get_account_info(self) -> AccountInfo | None:
        try:
            token = self.get_token(FAMILY_GRAPH)
        except AuthError as e:
            logger.debug(f"No account info available: {e}")
            return None
        account = account_from_token(token)
        if account is None and self._tenant_id:
            return AccountInfo(tenant_id=self._tenant_id)
        return account


class StaticTokenProvider(TokenProvider):
    """
    Token provider over pre-acquired tokens.

    Useful for automation where tokens are minted elsewhere, and for tests.
    """

    def __init__(
        self,
        tokens: dict[str, str] | None = None,
        account: AccountInfo | None = None,
    ):
        self._tokens = dict(tokens or {})
        self._account = account

    def get_token(self, family: str) -> str | None:
        return self._tokens.get(family)

    def get_account_info(self) -> AccountInfo | None:
        if self._account is not None:
            return self._account
        return account_from_token(self._tokens.get(FAMILY_GRAPH))

    @classmethod
    def from_env(cls) -> StaticTokenProvider:
        """
        Create provider from environment variables.

        Environment variables:
            TENANTGUARD_GRAPH_TOKEN: Microsoft Graph token
            TENANTGUARD_EXO_TOKEN: Exchange Online token
            TENANTGUARD_COMPLIANCE_TOKEN: Compliance Center token
            TENANTGUARD_TENANT_ID: Tenant id when tokens lack ``tid``
        """
        tokens = {}
        for family in TOKEN_SCOPES:
            value = os.getenv(f"TENANTGUARD_{family.upper()}_TOKEN")
            if value:
                tokens[family] = value

        account = None
        tenant_id = os.getenv("TENANTGUARD_TENANT_ID")
        if tenant_id:
            decoded = account_from_token(tokens.get(FAMILY_GRAPH))
            account = AccountInfo(
                tenant_id=tenant_id,
                email=decoded.email if decoded else "",
                name=decoded.name if decoded else "",
            )
        return cls(tokens, account)
