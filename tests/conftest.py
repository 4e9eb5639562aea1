"""
Pytest configuration and fixtures for TenantGuard tests.

This module provides common fixtures used across unit and integration tests.
"""

from __future__ import annotations

import base64
import json
from typing import Any
from unittest.mock import MagicMock

import pytest

from tenantguard.auth import AccountInfo, StaticTokenProvider
from tenantguard.catalog import SpecDocumentLoader
from tenantguard.collectors.http import GraphClient, HttpResponse
from tenantguard.config import TenantGuardConfig
from tenantguard.errors import CatalogError
from tenantguard.models import Control, ControlCollection, Snapshot


def make_token(claims: dict[str, Any]) -> str:
    """Build an unsigned JWT carrying the given claims."""

    def encode(part: dict[str, Any]) -> str:
        raw = json.dumps(part).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{encode({'alg': 'none', 'typ': 'JWT'})}.{encode(claims)}.sig"


class InMemoryDocuments(SpecDocumentLoader):
    """Specification documents keyed by (type, ref)."""

    def __init__(self, documents: dict[tuple[str, str], dict[str, Any]] | None = None):
        self.documents = dict(documents or {})
        self.loads: list[tuple[str, str]] = []

    def load(self, control_type: str, ref: str) -> dict[str, Any]:
        self.loads.append((control_type, ref))
        try:
            return self.documents[(control_type, ref)]
        except KeyError:
            raise CatalogError(f"Failed to load {control_type}/{ref}: not found")


# Token fixtures


@pytest.fixture
def token_factory():
    """Builds unsigned JWTs from claims."""
    return make_token


@pytest.fixture
def graph_token() -> str:
    return make_token(
        {
            "aud": "https://graph.microsoft.com",
            "scp": "Policy.Read.All Policy.ReadWrite.ConditionalAccess",
            "tid": "tenant-123",
            "upn": "admin@contoso.com",
            "name": "Tenant Admin",
            "appid": "app-1",
        }
    )


@pytest.fixture
def exo_token() -> str:
    return make_token(
        {"aud": "https://outlook.office365.com", "scp": "Exchange.Manage", "tid": "tenant-123"}
    )


@pytest.fixture
def compliance_token() -> str:
    return make_token(
        {
            "aud": "https://ps.compliance.protection.outlook.com",
            "scp": "Compliance.Manage",
            "tid": "tenant-123",
        }
    )


@pytest.fixture
def token_provider(graph_token, exo_token, compliance_token) -> StaticTokenProvider:
    return StaticTokenProvider(
        {"graph": graph_token, "exo": exo_token, "compliance": compliance_token},
        AccountInfo(tenant_id="tenant-123", email="admin@contoso.com"),
    )


# Configuration fixtures


@pytest.fixture
def fast_config() -> TenantGuardConfig:
    """Configuration with pacing delays disabled."""
    return TenantGuardConfig(command_delay=0.0, bulk_delay=0.0)


@pytest.fixture
def mock_client() -> MagicMock:
    """GraphClient double returning 200 for every request."""
    client = MagicMock(spec=GraphClient)
    client.request.return_value = HttpResponse(status=200, data={})
    client.build_url.side_effect = lambda path: "https://graph.microsoft.com" + path
    return client


# Catalog fixtures


@pytest.fixture
def sample_controls() -> ControlCollection:
    return ControlCollection(
        [
            Control(id="CA02", type="conditional-access", spec_doc_ref="CA02.json",
                    display_name="Require MFA for all users"),
            Control(id="ENT01", type="entra", spec_doc_ref="ENT01.json",
                    display_name="Restrict user consent"),
            Control(id="DEF01", type="defender", spec_doc_ref="DEF01.json",
                    display_name="Safe Links"),
            Control(id="EXO02", type="exchange", spec_doc_ref="EXO02.json",
                    display_name="DMARC"),
            Control(id="PV01", type="purview", spec_doc_ref="PV01.json",
                    display_name="DLP policy"),
            Control(id="SPO09", type="sharepoint", spec_doc_ref="SPO09.json",
                    display_name="Block legacy auth"),
            Control(id="TEA01", type="teams", spec_doc_ref="TEA01.json",
                    display_name="External access"),
        ]
    )


@pytest.fixture
def ca_document() -> dict[str, Any]:
    return {
        "_metadata": {"id": "CA02", "title": "Require MFA"},
        "displayName": "CA02 - Require MFA for all users",
        "state": "enabledForReportingButNotEnforced",
        "conditions": {
            "users": {"includeUsers": ["All"], "excludeUsers": []},
            "applications": {"includeApplications": ["All"]},
            "locations": None,
        },
        "grantControls": {"operator": "OR", "builtInControls": ["mfa"]},
    }


@pytest.fixture
def entra_document() -> dict[str, Any]:
    return {
        "_metadata": {"id": "ENT01"},
        "graphApiCalls": [
            {"method": "GET", "endpoint": "/v1.0/policies/authorizationPolicy"},
            {
                "method": "PATCH",
                "endpoint": "https://graph.microsoft.com/v1.0/policies/authorizationPolicy",
                "body": {"defaultUserRolePermissions": {"permissionGrantPoliciesAssigned": []}},
                "stepOrder": 2,
            },
            {
                "method": "POST",
                "endpoint": "/v1.0/organization/<TENANT-ID>/settings",
                "body": {"_note": "first", "value": 1},
                "stepOrder": 0,
            },
            {
                "endpoint": "/v1.0/policies/adminConsentRequestPolicy",
                "body": {"isEnabled": True},
                "stepOrder": 1,
            },
        ],
    }


@pytest.fixture
def defender_document() -> dict[str, Any]:
    return {
        "_metadata": {"id": "DEF01", "title": "Safe Links", "description": "Enable Safe Links"},
        "steps": [
            {"cmdlet": "New-SafeLinksPolicy", "parameters": {"Name": "TG Safe Links", "EnableSafeLinksForEmail": True}},
            {"cmdlet": "New-SafeLinksRule", "parameters": {"Name": "TG Safe Links", "SafeLinksPolicy": "TG Safe Links", "RecipientDomainIs": ["contoso.com"]}},
        ],
        "postDeployment": ["Get-SafeLinksPolicy | Format-List Name"],
    }


@pytest.fixture
def documents(ca_document, entra_document, defender_document) -> InMemoryDocuments:
    return InMemoryDocuments(
        {
            ("conditional-access", "CA02.json"): ca_document,
            ("entra", "ENT01.json"): entra_document,
            ("defender", "DEF01.json"): defender_document,
            ("exchange", "EXO02.json"): {
                "cmdlet": "Set-DmarcRecord",
                "parameters": {"Domain": "contoso.com"},
            },
            ("purview", "PV01.json"): {
                "powershellCommands": {
                    "createPolicy": {"cmdlet": "New-DlpCompliancePolicy", "parameters": {"Name": "TG DLP", "_note": "x"}},
                    "createRule": [
                        {"cmdlet": "New-DlpComplianceRule", "parameters": {"Name": "TG DLP Rule", "Policy": "TG DLP"}},
                    ],
                },
            },
            ("sharepoint", "SPO09.json"): {"cmdlet": "Set-PnPTenant", "parameters": {"LegacyAuthProtocolsEnabled": False}},
            ("teams", "TEA01.json"): {"cmdlet": "Set-CsTenantFederationConfiguration", "parameters": {"AllowPublicUsers": False}},
        }
    )


# Snapshot fixtures


@pytest.fixture
def sample_snapshot() -> Snapshot:
    return Snapshot(
        data={
            "conditionalAccess": [
                {"id": "p0", "displayName": "Block legacy", "grantControls": {"builtInControls": ["block"]}},
                {
                    "id": "p1",
                    "displayName": "MFA all users",
                    "conditions": {"users": {"includeUsers": ["All"]}},
                    "grantControls": {"builtInControls": ["mfa"]},
                },
            ],
            "authorizationPolicy": {
                "id": "authorizationPolicy",
                "defaultUserRolePermissions": {"permissionGrantPoliciesAssigned": []},
            },
            "compliancePolicies": None,
        },
        errors=["compliancePolicies: HTTP 403: Forbidden"],
        source_count=3,
    )


@pytest.fixture
def catalog_root(tmp_path, sample_controls, documents):
    """On-disk catalog holding the sample controls and their documents."""
    root = tmp_path / "catalog"
    root.mkdir()
    entries = [
        {"id": c.id, "type": c.type, "file": c.spec_doc_ref, "name": c.display_name}
        for c in sample_controls
    ]
    (root / "controls.json").write_text(json.dumps(entries))
    for (control_type, ref), document in documents.documents.items():
        folder = root / "policies" / control_type
        folder.mkdir(parents=True, exist_ok=True)
        (folder / ref).write_text(json.dumps(document))
    return root
