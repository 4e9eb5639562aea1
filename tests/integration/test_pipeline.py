"""
Integration tests for the scan, match and remediate pipeline.

Runs ComplianceService end to end against an in-process Graph double
that answers by method and path, so the real client paging, transport
error mapping, bundled rules and dispatcher all take part.
"""

from __future__ import annotations

from typing import Any

import pytest

from tenantguard.collectors.http import GraphClient, HttpResponse
from tenantguard.models.results import DeploymentState, MatchStatus
from tenantguard.service import ComplianceService

CA_PATH = "/v1.0/identity/conditionalAccess/policies"


class RoutedGraph(GraphClient):
    """GraphClient whose responses come from a route table."""

    def __init__(self, routes: dict[tuple[str, str], Any]):
        super().__init__()
        self.routes = routes
        self.calls: list[tuple[str, str, Any]] = []

    def request(self, method, path, token, body=None, headers=None):
        url = self.build_url(path)
        relative = url[len(self.base_url):] if url.startswith(self.base_url) else url
        self.calls.append((method.upper(), relative, body))

        if relative.endswith("/InvokeCommand"):
            return HttpResponse(200, {"value": []})

        route = self.routes.get((method.upper(), relative), HttpResponse(404, {"error": {"message": "Not found"}}))
        if callable(route):
            return route()
        return route


@pytest.fixture
def graph() -> RoutedGraph:
    ca_replies = iter(
        [
            HttpResponse(201, {"id": "new-policy"}),
            HttpResponse(409, {"error": {"code": "Conflict", "message": "Policy exists"}}),
        ]
    )
    routes = {
        ("GET", CA_PATH): HttpResponse(
            200,
            {
                "value": [
                    {"id": "p0", "grantControls": {"builtInControls": ["block"]}},
                    {
                        "id": "p1",
                        "displayName": "MFA all users",
                        "conditions": {"users": {"includeUsers": ["All"]}},
                        "grantControls": {"builtInControls": ["mfa"]},
                    },
                ]
            },
        ),
        ("GET", "/v1.0/deviceManagement/deviceCompliancePolicies"): HttpResponse(
            403, {"error": {"code": "Forbidden", "message": "Insufficient privileges"}}
        ),
        ("GET", "/v1.0/policies/authorizationPolicy"): HttpResponse(
            200,
            {"defaultUserRolePermissions": {"permissionGrantPoliciesAssigned": ["legacy"]}},
        ),
        ("GET", "/v1.0/me"): HttpResponse(200, {"id": "me"}),
        ("POST", CA_PATH): lambda: next(ca_replies),
    }
    return RoutedGraph(routes)


@pytest.fixture
def service(token_provider, sample_controls, documents, fast_config, graph) -> ComplianceService:
    return ComplianceService(
        token_provider,
        sample_controls,
        documents,
        config=fast_config,
        client=graph,
        sleep=lambda seconds: None,
    )


class TestPipeline:
    """End-to-end scan, match and deploy."""

    def test_before_scan_everything_is_unscanned_or_manual(self, service):
        results = service.match_all()
        assert results["CA02"].status == MatchStatus.NOT_SCANNED
        assert results["DEF01"].status == MatchStatus.MANUAL

    def test_scan_then_match(self, service):
        result = service.scan()

        assert result.success
        snapshot = result.snapshot
        assert snapshot.tenant_id == "tenant-123"
        assert snapshot.data["compliancePolicies"] is None
        assert snapshot.errors[0] == "compliancePolicies: HTTP 403: Insufficient privileges"
        assert len(snapshot.data["conditionalAccess"]) == 2

        results = service.match_all()
        assert results["CA02"].status == MatchStatus.CONFIGURED
        assert results["ENT01"].status == MatchStatus.MISSING
        assert results["TEA01"].status == MatchStatus.MANUAL

        summary = service.get_summary()
        assert summary.total == 7
        assert summary.configured == 1
        assert summary.missing == 1
        assert summary.manual == 5

    def test_deploy_then_redeploy_reports_exists(self, service, graph):
        first = service.deploy("CA02")
        assert first.state == DeploymentState.SUCCESS

        methods_and_paths = [(m, p) for m, p, _ in graph.calls]
        assert methods_and_paths == [("GET", "/v1.0/me"), ("POST", CA_PATH)]
        posted = graph.calls[1][2]
        assert "_metadata" not in posted
        assert "locations" not in posted["conditions"]

        repeat = service.deploy("CA02")
        assert repeat.state == DeploymentState.SUCCESS
        assert len(graph.calls) == 2

        service.clear_deployment_status("CA02")
        second = service.deploy("CA02")
        assert second.state == DeploymentState.EXISTS
        # Graph preflight runs once per session
        assert [p for _, p, _ in graph.calls].count("/v1.0/me") == 1

    def test_bulk_mixes_graph_and_remote_commands(self, service, graph):
        outcome = service.deploy_bulk(["CA02", "DEF01", "EXO02"])

        states = {r.control_id: r.state for r in outcome.results}
        assert states == {
            "CA02": DeploymentState.SUCCESS,
            "DEF01": DeploymentState.SUCCESS,
            "EXO02": DeploymentState.FAILED,
        }
        assert outcome.succeeded == 2
        assert outcome.failed == 1

        invoked = [body["CmdletInput"]["CmdletName"] for _, p, body in graph.calls if p.endswith("/InvokeCommand")]
        assert invoked == ["Get-OrganizationConfig", "New-SafeLinksPolicy", "New-SafeLinksRule"]
        assert service.get_deployment_status("DEF01").state == DeploymentState.SUCCESS

    def test_generate_script(self, service):
        script = service.generate_script("DEF01")
        assert "Connect-ExchangeOnline" in script
        assert "# Generated by TenantGuard" in script
        assert "New-SafeLinksRule @params" in script
