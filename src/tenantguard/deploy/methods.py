"""
Deployment method resolution for TenantGuard.

Maps a control to the backend protocol family used to remediate it. A
per-control override beats the per-type default; controls matching
neither are PowerShell-only.
"""

from __future__ import annotations

from tenantguard.auth.tokens import FAMILY_COMPLIANCE, FAMILY_EXO, FAMILY_GRAPH
from tenantguard.models.control import ControlType, DeployMethod

TYPE_DEFAULT_METHODS: dict[ControlType, DeployMethod] = {
    ControlType.CONDITIONAL_ACCESS: DeployMethod.GRAPH,
    ControlType.INTUNE: DeployMethod.GRAPH,
    ControlType.ENTRA: DeployMethod.GRAPH,
    ControlType.DEFENDER_ENDPOINT: DeployMethod.GRAPH,
    ControlType.DEFENDER: DeployMethod.EXO_INVOKE,
    ControlType.EXCHANGE: DeployMethod.EXO_INVOKE,
    ControlType.PURVIEW: DeployMethod.COMPLIANCE_INVOKE,
    ControlType.SHAREPOINT: DeployMethod.PS_ONLY,
    ControlType.TEAMS: DeployMethod.PS_ONLY,
}

METHOD_OVERRIDES: dict[str, DeployMethod] = {
    # DNS-record verification only
    "EXO02": DeployMethod.PS_ONLY,
    # SharePoint settings exposed through Graph
    "SPO07": DeployMethod.SPO_GRAPH,
    "SPO09": DeployMethod.SPO_GRAPH,
    "SPO13": DeployMethod.SPO_GRAPH,
    "SPO15": DeployMethod.SPO_GRAPH,
    "SPO19": DeployMethod.SPO_GRAPH,
}

# Token family and preflight probe family per method
METHOD_FAMILIES: dict[DeployMethod, str | None] = {
    DeployMethod.GRAPH: FAMILY_GRAPH,
    DeployMethod.SPO_GRAPH: FAMILY_GRAPH,
    DeployMethod.EXO_INVOKE: FAMILY_EXO,
    DeployMethod.COMPLIANCE_INVOKE: FAMILY_COMPLIANCE,
    DeployMethod.PS_ONLY: None,
}

GRAPH_PERMISSIONS: dict[ControlType, list[str]] = {
    ControlType.CONDITIONAL_ACCESS: ["Policy.ReadWrite.ConditionalAccess"],
    ControlType.INTUNE: [
        "DeviceManagementManagedDevices.ReadWrite.All",
        "DeviceManagementConfiguration.ReadWrite.All",
    ],
    ControlType.ENTRA: [
        "Policy.ReadWrite.Authorization",
        "Directory.ReadWrite.All",
        "Policy.ReadWrite.AuthenticationMethod",
    ],
    ControlType.DEFENDER_ENDPOINT: ["DeviceManagementConfiguration.ReadWrite.All"],
}

REQUIRED_ROLES: dict[ControlType, list[str]] = {
    ControlType.CONDITIONAL_ACCESS: [
        "Conditional Access Administrator",
        "Security Administrator",
    ],
    ControlType.INTUNE: ["Intune Administrator"],
    ControlType.ENTRA: ["Global Administrator"],
    ControlType.DEFENDER_ENDPOINT: ["Security Administrator", "Intune Administrator"],
    ControlType.DEFENDER: ["Security Administrator"],
    ControlType.EXCHANGE: ["Exchange Administrator"],
    ControlType.SHAREPOINT: ["SharePoint Administrator"],
    ControlType.TEAMS: ["Teams Administrator"],
    ControlType.PURVIEW: ["Compliance Administrator"],
}


def _as_control_type(control_type: ControlType | str | None) -> ControlType | None:
    if isinstance(control_type, ControlType):
        return control_type
    return ControlType.from_string(control_type)


def default_method(control_type: ControlType | str | None) -> DeployMethod:
    """Get a type's default method, ignoring per-control overrides."""
    resolved = _as_control_type(control_type)
    if resolved is None:
        return DeployMethod.PS_ONLY
    return TYPE_DEFAULT_METHODS.get(resolved, DeployMethod.PS_ONLY)


def resolve_method(
    control_type: ControlType | str | None,
    control_id: str,
) -> DeployMethod:
    """
    Resolve the deployment method for a control.

    Args:
        control_type: Control product area
        control_id: Control id, checked against the override table first

    Returns:
        DeployMethod, PS_ONLY when nothing matches
    """
    override = METHOD_OVERRIDES.get(control_id)
    if override is not None:
        return override
    return default_method(control_type)


def method_family(method: DeployMethod) -> str | None:
    """Token / preflight family for a method, None for PS_ONLY."""
    return METHOD_FAMILIES[method]


def required_permissions(
    control_type: ControlType | str | None,
    control_id: str,
) -> list[str]:
    """List the API permissions a control's deployment needs."""
    method = resolve_method(control_type, control_id)
    if method == DeployMethod.GRAPH:
        resolved = _as_control_type(control_type)
        return list(GRAPH_PERMISSIONS.get(resolved, [])) if resolved else []
    if method == DeployMethod.EXO_INVOKE:
        return ["Exchange.Manage (delegated)"]
    if method == DeployMethod.COMPLIANCE_INVOKE:
        return ["Compliance Center (delegated)"]
    if method == DeployMethod.SPO_GRAPH:
        return ["SharePointTenantSettings.ReadWrite.All"]
    return []


def required_roles(control_type: ControlType | str | None) -> list[str]:
    """List the directory roles an operator needs for a control type."""
    resolved = _as_control_type(control_type)
    if resolved is None:
        return ["Global Administrator"]
    return list(REQUIRED_ROLES.get(resolved, ["Global Administrator"]))
