"""
Payload extraction for TenantGuard deployments.

Turns a control's specification document into the ordered list of remote
calls its deployment method executes: REST calls for Graph-based methods,
remote commands for the InvokeCommand-based methods.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from tenantguard.config.settings import DEFAULT_GRAPH_BASE
from tenantguard.deploy.methods import resolve_method
from tenantguard.models.control import ControlType, DeployMethod

TENANT_ID_PLACEHOLDER = "<TENANT-ID>"

CONDITIONAL_ACCESS_ENDPOINT = "/v1.0/identity/conditionalAccess/policies"
COMPLIANCE_POLICIES_ENDPOINT = "/v1.0/deviceManagement/deviceCompliancePolicies"
DEVICE_CONFIGURATIONS_ENDPOINT = "/v1.0/deviceManagement/deviceConfigurations"
CONFIGURATION_POLICIES_ENDPOINT = "/beta/deviceManagement/configurationPolicies"
SHAREPOINT_SETTINGS_ENDPOINT = "/v1.0/admin/sharepoint/settings"

DEFAULT_COMPLIANCE_ACTIONS = [
    {
        "ruleName": "DefaultRule",
        "scheduledActionConfigurations": [
            {
                "actionType": "block",
                "gracePeriodHours": 0,
                "notificationTemplateId": "",
                "notificationMessageCCList": [],
            }
        ],
    }
]


@dataclass(frozen=True)
class RestCall:
    """
    One REST call against Microsoft Graph.

    Attributes:
        endpoint: Path relative to the Graph base URL
        method: HTTP method
        body: JSON body, or None
        order: Execution order key (ascending)
        description: Human-readable summary
    """

    endpoint: str
    method: str
    body: Any = None
    order: int = 0
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "method": self.method,
            "body": self.body,
            "order": self.order,
            "description": self.description,
        }


@dataclass(frozen=True)
class InvokeCommand:
    """
    One remote PowerShell command sent through InvokeCommand.

    Attributes:
        command_name: Cmdlet name
        parameters: Cmdlet parameters
        description: Human-readable summary
    """

    command_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "commandName": self.command_name,
            "parameters": self.parameters,
            "description": self.description,
        }


Call = Union[RestCall, InvokeCommand]


@dataclass
class Payload:
    """Calls a deployment executes, in execution order."""

    method: DeployMethod
    calls: list[Call] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.calls

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "calls": [c.to_dict() for c in self.calls],
        }


# Document cleaning


def strip_metadata(value: Any) -> Any:
    """Return a deep copy with every ``_``-prefixed key removed."""
    if isinstance(value, dict):
        return {
            k: strip_metadata(v)
            for k, v in value.items()
            if not (isinstance(k, str) and k.startswith("_"))
        }
    if isinstance(value, list):
        return [strip_metadata(v) for v in value]
    return copy.deepcopy(value)


def prune_empty(value: Any) -> Any:
    """
    Drop null values, empty lists and empty mappings from mappings.

    List elements are cleaned but never removed; empty strings are kept.
    """
    if isinstance(value, list):
        return [prune_empty(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if v is None:
                continue
            if isinstance(v, list) and not v:
                continue
            cleaned = prune_empty(v)
            if isinstance(cleaned, dict) and not cleaned:
                continue
            out[k] = cleaned
        return out
    return value


def clean_body(document: Any) -> Any:
    return prune_empty(strip_metadata(document))


def clean_parameters(parameters: Any) -> dict[str, Any]:
    """Drop ``_``-prefixed cmdlet parameters."""
    if not isinstance(parameters, dict):
        return {}
    return {
        k: copy.deepcopy(v) for k, v in parameters.items() if not k.startswith("_")
    }


# Graph extractors


def _display_name(body: Any, *keys: str) -> str:
    if not isinstance(body, dict):
        return ""
    for key in keys:
        if body.get(key):
            return str(body[key])
    return ""


def extract_conditional_access(document: dict[str, Any], **_: Any) -> list[Call]:
    body = clean_body(document)
    return [
        RestCall(
            endpoint=CONDITIONAL_ACCESS_ENDPOINT,
            method="POST",
            body=body,
            description=f"Create CA policy: {_display_name(body, 'displayName')}",
        )
    ]


def extract_intune(document: dict[str, Any], **_: Any) -> list[Call]:
    body = clean_body(document)
    odata_type = str(body.get("@odata.type") or "")
    if "compliancepolicy" in odata_type.lower():
        endpoint = COMPLIANCE_POLICIES_ENDPOINT
        # Graph rejects compliance policies without a scheduled action
        if not body.get("scheduledActionsForRule"):
            body["scheduledActionsForRule"] = copy.deepcopy(DEFAULT_COMPLIANCE_ACTIONS)
    else:
        endpoint = DEVICE_CONFIGURATIONS_ENDPOINT
    return [
        RestCall(
            endpoint=endpoint,
            method="POST",
            body=body,
            description=f"Create Intune policy: {_display_name(body, 'displayName')}",
        )
    ]


def extract_entra(
    document: dict[str, Any],
    tenant_id: str | None = None,
    **_: Any,
) -> list[Call]:
    """
    Extract Entra settings calls from ``graphApiCalls``.

    GET calls are documentation only and skipped. Calls run in ascending
    ``stepOrder``; bodies keep empty lists, which clear settings on PATCH.
    """
    calls: list[RestCall] = []
    for api_call in document.get("graphApiCalls") or []:
        if not isinstance(api_call, dict):
            continue
        method = str(api_call.get("method") or "PATCH").upper()
        if method == "GET":
            continue
        endpoint = str(api_call.get("endpoint") or "").replace(DEFAULT_GRAPH_BASE, "")
        if tenant_id:
            endpoint = endpoint.replace(TENANT_ID_PLACEHOLDER, tenant_id)
        body = api_call.get("body")
        calls.append(
            RestCall(
                endpoint=endpoint,
                method=method,
                body=strip_metadata(body) if body is not None else None,
                order=_step_order(api_call),
                description=str(api_call.get("description") or ""),
            )
        )
    # sorted() is stable: equal orders keep document order
    return sorted(calls, key=lambda c: c.order)


def _step_order(api_call: dict[str, Any]) -> int:
    """Read a call's ``stepOrder``; non-numeric values sort first."""
    try:
        return int(api_call.get("stepOrder", api_call.get("order")) or 0)
    except (TypeError, ValueError):
        return 0


_DEFENDER_ENDPOINT_SECTIONS = (
    ("endpointSecurityPolicy", CONFIGURATION_POLICIES_ENDPOINT, "Create endpoint security policy"),
    ("intuneProfile", DEVICE_CONFIGURATIONS_ENDPOINT, "Create device config"),
    ("intuneOmaUriPolicy", DEVICE_CONFIGURATIONS_ENDPOINT, "Create OMA-URI config"),
    ("intuneEndpointSecurityPolicy", CONFIGURATION_POLICIES_ENDPOINT, "Create endpoint security policy"),
)


def extract_defender_endpoint(document: dict[str, Any], **_: Any) -> list[Call]:
    """Use the first policy section present in the document."""
    for key, endpoint, label in _DEFENDER_ENDPOINT_SECTIONS:
        section = document.get(key)
        if section:
            body = clean_body(section)
            name = _display_name(body, "name", "displayName")
            return [
                RestCall(
                    endpoint=endpoint,
                    method="POST",
                    body=body,
                    description=f"{label}: {name}",
                )
            ]
    return []


# SharePoint settings exposed through Graph


def parse_timespan(value: Any) -> int:
    """Convert an ``HH:MM:SS`` timespan to seconds."""
    if not value:
        return 0
    total = 0
    for multiplier, part in zip((3600, 60, 1), str(value).split(":")):
        try:
            total += multiplier * int(float(part))
        except ValueError:
            continue
    return total


def _first_step_parameters(document: dict[str, Any]) -> dict[str, Any]:
    steps = document.get("steps") or []
    if steps and isinstance(steps[0], dict) and steps[0].get("parameters"):
        return steps[0]["parameters"]
    return document.get("parameters") or {}


def _spo_external_sharing(document: dict[str, Any]) -> dict[str, Any]:
    return {
        "sharingCapability": "externalUserSharingOnly",
        "isRequireAcceptingUserToMatchInvitedUserEnabled": True,
    }


def _spo_legacy_auth(document: dict[str, Any]) -> dict[str, Any]:
    return {"isLegacyAuthProtocolsEnabled": False}


def _spo_domain_allow_list(document: dict[str, Any]) -> dict[str, Any]:
    params = _first_step_parameters(document)
    domains = params.get("SharingAllowedDomainList") or "partner1.com partner2.com"
    return {
        "sharingDomainRestrictionMode": "allowList",
        "sharingAllowedDomainList": [d for d in re.split(r"[\s,]+", domains) if d],
    }


def _spo_idle_sign_out(document: dict[str, Any]) -> dict[str, Any]:
    params = _first_step_parameters(document)
    return {
        "idleSessionSignOut": {
            "isEnabled": True,
            "warnAfterInSeconds": parse_timespan(params.get("WarnAfter") or "00:55:00"),
            "signOutAfterInSeconds": parse_timespan(
                params.get("SignOutAfter") or "01:00:00"
            ),
        }
    }


def _spo_external_resharing(document: dict[str, Any]) -> dict[str, Any]:
    return {"isResharingByExternalUsersEnabled": False}


SPO_SETTINGS_TRANSFORMS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "SPO07": _spo_external_sharing,
    "SPO09": _spo_legacy_auth,
    "SPO13": _spo_domain_allow_list,
    "SPO15": _spo_idle_sign_out,
    "SPO19": _spo_external_resharing,
}


def extract_sharepoint_settings(
    document: dict[str, Any],
    control_id: str = "",
    **_: Any,
) -> list[Call]:
    transform = SPO_SETTINGS_TRANSFORMS.get(control_id)
    if transform is None:
        return []
    return [
        RestCall(
            endpoint=SHAREPOINT_SETTINGS_ENDPOINT,
            method="PATCH",
            body=transform(document),
            description=f"Update SharePoint tenant settings for {control_id}",
        )
    ]


# Remote command extractors


def _step_commands(document: dict[str, Any], use_notes: bool) -> list[InvokeCommand]:
    commands = []
    for step in document.get("steps") or []:
        if not isinstance(step, dict) or not step.get("cmdlet"):
            continue
        description = step["cmdlet"]
        if use_notes and step.get("_notes"):
            description = str(step["_notes"])
        commands.append(
            InvokeCommand(
                command_name=step["cmdlet"],
                parameters=clean_parameters(step.get("parameters")),
                description=description,
            )
        )
    return commands


def normalize_commands(
    document: dict[str, Any],
    control_type: ControlType | None,
) -> list[InvokeCommand]:
    """
    Normalize a document's commands into one sequence.

    Purview documents list ``powershellCommands`` (single commands or
    lists, keyed by purpose) followed by any ``steps``. Other documents use
    ``steps`` when present, otherwise a flat ``cmdlet`` + ``parameters``.

    Args:
        document: Specification document
        control_type: Control product area

    Returns:
        Commands in execution order
    """
    if control_type == ControlType.PURVIEW:
        commands: list[InvokeCommand] = []
        sections = document.get("powershellCommands")
        if not isinstance(sections, dict):
            sections = {}
        for key, entry in sections.items():
            items = entry if isinstance(entry, list) else [entry]
            for item in items:
                if not isinstance(item, dict) or not item.get("cmdlet"):
                    continue
                commands.append(
                    InvokeCommand(
                        command_name=item["cmdlet"],
                        parameters=clean_parameters(item.get("parameters")),
                        description=f"{key}: {item['cmdlet']}",
                    )
                )
        commands.extend(_step_commands(document, use_notes=False))
        return commands

    use_notes = control_type in (ControlType.EXCHANGE, ControlType.SHAREPOINT)
    steps = _step_commands(document, use_notes)
    if document.get("steps"):
        return steps

    if document.get("cmdlet") and document.get("parameters"):
        return [
            InvokeCommand(
                command_name=document["cmdlet"],
                parameters=clean_parameters(document["parameters"]),
                description=document["cmdlet"],
            )
        ]
    return []


# DNS verification only: nothing to invoke
NO_COMMAND_CONTROLS = frozenset({"EXO02"})


def extract_remote_commands(
    document: dict[str, Any],
    control_type: ControlType | None = None,
    control_id: str = "",
    **_: Any,
) -> list[Call]:
    if control_type == ControlType.EXCHANGE and control_id in NO_COMMAND_CONTROLS:
        return []
    return list(normalize_commands(document, control_type))


GRAPH_EXTRACTORS: dict[ControlType, Callable[..., list[Call]]] = {
    ControlType.CONDITIONAL_ACCESS: extract_conditional_access,
    ControlType.INTUNE: extract_intune,
    ControlType.ENTRA: extract_entra,
    ControlType.DEFENDER_ENDPOINT: extract_defender_endpoint,
}


def extract_payload(
    document: dict[str, Any],
    control_type: ControlType | str | None,
    control_id: str,
    tenant_id: str | None = None,
) -> Payload:
    """
    Extract the calls a control's deployment executes.

    Args:
        document: Specification document
        control_type: Control product area
        control_id: Control id (selects per-control overrides)
        tenant_id: Substituted for ``<TENANT-ID>`` in endpoints

    Returns:
        Payload; empty when the document yields nothing executable
    """
    if not isinstance(control_type, ControlType):
        control_type = ControlType.from_string(control_type)
    method = resolve_method(control_type, control_id)
    if not isinstance(document, dict):
        return Payload(method=method)

    calls: list[Call] = []
    if method == DeployMethod.SPO_GRAPH:
        calls = extract_sharepoint_settings(document, control_id=control_id)
    elif method == DeployMethod.GRAPH:
        extractor = GRAPH_EXTRACTORS.get(control_type) if control_type else None
        if extractor is not None:
            calls = extractor(document, tenant_id=tenant_id, control_id=control_id)
    elif method in (DeployMethod.EXO_INVOKE, DeployMethod.COMPLIANCE_INVOKE):
        calls = extract_remote_commands(
            document, control_type=control_type, control_id=control_id
        )

    return Payload(method=method, calls=calls)
