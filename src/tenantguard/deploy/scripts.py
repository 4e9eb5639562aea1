"""
PowerShell remediation script generation for TenantGuard.

Produces a script for controls whose remediation runs through PowerShell
modules: a header, the session connect directive for the management
surface, one parameter block and invocation per command, then any
post-deployment verification commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from tenantguard.deploy.payloads import normalize_commands
from tenantguard.models.control import ControlType

SEPARATOR = "#" + "=" * 60
DESCRIPTION_LIMIT = 120
UNSUPPORTED_SCRIPT = "# No PowerShell script available for this policy type\n"


@dataclass(frozen=True)
class ScriptSurface:
    """Management surface a script connects to."""

    module: str
    connect_comments: tuple[str, ...]
    connect_command: str


EXCHANGE_SURFACE = ScriptSurface(
    module="ExchangeOnlineManagement",
    connect_comments=("Connect to Exchange Online",),
    connect_command="Connect-ExchangeOnline",
)

SCRIPT_SURFACES: dict[ControlType, ScriptSurface] = {
    ControlType.DEFENDER: ScriptSurface(
        module="ExchangeOnlineManagement",
        connect_comments=(
            "Connect to Exchange Online (required for Defender for O365 cmdlets)",
        ),
        connect_command="Connect-ExchangeOnline",
    ),
    ControlType.EXCHANGE: EXCHANGE_SURFACE,
    ControlType.PURVIEW: ScriptSurface(
        module="ExchangeOnlineManagement",
        connect_comments=("Connect to Security & Compliance Center",),
        connect_command="Connect-IPPSSession",
    ),
    ControlType.SHAREPOINT: ScriptSurface(
        module="PnP.PowerShell",
        connect_comments=(
            "Connect to SharePoint Online Admin",
            "Replace <tenant> with your tenant name",
        ),
        connect_command=(
            'Connect-PnPOnline -Url "https://<tenant>-admin.sharepoint.com" -Interactive'
        ),
    ),
    ControlType.TEAMS: ScriptSurface(
        module="MicrosoftTeams",
        connect_comments=("Connect to Microsoft Teams",),
        connect_command="Connect-MicrosoftTeams",
    ),
}


def format_ps_value(value: Any) -> str:
    """
    Format a JSON value as a PowerShell literal.

    Examples:
        >>> format_ps_value(True)
        '$true'
        >>> format_ps_value(["a", 1])
        '@("a", 1)'
    """
    if value is None:
        return "$null"
    if isinstance(value, bool):
        return "$true" if value else "$false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        if not value:
            return "@()"
        return "@(" + ", ".join(format_ps_value(v) for v in value) + ")"
    if isinstance(value, dict):
        entries = [f"    {k} = {format_ps_value(v)}" for k, v in value.items()]
        return "@{\n" + "\n".join(entries) + "\n}"
    return '"' + str(value).replace('"', '`"') + '"'


def _truncate(text: str) -> str:
    if len(text) > DESCRIPTION_LIMIT:
        return text[:DESCRIPTION_LIMIT] + "..."
    return text


class ScriptGenerator:
    """
    Generates PowerShell remediation scripts from specification documents.

    Output is deterministic for a given document; the generation date is
    only included when ``generated_on`` is supplied.
    """

    def __init__(self, product_name: str = "TenantGuard"):
        self.product_name = product_name

    def supports(self, control_type: ControlType | str | None) -> bool:
        if not isinstance(control_type, ControlType):
            control_type = ControlType.from_string(control_type)
        return control_type in SCRIPT_SURFACES

    def header(
        self,
        metadata: dict[str, Any],
        module: str | None,
        generated_on: date | None = None,
    ) -> str:
        control_id = metadata.get("id") or metadata.get("policyNumber") or ""
        title = metadata.get("title") or metadata.get("displayName") or ""
        description = metadata.get("description") or ""

        lines = [SEPARATOR, f"# {control_id} - {title}"]
        if description:
            lines.append(f"# {_truncate(str(description))}")
        lines.append(f"# Generated by {self.product_name}")
        if generated_on is not None:
            lines.append(f"# {generated_on.isoformat()}")
        lines.extend([SEPARATOR, ""])
        if module:
            lines.extend([f"#Requires -Module {module}", ""])
        return "\n".join(lines) + "\n"

    def generate(
        self,
        document: dict[str, Any],
        control_type: ControlType | str | None,
        generated_on: date | None = None,
    ) -> str:
        """
        Generate a remediation script.

        Args:
            document: Specification document
            control_type: Control product area
            generated_on: Date written into the header, omitted when None

        Returns:
            Script text; a single comment line for unsupported types
        """
        if not isinstance(control_type, ControlType):
            control_type = ControlType.from_string(control_type)
        surface = SCRIPT_SURFACES.get(control_type) if control_type else None
        if surface is None:
            return UNSUPPORTED_SCRIPT

        metadata = document.get("_metadata") or {}
        parts = [self.header(metadata, surface.module, generated_on)]

        for comment in surface.connect_comments:
            parts.append(f"# {comment}\n")
        parts.append(f"{surface.connect_command}\n\n")

        for command in normalize_commands(document, control_type):
            parts.append(f"# {_truncate(command.description)}\n")
            parts.append("$params = @{\n")
            for key, value in command.parameters.items():
                parts.append(f"    {key} = {format_ps_value(value)}\n")
            parts.append("}\n")
            parts.append(f"{command.command_name} @params\n\n")

        post_deployment = document.get("postDeployment") or []
        if post_deployment:
            parts.append("# --- Post-Deployment Verification ---\n")
            for line in post_deployment:
                parts.append(f"{line}\n")

        return "".join(parts)
