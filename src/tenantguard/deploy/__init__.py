"""
Deployment for TenantGuard.

This package resolves deployment methods, extracts payloads from
specification documents, executes them and generates PowerShell scripts
for controls without an automated path.
"""

from tenantguard.deploy.dispatcher import DeployDispatcher
from tenantguard.deploy.methods import (
    default_method,
    method_family,
    required_permissions,
    required_roles,
    resolve_method,
)
from tenantguard.deploy.payloads import (
    InvokeCommand,
    Payload,
    RestCall,
    extract_payload,
    normalize_commands,
)
from tenantguard.deploy.scripts import ScriptGenerator, format_ps_value
from tenantguard.deploy.transport import DeployTransport

__all__ = [
    "DeployDispatcher",
    "default_method",
    "method_family",
    "required_permissions",
    "required_roles",
    "resolve_method",
    "InvokeCommand",
    "Payload",
    "RestCall",
    "extract_payload",
    "normalize_commands",
    "ScriptGenerator",
    "format_ps_value",
    "DeployTransport",
]
