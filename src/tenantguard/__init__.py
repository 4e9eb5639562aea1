"""
TenantGuard - Microsoft 365 tenant compliance scanning and remediation

Answers two questions about a tenant: which catalog controls are already
configured, and how to deploy the ones that are not.

Key Features:
- Concurrent read-only scan of tenant configuration via Microsoft Graph
- Declarative YAML match rules classifying each control
- Automated deployment through Graph and the Exchange / Compliance
  InvokeCommand APIs, with per-control status tracking
- PowerShell remediation scripts for controls without an automated path

Quick Start:
    >>> from tenantguard import ComplianceService, TenantGuardConfig
    >>> from tenantguard.auth import AzureIdentityTokenProvider
    >>>
    >>> config = TenantGuardConfig(catalog_dir="./catalog")
    >>> service = ComplianceService.from_config(config, AzureIdentityTokenProvider())
    >>> service.scan()
    >>> print(service.get_summary().to_dict())
"""

from __future__ import annotations

__version__ = "0.1.0"

# Core models
from tenantguard.models import (
    Control,
    ControlCollection,
    ControlType,
    DeployMethod,
    MatchResult,
    MatchStatus,
    Rule,
    Snapshot,
)

# Configuration
from tenantguard.config import TenantGuardConfig, load_config_from_env

# Errors
from tenantguard.errors import TenantGuardError

# Pipeline
from tenantguard.collectors import TenantScanner
from tenantguard.engine import MatchEngine, RuleEvaluator, RuleLoader
from tenantguard.deploy import DeployDispatcher, ScriptGenerator
from tenantguard.service import ComplianceService

__all__ = [
    "__version__",
    "Control",
    "ControlCollection",
    "ControlType",
    "DeployMethod",
    "MatchResult",
    "MatchStatus",
    "Rule",
    "Snapshot",
    "TenantGuardConfig",
    "load_config_from_env",
    "TenantGuardError",
    "TenantScanner",
    "MatchEngine",
    "RuleEvaluator",
    "RuleLoader",
    "DeployDispatcher",
    "ScriptGenerator",
    "ComplianceService",
]
