"""
Data models for TenantGuard.

This package provides the core data models used throughout TenantGuard:

- Control: A compliance requirement loaded from the external catalog
- Rule: The static condition set used to classify a control
- Snapshot: One timestamped read of tenant configuration
- MatchResult / DeploymentStatus: Classification and remediation state
"""

from tenantguard.models.control import (
    Control,
    ControlCollection,
    ControlType,
    DeployMethod,
)
from tenantguard.models.rule import (
    Condition,
    MatchMode,
    Rule,
    OPERATORS,
    UNARY_OPERATORS,
    MULTI_VALUE_OPERATORS,
    RULE_STATUS_MANUAL,
)
from tenantguard.models.results import (
    MatchStatus,
    MatchedItem,
    MatchResult,
    MatchSummary,
    DeploymentState,
    DeploymentStatus,
    DeployResult,
    BulkDeployResult,
    CONFIDENCE_HIGH,
    CONFIDENCE_MEDIUM,
)
from tenantguard.models.snapshot import (
    Snapshot,
    SourceResult,
    ScanResult,
)

__all__ = [
    # Control module
    "Control",
    "ControlCollection",
    "ControlType",
    "DeployMethod",
    # Rule module
    "Condition",
    "MatchMode",
    "Rule",
    "OPERATORS",
    "UNARY_OPERATORS",
    "MULTI_VALUE_OPERATORS",
    "RULE_STATUS_MANUAL",
    # Results module
    "MatchStatus",
    "MatchedItem",
    "MatchResult",
    "MatchSummary",
    "DeploymentState",
    "DeploymentStatus",
    "DeployResult",
    "BulkDeployResult",
    "CONFIDENCE_HIGH",
    "CONFIDENCE_MEDIUM",
    # Snapshot module
    "Snapshot",
    "SourceResult",
    "ScanResult",
]
