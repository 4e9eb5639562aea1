"""
Rule matching engine for TenantGuard.

This package evaluates declarative rule conditions against tenant
snapshots to classify each control.
"""

from tenantguard.engine.loader import RuleLoader
from tenantguard.engine.matcher import MatchEngine
from tenantguard.engine.operators import (
    ABSENT,
    OPERATOR_FUNCTIONS,
    RuleEvaluator,
    get_nested_value,
    strict_equals,
)

__all__ = [
    "RuleLoader",
    "MatchEngine",
    "ABSENT",
    "OPERATOR_FUNCTIONS",
    "RuleEvaluator",
    "get_nested_value",
    "strict_equals",
]
