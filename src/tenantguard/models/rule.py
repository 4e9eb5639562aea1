"""
Match rule data model for TenantGuard.

A Rule describes how to classify one control against a tenant snapshot:
either a set of conditions applied to one scan source, or a static manual
verification instruction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MatchMode(Enum):
    """Strategy for applying a rule's conditions to a scan source."""

    ANY = "any"  # existential over a list source
    ALL = "all"  # conjunctive over a singleton source
    DIRECT = "direct"  # same as ALL

    @classmethod
    def from_string(cls, value: str) -> MatchMode:
        """
        Create MatchMode from string value.

        Raises:
            ValueError: If value is not a valid match mode
        """
        for mode in cls:
            if mode.value == value:
                return mode
        raise ValueError(f"Invalid match mode: {value}")


OPERATORS = frozenset(
    {
        "equals",
        "notEquals",
        "contains",
        "containsAny",
        "containsAll",
        "isEmpty",
        "isNotEmpty",
        "exists",
        "notExists",
        "includes",
    }
)

UNARY_OPERATORS = frozenset({"isEmpty", "isNotEmpty", "exists", "notExists"})

MULTI_VALUE_OPERATORS = frozenset({"containsAny", "containsAll"})

RULE_STATUS_MANUAL = "manual"


@dataclass(frozen=True)
class Condition:
    """
    A single (path, operator, expected) check.

    Attributes:
        path: Dot-separated field locator
        op: Operator name
        value: Expected value for single-value operators
        values: Expected values for containsAny / containsAll
    """

    path: str
    op: str
    value: Any = None
    values: tuple[Any, ...] | None = None

    @property
    def expected(self) -> Any:
        """Get the expected operand for this condition's operator."""
        if self.op in MULTI_VALUE_OPERATORS:
            if self.values is not None:
                return list(self.values)
            return self.value
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Convert condition to dictionary representation."""
        data: dict[str, Any] = {"path": self.path, "op": self.op}
        if self.values is not None:
            data["values"] = list(self.values)
        elif self.op not in UNARY_OPERATORS:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        """Create a Condition from a rule catalog entry."""
        values = data.get("values")
        return cls(
            path=data.get("path", ""),
            op=data.get("op", ""),
            value=data.get("value"),
            values=tuple(values) if isinstance(values, list) else None,
        )


@dataclass(frozen=True)
class Rule:
    """
    Static match rule for one control.

    Attributes:
        control_id: Control this rule classifies
        scan_source: Snapshot source the conditions apply to
        match_mode: How conditions are applied to the source
        conditions: Conditions that must all hold
        status: "manual" for rules that bypass scanning, else None
        detail: Static detail for manual rules
        verify_command: Command an operator can run to verify manually
    """

    control_id: str
    scan_source: str = ""
    match_mode: MatchMode | None = None
    conditions: tuple[Condition, ...] = field(default_factory=tuple)
    status: str | None = None
    detail: str = ""
    verify_command: str | None = None

    @property
    def is_manual(self) -> bool:
        """Check if this rule bypasses scanning."""
        return self.status == RULE_STATUS_MANUAL

    def to_dict(self) -> dict[str, Any]:
        """Convert rule to dictionary representation."""
        if self.is_manual:
            return {
                "status": self.status,
                "detail": self.detail,
                "verifyCommand": self.verify_command,
            }
        return {
            "scanSource": self.scan_source,
            "matchMode": self.match_mode.value if self.match_mode else None,
            "conditions": [c.to_dict() for c in self.conditions],
        }

    @classmethod
    def from_dict(cls, control_id: str, data: dict[str, Any]) -> Rule:
        """
        Create a Rule from a rule catalog entry.

        Args:
            control_id: Control id the entry is keyed by
            data: Rule definition

        Raises:
            ValueError: If the match mode is invalid
        """
        if data.get("status") == RULE_STATUS_MANUAL:
            return cls(
                control_id=control_id,
                status=RULE_STATUS_MANUAL,
                detail=data.get("detail") or "Requires PowerShell verification",
                verify_command=data.get("verifyCommand"),
            )

        mode = data.get("matchMode")
        return cls(
            control_id=control_id,
            scan_source=data.get("scanSource", ""),
            match_mode=MatchMode.from_string(mode) if mode else None,
            conditions=tuple(
                Condition.from_dict(c) for c in data.get("conditions") or []
            ),
        )
