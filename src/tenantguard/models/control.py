"""
Control data model for TenantGuard.

This module defines the Control class representing a single compliance
requirement from the external catalog, along with the closed enumerations
of control types and deployment methods.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class ControlType(Enum):
    """Product area a control belongs to."""

    CONDITIONAL_ACCESS = "conditional-access"
    INTUNE = "intune"
    ENTRA = "entra"
    DEFENDER_ENDPOINT = "defender-endpoint"
    DEFENDER = "defender"
    EXCHANGE = "exchange"
    PURVIEW = "purview"
    SHAREPOINT = "sharepoint"
    TEAMS = "teams"

    @classmethod
    def from_string(cls, value: str | None) -> ControlType | None:
        """
        Create ControlType from string value.

        Args:
            value: String representation (case-insensitive)

        Returns:
            Matching ControlType, or None for unknown types
        """
        if not value:
            return None
        value_lower = value.lower()
        for control_type in cls:
            if control_type.value == value_lower:
                return control_type
        return None


class DeployMethod(Enum):
    """Backend protocol family used to remediate a control."""

    GRAPH = "graph"
    EXO_INVOKE = "exo-invoke"
    COMPLIANCE_INVOKE = "cc-invoke"
    SPO_GRAPH = "spo-graph"
    PS_ONLY = "ps-only"

    @property
    def is_deployable(self) -> bool:
        """Check if this method issues remote calls."""
        return self is not DeployMethod.PS_ONLY


@dataclass(frozen=True)
class Control:
    """
    Represents a single compliance control.

    Controls are loaded once from the catalog and never mutated.

    Attributes:
        id: Unique control identifier (e.g., "CA01")
        type: Product area string as it appears in the catalog
        spec_doc_ref: Reference to the control's specification document
        display_name: Human-readable name
        frameworks: Compliance framework tags
        required_licence: Licence needed to deploy the control, if any
        description: Longer explanation of the control
    """

    id: str
    type: str
    spec_doc_ref: str = ""
    display_name: str = ""
    frameworks: tuple[str, ...] = field(default_factory=tuple)
    required_licence: str | None = None
    description: str = ""

    @property
    def control_type(self) -> ControlType | None:
        """Get the typed product area, or None if unknown."""
        return ControlType.from_string(self.type)

    def to_dict(self) -> dict[str, Any]:
        """Convert control to dictionary representation."""
        return {
            "id": self.id,
            "type": self.type,
            "specDocRef": self.spec_doc_ref,
            "displayName": self.display_name,
            "frameworks": list(self.frameworks),
            "requiredLicence": self.required_licence,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Control:
        """
        Create a Control from a catalog entry.

        Accepts both the catalog's camelCase keys and the legacy ``file``
        key for the specification document reference.

        Args:
            data: Catalog entry

        Returns:
            New Control instance
        """
        frameworks = data.get("frameworks") or data.get("fws") or []
        if isinstance(frameworks, str):
            frameworks = [frameworks]

        return cls(
            id=data["id"],
            type=data.get("type", ""),
            spec_doc_ref=data.get("specDocRef") or data.get("file", ""),
            display_name=data.get("displayName") or data.get("name", ""),
            frameworks=tuple(frameworks),
            required_licence=data.get("requiredLicence") or data.get("licence"),
            description=data.get("description", ""),
        )


class ControlCollection:
    """
    A collection of Control objects indexed by id.

    Attributes:
        controls: List of controls in catalog order
    """

    def __init__(self, controls: list[Control] | None = None) -> None:
        self._controls: list[Control] = list(controls) if controls else []
        self._by_id: dict[str, Control] = {c.id: c for c in self._controls}

    @property
    def controls(self) -> list[Control]:
        """Get the list of controls."""
        return self._controls

    def __len__(self) -> int:
        return len(self._controls)

    def __iter__(self) -> Iterator[Control]:
        return iter(self._controls)

    def __contains__(self, control_id: object) -> bool:
        return control_id in self._by_id

    def get(self, control_id: str) -> Control | None:
        """Get a control by id."""
        return self._by_id.get(control_id)

    def filter_by_type(self, control_type: str) -> ControlCollection:
        """Filter controls by product area."""
        return ControlCollection([c for c in self._controls if c.type == control_type])

    def filter_by_framework(self, framework: str) -> ControlCollection:
        """Filter controls tagged with a compliance framework."""
        return ControlCollection(
            [c for c in self._controls if framework in c.frameworks]
        )

    def count_by_type(self) -> dict[str, int]:
        """Count controls per product area."""
        counts: dict[str, int] = {}
        for control in self._controls:
            counts[control.type] = counts.get(control.type, 0) + 1
        return counts

    def to_list(self) -> list[dict[str, Any]]:
        """Convert collection to list of dictionaries."""
        return [c.to_dict() for c in self._controls]

    def to_json(self) -> str:
        """Convert collection to JSON string."""
        return json.dumps(self.to_list(), indent=2)

    @classmethod
    def from_list(cls, data: list[dict[str, Any]]) -> ControlCollection:
        """Create collection from list of catalog entries."""
        return cls([Control.from_dict(d) for d in data])
