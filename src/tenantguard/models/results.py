"""
Result data models for TenantGuard.

Match results classify controls against a snapshot; deployment statuses
track the remediation state machine per control.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MatchStatus(Enum):
    """Classification of a control against a snapshot."""

    CONFIGURED = "configured"
    MISSING = "missing"
    MANUAL = "manual"
    NOT_SCANNED = "not_scanned"
    ERROR = "error"


CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"


@dataclass(frozen=True)
class MatchedItem:
    """Reference to the snapshot item that satisfied a rule."""

    display_name: str
    id: str | None = None
    index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"displayName": self.display_name, "id": self.id, "index": self.index}


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of matching one control against a snapshot.

    Attributes:
        status: Classification
        detail: Human-readable explanation
        matched_item: Item that satisfied the rule (configured only)
        verify_command: Manual verification command (manual only)
        confidence: "high" when derived from scanned data, else "medium"
    """

    status: MatchStatus
    detail: str
    matched_item: MatchedItem | None = None
    verify_command: str | None = None
    confidence: str = CONFIDENCE_MEDIUM

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary representation."""
        return {
            "status": self.status.value,
            "detail": self.detail,
            "matchedItem": self.matched_item.to_dict() if self.matched_item else None,
            "verifyCommand": self.verify_command,
            "confidence": self.confidence,
        }


@dataclass
class MatchSummary:
    """Counts of match results by status."""

    configured: int = 0
    missing: int = 0
    manual: int = 0
    not_scanned: int = 0
    error: int = 0
    total: int = 0

    @property
    def compliance_percent(self) -> float:
        """Share of scannable controls that are configured."""
        scannable = self.configured + self.missing
        if scannable == 0:
            return 0.0
        return round(self.configured / scannable * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "configured": self.configured,
            "missing": self.missing,
            "manual": self.manual,
            "not_scanned": self.not_scanned,
            "error": self.error,
            "total": self.total,
        }


class DeploymentState(Enum):
    """State of a control's deployment."""

    DEPLOYING = "deploying"
    SUCCESS = "success"
    EXISTS = "exists"
    FAILED = "failed"

    @property
    def is_sticky(self) -> bool:
        """Terminal states that persist until an explicit reset."""
        return self in (DeploymentState.SUCCESS, DeploymentState.EXISTS)


@dataclass(frozen=True)
class DeploymentStatus:
    """Recorded deployment state for one control."""

    state: DeploymentState
    detail: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.state.value,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DeployResult:
    """
    Outcome of one deploy() call.

    Attributes:
        control_id: Control that was deployed
        state: Terminal deployment state
        error: Error message for failed deployments
        retryable: True when the failure was a rate limit
        calls_executed: Number of remote calls that completed
    """

    control_id: str
    state: DeploymentState
    error: str | None = None
    retryable: bool = False
    calls_executed: int = 0

    @property
    def success(self) -> bool:
        return self.state == DeploymentState.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "controlId": self.control_id,
            "status": self.state.value,
            "error": self.error,
            "retryable": self.retryable,
            "callsExecuted": self.calls_executed,
        }


@dataclass
class BulkDeployResult:
    """Aggregate counts from a bulk deployment."""

    total: int = 0
    succeeded: int = 0
    exists: int = 0
    failed: int = 0
    results: list[DeployResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "exists": self.exists,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }
