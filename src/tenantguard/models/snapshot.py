"""
Snapshot data model for TenantGuard.

A Snapshot is one complete, timestamped read of tenant configuration
across all scan sources. Each scan produces a new snapshot that replaces
the previous one.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class SourceResult:
    """
    Outcome of fetching one scan source.

    Attributes:
        source: Source name
        data: List of items, a single object, or None on failure
        error: Error message when the fetch failed
        pages: Pages fetched (list sources)
        has_more: True when the page cap truncated the results
        duration_seconds: Time spent fetching this source
    """

    source: str
    data: Any = None
    error: str | None = None
    pages: int = 0
    has_more: bool = False
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class Snapshot:
    """
    Point-in-time tenant configuration.

    Attributes:
        data: Source name -> list of items, single object, or None
        errors: Per-source error messages
        elapsed_seconds: Wall-clock scan duration
        timestamp: When the scan completed
        tenant_id: Tenant that was scanned
        scanned_by: Account that performed the scan
        source_count: Number of sources queried
        truncated: Sources whose results were cut off by the page cap
    """

    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tenant_id: str | None = None
    scanned_by: str | None = None
    source_count: int = 0
    truncated: list[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return self.source_count - len(self.errors)

    def get(self, source: str) -> Any:
        """Get a source's data, or None if absent or failed."""
        return self.data.get(source)

    def __contains__(self, source: object) -> bool:
        return self.data.get(source) is not None  # type: ignore[call-overload]

    def to_dict(self) -> dict[str, Any]:
        """Convert snapshot to dictionary representation."""
        return {
            "data": self.data,
            "errors": self.errors,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "timestamp": self.timestamp.isoformat(),
            "tenant_id": self.tenant_id,
            "scanned_by": self.scanned_by,
            "source_count": self.source_count,
            "success_count": self.success_count,
            "truncated": self.truncated,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """Create a Snapshot from its dictionary form."""
        timestamp = datetime.now(timezone.utc)
        if data.get("timestamp"):
            timestamp = datetime.fromisoformat(data["timestamp"])
        return cls(
            data=data.get("data", {}),
            errors=data.get("errors", []),
            elapsed_seconds=data.get("elapsed_seconds", 0.0),
            timestamp=timestamp,
            tenant_id=data.get("tenant_id"),
            scanned_by=data.get("scanned_by"),
            source_count=data.get("source_count", len(data.get("data", {}))),
            truncated=data.get("truncated", []),
        )


@dataclass
class ScanResult:
    """
    Result returned by a scan invocation.

    Attributes:
        success: True when authentication succeeded and the fan-out completed
        snapshot: Snapshot produced by this scan (None on failure)
        errors: Auth error, "already running" message, or per-source errors
        elapsed_seconds: Scan duration
        already_running: True when rejected because a scan was in progress
    """

    success: bool
    snapshot: Snapshot | None = None
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    already_running: bool = False

    @property
    def data(self) -> dict[str, Any] | None:
        return self.snapshot.data if self.snapshot else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "errors": self.errors,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "already_running": self.already_running,
        }
