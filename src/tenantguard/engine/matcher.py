"""
Match engine for TenantGuard.

Classifies each control against a tenant snapshot using the static rule
catalog. Controls are evaluated independently; given the same snapshot
and rules the results are deterministic.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from tenantguard.deploy.methods import default_method
from tenantguard.engine.operators import RuleEvaluator
from tenantguard.models.control import Control, DeployMethod
from tenantguard.models.results import (
    CONFIDENCE_HIGH,
    CONFIDENCE_MEDIUM,
    MatchedItem,
    MatchResult,
    MatchStatus,
    MatchSummary,
)
from tenantguard.models.rule import MatchMode, Rule
from tenantguard.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

SnapshotData = Mapping[str, Any]


def _snapshot_data(snapshot: Snapshot | SnapshotData | None) -> SnapshotData | None:
    if isinstance(snapshot, Snapshot):
        return snapshot.data
    return snapshot


def _result(
    status: MatchStatus,
    detail: str,
    matched_item: MatchedItem | None = None,
    verify_command: str | None = None,
) -> MatchResult:
    confidence = (
        CONFIDENCE_HIGH
        if status in (MatchStatus.CONFIGURED, MatchStatus.MISSING)
        else CONFIDENCE_MEDIUM
    )
    return MatchResult(
        status=status,
        detail=detail,
        matched_item=matched_item,
        verify_command=verify_command,
        confidence=confidence,
    )


class MatchEngine:
    """
    Applies rules to snapshots.

    Attributes:
        rules: Rule catalog indexed by control id
    """

    def __init__(
        self,
        rules: Mapping[str, Rule],
        evaluator: RuleEvaluator | None = None,
    ):
        self.rules = dict(rules)
        self._evaluator = evaluator or RuleEvaluator()

    def match_policy(
        self,
        control: Control,
        snapshot: Snapshot | SnapshotData | None,
    ) -> MatchResult:
        """
        Classify one control.

        Never raises; unexpected errors surface as an ``error`` result.

        Args:
            control: Control to classify
            snapshot: Snapshot, raw source mapping, or None

        Returns:
            MatchResult
        """
        try:
            return self._match(control, _snapshot_data(snapshot))
        except Exception as e:
            logger.debug(f"Evaluation of {control.id} failed: {e}", exc_info=True)
            return _result(MatchStatus.ERROR, f"Evaluation error: {e}")

    def match_all(
        self,
        controls: Iterable[Control],
        snapshot: Snapshot | SnapshotData | None,
    ) -> dict[str, MatchResult]:
        """
        Classify every control.

        Returns:
            Mapping of control id to MatchResult, in input order
        """
        data = _snapshot_data(snapshot)
        return {control.id: self.match_policy(control, data) for control in controls}

    @staticmethod
    def summarize(results: Mapping[str, MatchResult]) -> MatchSummary:
        """Count results by status."""
        summary = MatchSummary(total=len(results))
        for result in results.values():
            name = result.status.value
            setattr(summary, name, getattr(summary, name) + 1)
        return summary

    def _match(self, control: Control, data: SnapshotData | None) -> MatchResult:
        rule = self.rules.get(control.id)

        if rule is None:
            if default_method(control.type) == DeployMethod.PS_ONLY:
                return _result(
                    MatchStatus.MANUAL, "Requires PowerShell verification"
                )
            return _result(
                MatchStatus.ERROR, f"No match rule defined for control: {control.id}"
            )

        if rule.is_manual:
            return _result(
                MatchStatus.MANUAL, rule.detail, verify_command=rule.verify_command
            )

        source_data = data.get(rule.scan_source) if data is not None else None
        if source_data is None:
            return _result(
                MatchStatus.NOT_SCANNED,
                f"Scan data not available for: {rule.scan_source}",
            )

        if rule.match_mode == MatchMode.ANY:
            return self._match_any(rule, source_data)
        if rule.match_mode in (MatchMode.ALL, MatchMode.DIRECT):
            return self._match_direct(rule, source_data)

        mode = rule.match_mode.value if rule.match_mode else None
        return _result(MatchStatus.ERROR, f"Unknown matchMode: {mode}")

    def _match_any(self, rule: Rule, items: Any) -> MatchResult:
        if not isinstance(items, list):
            return _result(
                MatchStatus.ERROR, f"Expected array for scan source: {rule.scan_source}"
            )

        for index, item in enumerate(items):
            if self._evaluator.evaluate_all(item, rule.conditions):
                return _result(
                    MatchStatus.CONFIGURED,
                    "Matched existing tenant policy",
                    matched_item=_describe_item(item, index),
                )

        return _result(
            MatchStatus.MISSING, f"No matching policy found in {rule.scan_source}"
        )

    def _match_direct(self, rule: Rule, obj: Any) -> MatchResult:
        if self._evaluator.evaluate_all(obj, rule.conditions):
            display = rule.scan_source
            item_id = None
            if isinstance(obj, dict):
                display = obj.get("displayName") or obj.get("name") or display
                item_id = obj.get("id")
            return _result(
                MatchStatus.CONFIGURED,
                "Setting is configured as expected",
                matched_item=MatchedItem(display_name=display, id=item_id),
            )
        return _result(
            MatchStatus.MISSING, "Setting does not match expected configuration"
        )


def _describe_item(item: Any, index: int) -> MatchedItem:
    if not isinstance(item, dict):
        return MatchedItem(display_name="(unnamed)", index=index)
    display = (
        item.get("displayName") or item.get("name") or item.get("id") or "(unnamed)"
    )
    return MatchedItem(display_name=str(display), id=item.get("id"), index=index)
