"""
Condition operators for the TenantGuard match engine.

Evaluates (path, operator, expected) conditions against a candidate
object. Evaluation never raises: an absent path or an unexpected error
makes the condition false.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from tenantguard.errors import EvaluationError
from tenantguard.models.rule import Condition

logger = logging.getLogger(__name__)

# Value returned for missing or non-traversable paths
ABSENT = None


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Get a value by dot-separated path.

    Numeric segments index into lists. Missing keys, out-of-range indexes
    and scalar intermediates resolve to ABSENT.

    Args:
        obj: Candidate object
        path: Dot-separated path (e.g., "conditions.users.includeUsers")

    Returns:
        Value at path, or ABSENT
    """
    if not path:
        return obj

    value: Any = obj
    for part in path.split("."):
        if isinstance(value, dict):
            if part not in value:
                return ABSENT
            value = value[part]
        elif isinstance(value, list) and part.isdigit():
            index = int(part)
            if index >= len(value):
                return ABSENT
            value = value[index]
        else:
            return ABSENT
    return value


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality that keeps booleans distinct from numbers."""
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected


def _member(items: Iterable[Any], expected: Any) -> bool:
    return any(strict_equals(item, expected) for item in items)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        return _member(actual, expected)
    if isinstance(actual, str):
        return (expected if isinstance(expected, str) else str(expected)) in actual
    return False


def _contains_any(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, list):
        return False
    if not isinstance(actual, (list, str)):
        return False
    return any(_contains(actual, e) for e in expected)


def _contains_all(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, list) or not isinstance(expected, list):
        return False
    return all(_member(actual, e) for e in expected)


def _is_empty(actual: Any, _expected: Any = None) -> bool:
    if actual is None:
        return True
    if isinstance(actual, (list, str)):
        return len(actual) == 0
    return False


OPERATOR_FUNCTIONS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": strict_equals,
    "notEquals": lambda a, e: not strict_equals(a, e),
    "contains": _contains,
    "includes": _contains,
    "containsAny": _contains_any,
    "containsAll": _contains_all,
    "isEmpty": _is_empty,
    "isNotEmpty": lambda a, e: not _is_empty(a),
    "exists": lambda a, e: a is not None,
    "notExists": lambda a, e: a is None,
}


class RuleEvaluator:
    """
    Evaluates rule conditions against candidate objects.

    Errors raised by an operator are logged at debug level and collapse
    to False; they are never returned to the caller.
    """

    def __init__(
        self,
        operators: dict[str, Callable[[Any, Any], bool]] | None = None,
    ):
        self._operators = operators or OPERATOR_FUNCTIONS

    @property
    def operators(self) -> frozenset[str]:
        return frozenset(self._operators)

    def evaluate(self, candidate: Any, condition: Condition) -> bool:
        """
        Evaluate one condition.

        Args:
            candidate: Object the condition's path is resolved against
            condition: Condition to evaluate

        Returns:
            True if the condition holds
        """
        try:
            return self._evaluate(candidate, condition)
        except EvaluationError as e:
            logger.warning(str(e))
            return False
        except Exception as e:
            logger.debug(
                f"Error evaluating {condition.op} on '{condition.path}': {e}"
            )
            return False

    def evaluate_all(self, candidate: Any, conditions: Iterable[Condition]) -> bool:
        """Check that every condition holds (vacuously true when empty)."""
        return all(self.evaluate(candidate, c) for c in conditions)

    def _evaluate(self, candidate: Any, condition: Condition) -> bool:
        func = self._operators.get(condition.op)
        if func is None:
            raise EvaluationError(f"Unknown operator: {condition.op}")
        actual = get_nested_value(candidate, condition.path)
        return bool(func(actual, condition.expected))
