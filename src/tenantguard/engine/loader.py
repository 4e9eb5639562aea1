"""
Rule catalog loader for TenantGuard.

Loads match rules from YAML or JSON files. Each file holds a mapping of
control id to rule definition under a top-level ``rules`` key.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import yaml

from tenantguard.config.settings import BUNDLED_RULES_DIR
from tenantguard.errors import RuleLoadError
from tenantguard.models.rule import (
    MULTI_VALUE_OPERATORS,
    OPERATORS,
    RULE_STATUS_MANUAL,
    UNARY_OPERATORS,
    MatchMode,
    Rule,
)

logger = logging.getLogger(__name__)

RULE_FILE_EXTENSIONS = (".yaml", ".yml", ".json")


class RuleLoader:
    """
    Loads and validates match rules.

    Rules are discovered in the configured directories, validated, and
    indexed by control id. When two files define the same control id the
    later file (in sorted path order) wins.
    """

    def __init__(self, rule_dirs: list[str] | None = None):
        """
        Initialize the rule loader.

        Args:
            rule_dirs: Directories to search for rule files.
                Defaults to the bundled rule catalog.
        """
        self._rule_dirs = rule_dirs or [BUNDLED_RULES_DIR]

    def load_all(self) -> dict[str, Rule]:
        """
        Load every valid rule from the configured directories.

        Invalid entries are skipped with a warning.

        Returns:
            Mapping of control id to Rule
        """
        rules: dict[str, Rule] = {}
        rule_files = self.discover_rules()

        if not rule_files:
            logger.warning("No rule files found in configured directories")
            return rules

        for path in rule_files:
            try:
                entries = self.load_file(path)
            except RuleLoadError as e:
                logger.warning(f"Failed to load rules: {e}")
                continue

            for control_id, data in entries.items():
                errors = self.validate_rule(control_id, data)
                if errors:
                    logger.warning(f"{path}: rule {control_id} is invalid: {errors}")
                    continue
                if control_id in rules:
                    logger.warning(f"{path}: rule {control_id} overrides earlier definition")
                rules[control_id] = Rule.from_dict(control_id, data)

        logger.info(f"Loaded {len(rules)} rules from {len(rule_files)} files")
        return rules

    def validate_all(self) -> list[str]:
        """
        Validate every rule file without building rules.

        Returns:
            List of "path: message" errors (empty if all valid)
        """
        errors: list[str] = []
        for path in self.discover_rules():
            try:
                entries = self.load_file(path)
            except RuleLoadError as e:
                errors.append(str(e))
                continue
            for control_id, data in entries.items():
                errors.extend(
                    f"{path}: {control_id}: {e}"
                    for e in self.validate_rule(control_id, data)
                )
        return errors

    def discover_rules(self) -> list[str]:
        """
        Find all rule files in the rule directories.

        Returns:
            Sorted list of rule file paths
        """
        rule_files: list[str] = []

        for dir_path in self._rule_dirs:
            dir_path = os.path.expanduser(dir_path)

            if os.path.isfile(dir_path):
                rule_files.append(dir_path)
                continue

            if not os.path.isdir(dir_path):
                logger.debug(f"Rule directory not found: {dir_path}")
                continue

            for root, _, files in os.walk(dir_path):
                for file in files:
                    if file.endswith(RULE_FILE_EXTENSIONS):
                        rule_files.append(os.path.join(root, file))

        return sorted(rule_files)

    def load_file(self, path: str) -> dict[str, dict[str, Any]]:
        """
        Read the raw rule entries of one file.

        Args:
            path: YAML or JSON rule file

        Returns:
            Mapping of control id to raw rule definition

        Raises:
            RuleLoadError: If the file cannot be read or has the wrong shape
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except FileNotFoundError:
            raise RuleLoadError("File not found", path)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise RuleLoadError(str(e), path)

        if data is None:
            return {}
        if not isinstance(data, dict) or not isinstance(data.get("rules", {}), dict):
            raise RuleLoadError("Expected a mapping under a 'rules' key", path)

        entries = data.get("rules") or {}
        for control_id, entry in entries.items():
            if not isinstance(entry, dict):
                raise RuleLoadError(f"Rule {control_id} must be a mapping", path)
        return {str(k): v for k, v in entries.items()}

    def validate_rule(self, control_id: str, data: dict[str, Any]) -> list[str]:
        """
        Validate one raw rule definition.

        Args:
            control_id: Control id the rule is keyed by
            data: Raw rule definition

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not control_id:
            errors.append("Missing control id")

        status = data.get("status")
        if status is not None:
            if status != RULE_STATUS_MANUAL:
                errors.append(f"Invalid status: {status}")
            return errors

        if not data.get("scanSource"):
            errors.append("Missing required field: scanSource")

        mode = data.get("matchMode")
        if not mode:
            errors.append("Missing required field: matchMode")
        else:
            try:
                MatchMode.from_string(mode)
            except ValueError as e:
                errors.append(str(e))

        conditions = data.get("conditions")
        if not isinstance(conditions, list) or not conditions:
            errors.append("Missing required field: conditions")
            return errors

        for i, condition in enumerate(conditions):
            errors.extend(
                f"conditions[{i}]: {e}" for e in self._validate_condition(condition)
            )

        return errors

    def _validate_condition(self, condition: Any) -> list[str]:
        if not isinstance(condition, dict):
            return ["Condition must be a mapping"]

        errors: list[str] = []
        op = condition.get("op")
        if "path" not in condition or not isinstance(condition["path"], str):
            errors.append("Missing required field: path")
        if op not in OPERATORS:
            errors.append(f"Unknown operator: {op}")
            return errors

        if op in MULTI_VALUE_OPERATORS:
            expected = condition.get("values", condition.get("value"))
            if not isinstance(expected, list):
                errors.append(f"Operator {op} requires a list of values")
        elif op not in UNARY_OPERATORS and "value" not in condition:
            errors.append(f"Operator {op} requires a value")

        return errors
