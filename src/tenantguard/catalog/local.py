"""
File-system control catalog for TenantGuard.

A catalog directory holds ``controls.json`` (the control list) and one
specification document per control under ``policies/<type>/<file>``.
Documents are read once and cached per path.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any

from tenantguard.errors import CatalogError
from tenantguard.models.control import ControlCollection

logger = logging.getLogger(__name__)

CONTROLS_FILE = "controls.json"
POLICIES_DIR = "policies"


class SpecDocumentLoader(ABC):
    """Loads a control's specification document."""

    @abstractmethod
    def load(self, control_type: str, ref: str) -> dict[str, Any]:
        """
        Load a specification document.

        Args:
            control_type: Control product area
            ref: Document reference from the control

        Returns:
            Parsed document

        Raises:
            CatalogError: If the document cannot be loaded
        """
        pass


class LocalCatalog(SpecDocumentLoader):
    """
    Control catalog read from a local directory.

    Attributes:
        root: Catalog directory
    """

    def __init__(self, root: str):
        self.root = os.path.expanduser(root)
        self._cache: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _read_json(self, relative_path: str) -> Any:
        with self._lock:
            if relative_path in self._cache:
                return self._cache[relative_path]

        path = os.path.join(self.root, relative_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise CatalogError(f"Failed to load {relative_path}: not found")
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Failed to load {relative_path}: {e}") from e

        with self._lock:
            self._cache[relative_path] = data
        return data

    def load_controls(self) -> ControlCollection:
        """
        Load the control list.

        ``controls.json`` may be a list of controls or a mapping with a
        ``controls`` (or ``policies``) list.

        Raises:
            CatalogError: If the file is missing or malformed
        """
        data = self._read_json(CONTROLS_FILE)
        if isinstance(data, dict):
            data = data.get("controls", data.get("policies"))
        if not isinstance(data, list):
            raise CatalogError(f"{CONTROLS_FILE} must contain a list of controls")

        try:
            controls = ControlCollection.from_list(data)
        except (KeyError, TypeError) as e:
            raise CatalogError(f"Invalid control entry in {CONTROLS_FILE}: {e}") from e

        logger.debug(f"Loaded {len(controls)} controls from {self.root}")
        return controls

    def load(self, control_type: str, ref: str) -> dict[str, Any]:
        if not ref:
            raise CatalogError(f"No specification document for {control_type} control")
        # References are file names inside the type directory
        if os.path.isabs(ref) or ".." in ref.replace("\\", "/").split("/"):
            raise CatalogError(f"Invalid specification document reference: {ref}")

        document = self._read_json(os.path.join(POLICIES_DIR, control_type, ref))
        if not isinstance(document, dict):
            raise CatalogError(f"Specification document {ref} must be an object")
        return document
