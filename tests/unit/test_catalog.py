"""
Unit tests for the local control catalog.
"""

import json

import pytest

from tenantguard.catalog import LocalCatalog
from tenantguard.errors import CatalogError


@pytest.fixture
def catalog_dir(tmp_path, ca_document):
    controls = [
        {"id": "CA02", "type": "conditional-access", "file": "CA02.json", "name": "MFA"},
        {"id": "TEA01", "type": "teams", "specDocRef": "TEA01.json"},
    ]
    (tmp_path / "controls.json").write_text(json.dumps(controls))
    policies = tmp_path / "policies" / "conditional-access"
    policies.mkdir(parents=True)
    (policies / "CA02.json").write_text(json.dumps(ca_document))
    return tmp_path


class TestLocalCatalog:
    """Tests for LocalCatalog."""

    def test_load_controls(self, catalog_dir):
        controls = LocalCatalog(str(catalog_dir)).load_controls()
        assert [c.id for c in controls] == ["CA02", "TEA01"]
        assert controls.get("CA02").spec_doc_ref == "CA02.json"

    def test_load_controls_from_mapping(self, tmp_path):
        (tmp_path / "controls.json").write_text(
            json.dumps({"policies": [{"id": "X1", "type": "entra"}]})
        )
        assert len(LocalCatalog(str(tmp_path)).load_controls()) == 1

    def test_load_controls_wrong_shape(self, tmp_path):
        (tmp_path / "controls.json").write_text(json.dumps({"other": 1}))
        with pytest.raises(CatalogError):
            LocalCatalog(str(tmp_path)).load_controls()

    def test_entry_without_id(self, tmp_path):
        (tmp_path / "controls.json").write_text(json.dumps([{"type": "entra"}]))
        with pytest.raises(CatalogError):
            LocalCatalog(str(tmp_path)).load_controls()

    def test_missing_controls_file(self, tmp_path):
        with pytest.raises(CatalogError) as exc_info:
            LocalCatalog(str(tmp_path)).load_controls()
        assert "not found" in str(exc_info.value)

    def test_load_document(self, catalog_dir, ca_document):
        catalog = LocalCatalog(str(catalog_dir))
        assert catalog.load("conditional-access", "CA02.json") == ca_document

    def test_documents_are_cached(self, catalog_dir):
        catalog = LocalCatalog(str(catalog_dir))
        first = catalog.load("conditional-access", "CA02.json")
        (catalog_dir / "policies" / "conditional-access" / "CA02.json").unlink()
        assert catalog.load("conditional-access", "CA02.json") is first

    def test_missing_document(self, catalog_dir):
        with pytest.raises(CatalogError):
            LocalCatalog(str(catalog_dir)).load("teams", "TEA01.json")

    def test_invalid_json(self, catalog_dir):
        path = catalog_dir / "policies" / "conditional-access" / "BAD.json"
        path.write_text("{not json")
        with pytest.raises(CatalogError):
            LocalCatalog(str(catalog_dir)).load("conditional-access", "BAD.json")

    @pytest.mark.parametrize("ref", ["", "../controls.json", "/etc/passwd"])
    def test_rejected_references(self, catalog_dir, ref):
        with pytest.raises(CatalogError):
            LocalCatalog(str(catalog_dir)).load("conditional-access", ref)

    def test_document_must_be_object(self, catalog_dir):
        path = catalog_dir / "policies" / "conditional-access" / "LIST.json"
        path.write_text("[1, 2]")
        with pytest.raises(CatalogError):
            LocalCatalog(str(catalog_dir)).load("conditional-access", "LIST.json")
