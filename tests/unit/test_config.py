"""
Unit tests for TenantGuard configuration.
"""

import json
from unittest.mock import patch

import pytest

from tenantguard.config import (
    BUNDLED_RULES_DIR,
    DEFAULT_EXO_INVOKE_BASE,
    TenantGuardConfig,
    load_config_from_env,
)
from tenantguard.errors import ConfigurationError


class TestTenantGuardConfig:
    """Tests for TenantGuardConfig."""

    def test_defaults(self):
        config = TenantGuardConfig()
        assert config.request_timeout == 15.0
        assert config.max_pages == 3
        assert config.command_delay == 0.5
        assert config.bulk_delay == 0.3
        assert config.exo_invoke_base == DEFAULT_EXO_INVOKE_BASE
        assert config.rule_dirs == [BUNDLED_RULES_DIR]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"request_timeout": 0},
            {"max_pages": 0},
            {"max_workers": 0},
            {"command_delay": -1},
            {"log_level": "LOUD"},
            {"log_format": "xml"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            TenantGuardConfig(**kwargs)

    def test_from_dict_coerces(self):
        config = TenantGuardConfig.from_dict(
            {"request_timeout": "30", "max_pages": "5", "rule_dirs": "/rules"}
        )
        assert config.request_timeout == 30.0
        assert config.max_pages == 5
        assert config.rule_dirs == ["/rules"]

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            TenantGuardConfig.from_dict({"timeout": 5})
        assert "timeout" in str(exc_info.value)

    def test_from_dict_bad_number(self):
        with pytest.raises(ConfigurationError):
            TenantGuardConfig.from_dict({"max_pages": "many"})

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "tenantguard.yaml"
        path.write_text("catalog_dir: /srv/catalog\nbulk_delay: 1\n")
        config = TenantGuardConfig.from_file(str(path))
        assert config.catalog_dir == "/srv/catalog"
        assert config.bulk_delay == 1.0

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "tenantguard.json"
        path.write_text(json.dumps({"max_workers": 4}))
        assert TenantGuardConfig.from_file(str(path)).max_workers == 4

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert TenantGuardConfig.from_file(str(path)).max_pages == 3

    def test_file_errors(self, tmp_path):
        with pytest.raises(ConfigurationError):
            TenantGuardConfig.from_file(str(tmp_path / "missing.yaml"))

        bad = tmp_path / "bad.yaml"
        bad.write_text("key: [unclosed")
        with pytest.raises(ConfigurationError):
            TenantGuardConfig.from_file(str(bad))

        listing = tmp_path / "list.yaml"
        listing.write_text("- a\n")
        with pytest.raises(ConfigurationError):
            TenantGuardConfig.from_file(str(listing))

    def test_to_json(self):
        data = json.loads(TenantGuardConfig(catalog_dir="/c").to_json())
        assert data["catalog_dir"] == "/c"


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env."""

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_pages: 2\ncatalog_dir: /from/file\n")
        env = {
            "TENANTGUARD_CONFIG_FILE": str(path),
            "TENANTGUARD_MAX_PAGES": "7",
            "TENANTGUARD_RULE_DIRS": "/a, /b",
        }
        with patch.dict("os.environ", env, clear=True):
            config = load_config_from_env()

        assert config.max_pages == 7
        assert config.catalog_dir == "/from/file"
        assert config.rule_dirs == ["/a", "/b"]

    def test_no_environment(self):
        with patch.dict("os.environ", {}, clear=True):
            config = load_config_from_env()
        assert config == TenantGuardConfig()
