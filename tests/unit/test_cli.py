"""
Unit tests for the TenantGuard CLI.

Tests argument parsing and the command handlers for scan status, deploy,
script generation, method listing and rule management.
"""

from __future__ import annotations

import argparse
import json
from unittest import mock

import pytest

from tenantguard.cli import create_parser, main
from tenantguard.cli_commands import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_USAGE,
    cmd_deploy,
    cmd_methods,
    cmd_rules,
    cmd_scan,
    cmd_script,
    cmd_status,
    format_table,
)
from tenantguard.models.results import (
    BulkDeployResult,
    DeploymentState,
    DeployResult,
    MatchResult,
    MatchStatus,
    MatchSummary,
)
from tenantguard.models.snapshot import ScanResult


@pytest.fixture
def clean_env(graph_token):
    """Environment with a pre-acquired Graph token and nothing else."""
    with mock.patch.dict("os.environ", {"TENANTGUARD_GRAPH_TOKEN": graph_token}, clear=True):
        yield


def namespace(**kwargs) -> argparse.Namespace:
    defaults = {"config": None, "catalog_dir": None, "verbose": 0}
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestParser:
    """Tests for create_parser."""

    def test_scan_arguments(self):
        args = create_parser().parse_args(
            ["--catalog-dir", "/c", "scan", "--output", "json", "--type", "entra"]
        )
        assert args.command == "scan"
        assert args.catalog_dir == "/c"
        assert args.output == "json"
        assert args.type == "entra"

    def test_deploy_many(self):
        args = create_parser().parse_args(["deploy", "CA01", "CA02"])
        assert args.control_ids == ["CA01", "CA02"]

    def test_rules_rule_dir_repeatable(self):
        args = create_parser().parse_args(
            ["rules", "validate", "--rule-dir", "/a", "--rule-dir", "/b"]
        )
        assert args.rules_action == "validate"
        assert args.rule_dir == ["/a", "/b"]

    def test_invalid_type_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["methods", "--type", "yammer"])


class TestMain:
    """Tests for main dispatch."""

    def test_version(self, capsys):
        """Test the version subcommand."""
        with mock.patch("sys.argv", ["tenantguard", "version"]):
            assert main() == 0
        assert "TenantGuard version" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        with mock.patch("sys.argv", ["tenantguard"]):
            assert main() == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_dispatches_to_handler(self):
        with mock.patch("sys.argv", ["tenantguard", "deploy", "CA01"]):
            with mock.patch("tenantguard.cli.cmd_deploy", return_value=EXIT_OK) as handler:
                assert main() == EXIT_OK
        handler.assert_called_once()


class TestMethodsCommand:
    """Tests for the methods command."""

    def test_json_output(self, capsys, catalog_root, clean_env):
        """Test method listing as JSON."""
        args = namespace(catalog_dir=str(catalog_root), type=None, format="json")
        assert cmd_methods(args) == EXIT_OK

        rows = {row["id"]: row for row in json.loads(capsys.readouterr().out)}
        assert rows["CA02"]["method"] == "graph"
        assert rows["EXO02"]["method"] == "ps-only"
        assert rows["SPO09"]["method"] == "spo-graph"
        assert rows["PV01"]["method"] == "cc-invoke"
        assert rows["TEA01"]["permissions"] == ""

    def test_type_filter(self, capsys, catalog_root, clean_env):
        args = namespace(catalog_dir=str(catalog_root), type="teams", format="table")
        assert cmd_methods(args) == EXIT_OK
        out = capsys.readouterr().out
        assert "TEA01" in out
        assert "CA02" not in out

    def test_no_catalog(self, capsys, clean_env):
        args = namespace(type=None, format="table")
        assert cmd_methods(args) == EXIT_USAGE
        assert "No catalog directory" in capsys.readouterr().out


class TestScriptCommand:
    """Tests for the script command."""

    def test_script_to_stdout(self, capsys, catalog_root, clean_env):
        """Test generating a script for a PowerShell control."""
        args = namespace(catalog_dir=str(catalog_root), control_id="DEF01", output=None)
        assert cmd_script(args) == EXIT_OK
        out = capsys.readouterr().out
        assert "Connect-ExchangeOnline" in out
        assert "New-SafeLinksPolicy @params" in out

    def test_script_to_file(self, capsys, catalog_root, clean_env, tmp_path):
        target = tmp_path / "TEA01.ps1"
        args = namespace(catalog_dir=str(catalog_root), control_id="TEA01", output=str(target))
        assert cmd_script(args) == EXIT_OK
        assert "Connect-MicrosoftTeams" in target.read_text()

    def test_unknown_control(self, capsys, catalog_root, clean_env):
        args = namespace(catalog_dir=str(catalog_root), control_id="ZZ99", output=None)
        assert cmd_script(args) == EXIT_FAILURE
        assert "Control not found: ZZ99" in capsys.readouterr().out


class TestStatusCommand:
    """Tests for the status command."""

    def test_status_from_saved_snapshot(self, capsys, catalog_root, clean_env, sample_snapshot, tmp_path):
        """Test classifying controls against a snapshot file."""
        path = tmp_path / "snapshot.json"
        path.write_text(sample_snapshot.to_json())
        args = namespace(
            catalog_dir=str(catalog_root), snapshot=str(path), output="json", type=None
        )
        assert cmd_status(args) == EXIT_OK

        rows = json.loads(capsys.readouterr().out)
        assert [row["id"] for row in rows] == [
            "CA02", "ENT01", "DEF01", "EXO02", "PV01", "SPO09", "TEA01",
        ]
        valid = {"configured", "missing", "manual", "not_scanned", "error"}
        assert all(row["status"] in valid for row in rows)

    def test_missing_snapshot_file(self, capsys, catalog_root, clean_env, tmp_path):
        args = namespace(
            catalog_dir=str(catalog_root),
            snapshot=str(tmp_path / "missing.json"),
            output="table",
            type=None,
        )
        assert cmd_status(args) == EXIT_FAILURE


class TestScanCommand:
    """Tests for the scan command."""

    def test_scan_saves_and_reports(self, capsys, sample_snapshot, sample_controls, tmp_path):
        """Test a scan with one failed source."""
        service = mock.MagicMock()
        service.controls = sample_controls
        service.scan.return_value = ScanResult(
            success=True, snapshot=sample_snapshot, errors=list(sample_snapshot.errors)
        )
        service.match_all.return_value = {
            "CA02": MatchResult(MatchStatus.CONFIGURED, "Matched policy: MFA all users"),
        }
        service.engine.summarize.return_value = MatchSummary(configured=1, total=1)

        target = tmp_path / "snap.json"
        args = namespace(output="table", save=str(target), type=None)
        with mock.patch("tenantguard.cli_commands.build_service", return_value=service):
            assert cmd_scan(args) == EXIT_OK

        out = capsys.readouterr().out
        assert "Matched policy: MFA all users" in out
        assert "1 source(s) failed" in out
        assert json.loads(target.read_text())["errors"] == sample_snapshot.errors

    def test_scan_auth_failure(self, capsys):
        service = mock.MagicMock()
        service.scan.return_value = ScanResult(success=False, errors=["Not authenticated"])
        with mock.patch("tenantguard.cli_commands.build_service", return_value=service):
            assert cmd_scan(namespace(output="table", save=None, type=None)) == EXIT_FAILURE
        assert "Error: Not authenticated" in capsys.readouterr().out
        service.match_all.assert_not_called()

    def test_scan_save_failure(self, capsys, sample_snapshot, tmp_path):
        service = mock.MagicMock()
        service.scan.return_value = ScanResult(success=True, snapshot=sample_snapshot)
        args = namespace(output="table", save=str(tmp_path / "missing" / "snap.json"), type=None)
        with mock.patch("tenantguard.cli_commands.build_service", return_value=service):
            assert cmd_scan(args) == EXIT_FAILURE
        assert "Failed to save snapshot" in capsys.readouterr().out
        service.match_all.assert_not_called()


class TestDeployCommand:
    """Tests for the deploy command."""

    def test_single_failure_exit_code(self, capsys):
        service = mock.MagicMock()
        service.deploy.return_value = DeployResult(
            "CA02", DeploymentState.FAILED, error="Rate limited, try again shortly", retryable=True
        )
        with mock.patch("tenantguard.cli_commands.build_service", return_value=service):
            assert cmd_deploy(namespace(control_ids=["CA02"])) == EXIT_FAILURE
        out = capsys.readouterr().out
        assert "Rate limited" in out
        assert "yes" in out

    def test_bulk(self, capsys):
        service = mock.MagicMock()
        service.deploy_bulk.return_value = BulkDeployResult(
            total=2,
            succeeded=1,
            exists=1,
            results=[
                DeployResult("CA02", DeploymentState.SUCCESS),
                DeployResult("ENT01", DeploymentState.EXISTS),
            ],
        )
        with mock.patch("tenantguard.cli_commands.build_service", return_value=service):
            assert cmd_deploy(namespace(control_ids=["CA02", "ENT01"])) == EXIT_OK
        assert "1 succeeded, 1 existing, 0 failed" in capsys.readouterr().out


class TestRulesCommand:
    """Tests for the rules command."""

    def test_validate_bundled(self, capsys, clean_env):
        """Test validating the bundled rule catalog."""
        args = namespace(rule_dir=None, rules_action="validate")
        assert cmd_rules(args) == EXIT_OK
        assert "rule file(s) OK" in capsys.readouterr().out

    def test_validate_invalid(self, capsys, clean_env, tmp_path):
        (tmp_path / "bad.yaml").write_text(
            "rules:\n  X1:\n    scanSource: s\n    matchMode: any\n    conditions: []\n"
        )
        args = namespace(rule_dir=[str(tmp_path)], rules_action="validate")
        assert cmd_rules(args) == EXIT_FAILURE
        assert "1 error(s) in 1 rule file(s)" in capsys.readouterr().out

    def test_list(self, capsys, clean_env):
        args = namespace(rule_dir=None, rules_action="list")
        assert cmd_rules(args) == EXIT_OK
        out = capsys.readouterr().out
        assert "CA02" in out
        assert "manual" in out


class TestFormatTable:
    """Tests for format_table."""

    def test_alignment(self):
        table = format_table([{"id": "CA01", "status": "ok"}, {"id": "X", "status": "missing"}])
        lines = table.splitlines()
        assert lines[0] == "id    status "
        assert lines[1] == "----  -------"
        assert lines[3] == "X     missing"

    def test_empty(self):
        assert format_table([]) == ""
