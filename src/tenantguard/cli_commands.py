"""
CLI command handlers for TenantGuard.

Implements each CLI subcommand with error handling and output
formatting.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any

from tenantguard.errors import ConfigurationError, TenantGuardError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def load_config(args: argparse.Namespace):
    """Load configuration from --config, the environment and CLI overrides."""
    from tenantguard.config import load_config_from_env

    config = load_config_from_env(getattr(args, "config", None))
    catalog_dir = getattr(args, "catalog_dir", None)
    if catalog_dir:
        config.catalog_dir = catalog_dir
    rule_dirs = getattr(args, "rule_dir", None)
    if rule_dirs:
        config.rule_dirs = list(rule_dirs)
    return config


def create_token_provider():
    """
    Pick a token provider.

    Pre-acquired tokens in TENANTGUARD_*_TOKEN take precedence; otherwise
    azure-identity's default credential chain is used.
    """
    from tenantguard.auth import AzureIdentityTokenProvider, StaticTokenProvider

    if os.getenv("TENANTGUARD_GRAPH_TOKEN"):
        return StaticTokenProvider.from_env()
    return AzureIdentityTokenProvider(tenant_id=os.getenv("TENANTGUARD_TENANT_ID"))


def build_service(args: argparse.Namespace, quiet: bool = False):
    from tenantguard.progress import create_progress_publisher
    from tenantguard.service import ComplianceService

    config = load_config(args)
    publisher = create_progress_publisher(quiet=quiet)
    return ComplianceService.from_config(config, create_token_provider(), publisher)


def format_table(data: list[dict[str, Any]]) -> str:
    """
    Format data as ASCII table.

    Args:
        data: List of dictionaries

    Returns:
        Formatted table string
    """
    if not data:
        return ""

    headers = list(data[0].keys())
    widths = {h: len(str(h)) for h in headers}
    for row in data:
        for h in headers:
            widths[h] = max(widths[h], len(str(row.get(h, ""))))

    header_line = "  ".join(str(h).ljust(widths[h]) for h in headers)
    separator = "  ".join("-" * widths[h] for h in headers)
    lines = [header_line, separator]
    for row in data:
        lines.append("  ".join(str(row.get(h, "")).ljust(widths[h]) for h in headers))
    return "\n".join(lines)


def print_match_results(results: dict, output: str) -> None:
    rows = []
    for control_id, result in results.items():
        rows.append({"id": control_id, **result.to_dict()})

    if output == "json":
        print(json.dumps(rows, indent=2, default=str))
        return

    table = [
        {
            "id": row["id"],
            "status": row["status"],
            "detail": row["detail"],
        }
        for row in rows
    ]
    print(format_table(table))


def print_summary(summary) -> None:
    print()
    print(
        f"Configured: {summary.configured}  Missing: {summary.missing}  "
        f"Manual: {summary.manual}  Not scanned: {summary.not_scanned}  "
        f"Error: {summary.error}  Total: {summary.total}"
    )
    print(f"Compliance: {summary.compliance_percent}%")


def _filter_controls(service, control_type: str | None):
    if control_type:
        return service.controls.filter_by_type(control_type)
    return service.controls


def cmd_scan(args: argparse.Namespace) -> int:
    """
    Scan the tenant and classify every control.

    Returns:
        Exit code (0 success, 1 scan failure)
    """
    try:
        service = build_service(args, quiet=args.output == "json")
    except ConfigurationError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except TenantGuardError as e:
        print(f"Error: {e}")
        return EXIT_FAILURE

    result = service.scan()
    if not result.success:
        for error in result.errors:
            print(f"Error: {error}")
        return EXIT_FAILURE

    for error in result.errors:
        logger.warning(f"Source failed: {error}")

    if args.save:
        try:
            with open(args.save, "w", encoding="utf-8") as f:
                f.write(result.snapshot.to_json())
        except OSError as e:
            print(f"Error: Failed to save snapshot: {e}")
            return EXIT_FAILURE
        print(f"Snapshot saved to {args.save}")

    controls = _filter_controls(service, args.type)
    results = service.match_all(controls)
    print_match_results(results, args.output)
    if args.output != "json":
        print_summary(service.engine.summarize(results))
        if result.errors:
            print(f"{len(result.errors)} source(s) failed; affected controls are not scanned.")
    return EXIT_OK


def cmd_status(args: argparse.Namespace) -> int:
    """
    Classify controls against a saved snapshot.

    Returns:
        Exit code
    """
    from tenantguard.models.snapshot import Snapshot

    try:
        service = build_service(args, quiet=True)
        with open(args.snapshot, "r", encoding="utf-8") as f:
            snapshot = Snapshot.from_dict(json.load(f))
    except ConfigurationError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except (TenantGuardError, OSError, ValueError) as e:
        print(f"Error: {e}")
        return EXIT_FAILURE

    service.load_snapshot(snapshot)
    results = service.match_all(_filter_controls(service, args.type))
    print_match_results(results, args.output)
    if args.output != "json":
        print_summary(service.engine.summarize(results))
    return EXIT_OK


def cmd_deploy(args: argparse.Namespace) -> int:
    """
    Deploy one or more controls.

    Returns:
        Exit code (1 if any control failed)
    """
    try:
        service = build_service(args, quiet=len(args.control_ids) < 2)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except TenantGuardError as e:
        print(f"Error: {e}")
        return EXIT_FAILURE

    if len(args.control_ids) == 1:
        result = service.deploy(args.control_ids[0])
        results = [result]
        failed = 0 if result.state.value != "failed" else 1
    else:
        bulk = service.deploy_bulk(args.control_ids)
        results = bulk.results
        failed = bulk.failed
        print(
            f"Deployed: {bulk.succeeded} succeeded, {bulk.exists} existing, "
            f"{bulk.failed} failed"
        )

    rows = []
    for result in results:
        rows.append(
            {
                "id": result.control_id,
                "status": result.state.value,
                "error": result.error or "",
                "retryable": "yes" if result.retryable else "",
            }
        )
    print(format_table(rows))
    return EXIT_FAILURE if failed else EXIT_OK


def cmd_script(args: argparse.Namespace) -> int:
    """
    Generate a PowerShell remediation script.

    Returns:
        Exit code
    """
    try:
        service = build_service(args, quiet=True)
        script = service.generate_script(args.control_id)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except TenantGuardError as e:
        print(f"Error: {e}")
        return EXIT_FAILURE

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(script)
        print(f"Script written to {args.output}")
    else:
        print(script, end="")
    return EXIT_OK


def cmd_methods(args: argparse.Namespace) -> int:
    """
    List deployment method, permissions and roles per control.

    Returns:
        Exit code
    """
    from tenantguard.catalog import LocalCatalog
    from tenantguard.deploy import required_permissions, required_roles, resolve_method

    try:
        config = load_config(args)
        if not config.catalog_dir:
            raise ConfigurationError("No catalog directory configured")
        controls = LocalCatalog(config.catalog_dir).load_controls()
    except ConfigurationError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except TenantGuardError as e:
        print(f"Error: {e}")
        return EXIT_FAILURE

    if args.type:
        controls = controls.filter_by_type(args.type)

    rows = []
    for control in controls:
        rows.append(
            {
                "id": control.id,
                "type": control.type,
                "method": resolve_method(control.control_type, control.id).value,
                "permissions": ", ".join(
                    required_permissions(control.control_type, control.id)
                ),
                "roles": ", ".join(required_roles(control.control_type)),
            }
        )

    if args.format == "json":
        print(json.dumps(rows, indent=2))
    elif rows:
        print(format_table(rows))
    else:
        print("No controls found matching criteria.")
    return EXIT_OK


def cmd_rules(args: argparse.Namespace) -> int:
    """
    Manage match rules: validate or list.

    Returns:
        Exit code
    """
    from tenantguard.engine import RuleLoader

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return EXIT_USAGE

    loader = RuleLoader(config.rule_dirs)

    if args.rules_action == "list":
        rules = loader.load_all()
        rows = [
            {
                "id": control_id,
                "source": rule.scan_source or "",
                "mode": rule.match_mode.value if rule.match_mode else "manual",
                "conditions": len(rule.conditions),
            }
            for control_id, rule in sorted(rules.items())
        ]
        print(format_table(rows) if rows else "No rules found.")
        return EXIT_OK

    files = loader.discover_rules()
    errors = loader.validate_all()
    for error in errors:
        print(f"  - {error}")
    if errors:
        print(f"{len(errors)} error(s) in {len(files)} rule file(s)")
        return EXIT_FAILURE
    print(f"{len(files)} rule file(s) OK")
    return EXIT_OK
