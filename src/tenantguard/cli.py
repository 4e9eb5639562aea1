"""
TenantGuard CLI entry point.

This module provides the command-line interface for TenantGuard.
"""

from __future__ import annotations

import argparse
import sys

from tenantguard import __version__
from tenantguard.cli_commands import (
    EXIT_USAGE,
    cmd_deploy,
    cmd_methods,
    cmd_rules,
    cmd_scan,
    cmd_script,
    cmd_status,
)
from tenantguard.models.control import ControlType

CONTROL_TYPES = [t.value for t in ControlType]


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="tenantguard",
        description="TenantGuard - Microsoft 365 tenant compliance scanning and remediation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"tenantguard {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    parser.add_argument(
        "--config",
        help="Configuration file (JSON or YAML)",
    )

    parser.add_argument(
        "--catalog-dir",
        help="Control catalog directory (controls.json + policies/)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan the tenant and match controls")
    scan_parser.add_argument(
        "--output",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    scan_parser.add_argument(
        "--save",
        metavar="PATH",
        help="Save the snapshot as JSON",
    )
    scan_parser.add_argument(
        "--type",
        choices=CONTROL_TYPES,
        help="Only report controls of this type",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status", help="Match controls against a saved snapshot"
    )
    status_parser.add_argument(
        "--snapshot",
        required=True,
        metavar="PATH",
        help="Snapshot file written by 'scan --save'",
    )
    status_parser.add_argument(
        "--output",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    status_parser.add_argument(
        "--type",
        choices=CONTROL_TYPES,
        help="Only report controls of this type",
    )

    # deploy command
    deploy_parser = subparsers.add_parser("deploy", help="Deploy controls to the tenant")
    deploy_parser.add_argument(
        "control_ids",
        nargs="+",
        metavar="CONTROL_ID",
        help="Controls to deploy (more than one runs a bulk deployment)",
    )

    # script command
    script_parser = subparsers.add_parser(
        "script", help="Generate a PowerShell remediation script"
    )
    script_parser.add_argument("control_id", metavar="CONTROL_ID")
    script_parser.add_argument(
        "-o",
        "--output",
        help="Output file path (default: stdout)",
    )

    # methods command
    methods_parser = subparsers.add_parser(
        "methods", help="Show deployment method, permissions and roles per control"
    )
    methods_parser.add_argument(
        "--type",
        choices=CONTROL_TYPES,
        help="Filter by control type",
    )
    methods_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    # rules command
    rules_parser = subparsers.add_parser("rules", help="Manage match rules")
    rules_subparsers = rules_parser.add_subparsers(dest="rules_action")
    for action, help_text in (
        ("validate", "Validate rule files"),
        ("list", "List loaded rules"),
    ):
        action_parser = rules_subparsers.add_parser(action, help=help_text)
        action_parser.add_argument(
            "--rule-dir",
            action="append",
            help="Rule directory or file (repeatable, default: bundled rules)",
        )

    # version command
    subparsers.add_parser("version", help="Show version information")

    return parser


def configure_cli_logging(args: argparse.Namespace) -> None:
    from tenantguard.observability import configure_logging

    if args.verbose:
        level = "DEBUG" if args.verbose > 1 else "INFO"
        configure_logging(level=level)


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    configure_cli_logging(args)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "version":
        print(f"TenantGuard version {__version__}")
        return 0

    if args.command == "rules" and args.rules_action is None:
        parser.parse_args(["rules", "--help"])
        return EXIT_USAGE

    command_handlers = {
        "scan": cmd_scan,
        "status": cmd_status,
        "deploy": cmd_deploy,
        "script": cmd_script,
        "methods": cmd_methods,
        "rules": cmd_rules,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
