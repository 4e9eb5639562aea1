"""
Compliance service for TenantGuard.

ComplianceService owns the per-session state (cached snapshot,
deployment statuses and preflight flags) and exposes the scan, match and
remediate pipeline to callers such as the CLI.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Callable, Iterable, Sequence

from tenantguard.auth.tokens import TokenProvider
from tenantguard.catalog.local import LocalCatalog, SpecDocumentLoader
from tenantguard.collectors.http import GraphClient
from tenantguard.collectors.scanner import TenantScanner
from tenantguard.config.settings import TenantGuardConfig
from tenantguard.deploy.dispatcher import DeployDispatcher
from tenantguard.deploy.scripts import ScriptGenerator
from tenantguard.deploy.transport import DeployTransport
from tenantguard.engine.loader import RuleLoader
from tenantguard.engine.matcher import MatchEngine
from tenantguard.errors import CatalogError, ConfigurationError
from tenantguard.models.control import Control, ControlCollection
from tenantguard.models.results import (
    BulkDeployResult,
    DeploymentStatus,
    DeployResult,
    MatchResult,
    MatchSummary,
)
from tenantguard.models.rule import Rule
from tenantguard.models.snapshot import ScanResult, Snapshot
from tenantguard.progress import ProgressPublisher

logger = logging.getLogger(__name__)


class ComplianceService:
    """
    Scan, match and remediate one tenant.

    Construct one instance per session; its components share a single
    GraphClient and progress publisher.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        controls: ControlCollection,
        documents: SpecDocumentLoader,
        rules: dict[str, Rule] | None = None,
        config: TenantGuardConfig | None = None,
        client: GraphClient | None = None,
        publisher: ProgressPublisher | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the service.

        Args:
            token_provider: Bearer tokens and tenant identity
            controls: Control catalog
            documents: Specification document loader
            rules: Match rules (loaded from config.rule_dirs when omitted)
            config: Runtime configuration
            client: Shared HTTP client
            publisher: Progress publisher for scans and bulk deployments
            sleep: Delay function used between deployment calls
        """
        self.config = config or TenantGuardConfig()
        self.controls = controls
        self.documents = documents
        self.publisher = publisher or ProgressPublisher()

        if rules is None:
            rules = RuleLoader(self.config.rule_dirs).load_all()
        self.engine = MatchEngine(rules)

        client = client or GraphClient(
            self.config.graph_base, self.config.request_timeout
        )
        self.scanner = TenantScanner(
            token_provider,
            client=client,
            config=self.config,
            publisher=self.publisher,
        )
        self.dispatcher = DeployDispatcher(
            token_provider,
            documents,
            controls,
            config=self.config,
            transport=DeployTransport(client),
            publisher=self.publisher,
            sleep=sleep,
        )
        self.script_generator = ScriptGenerator()

    @classmethod
    def from_config(
        cls,
        config: TenantGuardConfig,
        token_provider: TokenProvider,
        publisher: ProgressPublisher | None = None,
    ) -> ComplianceService:
        """
        Build a service from a local catalog directory.

        Raises:
            ConfigurationError: If no catalog directory is configured
            CatalogError: If the control list cannot be loaded
        """
        if not config.catalog_dir:
            raise ConfigurationError(
                "No catalog directory configured (set catalog_dir or "
                "TENANTGUARD_CATALOG_DIR)"
            )
        catalog = LocalCatalog(config.catalog_dir)
        return cls(
            token_provider,
            catalog.load_controls(),
            catalog,
            config=config,
            publisher=publisher,
        )

    def _get_control(self, control_id: str) -> Control:
        control = self.controls.get(control_id)
        if control is None:
            raise CatalogError(f"Control not found: {control_id}")
        return control

    # Scan and match

    def scan(self) -> ScanResult:
        return self.scanner.scan()

    @property
    def snapshot(self) -> Snapshot | None:
        return self.scanner.get_snapshot()

    def load_snapshot(self, snapshot: Snapshot) -> None:
        self.scanner.load_snapshot(snapshot)

    def match_all(
        self,
        controls: Iterable[Control] | None = None,
    ) -> dict[str, MatchResult]:
        """
        Classify controls against the current snapshot.

        Args:
            controls: Controls to classify (defaults to the whole catalog)

        Returns:
            Mapping of control id to MatchResult
        """
        if controls is None:
            controls = self.controls
        return self.engine.match_all(controls, self.snapshot)

    def get_match_result(self, control_id: str) -> MatchResult:
        return self.engine.match_policy(self._get_control(control_id), self.snapshot)

    def get_summary(self) -> MatchSummary:
        """Count catalog match results by status."""
        return self.engine.summarize(self.match_all())

    # Remediation

    def deploy(self, control_id: str) -> DeployResult:
        return self.dispatcher.deploy(control_id)

    def deploy_bulk(self, control_ids: Sequence[str]) -> BulkDeployResult:
        return self.dispatcher.deploy_bulk(control_ids)

    def get_deployment_status(self, control_id: str) -> DeploymentStatus | None:
        return self.dispatcher.get_status(control_id)

    def clear_deployment_status(self, control_id: str | None = None) -> None:
        self.dispatcher.clear_status(control_id)

    def generate_script(self, control_id: str) -> str:
        """
        Generate a PowerShell remediation script for a control.

        Raises:
            CatalogError: If the control or its document cannot be loaded
        """
        control = self._get_control(control_id)
        document = self.documents.load(control.type, control.spec_doc_ref)
        return self.script_generator.generate(
            document, control.control_type, generated_on=date.today()
        )
