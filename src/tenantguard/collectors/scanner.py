"""
Tenant configuration scanner for TenantGuard.

Fans out one request per scan source on a thread pool, tolerates
individual source failures, and replaces the cached snapshot when the
fan-out completes.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Sequence

from tenantguard.auth.tokens import FAMILY_GRAPH, TokenProvider
from tenantguard.collectors.http import GraphClient
from tenantguard.collectors.sources import (
    DEFAULT_SCAN_SOURCES,
    ScanSource,
    fetch_source,
)
from tenantguard.config.settings import TenantGuardConfig
from tenantguard.errors import AuthError
from tenantguard.models.snapshot import ScanResult, Snapshot, SourceResult
from tenantguard.observability.logging import get_logger
from tenantguard.progress import ProgressPublisher, ScanProgress

logger = get_logger(__name__)

ALREADY_RUNNING_MESSAGE = "A scan is already in progress"


class TenantScanner:
    """
    Scans a tenant's configuration into a Snapshot.

    The scanner is single-flight: a scan() call made while another is
    running returns an "already running" result without issuing requests.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        client: GraphClient | None = None,
        config: TenantGuardConfig | None = None,
        sources: Sequence[ScanSource] = DEFAULT_SCAN_SOURCES,
        publisher: ProgressPublisher | None = None,
    ):
        """
        Initialize the scanner.

        Args:
            token_provider: Supplies the Graph token and tenant identity
            client: Graph client (built from config when omitted)
            config: Runtime configuration
            sources: Scan source table
            publisher: Progress publisher
        """
        self._config = config or TenantGuardConfig()
        self._token_provider = token_provider
        self._client = client or GraphClient(
            self._config.graph_base, self._config.request_timeout
        )
        self._sources = tuple(sources)
        self._publisher = publisher or ProgressPublisher()
        self._scan_lock = threading.Lock()
        self._snapshot: Snapshot | None = None

    @property
    def sources(self) -> tuple[ScanSource, ...]:
        return self._sources

    def get_snapshot(self) -> Snapshot | None:
        """Get the snapshot produced by the last completed scan."""
        return self._snapshot

    def is_scan_available(self) -> bool:
        return self._snapshot is not None

    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    def clear_cache(self) -> None:
        """Discard the cached snapshot."""
        self._snapshot = None

    def load_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the cached snapshot with one saved earlier."""
        self._snapshot = snapshot

    def scan(self) -> ScanResult:
        """
        Scan all sources.

        Returns:
            ScanResult. ``success`` is False only for authentication
            failures and rejected re-entrant calls; individual source
            failures are reported in ``errors`` with their data set to None.
        """
        if not self._scan_lock.acquire(blocking=False):
            logger.warning("Scan requested while another scan is running")
            return ScanResult(
                success=False,
                errors=[ALREADY_RUNNING_MESSAGE],
                already_running=True,
            )
        try:
            return self._run_scan()
        finally:
            self._scan_lock.release()

    def _authenticate(self) -> tuple[str, str | None, str | None]:
        account = self._token_provider.get_account_info()
        if account is None:
            raise AuthError("Not authenticated")

        try:
            token = self._token_provider.get_token(FAMILY_GRAPH)
        except AuthError as e:
            raise AuthError(f"Failed to acquire Graph token: {e}") from e
        if not token:
            raise AuthError("Graph token unavailable. Please re-authenticate.")

        return token, account.tenant_id, account.email or account.name or None

    def _run_scan(self) -> ScanResult:
        start = time.monotonic()

        try:
            token, tenant_id, scanned_by = self._authenticate()
        except AuthError as e:
            logger.error(f"Scan aborted: {e}")
            return ScanResult(
                success=False,
                errors=[str(e)],
                elapsed_seconds=time.monotonic() - start,
            )

        total = len(self._sources)
        logger.scan_started(tenant_id, [s.name for s in self._sources])
        self._publisher.publish(ScanProgress(total, 0, "Initializing scan..."))

        results = self._fan_out(token)

        data = {}
        errors = []
        truncated = []
        # Results are reported in source table order regardless of completion order
        for source in self._sources:
            result = results[source.name]
            data[source.name] = result.data
            if result.error is not None:
                errors.append(f"{source.name}: {result.error}")
            if result.has_more:
                truncated.append(source.name)

        elapsed = time.monotonic() - start
        snapshot = Snapshot(
            data=data,
            errors=errors,
            elapsed_seconds=elapsed,
            timestamp=datetime.now(timezone.utc),
            tenant_id=tenant_id,
            scanned_by=scanned_by,
            source_count=total,
            truncated=truncated,
        )
        self._snapshot = snapshot

        self._publisher.finish(ScanProgress(total, total, "Complete"))
        logger.scan_completed(tenant_id, snapshot.success_count, total, elapsed)

        return ScanResult(
            success=True,
            snapshot=snapshot,
            errors=list(errors),
            elapsed_seconds=elapsed,
        )

    def _fan_out(self, token: str) -> dict[str, SourceResult]:
        """Fetch every source concurrently, waiting for all of them."""
        total = len(self._sources)
        results: dict[str, SourceResult] = {}
        completed = 0
        max_workers = self._config.max_workers or max(total, 1)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_source = {
                executor.submit(
                    fetch_source,
                    self._client,
                    source,
                    token,
                    self._config.max_pages,
                ): source
                for source in self._sources
            }

            for future in as_completed(future_to_source):
                source = future_to_source[future]
                try:
                    result = future.result()
                except Exception as e:
                    result = SourceResult(source=source.name, error=str(e))

                if result.error is not None:
                    logger.source_failed(source.name, result.error)
                results[source.name] = result

                completed += 1
                label = source.name
                if completed == total:
                    label += " (finalizing)"
                self._publisher.publish(ScanProgress(total, completed, label))

        return results
