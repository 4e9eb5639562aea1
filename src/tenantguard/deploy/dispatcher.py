"""
Deployment dispatcher for TenantGuard.

Deploys a control by resolving its deployment method, probing the
method's backend once per session, extracting the payload from the
control's specification document and executing the calls in order. Each
control's outcome is recorded in a per-control status map.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Sequence

from tenantguard.auth.tokens import (
    FAMILY_COMPLIANCE,
    FAMILY_EXO,
    FAMILY_GRAPH,
    TokenDiagnostics,
    TokenProvider,
)
from tenantguard.catalog.local import SpecDocumentLoader
from tenantguard.collectors.http import GraphClient
from tenantguard.config.settings import TenantGuardConfig
from tenantguard.deploy.methods import (
    method_family,
    required_permissions,
    required_roles,
    resolve_method,
)
from tenantguard.deploy.payloads import Call, InvokeCommand, Payload, extract_payload
from tenantguard.deploy.transport import DeployTransport
from tenantguard.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NoPayloadError,
    PreflightError,
    RemoteCallError,
    TenantGuardError,
)
from tenantguard.models.control import Control, ControlCollection, DeployMethod
from tenantguard.models.results import (
    BulkDeployResult,
    DeploymentState,
    DeploymentStatus,
    DeployResult,
)
from tenantguard.observability.logging import get_logger
from tenantguard.progress import DeployProgress, ProgressPublisher

logger = get_logger(__name__)

PS_ONLY_MESSAGE = "PowerShell-only control, use script generation"
EXISTS_DETAIL = "Already exists in tenant"
SUCCESS_DETAIL = "Deployed successfully"

FAMILY_LABELS = {
    FAMILY_GRAPH: "Graph",
    FAMILY_EXO: "Exchange",
    FAMILY_COMPLIANCE: "Compliance",
}

# Read-only cmdlets used to probe the InvokeCommand families
PREFLIGHT_COMMANDS = {
    FAMILY_EXO: "Get-OrganizationConfig",
    FAMILY_COMPLIANCE: "Get-DlpCompliancePolicy",
}
GRAPH_PREFLIGHT_ENDPOINT = "/v1.0/me"


class DeployDispatcher:
    """
    Deploys controls and tracks their deployment state.

    State per control: none -> deploying -> success | exists | failed.
    ``success`` and ``exists`` are sticky until clear_status(); ``failed``
    controls may be deployed again, restarting from the first call.
    Deployments are sequential; status writes are serialized by a lock.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        documents: SpecDocumentLoader,
        controls: ControlCollection,
        config: TenantGuardConfig | None = None,
        transport: DeployTransport | None = None,
        publisher: ProgressPublisher | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the dispatcher.

        Args:
            token_provider: Supplies per-family bearer tokens and the tenant id
            documents: Loads specification documents
            controls: Control catalog
            config: Runtime configuration (endpoints, delays)
            transport: Call executor (built from config when omitted)
            publisher: Receives one DeployProgress event per bulk item
            sleep: Delay function, replaceable in tests
        """
        self._config = config or TenantGuardConfig()
        self._token_provider = token_provider
        self._documents = documents
        self._controls = controls
        self._transport = transport or DeployTransport(
            GraphClient(self._config.graph_base, self._config.request_timeout)
        )
        self._publisher = publisher or ProgressPublisher()
        self._sleep = sleep

        self._status_lock = threading.Lock()
        self._statuses: dict[str, DeploymentStatus] = {}
        self._preflight_passed: dict[str, bool] = {
            FAMILY_GRAPH: False,
            FAMILY_EXO: False,
            FAMILY_COMPLIANCE: False,
        }

    # Status map

    def get_status(self, control_id: str) -> DeploymentStatus | None:
        """Get the recorded deployment status of a control."""
        with self._status_lock:
            return self._statuses.get(control_id)

    def get_all_statuses(self) -> dict[str, DeploymentStatus]:
        with self._status_lock:
            return dict(self._statuses)

    def clear_status(self, control_id: str | None = None) -> None:
        """
        Reset deployment state.

        Args:
            control_id: Clear one control only. When omitted every status is
                cleared and the preflight checks will run again.
        """
        with self._status_lock:
            if control_id is not None:
                self._statuses.pop(control_id, None)
                return
            self._statuses.clear()
            for family in self._preflight_passed:
                self._preflight_passed[family] = False

    def _set_status(self, control_id: str, state: DeploymentState, detail: str) -> None:
        with self._status_lock:
            self._statuses[control_id] = DeploymentStatus(state=state, detail=detail)

    # Informational

    def resolve_method(self, control: Control) -> DeployMethod:
        return resolve_method(control.control_type, control.id)

    def required_permissions(self, control: Control) -> list[str]:
        return required_permissions(control.control_type, control.id)

    def required_roles(self, control: Control) -> list[str]:
        return required_roles(control.control_type)

    # Tokens and preflight

    def _get_token(self, family: str) -> str:
        label = FAMILY_LABELS[family]
        try:
            token = self._token_provider.get_token(family)
        except AuthError as e:
            raise AuthError(f"Failed to acquire {label} token: {e}") from e
        if not token:
            raise AuthError(
                f"No {label} token, ensure permissions are granted and re-sign in"
            )
        return token

    def _get_tenant_id(self, required: bool) -> str | None:
        account = self._token_provider.get_account_info()
        tenant_id = account.tenant_id if account else None
        if required and not tenant_id:
            raise AuthError("No tenant ID, please sign in")
        return tenant_id

    def _invoke_base(self, family: str) -> str:
        if family == FAMILY_COMPLIANCE:
            return self._config.compliance_invoke_base
        return self._config.exo_invoke_base

    def preflight(self, method: DeployMethod) -> None:
        """
        Probe a method family's backend once per session.

        Raises:
            PreflightError: If the token is missing or the probe call fails
        """
        family = method_family(method)
        if family is None:
            return
        with self._status_lock:
            if self._preflight_passed[family]:
                return

        try:
            token = self._get_token(family)
        except AuthError as e:
            raise PreflightError(family, str(e)) from e

        diagnostics = TokenDiagnostics.from_token(token)
        logger.info(
            f"Preflight {family}: aud={diagnostics.audience} scp={diagnostics.scopes}"
        )

        try:
            if family == FAMILY_GRAPH:
                self._transport.call_graph("GET", GRAPH_PREFLIGHT_ENDPOINT, token)
            else:
                tenant_id = self._get_tenant_id(required=True)
                self._transport.invoke_command(
                    self._invoke_base(family),
                    tenant_id,
                    PREFLIGHT_COMMANDS[family],
                    {},
                    token,
                )
        except ForbiddenError as e:
            raise PreflightError(family, str(e)) from e
        except (RemoteCallError, AuthError) as e:
            raise PreflightError(
                family,
                f"{e} [aud: {diagnostics.audience} | scp: {diagnostics.scopes}]",
            ) from e

        logger.info(f"Preflight {family} passed")
        with self._status_lock:
            self._preflight_passed[family] = True

    # Execution

    def _execute_call(
        self,
        method: DeployMethod,
        call: Call,
        token: str,
        tenant_id: str | None,
    ) -> Any:
        if isinstance(call, InvokeCommand):
            return self._transport.invoke_command(
                self._invoke_base(method_family(method)),
                tenant_id,
                call.command_name,
                call.parameters,
                token,
            )
        return self._transport.call_graph(call.method, call.endpoint, token, call.body)

    def _execute(
        self,
        payload: Payload,
        token: str,
        tenant_id: str | None,
    ) -> tuple[int, RemoteCallError | None, Call | None]:
        """
        Run a payload's calls in order, stopping at the first failure.

        Returns:
            (calls completed, error of the failing call, failing call)
        """
        is_command = payload.method in (
            DeployMethod.EXO_INVOKE,
            DeployMethod.COMPLIANCE_INVOKE,
        )
        executed = 0
        for i, call in enumerate(payload.calls):
            logger.debug(f"Executing call {i + 1}/{len(payload.calls)}: {call.description}")
            try:
                self._execute_call(payload.method, call, token, tenant_id)
            except RemoteCallError as e:
                return executed, e, call
            executed += 1
            # Spacing between commands respects service throttling
            if is_command and i < len(payload.calls) - 1:
                self._sleep(self._config.command_delay)
        return executed, None, None

    def _fail(
        self,
        control_id: str,
        detail: str,
        retryable: bool = False,
        calls_executed: int = 0,
    ) -> DeployResult:
        self._set_status(control_id, DeploymentState.FAILED, detail)
        logger.deployment_finished(control_id, DeploymentState.FAILED.value, detail)
        return DeployResult(
            control_id=control_id,
            state=DeploymentState.FAILED,
            error=detail,
            retryable=retryable,
            calls_executed=calls_executed,
        )

    def deploy(self, control_id: str) -> DeployResult:
        """
        Deploy one control.

        Errors never propagate: they become the control's ``failed`` status
        and the returned result.

        Args:
            control_id: Control to deploy

        Returns:
            DeployResult with the terminal state
        """
        control = self._controls.get(control_id)
        if control is None:
            return DeployResult(
                control_id=control_id,
                state=DeploymentState.FAILED,
                error=f"Control not found: {control_id}",
            )

        current = self.get_status(control_id)
        if current is not None and current.state.is_sticky:
            logger.debug(f"{control_id} already {current.state.value}, skipping")
            return DeployResult(control_id=control_id, state=current.state)

        method = self.resolve_method(control)
        if method == DeployMethod.PS_ONLY:
            return DeployResult(
                control_id=control_id,
                state=DeploymentState.FAILED,
                error=PS_ONLY_MESSAGE,
            )

        self._set_status(control_id, DeploymentState.DEPLOYING, "Deploying...")

        try:
            self.preflight(method)
            family = method_family(method)
            token = self._get_token(family)
            tenant_id = self._get_tenant_id(required=family != FAMILY_GRAPH)
            document = self._documents.load(control.type, control.spec_doc_ref)
            payload = extract_payload(
                document, control.control_type, control.id, tenant_id
            )
            if payload.is_empty:
                raise NoPayloadError("No deployable payload found")
        except TenantGuardError as e:
            return self._fail(control_id, str(e))
        except Exception as e:
            logger.error(f"Unexpected error preparing {control_id}: {e}", exc_info=True)
            return self._fail(control_id, str(e))

        logger.deployment_started(control_id, method.value, len(payload.calls))
        try:
            executed, error, failed_call = self._execute(payload, token, tenant_id)
        except Exception as e:
            logger.error(f"Unexpected error deploying {control_id}: {e}", exc_info=True)
            return self._fail(control_id, str(e))

        if isinstance(error, ConflictError):
            self._set_status(control_id, DeploymentState.EXISTS, EXISTS_DETAIL)
            logger.deployment_finished(control_id, DeploymentState.EXISTS.value)
            return DeployResult(
                control_id=control_id,
                state=DeploymentState.EXISTS,
                error=str(error),
                calls_executed=executed,
            )

        if error is not None:
            detail = str(error)
            if isinstance(failed_call, InvokeCommand):
                detail = f"{failed_call.command_name}: {error}"
            return self._fail(
                control_id,
                detail,
                retryable=error.retryable,
                calls_executed=executed,
            )

        self._set_status(control_id, DeploymentState.SUCCESS, SUCCESS_DETAIL)
        logger.deployment_finished(control_id, DeploymentState.SUCCESS.value)
        return DeployResult(
            control_id=control_id,
            state=DeploymentState.SUCCESS,
            calls_executed=executed,
        )

    def deploy_bulk(self, control_ids: Sequence[str]) -> BulkDeployResult:
        """
        Deploy controls one after another.

        A failing control never stops the batch. One DeployProgress event
        is published per control.

        Args:
            control_ids: Controls to deploy, in order

        Returns:
            BulkDeployResult with per-state counts
        """
        bulk = BulkDeployResult(total=len(control_ids))
        event = DeployProgress(total=bulk.total, completed=0)

        for i, control_id in enumerate(control_ids):
            result = self.deploy(control_id)
            bulk.results.append(result)
            if result.state == DeploymentState.SUCCESS:
                bulk.succeeded += 1
            elif result.state == DeploymentState.EXISTS:
                bulk.exists += 1
            else:
                bulk.failed += 1

            event = DeployProgress(
                total=bulk.total,
                completed=i + 1,
                succeeded=bulk.succeeded,
                exists=bulk.exists,
                failed=bulk.failed,
                current=control_id,
            )
            self._publisher.publish(event)

            if i < len(control_ids) - 1:
                self._sleep(self._config.bulk_delay)

        self._publisher.finish(event)
        logger.info(
            f"Bulk deployment finished: {bulk.succeeded} succeeded, "
            f"{bulk.exists} existed, {bulk.failed} failed"
        )
        return bulk
