"""
Remote call execution for TenantGuard deployments.

Executes REST calls against Microsoft Graph and remote commands against
the Exchange Online / Compliance Center InvokeCommand endpoints, and maps
their responses onto the deployment error taxonomy.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from tenantguard.auth.tokens import TokenDiagnostics
from tenantguard.collectors.http import GraphClient, HttpResponse
from tenantguard.errors import (
    ConflictError,
    ForbiddenError,
    InBandCommandError,
    RateLimitedError,
    RemoteCallError,
)

logger = logging.getLogger(__name__)

# Graph error codes documented as "object already exists"
ALREADY_EXISTS_CODES = frozenset(
    {
        "ConditionalAccessPolicyAlreadyExists",
        "Request_MultipleObjectsWithSameKeyValue",
    }
)

# PowerShell ErrorRecord category for duplicate objects
RESOURCE_EXISTS_CATEGORY = "ResourceExists"

RATE_LIMITED_MESSAGE = "Rate limited, try again shortly"

INVOKE_COMMAND_HEADERS = {
    "Content-Type": "application/json;odata.metadata=minimal",
    "X-ResponseFormat": "json",
}


def _log_token_diagnostics(
    token: str,
    status: int,
    target: str,
) -> TokenDiagnostics:
    diagnostics = TokenDiagnostics.from_token(token)
    logger.error(
        f"Authorization failure (HTTP {status}) for {target}: "
        f"aud={diagnostics.audience} scp={diagnostics.scopes} "
        f"appid={diagnostics.app_id}"
    )
    return diagnostics


def raise_for_graph_response(
    response: HttpResponse,
    token: str,
    target: str = "",
) -> None:
    """
    Raise the deployment error matching a failed Graph response.

    Args:
        response: Response to inspect
        token: Token the request was sent with (decoded for diagnostics only)
        target: "METHOD url" used in diagnostic logs

    Raises:
        ConflictError: HTTP 409 or an already-exists error code
        RateLimitedError: HTTP 429
        ForbiddenError: HTTP 401/403 or a scope-related error message
        RemoteCallError: Any other non-2xx status
    """
    if response.ok:
        return

    if response.status == 409 or response.error_code in ALREADY_EXISTS_CODES:
        raise ConflictError(409, "Policy already exists", response.data)

    if response.status == 429:
        raise RateLimitedError(429, RATE_LIMITED_MESSAGE, response.data)

    message = response.error_message
    if response.status in (401, 403) or "scope" in message.lower():
        diagnostics = _log_token_diagnostics(token, response.status, target)
        raise ForbiddenError(
            response.status,
            message,
            audience=diagnostics.audience,
            scopes=diagnostics.scopes,
            data=response.data,
        )

    raise RemoteCallError(response.status, message, response.data)


def _error_record_message(record: Any) -> tuple[str, str]:
    """Extract (message, category) from one InvokeCommand error record."""
    if not isinstance(record, dict):
        return str(record)[:200], ""

    inner = record.get("ErrorRecord") if isinstance(record.get("ErrorRecord"), dict) else {}
    category_info = inner.get("CategoryInfo") or record.get("CategoryInfo") or {}
    category = ""
    if isinstance(category_info, dict):
        category = str(category_info.get("Category") or "")

    exception = inner.get("Exception")
    if isinstance(exception, dict) and exception.get("Message"):
        return str(exception["Message"]), category
    if record.get("Message"):
        return str(record["Message"]), category
    return json.dumps(record)[:200], category


def raise_for_command_response(
    response: HttpResponse,
    token: str,
    command_name: str,
) -> None:
    """
    Raise the deployment error matching a failed InvokeCommand response.

    InvokeCommand reports cmdlet failures with HTTP 200 and an
    ``ErrorRecords`` list, so a success status is inspected as well.

    Raises:
        ConflictError: Error record categorized as ResourceExists, or HTTP 409
        InBandCommandError: HTTP 200 with an error record or error body
        RateLimitedError: HTTP 429
        ForbiddenError: HTTP 401/403
        RemoteCallError: Any other non-2xx status
    """
    data = response.data
    if response.ok:
        if isinstance(data, dict) and data.get("ErrorRecords"):
            message, category = _error_record_message(data["ErrorRecords"][0])
            if category == RESOURCE_EXISTS_CATEGORY:
                raise ConflictError(response.status, message, data)
            raise InBandCommandError(response.status, message, data, category)
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            if data["error"].get("message"):
                raise InBandCommandError(
                    response.status, str(data["error"]["message"]), data
                )
        return

    if response.status == 409:
        raise ConflictError(409, response.error_message, data)

    if response.status == 429:
        raise RateLimitedError(429, RATE_LIMITED_MESSAGE, data)

    if response.status in (401, 403):
        diagnostics = _log_token_diagnostics(token, response.status, command_name)
        raise ForbiddenError(
            response.status,
            response.error_message,
            audience=diagnostics.audience,
            scopes=diagnostics.scopes,
            data=data,
        )

    raise RemoteCallError(response.status, response.error_message, data)


class DeployTransport:
    """
    Issues deployment calls through a GraphClient.

    The same client serves Graph paths and the absolute InvokeCommand URLs.
    """

    def __init__(self, client: GraphClient):
        self._client = client

    @property
    def client(self) -> GraphClient:
        return self._client

    def call_graph(
        self,
        method: str,
        endpoint: str,
        token: str,
        body: Any = None,
    ) -> Any:
        """
        Execute one Graph call.

        Returns:
            Parsed response body

        Raises:
            RemoteCallError: Or a subclass, when the call fails
            NetworkError: On timeout or transport failure
        """
        response = self._client.request(method, endpoint, token, body=body)
        raise_for_graph_response(
            response, token, f"{method} {self._client.build_url(endpoint)}"
        )
        return response.data

    def invoke_command(
        self,
        base_url: str,
        tenant_id: str,
        command_name: str,
        parameters: dict[str, Any],
        token: str,
    ) -> Any:
        """
        Execute one remote command through InvokeCommand.

        Args:
            base_url: Admin API base for the service
            tenant_id: Tenant the command runs in
            command_name: Cmdlet name
            parameters: Cmdlet parameters
            token: Bearer token for the service audience

        Returns:
            Parsed response body

        Raises:
            RemoteCallError: Or a subclass, when the command fails
            NetworkError: On timeout or transport failure
        """
        url = base_url.rstrip("/") + f"/{tenant_id}/InvokeCommand"
        body = {
            "CmdletInput": {
                "CmdletName": command_name,
                "Parameters": parameters or {},
            }
        }
        response = self._client.request(
            "POST", url, token, body=body, headers=INVOKE_COMMAND_HEADERS
        )
        raise_for_command_response(response, token, command_name)
        return response.data
