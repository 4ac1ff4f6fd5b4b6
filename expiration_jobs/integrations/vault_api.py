"""
Client for the Vault REST API.

Methods in this module do not raise for remote, network or protocol
failures. Every call returns an ``ExternalCallResult``; callers branch on
``succeeded``:

    result = client.execute_user_action(doc_version_id, "expiration_pending_autostart", params)
    if not result.succeeded:
        logger.error(f"{result.error_kind}: {result.error_message}")

Operations:
    - call: issue an authenticated request against /api/{version}
    - execute_user_action: resolve a lifecycle action by label, then invoke it
    - cancel_workflow_tasks: workflow actions - cancel tasks
    - execute_query: run a VQL query through the REST query endpoint
    - update_document_fields: update field values on a document
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

from ..errors import ErrorKind, InvalidInput
from .documents import DocVersionId

logger = logging.getLogger(__name__)

Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]], None]


@dataclass(frozen=True)
class ExternalCallResult:
    """Outcome of one Vault API call. Never mutated after construction."""

    succeeded: bool
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    payload: Any = None

    @classmethod
    def ok(cls, payload: Any = None) -> "ExternalCallResult":
        return cls(succeeded=True, payload=payload)

    @classmethod
    def fail(
        cls, message: str, kind: ErrorKind = ErrorKind.OPERATION_FAILED
    ) -> "ExternalCallResult":
        return cls(succeeded=False, error_kind=kind, error_message=message)

    @property
    def failed(self) -> bool:
        return not self.succeeded

    def describe_error(self) -> str:
        kind = self.error_kind.value if self.error_kind else "UNKNOWN"
        return f"{kind}: {self.error_message}"


def _form(params: Params) -> Dict[str, List[str]]:
    """Fold key/value params into a dict of lists so repeated keys survive encoding."""
    if not params:
        return {}
    items: Iterable[Tuple[str, Any]] = (
        params.items() if isinstance(params, Mapping) else params
    )
    form: Dict[str, List[str]] = {}
    for key, value in items:
        if isinstance(value, bool):
            value = "true" if value else "false"
        form.setdefault(key, []).append(str(value))
    return form


class VaultApiClient:
    """
    Synchronous Vault REST client.

    Authentication uses ``session_id`` when given; otherwise a session is
    opened with ``username``/``password`` on first use.
    """

    def __init__(
        self,
        base_url: str,
        api_version: str = "v21.3",
        session_id: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.session_id = session_id
        self.username = username
        self.password = password
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> "VaultApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def api_path(self, path: str) -> str:
        """Prefix ``path`` with /api/{version} unless it is already absolute."""
        if path.startswith("/api/"):
            return path
        return f"/api/{self.api_version}/{path.lstrip('/')}"

    def _authenticate(self) -> ExternalCallResult:
        if self.session_id:
            return ExternalCallResult.ok(self.session_id)
        if not self.username or not self.password:
            return ExternalCallResult.fail(
                "No Vault session id or username/password configured"
            )

        result = self._send(
            "POST",
            self.api_path("auth"),
            {"username": self.username, "password": self.password},
            headers={},
        )
        if result.failed:
            return result

        session_id = (result.payload or {}).get("sessionId")
        if not session_id:
            return ExternalCallResult.fail("Vault authentication returned no sessionId")
        self.session_id = session_id
        logger.info(f"Opened Vault session for {self.username}")
        return ExternalCallResult.ok(session_id)

    def call(self, method: str, path: str, params: Params = None) -> ExternalCallResult:
        """Issue an authenticated request.

        GET params go on the query string; other methods send them as form data.
        """
        auth = self._authenticate()
        if auth.failed:
            return auth
        return self._send(
            method.upper(),
            self.api_path(path),
            params,
            headers={"Authorization": auth.payload},
        )

    def _send(
        self, method: str, path: str, params: Params, headers: Dict[str, str]
    ) -> ExternalCallResult:
        form = _form(params)
        try:
            if method == "GET":
                response = self.client.request(method, path, params=form or None, headers=headers)
            else:
                response = self.client.request(method, path, data=form or None, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Vault request {method} {path} failed: {e}")
            return ExternalCallResult.fail(f"Network error calling {path}: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            detail = _first_error(body) or response.text[:200]
            logger.error(f"Vault request {method} {path} returned HTTP {response.status_code}")
            return ExternalCallResult.fail(f"HTTP {response.status_code}: {detail}")

        if not isinstance(body, dict):
            return ExternalCallResult.fail(f"Vault returned a non-JSON response for {path}")

        if body.get("responseStatus") == "FAILURE":
            detail = _first_error(body) or "Unknown Vault error"
            logger.error(f"Vault request {method} {path} failed: {detail}")
            return ExternalCallResult.fail(detail)

        return ExternalCallResult.ok(body)

    def execute_user_action(
        self, doc_version_id: str, action_label: str, params: Params = None
    ) -> ExternalCallResult:
        """Execute a document lifecycle user action (workflow or state change).

        The action is looked up by its label among the actions currently
        available on the document version, then invoked by name.

        Args:
            doc_version_id: Document version id, e.g. "539_0_6"
            action_label: Label of the action as it appears on the actions menu
            params: Entry criteria fields for the action
        """
        try:
            version = DocVersionId.parse(doc_version_id)
        except InvalidInput as e:
            return ExternalCallResult.fail(e.message, ErrorKind.INVALID_INPUT)

        actions_path = f"{version.api_path()}/lifecycle_actions"
        listing = self.call("GET", actions_path)
        if listing.failed:
            return listing

        action_name = None
        for action in listing.payload.get("lifecycle_actions__v") or []:
            if action.get("label__v") == action_label:
                action_name = action.get("name__v")
                break

        if action_name is None:
            return ExternalCallResult.fail(
                'An error occurred accessing Vault API "Retrieve User Actions".  '
                f'Unable to find action "{action_label}"'
            )

        return self.call("PUT", f"{actions_path}/{action_name}", params)

    def cancel_workflow_tasks(self, task_ids: Sequence[str]) -> ExternalCallResult:
        """Workflow actions - cancel tasks.

        Returns:
            Result whose payload is the initiated Vault job id
        """
        if not task_ids:
            return ExternalCallResult.fail("No task ids to cancel", ErrorKind.INVALID_INPUT)

        result = self.call(
            "POST",
            "object/workflow/actions/canceltasks",
            {"task_ids": ",".join(str(t) for t in task_ids)},
        )
        if result.failed:
            return result
        data = result.payload.get("data") or {}
        return ExternalCallResult.ok(data.get("job_id"))

    def execute_query(self, query: str) -> ExternalCallResult:
        """Execute a VQL query.

        Returns:
            Result whose payload is the full response body (``data`` rows plus
            ``responseDetails`` for paging)
        """
        return self.call("POST", "query", {"q": query})

    def update_document_fields(
        self, document_id: str, fields: Mapping[str, Any]
    ) -> ExternalCallResult:
        """Update field values on the latest version of a document."""
        return self.call("PUT", f"objects/documents/{document_id}", fields)


def _first_error(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    errors = body.get("errors") or []
    if not errors:
        return None
    first = errors[0]
    return f"{first.get('type', 'UNKNOWN')}: {first.get('message', '')}"
