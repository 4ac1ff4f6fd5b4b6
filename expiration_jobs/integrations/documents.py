"""
Document-side collaborators: version ids, query execution and role lookup.

The job only depends on the ``QueryService`` and ``RoleResolver``
protocols; the Vault-backed implementations here are what the factory
wires in for real runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Protocol

from ..errors import InvalidInput, OperationFailed
from ..vql import Query

if TYPE_CHECKING:
    from .vault_api import VaultApiClient

logger = logging.getLogger(__name__)

# Guard against a server that keeps handing back the same next_page link.
MAX_QUERY_PAGES = 1000


@dataclass(frozen=True)
class DocVersionId:
    """Composite document version id in the form ``"{id}_{major}_{minor}"``."""

    document_id: str
    major: int
    minor: int

    @classmethod
    def parse(cls, value: str) -> "DocVersionId":
        parts = str(value).split("_")
        if len(parts) != 3 or not all(p.isdigit() for p in parts):
            raise InvalidInput(
                f"Invalid document version id '{value}'. Expected '<id>_<major>_<minor>'"
            )
        return cls(parts[0], int(parts[1]), int(parts[2]))

    def api_path(self) -> str:
        return f"objects/documents/{self.document_id}/versions/{self.major}/{self.minor}"

    def __str__(self) -> str:
        return f"{self.document_id}_{self.major}_{self.minor}"


class QueryService(Protocol):
    """Discovery read interface: rows of field values for a query."""

    def query(self, query: Query) -> List[Dict[str, Any]]:
        ...


class RoleResolver(Protocol):
    """Users currently assigned to a named role on a document version."""

    def users_in_role(self, doc_version_id: str, role_name: str) -> List[str]:
        ...


class VaultQueryService:
    """Executes typed queries through the Vault REST query endpoint.

    Follows ``responseDetails.next_page`` until the result set is complete.
    Raises ``OperationFailed`` when any page fails.
    """

    def __init__(self, client: "VaultApiClient"):
        self.client = client

    def query(self, query: Query) -> List[Dict[str, Any]]:
        statement = query.render()
        result = self.client.execute_query(statement)
        if result.failed:
            raise OperationFailed(
                f"An error occurred executing query: {result.describe_error()}"
            )

        rows: List[Dict[str, Any]] = list(result.payload.get("data") or [])
        next_page = (result.payload.get("responseDetails") or {}).get("next_page")
        pages = 1

        while next_page and pages < MAX_QUERY_PAGES:
            page = self.client.call("GET", next_page)
            if page.failed:
                raise OperationFailed(
                    f"An error occurred reading query page {pages + 1}: {page.describe_error()}"
                )
            rows.extend(page.payload.get("data") or [])
            next_page = (page.payload.get("responseDetails") or {}).get("next_page")
            pages += 1

        if next_page:
            raise OperationFailed(
                f"Query exceeded {MAX_QUERY_PAGES} pages without completing: {statement}"
            )

        logger.debug(f"Query returned {len(rows)} rows in {pages} page(s): {statement}")
        return rows


class VaultRoleResolver:
    """Resolves document role membership through the Vault documents API."""

    def __init__(self, client: "VaultApiClient"):
        self.client = client

    def users_in_role(self, doc_version_id: str, role_name: str) -> List[str]:
        version = DocVersionId.parse(doc_version_id)
        result = self.client.call(
            "GET", f"{version.api_path()}/roles/{role_name}"
        )
        if result.failed:
            raise OperationFailed(
                f"Unable to read role '{role_name}' on {version}: {result.describe_error()}"
            )

        users: List[str] = []
        for role in result.payload.get("documentRoles") or []:
            if role.get("name") == role_name:
                users.extend(str(u) for u in role.get("assignedUsers") or [])
        return users
