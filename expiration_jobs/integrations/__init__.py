"""Vault integrations."""

from .documents import (
    DocVersionId,
    QueryService,
    RoleResolver,
    VaultQueryService,
    VaultRoleResolver,
)
from .vault_api import ExternalCallResult, VaultApiClient

__all__ = [
    "DocVersionId",
    "ExternalCallResult",
    "QueryService",
    "RoleResolver",
    "VaultApiClient",
    "VaultQueryService",
    "VaultRoleResolver",
]
