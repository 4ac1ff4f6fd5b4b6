"""
Wiring for the Expiration Pending job.

Every collaborator is passed in explicitly; this module is the only place
that builds them from settings.
"""
from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from ..config import Settings, get_settings
from ..integrations.documents import VaultQueryService, VaultRoleResolver
from ..integrations.vault_api import VaultApiClient
from ..parameters import ParameterProvider, SettingsParameterProvider, VaultParameterProvider
from .discovery import CandidateDiscovery, DiscoveryConfig
from .executor import StartActionConfig, build_executors
from .orchestrator import ExpirationPendingJob
from .runner import LocalJobRunner


def create_vault_client(settings: Optional[Settings] = None) -> VaultApiClient:
    settings = settings or get_settings()
    return VaultApiClient(
        base_url=settings.vault_base_url,
        api_version=settings.vault_api_version,
        session_id=settings.vault_session_id,
        username=settings.vault_username,
        password=settings.vault_password,
        timeout=settings.vault_timeout_seconds,
    )


def create_parameter_provider(
    settings: Settings, query_service: VaultQueryService
) -> ParameterProvider:
    """Pick the parameter source.

    Raises:
        ValueError: If the configured source is not supported
    """
    if settings.parameter_source == "vault":
        return VaultParameterProvider(query_service, settings.parameter_set_name)
    elif settings.parameter_source == "settings":
        return SettingsParameterProvider(settings)
    else:
        raise ValueError(
            f"Unsupported parameter source: {settings.parameter_source}. "
            f"Supported: vault, settings"
        )


def build_job(
    settings: Optional[Settings] = None,
    client: Optional[VaultApiClient] = None,
    today: Callable[[], date] = date.today,
) -> ExpirationPendingJob:
    """Build a fully wired job against Vault."""
    settings = settings or get_settings()
    client = client or create_vault_client(settings)
    query_service = VaultQueryService(client)

    discovery = CandidateDiscovery(
        query_service=query_service,
        workflow_query_service=query_service,
        config=DiscoveryConfig.from_settings(settings),
    )
    executors = build_executors(
        client,
        VaultRoleResolver(client),
        StartActionConfig.from_settings(settings),
        today,
    )
    return ExpirationPendingJob(
        discovery=discovery,
        parameter_provider=create_parameter_provider(settings, query_service),
        executors=executors,
        today=today,
    )


def build_runner(
    settings: Optional[Settings] = None,
    client: Optional[VaultApiClient] = None,
) -> LocalJobRunner:
    settings = settings or get_settings()
    return LocalJobRunner(
        build_job(settings, client),
        task_size=settings.task_size,
        max_parallel_tasks=settings.max_parallel_tasks,
    )
