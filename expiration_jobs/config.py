"""
Configuration management for the expiration pending jobs.
"""

from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_csv(raw: str) -> List[str]:
    """
    Parse a comma-separated setting into a list.

    Examples:
        "jobs__c,par__c" -> ["jobs__c", "par__c"]
        "  a , b  " -> ["a", "b"]
        "" -> []
    """
    if not raw or not raw.strip():
        return []

    values = [value.strip() for value in raw.split(",")]
    return [v for v in values if v]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = Field(default="Expiration Pending Jobs")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    # Vault connection
    vault_base_url: str = Field(default="https://localhost")
    vault_api_version: str = Field(default="v21.3")
    vault_session_id: Optional[str] = Field(default=None)
    vault_username: Optional[str] = Field(default=None)
    vault_password: Optional[str] = Field(default=None)
    vault_timeout_seconds: float = Field(default=30.0)

    # Parameters
    parameter_source: Literal["vault", "settings"] = Field(
        default="vault",
        description="Read thresholds from the Vault parameter set record or from these settings.",
    )
    parameter_set_name: str = Field(default="ExpirationPendingWorkflow")
    expiration_window_low_days: int = Field(default=30)
    expiration_window_high_days: int = Field(default=60)
    task_due_days: int = Field(default=14)
    workflow_kill_days: int = Field(default=15)

    # Discovery
    document_types: str = Field(
        default="jobs__c,nprc__c,par__c,endoaesthetics__c",
        description="Comma-separated document type names eligible for Expiration Pending workflows.",
    )
    target_lifecycle: str = Field(default="job_processing__c")
    notified_flag_field: str = Field(default="pending_expiration_task_sent__c")
    expiration_date_field: str = Field(default="expiration_date__c")
    workflow_name: str = Field(default="Expiration Pending")

    # Start action
    lifecycle_action_label: str = Field(default="expiration_pending_autostart")
    approver_role: str = Field(default="project_manager__c")
    user_control_field: str = Field(default="user_control_multiple__c")
    due_date_control_field: str = Field(default="date_control__c")
    mark_notified: bool = Field(default=True)

    # Scheduling
    task_size: int = Field(default=50, ge=1)
    max_parallel_tasks: int = Field(default=1, ge=1)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
