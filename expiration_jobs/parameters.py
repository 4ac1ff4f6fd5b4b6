"""
Tunable thresholds for the Expiration Pending jobs.

The thresholds live in the ``parameters__c`` JSON of a "VPROC Parameter Set"
record (``vproc_parameter_set__c``) named ``ExpirationPendingWorkflow``:

    {
      "windowLowDays": 55,       # start window: earliest expiration, days from today
      "windowHighDays": 60,      # start window: latest expiration, days from today
      "taskDueDays": 14,         # task due this many days before expiration
      "workflowKillDays": 15     # cancel tasks once expiration is this close
    }

Older records carry only ``workflowStartDays``; the window then ends at
``workflowStartDays`` and starts ``workflowStartBufferDays`` (default 30)
earlier.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .config import Settings, get_settings
from .errors import InvalidInput, OperationFailed
from .integrations.documents import QueryService
from .vql import Query, eq

logger = structlog.get_logger(__name__)

PARAMETER_SET_OBJECT = "vproc_parameter_set__c"
PARAMETERS_FIELD = "parameters__c"
DEFAULT_START_BUFFER_DAYS = 30


class ExpirationPendingParameters(BaseModel):
    """Thresholds read once per job initialization."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    window_low_days: int = Field(alias="windowLowDays")
    window_high_days: int = Field(alias="windowHighDays")
    task_due_days: int = Field(alias="taskDueDays", ge=0)
    workflow_kill_days: int = Field(alias="workflowKillDays")

    @model_validator(mode="before")
    @classmethod
    def resolve_legacy_start_days(cls, data: Any) -> Any:
        """Derive the window from ``workflowStartDays`` for older parameter records."""
        if not isinstance(data, dict):
            return data
        if "workflowStartDays" in data and "windowHighDays" not in data and "window_high_days" not in data:
            data = dict(data)
            try:
                high = int(data["workflowStartDays"])
                buffer = int(data.get("workflowStartBufferDays", DEFAULT_START_BUFFER_DAYS))
            except (TypeError, ValueError) as e:
                raise ValueError(f"workflowStartDays must be numeric: {e}")
            data["windowHighDays"] = high
            data.setdefault("windowLowDays", high - buffer)
        return data

    @model_validator(mode="after")
    def check_window(self) -> "ExpirationPendingParameters":
        if self.window_low_days > self.window_high_days:
            raise ValueError(
                f"windowLowDays ({self.window_low_days}) must not exceed "
                f"windowHighDays ({self.window_high_days})"
            )
        return self


def parse_parameters(raw: Any) -> ExpirationPendingParameters:
    """Parse a ``parameters__c`` value (JSON text or dict).

    Raises:
        InvalidInput: If the value is not valid JSON or fails validation
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidInput(f"Parameters are not valid JSON: {e}")
    if not isinstance(raw, dict):
        raise InvalidInput("Parameters must be a JSON object")
    try:
        return ExpirationPendingParameters.model_validate(raw)
    except ValidationError as e:
        raise InvalidInput(f"Invalid Expiration Pending parameters: {e}")


class ParameterProvider(Protocol):
    def load(self) -> ExpirationPendingParameters:
        ...


class VaultParameterProvider:
    """Reads the parameter set record through the query service."""

    def __init__(self, query_service: QueryService, parameter_set_name: str):
        self.query_service = query_service
        self.parameter_set_name = parameter_set_name

    def build_query(self) -> Query:
        return (
            Query.select(PARAMETERS_FIELD)
            .from_(PARAMETER_SET_OBJECT)
            .where(eq("name__v", self.parameter_set_name))
        )

    def load(self) -> ExpirationPendingParameters:
        rows = self.query_service.query(self.build_query())
        if not rows:
            raise OperationFailed(
                f"Parameter set '{self.parameter_set_name}' not found in {PARAMETER_SET_OBJECT}"
            )
        params = parse_parameters(rows[0].get(PARAMETERS_FIELD))
        logger.info(
            "parameters_loaded",
            source="vault",
            parameter_set=self.parameter_set_name,
            **params.model_dump(),
        )
        return params


class SettingsParameterProvider:
    """Supplies thresholds from application settings."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def load(self) -> ExpirationPendingParameters:
        values: Dict[str, int] = {
            "window_low_days": self.settings.expiration_window_low_days,
            "window_high_days": self.settings.expiration_window_high_days,
            "task_due_days": self.settings.task_due_days,
            "workflow_kill_days": self.settings.workflow_kill_days,
        }
        try:
            params = ExpirationPendingParameters(**values)
        except ValidationError as e:
            raise InvalidInput(f"Invalid Expiration Pending settings: {e}")
        logger.info("parameters_loaded", source="settings", **params.model_dump())
        return params


class StaticParameterProvider:
    """Fixed thresholds supplied by the caller."""

    def __init__(self, params: ExpirationPendingParameters):
        self.params = params

    def load(self) -> ExpirationPendingParameters:
        return self.params
