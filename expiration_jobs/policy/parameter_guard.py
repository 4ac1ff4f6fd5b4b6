"""
Protection rules for "VPROC Parameter Set" records.

Parameter set records hold the thresholds other jobs depend on, so changes
to them are restricted. This module is a pure, testable gate: callers pass
the record event and the old/new record values and get either ``None`` or
a classified ``JobError``.

Rules:
- records cannot be deleted (DELETION_DENIED)
- bulk updates are not allowed (OPERATION_DENIED)
- a parameter set cannot be renamed (UPDATE_DENIED)
- the ExpirationPendingWorkflow record must keep parseable, numeric
  parameters (INVALID_INPUT)

To make a restricted change, disable the guard in the host before editing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from ..errors import DeletionDenied, OperationDenied, UpdateDenied
from ..parameters import PARAMETERS_FIELD, parse_parameters

EXPIRATION_PENDING_PARAMETER_SET = "ExpirationPendingWorkflow"


class RecordEvent(str, Enum):
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DELETE = "before_delete"


@dataclass(frozen=True)
class RecordChange:
    """Old and new field values of one parameter set record."""

    old: Dict[str, Any]
    new: Optional[Dict[str, Any]] = None


def _validate_parameters(record: Dict[str, Any]) -> None:
    """The ExpirationPendingWorkflow thresholds must parse. Raises InvalidInput."""
    parse_parameters(record.get(PARAMETERS_FIELD))


def guard_parameter_set_change(
    event: RecordEvent, changes: Sequence[RecordChange]
) -> None:
    """
    Evaluate a change to parameter set records.

    Args:
        event: The record event being processed
        changes: One entry per record touched by the operation

    Raises:
        DeletionDenied: On any delete
        OperationDenied: When more than one record changes at once
        UpdateDenied: When a record's name changes
        InvalidInput: When ExpirationPendingWorkflow parameters do not parse
    """
    if event == RecordEvent.BEFORE_DELETE:
        raise DeletionDenied("Record deletions are not allowed in this object.")

    if len(changes) > 1:
        raise OperationDenied("Bulk updates are not allowed")

    if not changes:
        return

    change = changes[0]
    new = change.new or {}
    old_name = change.old.get("name__v")
    new_name = new.get("name__v")

    if new_name != old_name:
        raise UpdateDenied("Cannot change the parameter set name.")

    # Values are checked after the update so the stored JSON is what gets parsed.
    if old_name == EXPIRATION_PENDING_PARAMETER_SET and event == RecordEvent.AFTER_UPDATE:
        _validate_parameters(new)
