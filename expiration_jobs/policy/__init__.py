"""Policy gates for configuration records."""

from .parameter_guard import RecordChange, RecordEvent, guard_parameter_set_change

__all__ = ["RecordChange", "RecordEvent", "guard_parameter_set_change"]
