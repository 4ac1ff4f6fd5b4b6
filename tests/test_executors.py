"""Tests for the Start and Cancel executors."""

from datetime import date, timedelta

import pytest

from conftest import START_ACTION_LABEL, TODAY
from expiration_jobs.jobs.executor import (
    CancelExecutor,
    StartActionConfig,
    StartExecutor,
    build_executors,
    compute_task_due_date,
)
from expiration_jobs.schemas.work_items import ACTION_CANCEL, ACTION_START, CancelItem, StartItem


def start_item(**overrides) -> StartItem:
    defaults = {
        "document_number": "JOB-0042",
        "document_version_id": "101_0_3",
        "expiration_date": TODAY + timedelta(days=57),
        "task_due_offset_days": 14,
    }
    defaults.update(overrides)
    return StartItem(**defaults)


@pytest.fixture
def start_executor(vault) -> StartExecutor:
    vault.add_document("101", "JOB-0042", TODAY + timedelta(days=57), version="0_3")
    vault.roles["101"] = ["61603", "61604"]
    return StartExecutor(vault, vault, StartActionConfig(), today=lambda: TODAY)


class TestComputeTaskDueDate:
    def test_offset_before_expiration(self):
        assert compute_task_due_date(date(2026, 5, 1), 14, TODAY) == date(2026, 4, 17)

    def test_never_earlier_than_today(self):
        assert compute_task_due_date(TODAY + timedelta(days=5), 14, TODAY) == TODAY

    def test_missing_offset_means_expiration_date(self):
        assert compute_task_due_date(date(2026, 5, 1), None, TODAY) == date(2026, 5, 1)

    @pytest.mark.parametrize("ahead", [0, 1, 13, 14, 15, 60])
    def test_due_date_is_max_of_offset_date_and_today(self, ahead):
        expiration = TODAY + timedelta(days=ahead)
        due = compute_task_due_date(expiration, 14, TODAY)
        assert due == max(expiration - timedelta(days=14), TODAY)
        assert due >= TODAY


class TestStartExecutor:
    def test_starts_workflow_with_role_users_and_due_date(self, vault, start_executor):
        outcome = start_executor.execute(start_item())

        assert outcome.success
        assert outcome.subject == "JOB-0042"
        assert vault.user_actions == [
            {
                "doc_version_id": "101_0_3",
                "label": START_ACTION_LABEL,
                "params": [
                    ("user_control_multiple__c", "user:61603"),
                    ("user_control_multiple__c", "user:61604"),
                    ("date_control__c", "2026-04-14"),
                ],
            }
        ]
        assert outcome.outputs == {"task_due_date": "2026-04-14", "user_ids": ["61603", "61604"]}
        assert outcome.duration_seconds is not None

    def test_sets_notified_flag_after_start(self, vault, start_executor):
        start_executor.execute(start_item())

        assert vault.field_updates == [
            {"document_id": "101", "fields": {"pending_expiration_task_sent__c": True}}
        ]
        assert vault.documents["101"]["pending_expiration_task_sent__c"] is True

    def test_flag_is_left_alone_when_disabled(self, vault):
        vault.add_document("101", "JOB-0042", TODAY + timedelta(days=57), version="0_3")
        executor = StartExecutor(
            vault, vault, StartActionConfig(mark_notified=False), today=lambda: TODAY
        )

        assert executor.execute(start_item()).success
        assert vault.field_updates == []

    def test_role_without_users_still_starts(self, vault, start_executor):
        vault.roles["101"] = []

        outcome = start_executor.execute(start_item())

        assert outcome.success
        assert vault.user_actions[0]["params"] == [("date_control__c", "2026-04-14")]

    def test_missing_action_is_a_failed_outcome(self, vault, start_executor):
        vault.action_labels = set()

        outcome = start_executor.execute(start_item())

        assert not outcome.success
        assert outcome.error_message.startswith("JOB-0042: Unable to execute workflow. OPERATION_FAILED:")
        assert 'Unable to find action "expiration_pending_autostart"' in outcome.error_message
        assert vault.field_updates == []

    def test_role_lookup_failure_is_a_failed_outcome(self, vault, start_executor):
        vault.failing_role_lookups.add("101")

        outcome = start_executor.execute(start_item())

        assert not outcome.success
        assert outcome.error_message.startswith("JOB-0042: OPERATION_FAILED:")
        assert vault.user_actions == []

    def test_due_date_is_clamped_to_today(self, vault, start_executor):
        outcome = start_executor.execute(start_item(expiration_date=TODAY + timedelta(days=3)))

        assert outcome.outputs["task_due_date"] == TODAY.isoformat()


class TestCancelExecutor:
    def test_cancels_single_task(self, vault):
        outcome = CancelExecutor(vault).execute(CancelItem(document_id="101", task_id="9001"))

        assert outcome.success
        assert vault.cancelled_task_batches == [["9001"]]
        assert outcome.outputs == {"vault_job_id": "job-1"}

    def test_failure_is_a_failed_outcome(self, vault):
        vault.failing_cancels.add("9001")

        outcome = CancelExecutor(vault).execute(CancelItem(document_id="101", task_id="9001"))

        assert not outcome.success
        assert outcome.error_message == (
            "Unable to cancel workflow task for 101. OPERATION_FAILED: INVALID_DATA: Task already completed"
        )


def test_build_executors_keys_by_action(vault):
    executors = build_executors(vault, vault, StartActionConfig())

    assert set(executors) == {ACTION_START, ACTION_CANCEL}
    assert isinstance(executors[ACTION_START], StartExecutor)
    assert isinstance(executors[ACTION_CANCEL], CancelExecutor)
