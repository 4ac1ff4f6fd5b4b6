"""API-level tests for the job trigger endpoints."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import TODAY, make_job
from expiration_jobs.api import app, get_job_runner
from expiration_jobs.jobs.discovery import CandidateDiscovery, DiscoveryConfig
from expiration_jobs.jobs.runner import LocalJobRunner

client = TestClient(app)


@pytest.fixture
def runner(vault, params):
    runner = LocalJobRunner(make_job(vault, params), task_size=10)
    app.dependency_overrides[get_job_runner] = lambda: runner
    yield runner
    app.dependency_overrides.clear()


def test_candidates_lists_work_items(vault, runner):
    vault.add_document("101", "JOB-0042", TODAY + timedelta(days=57), version="0_3")
    vault.add_document("102", "JOB-0043", TODAY + timedelta(days=4))
    vault.add_workflow(102, 9002)

    response = client.get("/jobs/expiration-pending/candidates")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert data["items"][0] == {
        "action": "start",
        "document_number": "JOB-0042",
        "document_version_id": "101_0_3",
        "expiration_date": (TODAY + timedelta(days=57)).isoformat(),
        "task_due_offset_days": 14,
    }
    assert data["items"][1] == {"action": "cancel", "document_id": "102", "task_id": "9002"}
    assert vault.user_actions == []
    assert vault.cancelled_task_batches == []


def test_candidates_discovery_failure_returns_502(vault, runner):
    vault.failing_sources.add("workflows")

    response = client.get("/jobs/expiration-pending/candidates")

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["error"] == "discovery_failed"
    assert "workflows query" in detail["message"]


def test_run_returns_task_results(vault, runner):
    vault.add_document("101", "JOB-0042", TODAY + timedelta(days=57), version="0_3")
    vault.add_document("102", "JOB-0043", TODAY + timedelta(days=56))
    vault.failing_versions.add("102_0_1")

    response = client.post("/jobs/expiration-pending/run")

    assert response.status_code == 200
    data = response.json()
    assert data["run_id"] == runner.run_id
    assert data["state"] == "completed_with_errors"
    assert data["total_tasks"] == 1
    assert data["tasks"][0]["failed_item_count"] == 1
    assert data["tasks"][0]["first_error_message"].startswith("JOB-0043:")


def test_run_discovery_failure_returns_502(vault, runner):
    vault.failing_sources.add("documents")

    response = client.post("/jobs/expiration-pending/run")

    assert response.status_code == 502
    assert response.json()["detail"]["code"] == "OPERATION_FAILED"


def test_misconfigured_discovery_returns_502(vault, params):
    job = make_job(vault, params)
    job.discovery = CandidateDiscovery(vault, vault, DiscoveryConfig(document_types=[]))
    app.dependency_overrides[get_job_runner] = lambda: LocalJobRunner(job)
    try:
        response = client.get("/jobs/expiration-pending/candidates")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "discovery_failed"
