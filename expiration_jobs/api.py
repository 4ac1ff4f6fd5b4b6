"""
HTTP surface for triggering the Expiration Pending job on demand.
"""

from __future__ import annotations

import importlib.metadata
from typing import Any, Dict, Iterator

import structlog
from fastapi import Depends, FastAPI, HTTPException

from .config import get_settings
from .errors import DiscoveryError
from .jobs.factory import build_runner, create_vault_client
from .jobs.runner import LocalJobRunner

logger = structlog.get_logger()

settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Starts and cancels Expiration Pending workflows in Vault",
    version=importlib.metadata.version("expiration-pending-jobs"),
)


def get_job_runner() -> Iterator[LocalJobRunner]:
    """Build a runner with its own Vault client for one request."""
    client = create_vault_client(settings)
    try:
        yield build_runner(settings, client)
    finally:
        client.close()


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True, "environment": settings.environment}


@app.get("/version")
def version() -> Dict[str, str]:
    return {"version": importlib.metadata.version("expiration-pending-jobs")}


@app.get("/jobs/expiration-pending/candidates")
def list_candidates(runner: LocalJobRunner = Depends(get_job_runner)) -> Dict[str, Any]:
    """Dry run: return the work items the next run would process."""
    try:
        items = runner.job.init()
    except DiscoveryError as e:
        logger.error("candidates_discovery_failed", error=e.message)
        raise HTTPException(status_code=502, detail=e.to_dict())

    return {
        "count": len(items),
        "items": [item.model_dump(mode="json") for item in items],
    }


@app.post("/jobs/expiration-pending/run")
def run_job(runner: LocalJobRunner = Depends(get_job_runner)) -> Dict[str, Any]:
    """Run the job now and return the per-task results."""
    logger.info("job_run_requested", run_id=runner.run_id)
    try:
        outcome = runner.run()
    except DiscoveryError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())

    return {"run_id": runner.run_id, **outcome.to_dict()}
