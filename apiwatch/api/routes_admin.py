"""
Background job administration (admin only).

- Status of the scheduler and each job
- Run one job immediately
- Start / stop the scheduler
"""

from typing import Any

from fastapi import APIRouter, Depends

from apiwatch.api.deps import get_job_manager, require_admin
from apiwatch.models import User
from apiwatch.schemas.common import ApiResponse
from apiwatch.schemas.delivery import JobManagerStatusResponse
from apiwatch.services.jobs import JobManager

router = APIRouter(
    prefix="/admin/jobs",
    tags=["Admin"],
)


@router.get(
    "",
    response_model=ApiResponse[JobManagerStatusResponse],
    summary="Background job status",
)
async def get_job_status(
    current_user: User = Depends(require_admin),
    manager: JobManager = Depends(get_job_manager),
):
    return ApiResponse(data=JobManagerStatusResponse(**manager.status()))


@router.post(
    "/start",
    response_model=ApiResponse[JobManagerStatusResponse],
    summary="Start the background scheduler",
)
async def start_jobs(
    current_user: User = Depends(require_admin),
    manager: JobManager = Depends(get_job_manager),
):
    manager.start()
    return ApiResponse(data=JobManagerStatusResponse(**manager.status()))


@router.post(
    "/stop",
    response_model=ApiResponse[JobManagerStatusResponse],
    summary="Stop the background scheduler",
)
async def stop_jobs(
    current_user: User = Depends(require_admin),
    manager: JobManager = Depends(get_job_manager),
):
    """Stop scheduling further runs. Runs already in progress complete."""
    manager.stop()
    return ApiResponse(data=JobManagerStatusResponse(**manager.status()))


@router.post(
    "/{job_name}/run",
    response_model=ApiResponse[dict[str, Any]],
    summary="Run a job now",
)
async def run_job(
    job_name: str,
    current_user: User = Depends(require_admin),
    manager: JobManager = Depends(get_job_manager),
):
    """
    Run alert_evaluation, notification_delivery or cleanup immediately and
    return its result.
    """
    result = await manager.run_once(job_name)
    return ApiResponse(data={"job": job_name, "result": result})
