"""
Job Routes

List registered rule jobs and trigger a run on demand.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.database import get_db
from .scheduler import JOB_REGISTRY, UnknownJobError, execute_job, job_scheduler
from .schemas import JobInfo, JobRunResponse, JobsListResponse

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=JobsListResponse)
async def list_jobs():
    """List every registered job with its trigger."""
    status = job_scheduler.get_status()
    return JobsListResponse(
        jobs=[
            JobInfo(
                name=entry.name,
                description=entry.description,
                trigger=entry.trigger,
                trigger_args=entry.trigger_args,
                last_run=status[entry.name]["last_run"],
            )
            for entry in JOB_REGISTRY.values()
        ]
    )


@router.post("/{name}/run", response_model=JobRunResponse)
async def trigger_job(
    name: str,
    force: bool = Query(False, description="Bypass dedup and cooldown checks"),
    db: AsyncSession = Depends(get_db),
):
    """Run a job now and return its summary."""
    try:
        summary = await execute_job(db, name, force=force)
    except UnknownJobError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {name}")

    return JobRunResponse(**asdict(summary))
