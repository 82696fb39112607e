"""
trackd - Jobs Router

API endpoints for job management.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, require_within_limit
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.job import JobCreateRequest, JobResponse, JobUpdateRequest
from app.schemas.tier import LimitKind
from app.services.job_service import JobService


router = APIRouter()


@router.get(
    "",
    response_model=List[JobResponse],
    summary="List jobs",
    description="Get all jobs for the current user, newest first.",
)
async def list_jobs(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await JobService(db).get_jobs(current_user.id)


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create job",
    description="Log a job. Hourly rate and profit margin are derived from the figures supplied.",
)
async def create_job(
    request: JobCreateRequest,
    current_user: User = Depends(require_within_limit(LimitKind.JOBS)),
    db: AsyncSession = Depends(get_async_session),
):
    return await JobService(db).create_job(current_user.id, request)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job",
)
async def get_job(
    job_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await JobService(db).get_job(current_user.id, job_id)


@router.put(
    "/{job_id}",
    response_model=JobResponse,
    summary="Update job",
)
async def update_job(
    job_id: UUID,
    request: JobUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await JobService(db).update_job(current_user.id, job_id, request)


@router.delete(
    "/{job_id}",
    response_model=MessageResponse,
    summary="Delete job",
)
async def delete_job(
    job_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await JobService(db).delete_job(current_user.id, job_id)
    return MessageResponse(message="Job deleted successfully")
