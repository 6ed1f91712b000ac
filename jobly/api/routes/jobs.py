from fastapi import APIRouter, Depends, HTTPException, Request, status

from jobly.core.auth import require_admin
from jobly.core.security import authorize
from jobly.schemas.jobs import JobCreateRequest, JobDeletedOut, JobEnvelope, JobListOut, JobOut, JobUpdateRequest
from jobly.services.repository import (
    RepositoryNotFoundError,
    RepositoryQueryError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from jobly.services.sql import collect_criteria

router = APIRouter()


@router.post(
    "",
    response_model=JobEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(authorize(require_admin))],
)
async def create_job(payload: JobCreateRequest, repository=Depends(get_repository)) -> JobEnvelope:
    try:
        row = await repository.create_job(
            company_handle=payload.company_handle,
            title=payload.title,
            salary=payload.salary,
            equity=payload.equity,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobEnvelope(job=JobOut(**row))


@router.get("", response_model=JobListOut)
async def list_jobs(request: Request, repository=Depends(get_repository)) -> JobListOut:
    """List jobs, optionally filtered by title, minSalary and hasEquity."""
    try:
        criteria = collect_criteria(request.query_params.multi_items())
        if criteria:
            rows = await repository.search_jobs(criteria)
        else:
            rows = await repository.list_jobs()
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryQueryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return JobListOut(jobs=[JobOut(**row) for row in rows])


@router.get("/{job_id}", response_model=JobEnvelope)
async def get_job(job_id: int, repository=Depends(get_repository)) -> JobEnvelope:
    try:
        row = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobEnvelope(job=JobOut(**row))


@router.patch(
    "/{job_id}",
    response_model=JobEnvelope,
    dependencies=[Depends(authorize(require_admin))],
)
async def update_job(job_id: int, payload: JobUpdateRequest, repository=Depends(get_repository)) -> JobEnvelope:
    try:
        row = await repository.update_job(job_id, payload.changes())
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryQueryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return JobEnvelope(job=JobOut(**row))


@router.delete(
    "/{job_id}",
    response_model=JobDeletedOut,
    dependencies=[Depends(authorize(require_admin))],
)
async def delete_job(job_id: int, repository=Depends(get_repository)) -> JobDeletedOut:
    try:
        await repository.remove_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDeletedOut(deleted=job_id)
