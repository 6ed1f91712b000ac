from fastapi import APIRouter, Depends, HTTPException, Request, status

from jobly.core.auth import require_admin
from jobly.core.security import authorize
from jobly.schemas.companies import (
    CompanyCreateRequest,
    CompanyDeletedOut,
    CompanyDetailEnvelope,
    CompanyDetailOut,
    CompanyEnvelope,
    CompanyListOut,
    CompanyOut,
    CompanyUpdateRequest,
)
from jobly.services.repository import (
    RepositoryConflictError,
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
    response_model=CompanyEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(authorize(require_admin))],
)
async def create_company(payload: CompanyCreateRequest, repository=Depends(get_repository)) -> CompanyEnvelope:
    try:
        row = await repository.create_company(
            handle=payload.handle,
            name=payload.name,
            description=payload.description,
            num_employees=payload.num_employees,
            logo_url=payload.logo_url,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return CompanyEnvelope(company=CompanyOut(**row))


@router.get("", response_model=CompanyListOut)
async def list_companies(request: Request, repository=Depends(get_repository)) -> CompanyListOut:
    """List companies, optionally filtered by name, minEmployees and maxEmployees."""
    try:
        criteria = collect_criteria(request.query_params.multi_items())
        if criteria:
            rows = await repository.search_companies(criteria)
        else:
            rows = await repository.list_companies()
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryQueryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return CompanyListOut(companies=[CompanyOut(**row) for row in rows])


@router.get("/{handle}", response_model=CompanyDetailEnvelope)
async def get_company(handle: str, repository=Depends(get_repository)) -> CompanyDetailEnvelope:
    try:
        row = await repository.get_company(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return CompanyDetailEnvelope(company=CompanyDetailOut(**row))


@router.patch(
    "/{handle}",
    response_model=CompanyEnvelope,
    dependencies=[Depends(authorize(require_admin))],
)
async def update_company(
    handle: str,
    payload: CompanyUpdateRequest,
    repository=Depends(get_repository),
) -> CompanyEnvelope:
    try:
        row = await repository.update_company(handle, payload.changes())
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryQueryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return CompanyEnvelope(company=CompanyOut(**row))


@router.delete(
    "/{handle}",
    response_model=CompanyDeletedOut,
    dependencies=[Depends(authorize(require_admin))],
)
async def delete_company(handle: str, repository=Depends(get_repository)) -> CompanyDeletedOut:
    try:
        await repository.remove_company(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return CompanyDeletedOut(deleted=handle)
