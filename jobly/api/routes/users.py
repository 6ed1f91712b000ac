from fastapi import APIRouter, Depends, HTTPException, status

from jobly.core.auth import Identity, require_admin, require_self_or_admin
from jobly.core.security import authorize, get_token_service
from jobly.core.tokens import TokenService
from jobly.schemas.users import (
    ApplicationOut,
    UserCreateRequest,
    UserCreatedOut,
    UserDeletedOut,
    UserDetailEnvelope,
    UserDetailOut,
    UserEnvelope,
    UserListOut,
    UserOut,
    UserUpdateRequest,
)
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryQueryError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.post(
    "",
    response_model=UserCreatedOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(authorize(require_admin))],
)
async def create_user(
    payload: UserCreateRequest,
    repository=Depends(get_repository),
    tokens: TokenService = Depends(get_token_service),
) -> UserCreatedOut:
    """Admin-only signup; unlike /auth/register this can create admins."""
    try:
        row = await repository.register(
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            is_admin=payload.is_admin,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    user = UserOut(**row)
    token = tokens.issue(Identity(username=user.username, is_admin=user.is_admin))
    return UserCreatedOut(user=user, token=token)


@router.get("", response_model=UserListOut, dependencies=[Depends(authorize(require_admin))])
async def list_users(repository=Depends(get_repository)) -> UserListOut:
    try:
        rows = await repository.list_users()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return UserListOut(users=[UserDetailOut(**row) for row in rows])


@router.get(
    "/{username}",
    response_model=UserDetailEnvelope,
    dependencies=[Depends(authorize(require_self_or_admin))],
)
async def get_user(username: str, repository=Depends(get_repository)) -> UserDetailEnvelope:
    try:
        row = await repository.get_user(username)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return UserDetailEnvelope(user=UserDetailOut(**row))


@router.patch("/{username}", response_model=UserEnvelope)
async def update_user(
    username: str,
    payload: UserUpdateRequest,
    identity: Identity = Depends(authorize(require_self_or_admin)),
    repository=Depends(get_repository),
) -> UserEnvelope:
    if "is_admin" in payload.model_fields_set and not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin access required")

    try:
        row = await repository.update_user(username, payload.changes())
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryQueryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return UserEnvelope(user=UserOut(**row))


@router.delete(
    "/{username}",
    response_model=UserDeletedOut,
    dependencies=[Depends(authorize(require_self_or_admin))],
)
async def delete_user(username: str, repository=Depends(get_repository)) -> UserDeletedOut:
    try:
        await repository.remove_user(username)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return UserDeletedOut(deleted=username)


@router.post(
    "/{username}/jobs/{job_id}",
    response_model=ApplicationOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(authorize(require_self_or_admin))],
)
async def apply_to_job(username: str, job_id: int, repository=Depends(get_repository)) -> ApplicationOut:
    try:
        applied = await repository.apply_to_job(username, job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return ApplicationOut(applied=applied)
