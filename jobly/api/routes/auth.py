from fastapi import APIRouter, Depends, HTTPException, status

from jobly.core.auth import Identity
from jobly.core.security import get_token_service
from jobly.core.tokens import TokenService
from jobly.schemas.auth import TokenOut, TokenRequest
from jobly.schemas.users import UserRegisterRequest
from jobly.services.repository import (
    RepositoryAuthenticationError,
    RepositoryConflictError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.post("/token", response_model=TokenOut)
async def issue_token(
    payload: TokenRequest,
    repository=Depends(get_repository),
    tokens: TokenService = Depends(get_token_service),
) -> TokenOut:
    try:
        user = await repository.authenticate(payload.username, payload.password)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryAuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    return TokenOut(token=tokens.issue(Identity(username=user["username"], is_admin=bool(user["isAdmin"]))))


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserRegisterRequest,
    repository=Depends(get_repository),
    tokens: TokenService = Depends(get_token_service),
) -> TokenOut:
    try:
        user = await repository.register(
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            is_admin=False,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return TokenOut(token=tokens.issue(Identity(username=user["username"], is_admin=False)))
