from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, Header, HTTPException, Request, status
from passlib.context import CryptContext

from jobly.core.auth import Gate, Identity, Rejection, evaluate_gates
from jobly.core.config import Settings, get_settings
from jobly.core.tokens import TokenService

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str, *, rounds: int) -> str:
    return pwd_context.handler("bcrypt").using(rounds=rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(
        settings.secret_key,
        algorithm=settings.token_algorithm,
        ttl_seconds=settings.token_ttl_seconds,
    )


async def get_optional_identity(
    tokens: TokenService = Depends(get_token_service),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Identity | None:
    return tokens.extract(authorization)


def authorize(*gates: Gate) -> Callable[..., Awaitable[Identity | None]]:
    """Build a dependency that runs ``gates`` before the endpoint body.

    The self-or-admin target is the ``username`` path parameter, when the
    route has one.
    """

    async def dependency(
        request: Request,
        identity: Identity | None = Depends(get_optional_identity),
    ) -> Identity | None:
        outcome = evaluate_gates(identity, gates, target_username=request.path_params.get("username"))
        if outcome.rejection is Rejection.UNAUTHENTICATED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=outcome.message,
                headers={"WWW-Authenticate": "Bearer"},
            )
        if outcome.rejection is Rejection.FORBIDDEN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=outcome.message)
        return identity

    return dependency
