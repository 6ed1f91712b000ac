from __future__ import annotations

import logging
import re
import time

import jwt
from jwt.utils import base64url_decode, base64url_encode

from jobly.core.auth import Identity

logger = logging.getLogger(__name__)

BEARER_PREFIX_RE = re.compile(r"^bearer\s+", re.IGNORECASE)


class InvalidTokenError(Exception):
    """Raised when a bearer token is malformed, forged or expired."""


def strip_bearer(credential: str) -> str:
    return BEARER_PREFIX_RE.sub("", credential.strip(), count=1).strip()


class TokenService:
    """Issues and verifies signed identity tokens.

    The payload is ``{"username", "isAdmin", "iat"}`` plus ``"exp"`` when a ttl
    is configured. Nothing is stored server side.
    """

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl_seconds: int | None = None) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def issue(self, identity: Identity) -> str:
        issued_at = int(time.time())
        payload: dict[str, object] = {
            "username": identity.username,
            "isAdmin": bool(identity.is_admin),
            "iat": issued_at,
        }
        if self.ttl_seconds is not None:
            payload["exp"] = issued_at + self.ttl_seconds
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        raw = strip_bearer(token)
        if not raw:
            raise InvalidTokenError("empty bearer token")

        try:
            payload = jwt.decode(
                raw,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["iat"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(str(exc)) from exc

        # base64url decoding ignores trailing pad bits, so two spellings of the
        # same segment both verify; only the canonical one is accepted.
        for segment in raw.split("."):
            if base64url_encode(base64url_decode(segment)).decode("ascii") != segment:
                raise InvalidTokenError("non-canonical token encoding")

        username = payload.get("username")
        is_admin = payload.get("isAdmin")
        if not isinstance(username, str) or not username:
            raise InvalidTokenError("token payload missing username")
        if not isinstance(is_admin, bool):
            raise InvalidTokenError("token payload missing isAdmin")
        issued_at = payload.get("iat")
        return Identity(
            username=username,
            is_admin=is_admin,
            issued_at=issued_at if isinstance(issued_at, int) else None,
        )

    def extract(self, authorization: str | None) -> Identity | None:
        """Resolve an Authorization header to an identity, or ``None``.

        Never raises: a missing or bad credential just means anonymous.
        """
        if not authorization:
            return None
        try:
            return self.verify(authorization)
        except InvalidTokenError as exc:
            logger.debug("ignoring invalid bearer token: %s", exc)
            return None
