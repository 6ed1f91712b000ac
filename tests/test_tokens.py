from __future__ import annotations

import string

import jwt
import pytest

from jobly.core.auth import Identity
from jobly.core.tokens import InvalidTokenError, TokenService, strip_bearer

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"
BASE64URL_ALPHABET = string.ascii_letters + string.digits + "-_"


def _mutate(token: str, index: int) -> str:
    current = token[index]
    replacement = next(char for char in BASE64URL_ALPHABET if char != current)
    return token[:index] + replacement + token[index + 1 :]


def test_issue_then_verify_returns_the_same_identity() -> None:
    tokens = TokenService(SECRET)

    for identity in (Identity("u1", False), Identity("admin", True)):
        verified = tokens.verify(tokens.issue(identity))
        assert verified.username == identity.username
        assert verified.is_admin is identity.is_admin
        assert verified.issued_at is not None


def test_payload_uses_camel_case_admin_flag() -> None:
    token = TokenService(SECRET).issue(Identity("u1", True))

    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["username"] == "u1"
    assert payload["isAdmin"] is True
    assert "iat" in payload
    assert "exp" not in payload


def test_every_single_character_mutation_is_rejected() -> None:
    tokens = TokenService(SECRET)
    token = tokens.issue(Identity("u1", False))

    for index in range(len(token)):
        with pytest.raises(InvalidTokenError):
            tokens.verify(_mutate(token, index))


def test_bearer_prefix_is_optional_and_case_insensitive() -> None:
    tokens = TokenService(SECRET)
    token = tokens.issue(Identity("u1", False))

    for credential in (token, f"Bearer {token}", f"bearer {token}", f"BEARER   {token}"):
        assert tokens.verify(credential).username == "u1"


def test_strip_bearer() -> None:
    assert strip_bearer("Bearer abc") == "abc"
    assert strip_bearer("  abc  ") == "abc"
    assert strip_bearer("Bearer") == "Bearer"


def test_token_signed_with_another_secret_is_rejected() -> None:
    forged = TokenService("some-other-secret-that-is-also-long-enough").issue(Identity("admin", True))

    with pytest.raises(InvalidTokenError):
        TokenService(SECRET).verify(forged)


def test_expired_token_is_rejected() -> None:
    tokens = TokenService(SECRET, ttl_seconds=-10)
    token = tokens.issue(Identity("u1", False))

    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_token_with_ttl_carries_expiry() -> None:
    token = TokenService(SECRET, ttl_seconds=3600).issue(Identity("u1", False))

    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["exp"] == payload["iat"] + 3600


@pytest.mark.parametrize(
    "payload",
    [
        {"isAdmin": False, "iat": 1},
        {"username": "", "isAdmin": False, "iat": 1},
        {"username": "u1", "iat": 1},
        {"username": "u1", "isAdmin": "true", "iat": 1},
        {"username": "u1", "isAdmin": False},
    ],
)
def test_payload_shape_is_enforced(payload: dict[str, object]) -> None:
    token = jwt.encode(payload, SECRET, algorithm="HS256")

    with pytest.raises(InvalidTokenError):
        TokenService(SECRET).verify(token)


def test_unsigned_token_is_rejected() -> None:
    token = jwt.encode({"username": "admin", "isAdmin": True, "iat": 1}, None, algorithm="none")

    with pytest.raises(InvalidTokenError):
        TokenService(SECRET).verify(token)


@pytest.mark.parametrize("credential", ["", "Bearer ", "garbage", "a.b.c", "Bearer not-a-token"])
def test_verify_rejects_garbage(credential: str) -> None:
    with pytest.raises(InvalidTokenError):
        TokenService(SECRET).verify(credential)


def test_extract_is_anonymous_for_missing_or_bad_credentials() -> None:
    tokens = TokenService(SECRET)

    assert tokens.extract(None) is None
    assert tokens.extract("") is None
    assert tokens.extract("Bearer garbage") is None
    assert tokens.extract(f"Bearer {tokens.issue(Identity('u1', False))}x") is None


def test_extract_resolves_valid_credentials() -> None:
    tokens = TokenService(SECRET)

    identity = tokens.extract(f"Bearer {tokens.issue(Identity('u1', True))}")

    assert identity is not None
    assert identity.username == "u1"
    assert identity.is_admin is True
