import re

from pydantic import Field, field_validator

from jobly.schemas.common import CamelModel, CamelRequest, PatchRequest

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _validate_email(value: str | None) -> str | None:
    if value is not None and not EMAIL_RE.match(value):
        raise ValueError("invalid email format")
    return value


class UserRegisterRequest(CamelRequest):
    username: str = Field(min_length=1, max_length=25)
    password: str = Field(min_length=5, max_length=72)
    first_name: str = Field(min_length=1, max_length=30)
    last_name: str = Field(min_length=1, max_length=30)
    email: str = Field(min_length=6, max_length=60)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _validate_email(value)


class UserCreateRequest(UserRegisterRequest):
    is_admin: bool = False


class UserUpdateRequest(PatchRequest):
    non_nullable = frozenset({"first_name", "last_name", "password", "email", "is_admin"})

    first_name: str | None = Field(default=None, min_length=1, max_length=30)
    last_name: str | None = Field(default=None, min_length=1, max_length=30)
    password: str | None = Field(default=None, min_length=5, max_length=72)
    email: str | None = Field(default=None, min_length=6, max_length=60)
    is_admin: bool | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _validate_email(value)


class UserOut(CamelModel):
    username: str
    first_name: str
    last_name: str
    email: str
    is_admin: bool = False


class UserDetailOut(UserOut):
    jobs: list[int] = Field(default_factory=list)


class UserEnvelope(CamelModel):
    user: UserOut


class UserDetailEnvelope(CamelModel):
    user: UserDetailOut


class UserCreatedOut(CamelModel):
    user: UserOut
    token: str


class UserListOut(CamelModel):
    users: list[UserDetailOut]


class UserDeletedOut(CamelModel):
    deleted: str


class ApplicationOut(CamelModel):
    applied: int
