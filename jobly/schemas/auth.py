from pydantic import Field

from jobly.schemas.common import CamelModel, CamelRequest


class TokenRequest(CamelRequest):
    username: str = Field(min_length=1, max_length=25)
    password: str = Field(min_length=1, max_length=72)


class TokenOut(CamelModel):
    token: str
