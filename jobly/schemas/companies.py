from pydantic import Field

from jobly.schemas.common import CamelModel, CamelRequest, PatchRequest
from jobly.schemas.jobs import CompanyJobOut


class CompanyCreateRequest(CamelRequest):
    handle: str = Field(min_length=1, max_length=25)
    name: str = Field(min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, ge=0, le=2**31 - 1)
    logo_url: str | None = None


class CompanyUpdateRequest(PatchRequest):
    non_nullable = frozenset({"name"})

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, ge=0, le=2**31 - 1)
    logo_url: str | None = None


class CompanyOut(CamelModel):
    handle: str
    name: str
    description: str | None = None
    num_employees: int | None = None
    logo_url: str | None = None


class CompanyDetailOut(CompanyOut):
    jobs: list[CompanyJobOut] = Field(default_factory=list)


class CompanyEnvelope(CamelModel):
    company: CompanyOut


class CompanyDetailEnvelope(CamelModel):
    company: CompanyDetailOut


class CompanyListOut(CamelModel):
    companies: list[CompanyOut]


class CompanyDeletedOut(CamelModel):
    deleted: str
