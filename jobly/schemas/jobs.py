from decimal import Decimal

from pydantic import Field

from jobly.schemas.common import CamelModel, CamelRequest, PatchRequest


class JobCreateRequest(CamelRequest):
    company_handle: str = Field(min_length=1, max_length=25)
    title: str = Field(min_length=1)
    salary: int | None = Field(default=None, ge=0, le=2**31 - 1)
    equity: Decimal | None = Field(default=None, ge=0, le=1)


class JobUpdateRequest(PatchRequest):
    non_nullable = frozenset({"title"})

    title: str | None = Field(default=None, min_length=1)
    salary: int | None = Field(default=None, ge=0, le=2**31 - 1)
    equity: Decimal | None = Field(default=None, ge=0, le=1)


class JobOut(CamelModel):
    id: int
    company_handle: str
    title: str
    salary: int | None = None
    equity: Decimal | None = None


class CompanyJobOut(CamelModel):
    id: int
    title: str
    salary: int | None = None
    equity: Decimal | None = None


class JobEnvelope(CamelModel):
    job: JobOut


class JobListOut(CamelModel):
    jobs: list[JobOut]


class JobDeletedOut(CamelModel):
    deleted: int
