from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest
from asyncpg import exceptions as pg_exc

from jobly.core.security import hash_password, verify_password
from jobly.services.repository import (
    REDACTED,
    EmptyUpdateError,
    FilterValidationError,
    PostgresRepository,
    RepositoryAuthenticationError,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryQueryError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)

T = TypeVar("T")


class _Transaction:
    async def __aenter__(self) -> None:
        return None

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class _Acquire:
    def __init__(self, conn: "RecordingPool") -> None:
        self.conn = conn

    async def __aenter__(self) -> "RecordingPool":
        return self.conn

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class RecordingPool:
    """Stands in for both the pool and its connections; records every statement."""

    def __init__(
        self,
        *,
        rows: list[dict[str, Any]] | None = None,
        row: dict[str, Any] | None = None,
        values: list[Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.rows = rows or []
        self.row = row
        self.values = list(values or [])
        self.error = error
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, statement: str, args: tuple[Any, ...]) -> None:
        self.calls.append((" ".join(statement.split()), args))
        if self.error is not None:
            raise self.error

    async def fetch(self, statement: str, *args: Any) -> list[dict[str, Any]]:
        self._record(statement, args)
        return self.rows

    async def fetchrow(self, statement: str, *args: Any) -> dict[str, Any] | None:
        self._record(statement, args)
        return self.row

    async def fetchval(self, statement: str, *args: Any) -> Any:
        self._record(statement, args)
        return self.values.pop(0) if self.values else None

    def acquire(self) -> _Acquire:
        return _Acquire(self)

    def transaction(self) -> _Transaction:
        return _Transaction()

    async def close(self) -> None:
        return None


def _repository(pool: RecordingPool) -> PostgresRepository:
    repository = PostgresRepository(
        database_url="postgresql://unused",
        min_pool_size=1,
        max_pool_size=1,
        bcrypt_work_factor=4,
    )
    repository._pool = pool
    return repository


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


COMPANY_ROW = {
    "handle": "c1",
    "name": "C1",
    "description": "Desc1",
    "numEmployees": 1,
    "logoUrl": "http://c1.img",
}


def test_search_rejects_inverted_bounds_before_touching_the_database() -> None:
    pool = RecordingPool()
    repository = _repository(pool)

    with pytest.raises(FilterValidationError):
        _run(repository.search_companies({"minEmployees": "5", "maxEmployees": "2"}))

    assert pool.calls == []


def test_search_binds_criteria_positionally() -> None:
    pool = RecordingPool(rows=[COMPANY_ROW])
    repository = _repository(pool)

    rows = _run(repository.search_companies({"name": "c", "maxEmployees": "2"}))

    assert rows == [COMPANY_ROW]
    statement, args = pool.calls[0]
    assert statement.endswith("from companies where name ilike $1 escape '\\' and num_employees <= $2 order by name")
    assert args == ("%c%", 2)


def test_search_with_no_criteria_lists_everything() -> None:
    pool = RecordingPool(rows=[])
    repository = _repository(pool)

    assert _run(repository.search_jobs({})) == []

    statement, args = pool.calls[0]
    assert " where " not in statement
    assert statement.endswith("from jobs order by title, id")
    assert args == ()


def test_search_failure_is_reported_with_statement_and_params() -> None:
    cause = asyncpg.PostgresError("boom")
    pool = RecordingPool(error=cause)
    repository = _repository(pool)

    with pytest.raises(RepositoryQueryError) as excinfo:
        _run(repository.search_jobs({"minSalary": "100"}))

    assert excinfo.value.__cause__ is cause
    assert "salary >= $1" in excinfo.value.statement
    assert excinfo.value.params == [100]


def test_update_company_statement() -> None:
    pool = RecordingPool(row={**COMPANY_ROW, "name": "New"})
    repository = _repository(pool)

    company = _run(repository.update_company("c1", {"name": "New", "numEmployees": 7}))

    assert company["name"] == "New"
    statement, args = pool.calls[0]
    assert statement.startswith('update companies set "name"=$1, "num_employees"=$2 where handle = $3 returning')
    assert args == ("New", 7, "c1")


def test_update_of_missing_row_is_not_found() -> None:
    repository = _repository(RecordingPool(row=None))

    with pytest.raises(RepositoryNotFoundError, match="no company: nope"):
        _run(repository.update_company("nope", {"name": "New"}))


def test_empty_update_never_reaches_the_database() -> None:
    pool = RecordingPool()
    repository = _repository(pool)

    with pytest.raises(EmptyUpdateError):
        _run(repository.update_job(1, {}))

    assert pool.calls == []


def test_update_user_hashes_password_and_ignores_username() -> None:
    pool = RecordingPool(
        row={"username": "u1", "firstName": "New", "lastName": "L", "email": "u1@email.com", "isAdmin": False}
    )
    repository = _repository(pool)

    user = _run(repository.update_user("u1", {"username": "hijack", "firstName": "New", "password": "secret-pw"}))

    assert "password" not in user
    statement, args = pool.calls[0]
    assert '"username"' not in statement
    assert statement.startswith('update users set "first_name"=$1, "password"=$2 where username = $3')
    assert args[0] == "New"
    assert args[1] != "secret-pw"
    assert verify_password("secret-pw", args[1])
    assert args[2] == "u1"


def test_update_failure_redacts_password_hash() -> None:
    pool = RecordingPool(error=asyncpg.PostgresError("boom"))
    repository = _repository(pool)

    with pytest.raises(RepositoryQueryError) as excinfo:
        _run(repository.update_user("u1", {"password": "secret-pw", "email": "x@y.com"}))

    assert excinfo.value.params == [REDACTED, "x@y.com", "u1"]


def test_remove_missing_row_is_not_found() -> None:
    pool = RecordingPool(values=[None])
    repository = _repository(pool)

    with pytest.raises(RepositoryNotFoundError, match="no job: 3"):
        _run(repository.remove_job(3))

    statement, args = pool.calls[0]
    assert statement == "delete from jobs where id = $1 returning id"
    assert args == (3,)


def test_get_company_includes_its_jobs() -> None:
    pool = RecordingPool(row=COMPANY_ROW, rows=[{"id": 1, "title": "J1", "salary": 1, "equity": None}])
    repository = _repository(pool)

    company = _run(repository.get_company("c1"))

    assert company["jobs"] == [{"id": 1, "title": "J1", "salary": 1, "equity": None}]
    assert pool.calls[1][0].endswith("where company_handle = $1 order by id")


def test_create_job_for_missing_company_inserts_nothing() -> None:
    pool = RecordingPool(values=[False])
    repository = _repository(pool)

    with pytest.raises(RepositoryValidationError, match="company is not in database: nope"):
        _run(repository.create_job(company_handle="nope", title="T", salary=1, equity=None))

    assert len(pool.calls) == 1
    assert not any(statement.startswith("insert") for statement, _ in pool.calls)


def test_duplicate_company_is_a_conflict() -> None:
    repository = _repository(RecordingPool(error=pg_exc.UniqueViolationError("duplicate key")))

    with pytest.raises(RepositoryConflictError, match="duplicate company: c1"):
        _run(
            repository.create_company(
                handle="c1",
                name="C1",
                description=None,
                num_employees=None,
                logo_url=None,
            )
        )


def test_apply_to_missing_job_is_not_found() -> None:
    repository = _repository(RecordingPool(values=[False]))

    with pytest.raises(RepositoryNotFoundError, match="no job: 0"):
        _run(repository.apply_to_job("u1", 0))


def test_apply_to_job_returns_job_id() -> None:
    pool = RecordingPool(values=[True, True, 5])
    repository = _repository(pool)

    assert _run(repository.apply_to_job("u1", 5)) == 5
    assert pool.calls[-1][1] == ("u1", 5)


def test_list_users_converts_job_arrays() -> None:
    pool = RecordingPool(
        rows=[
            {
                "username": "u1",
                "firstName": "U1F",
                "lastName": "U1L",
                "email": "u1@email.com",
                "isAdmin": False,
                "jobs": [1, 2],
            },
            {
                "username": "u2",
                "firstName": "U2F",
                "lastName": "U2L",
                "email": "u2@email.com",
                "isAdmin": True,
                "jobs": None,
            },
        ]
    )
    repository = _repository(pool)

    users = _run(repository.list_users())

    assert users[0]["jobs"] == [1, 2]
    assert users[1]["jobs"] == []
    assert all("password" not in user for user in users)


def test_authenticate_rejects_wrong_password() -> None:
    row = {
        "username": "u1",
        "firstName": "U1F",
        "lastName": "U1L",
        "email": "u1@email.com",
        "isAdmin": False,
        "password": hash_password("password1", rounds=4),
    }
    repository = _repository(RecordingPool(row=row))

    user = _run(repository.authenticate("u1", "password1"))
    assert user["username"] == "u1"
    assert "password" not in user

    with pytest.raises(RepositoryAuthenticationError, match="invalid username/password"):
        _run(repository.authenticate("u1", "wrong"))


def test_missing_database_url_is_unavailable() -> None:
    repository = PostgresRepository(database_url=None, min_pool_size=1, max_pool_size=1, bcrypt_work_factor=4)

    with pytest.raises(RepositoryUnavailableError):
        _run(repository.list_companies())


def test_ping_runs_trivial_query() -> None:
    pool = RecordingPool(values=[1])

    _run(_repository(pool).ping())

    assert pool.calls == [("select 1", ())]


def test_ping_failure_is_unavailable() -> None:
    repository = _repository(RecordingPool(error=asyncpg.InterfaceError("connection is closed")))

    with pytest.raises(RepositoryUnavailableError, match="database unavailable"):
        _run(repository.ping())
