from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobly.core.config import get_settings
from jobly.core.security import hash_password, verify_password
from jobly.services.errors import (
    EmptyUpdateError,
    FilterValidationError,
    RepositoryAuthenticationError,
    RepositoryConflictError,
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryQueryError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from jobly.services.sql import (
    COMPANIES,
    COMPANY_FILTERS,
    JOB_FILTERS,
    JOBS,
    USERS,
    EntityTable,
    FilterSpec,
    build_filter,
)

__all__ = [
    "EmptyUpdateError",
    "FilterValidationError",
    "PostgresRepository",
    "RepositoryAuthenticationError",
    "RepositoryConflictError",
    "RepositoryError",
    "RepositoryNotFoundError",
    "RepositoryQueryError",
    "RepositoryUnavailableError",
    "RepositoryValidationError",
    "get_repository",
]

logger = logging.getLogger(__name__)

COMPANY_COLUMNS = COMPANIES.returning
JOB_COLUMNS = JOBS.returning
USER_COLUMNS = USERS.returning
REDACTED = "[redacted]"


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        bcrypt_work_factor: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.bcrypt_work_factor = max(4, bcrypt_work_factor)
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        pool = await self._get_pool()
        try:
            await pool.fetchval("select 1")
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise RepositoryUnavailableError("database unavailable") from exc

    # companies

    async def create_company(
        self,
        *,
        handle: str,
        name: str,
        description: str | None,
        num_employees: int | None,
        logo_url: str | None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into companies (handle, name, description, num_employees, logo_url)
                values ($1, $2, $3, $4, $5)
                returning {COMPANY_COLUMNS}
                """,
                handle,
                name,
                description,
                num_employees,
                logo_url,
            )
        except pg_exc.UniqueViolationError as exc:
            logger.info("company create conflict handle=%s", handle)
            raise RepositoryConflictError(f"duplicate company: {handle}") from exc
        return dict(row)

    async def list_companies(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {COMPANY_COLUMNS}
            from companies
            order by name
            """
        )
        return [dict(row) for row in rows]

    async def search_companies(self, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await self._search(
            COMPANY_FILTERS,
            criteria,
            select_sql=f"select {COMPANY_COLUMNS} from companies",
            order_sql="order by name",
            list_all=self.list_companies,
        )

    async def get_company(self, handle: str) -> dict[str, Any]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                select {COMPANY_COLUMNS}
                from companies
                where handle = $1
                """,
                handle,
            )
            if not row:
                raise RepositoryNotFoundError(f"no company: {handle}")
            job_rows = await conn.fetch(
                """
                select id, title, salary, equity
                from jobs
                where company_handle = $1
                order by id
                """,
                handle,
            )
        company = dict(row)
        company["jobs"] = [dict(job_row) for job_row in job_rows]
        return company

    async def update_company(self, handle: str, data: Mapping[str, Any]) -> dict[str, Any]:
        row = await self._update(COMPANIES, handle, data)
        if not row:
            raise RepositoryNotFoundError(f"no company: {handle}")
        return dict(row)

    async def remove_company(self, handle: str) -> None:
        await self._remove(COMPANIES, handle, f"no company: {handle}")

    # jobs

    async def create_job(
        self,
        *,
        company_handle: str,
        title: str,
        salary: int | None,
        equity: Any,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                company_exists = await conn.fetchval(
                    "select exists(select 1 from companies where handle = $1)",
                    company_handle,
                )
                if not company_exists:
                    raise RepositoryValidationError(f"company is not in database: {company_handle}")
                try:
                    row = await conn.fetchrow(
                        f"""
                        insert into jobs (company_handle, title, salary, equity)
                        values ($1, $2, $3, $4)
                        returning {JOB_COLUMNS}
                        """,
                        company_handle,
                        title,
                        salary,
                        equity,
                    )
                except pg_exc.ForeignKeyViolationError as exc:
                    raise RepositoryValidationError(f"company is not in database: {company_handle}") from exc
        return dict(row)

    async def list_jobs(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {JOB_COLUMNS}
            from jobs
            order by title, id
            """
        )
        return [dict(row) for row in rows]

    async def search_jobs(self, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await self._search(
            JOB_FILTERS,
            criteria,
            select_sql=f"select {JOB_COLUMNS} from jobs",
            order_sql="order by title, id",
            list_all=self.list_jobs,
        )

    async def get_job(self, job_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {JOB_COLUMNS}
            from jobs
            where id = $1
            """,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        return dict(row)

    async def update_job(self, job_id: int, data: Mapping[str, Any]) -> dict[str, Any]:
        row = await self._update(JOBS, job_id, data)
        if not row:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        return dict(row)

    async def remove_job(self, job_id: int) -> None:
        await self._remove(JOBS, job_id, f"no job: {job_id}")

    # users

    async def authenticate(self, username: str, password: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {USER_COLUMNS}, password
            from users
            where username = $1
            """,
            username,
        )
        if row and verify_password(password, row["password"]):
            user = dict(row)
            user.pop("password")
            return user
        raise RepositoryAuthenticationError("invalid username/password")

    async def register(
        self,
        *,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        email: str,
        is_admin: bool = False,
    ) -> dict[str, Any]:
        hashed_password = hash_password(password, rounds=self.bcrypt_work_factor)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into users (username, password, first_name, last_name, email, is_admin)
                values ($1, $2, $3, $4, $5, $6)
                returning {USER_COLUMNS}
                """,
                username,
                hashed_password,
                first_name,
                last_name,
                email,
                is_admin,
            )
        except pg_exc.UniqueViolationError as exc:
            logger.info("user register conflict username=%s", username)
            raise RepositoryConflictError(f"duplicate username: {username}") from exc
        return dict(row)

    async def list_users(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              {USER_COLUMNS},
              array(
                select a.job_id from applications a where a.username = users.username order by a.job_id
              ) as jobs
            from users
            order by username
            """
        )
        return [self._user_row_to_dict(row) for row in rows]

    async def get_user(self, username: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select
              {USER_COLUMNS},
              array(
                select a.job_id from applications a where a.username = users.username order by a.job_id
              ) as jobs
            from users
            where username = $1
            """,
            username,
        )
        if not row:
            raise RepositoryNotFoundError(f"no user: {username}")
        return self._user_row_to_dict(row)

    async def update_user(self, username: str, data: Mapping[str, Any]) -> dict[str, Any]:
        changes = dict(data)
        secrets: set[str] = set()
        if changes.get("password"):
            changes["password"] = hash_password(changes["password"], rounds=self.bcrypt_work_factor)
            secrets.add(changes["password"])
        row = await self._update(USERS, username, changes, secrets=secrets)
        if not row:
            raise RepositoryNotFoundError(f"no user: {username}")
        user = dict(row)
        user.pop("password", None)
        return user

    async def remove_user(self, username: str) -> None:
        await self._remove(USERS, username, f"no user: {username}")

    # applications

    async def apply_to_job(self, username: str, job_id: int) -> int:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                job_exists = await conn.fetchval("select exists(select 1 from jobs where id = $1)", job_id)
                if not job_exists:
                    raise RepositoryNotFoundError(f"no job: {job_id}")
                user_exists = await conn.fetchval(
                    "select exists(select 1 from users where username = $1)",
                    username,
                )
                if not user_exists:
                    raise RepositoryNotFoundError(f"no user: {username}")
                try:
                    applied = await conn.fetchval(
                        """
                        insert into applications (username, job_id)
                        values ($1, $2)
                        returning job_id
                        """,
                        username,
                        job_id,
                    )
                except pg_exc.UniqueViolationError as exc:
                    logger.info("duplicate application username=%s job_id=%s", username, job_id)
                    raise RepositoryConflictError(
                        f"user {username} has already applied for job {job_id}",
                    ) from exc
        return int(applied)

    # shared statement paths

    async def _search(
        self,
        spec: FilterSpec,
        criteria: Mapping[str, Any],
        *,
        select_sql: str,
        order_sql: str,
        list_all: Callable[[], Awaitable[list[dict[str, Any]]]],
    ) -> list[dict[str, Any]]:
        if not criteria:
            return await list_all()

        query = build_filter(spec, criteria)
        statement = f"{select_sql} where {query.where_sql} {order_sql}" if query.clauses else f"{select_sql} {order_sql}"
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(statement, *query.values)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            logger.error("query execution failed statement=%s params=%s", statement, query.values)
            raise RepositoryQueryError(statement, list(query.values)) from exc
        return [dict(row) for row in rows]

    async def _update(
        self,
        table: EntityTable,
        key_value: Any,
        data: Mapping[str, Any],
        *,
        secrets: set[str] | None = None,
    ) -> asyncpg.Record | None:
        statement, values = table.update_statement(data, key_value)
        pool = await self._get_pool()
        try:
            return await pool.fetchrow(statement, *values)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            params = [REDACTED if isinstance(value, str) and value in (secrets or set()) else value for value in values]
            logger.error("query execution failed statement=%s params=%s", statement, params)
            raise RepositoryQueryError(statement, params) from exc

    async def _remove(self, table: EntityTable, key_value: Any, missing_message: str) -> None:
        pool = await self._get_pool()
        deleted = await pool.fetchval(
            f"""
            delete from {table.name}
            where {table.key} = $1
            returning {table.key}
            """,
            key_value,
        )
        if deleted is None:
            raise RepositoryNotFoundError(missing_message)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JOBLY_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _user_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "username": row["username"],
            "firstName": row["firstName"],
            "lastName": row["lastName"],
            "email": row["email"],
            "isAdmin": bool(row["isAdmin"]),
            "jobs": [int(job_id) for job_id in row["jobs"] or []],
        }


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        bcrypt_work_factor=settings.bcrypt_work_factor,
    )
