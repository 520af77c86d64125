from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from app.core.config import get_settings
from app.schemas.jobs import JobSubmission
from app.services.migrations import MIGRATION_LOCK_KEY, pending_migrations

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


@dataclass(slots=True)
class JobRecord:
    id: str
    position: str
    organization: str
    url: str | None
    description: str | None
    email: str
    published_at: datetime
    published_to_socials: bool = False

    @property
    def item_id(self) -> str:
        return self.id

    def signing_fields(self) -> tuple[object, ...]:
        return (self.id, self.email, self.published_at)

    def apply_submission(self, submission: JobSubmission) -> None:
        self.position = submission.position.strip()
        self.organization = submission.organization.strip()
        self.url = _blank_to_none(submission.url)
        self.description = _blank_to_none(submission.description)

    def to_submission(self) -> JobSubmission:
        return JobSubmission(
            position=self.position,
            organization=self.organization,
            url=self.url or "",
            description=self.description or "",
            email=self.email,
        )


@dataclass(slots=True)
class UserRecord:
    id: str
    email: str
    verified: bool
    created_at: datetime

    @property
    def item_id(self) -> str:
        return self.id

    def signing_fields(self) -> tuple[object, ...]:
        return (self.id, self.email, self.created_at)


_JOB_COLUMNS = """
  id::text as id,
  position,
  organization,
  url,
  description,
  email,
  published_at,
  published_to_socials
"""

_USER_COLUMNS = """
  id::text as id,
  email,
  verified,
  created_at
"""

# The no-op update makes "returning" yield the existing row on conflict.
_UPSERT_USER_SQL = f"""
insert into users (email, verified)
values ($1, false)
on conflict (email) do update set email = excluded.email
returning {_USER_COLUMNS}
"""


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def migrate(self) -> list[int]:
        pool = await self._get_pool()
        applied: list[int] = []
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("select pg_advisory_xact_lock($1)", MIGRATION_LOCK_KEY)
                await conn.execute(
                    """
                    create table if not exists schema_migrations (
                      version integer primary key,
                      name text not null,
                      applied_at timestamptz not null default now()
                    )
                    """
                )
                rows = await conn.fetch("select version from schema_migrations")
                for migration in pending_migrations({row["version"] for row in rows}):
                    logger.info("applying migration version=%s name=%s", migration.version, migration.name)
                    await conn.execute(migration.sql)
                    await conn.execute(
                        "insert into schema_migrations (version, name) values ($1, $2)",
                        migration.version,
                        migration.name,
                    )
                    applied.append(migration.version)
        return applied

    async def list_jobs(self) -> list[JobRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(f"select {_JOB_COLUMNS} from jobs order by published_at desc")
        return [self._job_row_to_record(row) for row in rows]

    async def get_job(self, job_id: str) -> JobRecord:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {_JOB_COLUMNS} from jobs where id = $1::uuid", job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_record(row)

    async def create_job(self, submission: JobSubmission) -> JobRecord:
        """Store a new job and make sure a user row exists for its email.

        Both writes commit together, so a failed user upsert leaves no job behind.
        """
        email = submission.email.strip()
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    insert into jobs (position, organization, url, description, email, published_to_socials)
                    values ($1, $2, $3, $4, $5, false)
                    returning {_JOB_COLUMNS}
                    """,
                    submission.position.strip(),
                    submission.organization.strip(),
                    _blank_to_none(submission.url),
                    _blank_to_none(submission.description),
                    email,
                )
                await conn.execute(_UPSERT_USER_SQL, email)
        return self._job_row_to_record(row)

    async def save_job(self, job: JobRecord) -> JobRecord:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update jobs
                set
                  position = $2,
                  organization = $3,
                  url = $4,
                  description = $5,
                  published_to_socials = $6
                where id = $1::uuid
                returning {_JOB_COLUMNS}
                """,
                job.id,
                job.position,
                job.organization,
                job.url,
                job.description,
                job.published_to_socials,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_record(row)

    async def mark_job_published_to_socials(self, job_id: str) -> None:
        pool = await self._get_pool()
        status = await pool.execute(
            "update jobs set published_to_socials = true where id = $1::uuid",
            job_id,
        )
        if _affected_rows(status) == 0:
            raise RepositoryNotFoundError("job not found")

    async def list_jobs_due_for_social_post(self) -> list[JobRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              j.id::text as id,
              j.position,
              j.organization,
              j.url,
              j.description,
              j.email,
              j.published_at,
              j.published_to_socials
            from jobs j
            join users u on u.email = j.email
            where j.published_to_socials = false
              and u.verified = true
            order by j.published_at desc
            """
        )
        return [self._job_row_to_record(row) for row in rows]

    async def delete_jobs_older_than(self, age: timedelta) -> int:
        pool = await self._get_pool()
        status = await pool.execute("delete from jobs where published_at < now() - $1::interval", age)
        return _affected_rows(status)

    async def get_or_create_user(self, email: str) -> UserRecord:
        pool = await self._get_pool()
        row = await pool.fetchrow(_UPSERT_USER_SQL, email.strip())
        return self._user_row_to_record(row)

    async def get_user(self, user_id: str) -> UserRecord:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {_USER_COLUMNS} from users where id = $1::uuid", user_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("user not found") from exc
        if not row:
            raise RepositoryNotFoundError("user not found")
        return self._user_row_to_record(row)

    async def set_user_verified(self, user_id: str, verified: bool) -> UserRecord:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"update users set verified = $2 where id = $1::uuid returning {_USER_COLUMNS}",
                user_id,
                verified,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("user not found") from exc
        if not row:
            raise RepositoryNotFoundError("user not found")
        return self._user_row_to_record(row)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JOBBOARD_DATABASE_URL is required")

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
    def _job_row_to_record(row: asyncpg.Record) -> JobRecord:
        return JobRecord(
            id=row["id"],
            position=row["position"],
            organization=row["organization"],
            url=row["url"],
            description=row["description"],
            email=row["email"],
            published_at=row["published_at"],
            published_to_socials=bool(row["published_to_socials"]),
        )

    @staticmethod
    def _user_row_to_record(row: asyncpg.Record) -> UserRecord:
        return UserRecord(
            id=row["id"],
            email=row["email"],
            verified=bool(row["verified"]),
            created_at=row["created_at"],
        )


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3".
    try:
        return int(status.rsplit(" ", maxsplit=1)[-1])
    except ValueError:
        return 0


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
