"""Ordered schema migrations applied by ``PostgresRepository.migrate``."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Migration:
    version: int
    name: str
    sql: str


MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        version=1,
        name="create_jobs",
        sql="""
        create table if not exists jobs (
          id uuid primary key default gen_random_uuid(),
          position text not null,
          organization text not null,
          url text,
          description text,
          email text not null,
          published_at timestamptz not null default now()
        );

        create index if not exists jobs_published_at_idx on jobs (published_at desc);
        """,
    ),
    Migration(
        version=2,
        name="create_users",
        sql="""
        create table if not exists users (
          id uuid primary key default gen_random_uuid(),
          email text not null unique,
          verified boolean not null default false,
          created_at timestamptz not null default now()
        );
        """,
    ),
    Migration(
        version=3,
        name="add_jobs_published_to_socials",
        sql="""
        alter table jobs add column if not exists published_to_socials boolean not null default false;

        create index if not exists jobs_email_idx on jobs (email);
        """,
    ),
)

# Serializes concurrent startups against the same database.
MIGRATION_LOCK_KEY = 0x6A6F6262


def pending_migrations(applied_versions: set[int]) -> list[Migration]:
    return [migration for migration in MIGRATIONS if migration.version not in applied_versions]
