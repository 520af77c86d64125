from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import timedelta

from opentelemetry import trace

from app.core.telemetry import background_task_span
from app.services.repository import JobRecord, RepositoryError
from app.services.social import SocialPublisher, SocialPublishError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0
DEFAULT_RETENTION = timedelta(days=30)


class TaskRunner:
    """Periodic maintenance loop: expire old jobs, then cross-post new ones.

    Only one runner may exist per deployment; two would double-post.
    """

    def __init__(
        self,
        repository,
        publishers: Sequence[SocialPublisher],
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        retention: timedelta = DEFAULT_RETENTION,
    ) -> None:
        self.repository = repository
        self.publishers = list(publishers)
        self.interval_seconds = interval_seconds
        self.retention = retention
        self._pass_lock = asyncio.Lock()
        self._passes = 0
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    def start(self) -> asyncio.Task[None]:
        if self._task is not None:
            raise RuntimeError("background tasks already started")
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event), name="jobboard-background-tasks")
        return self._task

    async def stop(self) -> None:
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        await self._task

    async def run(self, stop_event: asyncio.Event) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - keep the loop alive
                logger.exception("background task pass failed: %s", exc)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
            logger.info("shutting down background tasks")
            return

    async def run_once(self) -> None:
        async with self._pass_lock:
            self._passes += 1
            with background_task_span("tasks.pass", {"tasks.pass_number": self._passes}):
                await self.remove_old_jobs()
                await self.post_unpublished_jobs()

    async def remove_old_jobs(self) -> int:
        with tracer.start_as_current_span("tasks.remove_old_jobs"):
            logger.info("removing jobs older than %s", self.retention)
            try:
                deleted = await self.repository.delete_jobs_older_than(self.retention)
            except RepositoryError as exc:
                logger.error("error clearing old jobs: %s", exc)
                return 0
            if deleted:
                logger.info("removed old jobs: %s", deleted)
            return deleted

    async def post_unpublished_jobs(self) -> int:
        with tracer.start_as_current_span("tasks.post_unpublished_jobs") as span:
            try:
                jobs = await self.repository.list_jobs_due_for_social_post()
            except RepositoryError as exc:
                logger.error("failed to fetch jobs to post on social media: %s", exc)
                return 0

            span.set_attribute("jobs.due", len(jobs))
            if not jobs:
                logger.info("no jobs to post to social media")
                return 0

            marked = 0
            for job in jobs:
                logger.info('posting job "%s" id=%s to social platforms', job.position, job.id)
                await self.publish_job_on_socials(job)
                # Marked even when every platform failed; jobs are never retried.
                try:
                    await self.repository.mark_job_published_to_socials(job.id)
                except RepositoryError as exc:
                    logger.error("failed to mark job id=%s as published: %s", job.id, exc)
                    continue
                marked += 1
            return marked

    async def publish_job_on_socials(self, job: JobRecord) -> list[str]:
        """Attempt every platform once; returns the names that failed."""
        failed: list[str] = []
        for publisher in self.publishers:
            with tracer.start_as_current_span("tasks.publish_job") as span:
                span.set_attribute("job.id", job.id)
                span.set_attribute("social.platform", publisher.name)
                try:
                    await publisher.publish(job)
                except SocialPublishError as exc:
                    logger.warning("failed to post job id=%s to %s: %s", job.id, publisher.name, exc)
                    failed.append(publisher.name)
                except Exception:
                    logger.exception("unexpected error posting job id=%s to %s", job.id, publisher.name)
                    failed.append(publisher.name)
        return failed
