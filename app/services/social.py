from __future__ import annotations

from typing import Any, Protocol

import httpx

from app.core.config import Settings
from app.services.repository import JobRecord

TWITTER_TWEETS_URL = "https://api.twitter.com/2/tweets"
TWEET_MAX_LENGTH = 280


class SocialPublishError(Exception):
    """Raised when a platform rejects or cannot receive a job post."""


class SocialPublisher(Protocol):
    name: str

    async def publish(self, job: JobRecord) -> None: ...


def job_view_url(job: JobRecord, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/jobs/{job.id}"


class SlackPublisher:
    name = "slack"

    def __init__(
        self,
        webhook_url: str,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.client = client

    def render_message(self, job: JobRecord) -> str:
        return f"A new job was posted!\n> *{job.position}* @ {job.organization}\n> {job_view_url(job, self.base_url)}"

    async def publish(self, job: JobRecord) -> None:
        await _post_json(
            self.client,
            self.webhook_url,
            payload={"text": self.render_message(job)},
            headers={},
            timeout_seconds=self.timeout_seconds,
            platform=self.name,
        )


class TwitterPublisher:
    name = "twitter"

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
        endpoint: str = TWITTER_TWEETS_URL,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.client = client
        self.endpoint = endpoint

    def render_message(self, job: JobRecord) -> str:
        link = job_view_url(job, self.base_url)
        headline = f"New job: {job.position} @ {job.organization}"
        room = TWEET_MAX_LENGTH - len(link) - 2
        if len(headline) > room:
            headline = headline[: max(0, room - 1)].rstrip() + "…"
        return f"{headline}\n\n{link}"

    async def publish(self, job: JobRecord) -> None:
        await _post_json(
            self.client,
            self.endpoint,
            payload={"text": self.render_message(job)},
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout_seconds=self.timeout_seconds,
            platform=self.name,
        )


def build_publishers(settings: Settings, *, client: httpx.AsyncClient | None = None) -> list[SocialPublisher]:
    """Return a publisher for every platform that has credentials configured."""
    publishers: list[SocialPublisher] = []
    if settings.slack_hook:
        publishers.append(
            SlackPublisher(
                settings.slack_hook,
                base_url=settings.base_url,
                timeout_seconds=settings.social_timeout_seconds,
                client=client,
            )
        )
    if settings.twitter_access_token:
        publishers.append(
            TwitterPublisher(
                settings.twitter_access_token,
                base_url=settings.base_url,
                timeout_seconds=settings.social_timeout_seconds,
                client=client,
            )
        )
    return publishers


async def _post_json(
    client: httpx.AsyncClient | None,
    url: str,
    *,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout_seconds: float,
    platform: str,
) -> None:
    try:
        if client is not None:
            response = await client.post(url, json=payload, headers=headers, timeout=timeout_seconds)
        else:
            async with httpx.AsyncClient(timeout=timeout_seconds) as temp_client:
                response = await temp_client.post(url, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SocialPublishError(f"{platform} responded with status {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise SocialPublishError(f"{platform} request failed: {exc}") from exc
