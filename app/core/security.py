from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import Depends, HTTPException, Query, status

from app.core.config import Settings, get_settings
from app.core.signing import Signable, verify
from app.services.repository import JobRecord, RepositoryError, UserRecord, get_repository

logger = logging.getLogger(__name__)

SignableT = TypeVar("SignableT", bound=Signable)


def require_signed_link(
    loader: Callable[[Any, str], Awaitable[SignableT]],
    *,
    item_type: str,
) -> Callable[..., Awaitable[SignableT]]:
    """Build a dependency that only lets a request through with a valid link token.

    ``loader`` receives the repository and the ``item_id`` path parameter.
    Load failures are treated as server faults; a missing or wrong token is a
    bare 403.
    """

    async def dependency(
        item_id: str,
        token: str | None = Query(default=None),
        settings: Settings = Depends(get_settings),
        repository=Depends(get_repository),
    ) -> SignableT:
        try:
            item = await loader(repository, item_id)
        except RepositoryError as exc:
            logger.error("signed link lookup failed for %s id=%s: %s", item_type, item_id, exc)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR) from exc

        if not settings.app_secret:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="link signing is not configured",
            )

        if not verify(item, settings.app_secret, token):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)

        return item

    return dependency


async def _load_job(repository, job_id: str) -> JobRecord:
    return await repository.get_job(job_id)


async def _load_user(repository, user_id: str) -> UserRecord:
    return await repository.get_user(user_id)


require_job_link = require_signed_link(_load_job, item_type="jobs")
require_user_link = require_signed_link(_load_user, item_type="users")
