#!/usr/bin/env python3
"""Print a signed link for a stored job or user.

This is how operators hand out verification links: the service itself sends
no email.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from app.core.config import get_settings
from app.core.signing import signed_route
from app.services.repository import RepositoryError, get_repository

DEFAULT_ACTIONS = {"jobs": "edit", "users": "verify"}


async def render_link(*, item_type: str, item_id: str, action: str) -> str:
    settings = get_settings()
    repository = get_repository()
    try:
        if item_type == "jobs":
            item = await repository.get_job(item_id)
        else:
            item = await repository.get_user(item_id)
    finally:
        await repository.close()

    return signed_route(item_type, action, item, base_url=settings.base_url, secret=settings.app_secret or "")


def main() -> int:
    parser = argparse.ArgumentParser(description="Print a signed link for a job or user.")
    target_group = parser.add_mutually_exclusive_group(required=True)
    target_group.add_argument("--job", metavar="ID", help="Job id (link defaults to the edit page)")
    target_group.add_argument("--user", metavar="ID", help="User id (link defaults to email verification)")
    parser.add_argument(
        "--action",
        default=None,
        help="Path segment after the id; pass an empty string for the bare resource link",
    )
    args = parser.parse_args()

    item_type = "jobs" if args.job else "users"
    item_id = args.job or args.user
    action = DEFAULT_ACTIONS[item_type] if args.action is None else args.action

    if not get_settings().app_secret:
        print("error: JOBBOARD_APP_SECRET is required", file=sys.stderr)
        return 2

    try:
        link = asyncio.run(render_link(item_type=item_type, item_id=item_id, action=action))
    except RepositoryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(link)
    return 0


if __name__ == "__main__":
    sys.exit(main())
