"""Capability tokens for signed links.

A token is an HMAC over a resource's signing fields keyed with the server
secret. Changing any signing field (for a job, its ``published_at``) revokes
every link issued for the old value.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Protocol
from urllib.parse import quote


class Signable(Protocol):
    @property
    def item_id(self) -> str: ...

    def signing_fields(self) -> tuple[object, ...]: ...


def canonical_signing_input(fields: tuple[object, ...]) -> bytes:
    """Length-prefix every field so no value can move a field boundary."""
    chunks: list[bytes] = []
    for field in fields:
        encoded = _field_text(field).encode("utf-8")
        chunks.append(str(len(encoded)).encode("ascii") + b":" + encoded)
    return b"".join(chunks)


def sign(item: Signable, secret: str) -> str:
    if not secret:
        raise ValueError("signing secret must be a non-empty string")
    digest = hmac.new(
        secret.encode("utf-8"),
        canonical_signing_input(item.signing_fields()),
        hashlib.sha256,
    ).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


def verify(item: Signable, secret: str, token: str | None) -> bool:
    if not token:
        return False
    return hmac.compare_digest(sign(item, secret).encode("ascii"), token.encode("utf-8"))


def signed_route(item_type: str, action: str, item: Signable, *, base_url: str, secret: str) -> str:
    path = f"{base_url.rstrip('/')}/{item_type}/{item.item_id}"
    if action:
        path = f"{path}/{action}"
    return f"{path}?token={quote(sign(item, secret), safe='')}"


def _field_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return str(value)
