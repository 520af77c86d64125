from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from app.core.signing import canonical_signing_input, sign, signed_route, verify
from app.services.repository import JobRecord, UserRecord

SECRET = "s3cret"
PUBLISHED_AT = datetime(2024, 3, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)


def _job(**overrides) -> JobRecord:
    values = {
        "id": "5f0c3c1e-8a53-4f51-a2d4-3f4d1a9b7c10",
        "position": "Engineer",
        "organization": "Acme",
        "url": "https://acme.example.com/jobs/1",
        "description": None,
        "email": "hiring@acme.io",
        "published_at": PUBLISHED_AT,
        "published_to_socials": False,
    }
    values.update(overrides)
    return JobRecord(**values)


def test_sign_is_deterministic() -> None:
    assert sign(_job(), SECRET) == sign(_job(), SECRET)


@pytest.mark.parametrize(
    "field, value",
    [
        ("id", "0b7f5a90-0000-4000-8000-000000000000"),
        ("email", "other@acme.example.com"),
        ("published_at", PUBLISHED_AT + timedelta(microseconds=1)),
    ],
)
def test_sign_changes_with_each_signing_field(field: str, value: object) -> None:
    assert sign(_job(**{field: value}), SECRET) != sign(_job(), SECRET)


def test_sign_ignores_editable_fields() -> None:
    edited = _job(position="Staff Engineer", organization="Acme Corp", description="Remote", url=None)
    assert sign(edited, SECRET) == sign(_job(), SECRET)


def test_sign_depends_on_secret() -> None:
    assert sign(_job(), SECRET) != sign(_job(), "another-secret")


def test_sign_is_url_safe() -> None:
    token = sign(_job(), SECRET)
    assert "+" not in token and "/" not in token


def test_sign_rejects_empty_secret() -> None:
    with pytest.raises(ValueError):
        sign(_job(), "")


def test_sign_normalizes_timezone_of_same_instant() -> None:
    shifted = PUBLISHED_AT.astimezone(timezone(timedelta(hours=-6)))
    assert sign(_job(published_at=shifted), SECRET) == sign(_job(), SECRET)


def test_canonical_input_does_not_collide_across_field_splits() -> None:
    assert canonical_signing_input(("a:b", "c")) != canonical_signing_input(("a", "b:c"))
    assert canonical_signing_input(("ab", "")) != canonical_signing_input(("a", "b"))


def test_verify_rejects_token_after_published_at_changes() -> None:
    job = _job()
    token = sign(job, SECRET)
    assert verify(job, SECRET, token)

    republished = replace(job, published_at=PUBLISHED_AT + timedelta(days=1))
    assert not verify(republished, SECRET, token)


@pytest.mark.parametrize("token", [None, "", "not-a-token", "ünïcode"])
def test_verify_rejects_bad_tokens(token: str | None) -> None:
    assert not verify(_job(), SECRET, token)


def test_user_signature_uses_created_at() -> None:
    user = UserRecord(id="u-1", email="jobs@acme.io", verified=False, created_at=PUBLISHED_AT)
    token = sign(user, SECRET)
    assert verify(replace(user, verified=True), SECRET, token)
    assert not verify(replace(user, created_at=PUBLISHED_AT + timedelta(seconds=1)), SECRET, token)


def test_signed_route_embeds_encoded_token() -> None:
    job = _job()
    link = signed_route("jobs", "edit", job, base_url="https://jobs.example.org/", secret=SECRET)

    parsed = urlparse(link)
    assert parsed.scheme == "https"
    assert parsed.path == f"/jobs/{job.id}/edit"
    assert parse_qs(parsed.query)["token"] == [sign(job, SECRET)]


def test_signed_route_without_action() -> None:
    job = _job()
    link = signed_route("jobs", "", job, base_url="https://jobs.example.org", secret=SECRET)
    assert urlparse(link).path == f"/jobs/{job.id}"
