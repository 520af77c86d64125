from __future__ import annotations

from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email

from app.schemas.jobs import JobSubmission


def validate_job_submission(submission: JobSubmission, *, update: bool) -> dict[str, str]:
    """Collect every field error for a new or edited job.

    Returns an empty mapping when the submission is acceptable. Email is only
    checked on creation since it cannot be changed afterwards.
    """
    position = submission.position.strip()
    organization = submission.organization.strip()
    url = submission.url.strip()
    description = submission.description.strip()

    errors: dict[str, str] = {}

    if not position:
        errors["position"] = "Must provide a Position"

    if not organization:
        errors["organization"] = "Must provide a Organization"

    if not url and not description:
        errors["url"] = "Must provide either a Url or a Description"
    elif not description and not is_absolute_url(url):
        errors["url"] = "Must provide a valid Url"

    if not update:
        email = submission.email.strip()
        if not email:
            errors["email"] = "Must provide an Email Address"
        elif not is_valid_email(email):
            errors["email"] = "Must provide a valid Email"

    return errors


def is_absolute_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc) and " " not in value


def is_valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
