import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.security import require_job_link
from app.core.signing import signed_route
from app.schemas.jobs import JobCreatedOut, JobEditOut, JobFormOut, JobOut, JobSubmission
from app.services.rendering import render_description
from app.services.repository import (
    JobRecord,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)
from app.services.validation import validate_job_submission

logger = logging.getLogger(__name__)

listing_router = APIRouter()
router = APIRouter()


def _job_out(job: JobRecord) -> JobOut:
    return JobOut(**asdict(job), description_html=render_description(job.description))


def _form_errors(submission: JobSubmission, errors: dict[str, str]) -> JSONResponse:
    body = JobFormOut(job=submission, errors=errors)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump(mode="json"))


@listing_router.get("/", response_model=list[JobOut])
async def list_jobs(repository=Depends(get_repository)) -> list[JobOut]:
    try:
        jobs = await repository.list_jobs()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [_job_out(job) for job in jobs]


@listing_router.get("/new", response_model=JobFormOut)
async def new_job() -> JobFormOut:
    return JobFormOut()


@router.post("", response_model=JobCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobSubmission,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
):
    errors = validate_job_submission(payload, update=False)
    if errors:
        return _form_errors(payload, errors)

    if not settings.app_secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="link signing is not configured")

    try:
        job = await repository.create_job(payload)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    logger.info("created job id=%s", job.id)
    return JobCreatedOut(
        job=_job_out(job),
        edit_url=signed_route("jobs", "edit", job, base_url=settings.base_url, secret=settings.app_secret),
    )


@router.get("/{job_id}", response_model=JobOut)
async def view_job(job_id: str, repository=Depends(get_repository)) -> JobOut:
    try:
        job = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _job_out(job)


@router.get("/{item_id}/edit", response_model=JobEditOut)
async def edit_job(
    job: JobRecord = Depends(require_job_link),
    settings: Settings = Depends(get_settings),
) -> JobEditOut:
    # require_job_link has already checked that app_secret is set.
    return JobEditOut(
        id=job.id,
        job=job.to_submission(),
        update_url=signed_route("jobs", "", job, base_url=settings.base_url, secret=settings.app_secret or ""),
    )


@router.post("/{item_id}", response_model=JobOut)
async def update_job(
    payload: JobSubmission,
    job: JobRecord = Depends(require_job_link),
    repository=Depends(get_repository),
):
    errors = validate_job_submission(payload, update=True)
    if errors:
        return _form_errors(payload, errors)

    job.apply_submission(payload)
    try:
        saved = await repository.save_job(job)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    logger.info("updated job id=%s", saved.id)
    return _job_out(saved)
