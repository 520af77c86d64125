from datetime import datetime

from pydantic import BaseModel, Field


class JobSubmission(BaseModel):
    position: str = ""
    organization: str = ""
    url: str = ""
    description: str = ""
    email: str = ""


class JobOut(BaseModel):
    id: str
    position: str
    organization: str
    url: str | None = None
    description: str | None = None
    description_html: str | None = None
    email: str
    published_at: datetime
    published_to_socials: bool = False


class JobCreatedOut(BaseModel):
    job: JobOut
    edit_url: str


class JobFormOut(BaseModel):
    job: JobSubmission = Field(default_factory=JobSubmission)
    errors: dict[str, str] = Field(default_factory=dict)


class JobEditOut(JobFormOut):
    id: str
    update_url: str
