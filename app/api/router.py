from fastapi import APIRouter

from app.api.routes import health, jobs, users

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(jobs.listing_router, tags=["public"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
