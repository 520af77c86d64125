from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.security import require_user_link
from app.schemas.users import UserOut
from app.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    UserRecord,
    get_repository,
)

router = APIRouter()


@router.get("/{item_id}/verify", response_model=UserOut)
async def verify_email(
    user: UserRecord = Depends(require_user_link),
    repository=Depends(get_repository),
) -> UserOut:
    try:
        updated = await repository.set_user_verified(user.id, True)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return UserOut(**asdict(updated))
