"""Caller identity endpoint."""

from fastapi import APIRouter, Depends

from guesthouse.api.auth import CurrentUser, get_current_user

router = APIRouter(tags=["me"])


@router.get("/me")
def get_me(user: CurrentUser = Depends(get_current_user)) -> dict:
    return {
        "id": user.id,
        "external_subject": user.external_subject,
        "email": user.email,
        "full_name": user.full_name,
        "is_operator": user.is_operator,
    }
