"""User API — the signed-in user's own record.

Learn: Routes for the current user:
- GET  /users/me          → public fields (+ provider ids for enabled providers)
- POST /users/me/profile  → change name/avatar (a new name means a new slug)
- POST /users/me/theme    → store the dark-theme preference
"""

from fastapi import APIRouter, Depends

from teamaccounts.api.deps import get_user_service
from teamaccounts.auth.dependencies import get_current_user
from teamaccounts.db.models import User
from teamaccounts.schemas.user import ProfileRead, ProfileUpdate, ThemeUpdate
from teamaccounts.services.user_service import UserService, oauth_fields, project

router = APIRouter(prefix="/users")


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    return project(user, oauth_fields())


@router.post("/me/profile", response_model=ProfileRead)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    svc: UserService = Depends(get_user_service),
):
    return await svc.update_profile(user.id, name=body.name, avatar_url=body.avatar_url)


@router.post("/me/theme")
async def toggle_theme(
    body: ThemeUpdate,
    user: User = Depends(get_current_user),
    svc: UserService = Depends(get_user_service),
):
    await svc.toggle_theme(user.id, dark_theme=body.dark_theme)
    return {"done": 1}
