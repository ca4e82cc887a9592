# expateats/routes/users.py

"""
API enpoints для работы с пользователями: избранные места текущего
пользователя и список всех пользователей для админа.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expateats.dependencies import get_current_user, require_admin
from expateats.models import User
from expateats.schemas import MessageResponse, PlaceResponse, SavedStoreAction, UserResponse
from expateats.services import auth_service, place_service, review_service
from expateats.services.csrf_service import verify_csrf
from expateats.utils.database import get_db
from expateats.utils.exceptions import Conflict, NotFound, ValidationFailed

router = APIRouter(
    prefix="/api",
    tags=["users"],
)


@router.get("/users", response_model=List[UserResponse], status_code=status.HTTP_200_OK)
async def list_users(
        admin: User = Depends(require_admin),
        db: Session = Depends(get_db),
):
    """
    Все пользователи (без паролей). Только для админа.
    """
    return auth_service.list_users(db)


# ============
# SAVED STORES
# ============

@router.get("/user/saved-stores", response_model=List[PlaceResponse])
async def list_saved_stores(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
):
    return await review_service.list_saved_places(db, current_user.id)


@router.post(
    "/user/saved-stores",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def save_or_unsave_store(
        body: SavedStoreAction,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
):
    """
    action=save добавляет место в избранное (повторно - 409),
    action=unsave убирает.
    """
    if not body.store_id or not body.action:
        raise ValidationFailed("store_id and action are required")

    if body.action == "save":
        if not await place_service.get_visible_place(db, body.store_id):
            raise NotFound("Place not found")
        if await review_service.save_store(db, current_user.id, body.store_id) is None:
            raise Conflict("Store is already in favorites", code="ALREADY_SAVED")
        return {"message": "Store saved successfully"}

    if body.action == "unsave":
        await review_service.unsave_store(db, current_user.id, body.store_id)
        return {"message": "Store removed successfully"}

    raise ValidationFailed("Invalid action. Use 'save' or 'unsave'")


@router.delete(
    "/user/saved-stores/{place_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def remove_saved_store(
        place_id: int,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
):
    await review_service.unsave_store(db, current_user.id, place_id)
    return {"message": "Store removed from favorites"}
