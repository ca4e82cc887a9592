# expateats/routes/places.py

"""
API endpoints каталога мест: поиск, карточка, предложение нового места,
отзывы, категории и города.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expateats.dependencies import current_session, get_current_user
from expateats.models import User
from expateats.schemas import (
    CategoryResponse,
    CityResponse,
    PlaceCreate,
    PlaceResponse,
    ReviewCreate,
    ReviewResponse,
)
from expateats.services import place_service, review_service
from expateats.services.csrf_service import verify_csrf
from expateats.utils.database import get_db
from expateats.utils.exceptions import NotFound
from expateats.utils.session import SessionContext

router = APIRouter(prefix="/api", tags=["places"])


# ===========
# СПИСОК МЕСТ
# ===========

@router.get("/places", response_model=List[PlaceResponse])
async def list_places(
    city: Optional[str] = None,
    category: Optional[str] = None,
    tags: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Одобренные места. city, category, tags - списки через запятую.
    """
    return await place_service.list_places(db, city=city, category=category, tags=tags)


@router.get("/places/{place_id}", response_model=PlaceResponse)
async def get_place(
    place_id: int,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    place = await place_service.get_visible_place(
        db,
        place_id,
        include_unapproved=session.is_admin,
    )
    if not place:
        raise NotFound("Place not found")
    return place


@router.post(
    "/places",
    response_model=PlaceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
async def create_place(
    place: PlaceCreate,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    """
    Предложить новое место. Оно появится в каталоге после одобрения админом.
    """
    return await place_service.create_place(db, place, user_id=session.user_id)


# ======
# ОТЗЫВЫ
# ======

@router.get("/places/{place_id}/reviews", response_model=List[ReviewResponse])
async def list_reviews(place_id: int, db: Session = Depends(get_db)):
    if not await place_service.get_visible_place(db, place_id):
        raise NotFound("Place not found")
    return await review_service.list_reviews(db, place_id)


@router.post(
    "/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
async def create_review(
    review: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_review = await review_service.create_review(db, review, user_id=current_user.id)
    if db_review is None:
        raise NotFound("Place not found")
    return db_review


# ==================
# КАТЕГОРИИ И ГОРОДА
# ==================

@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories():
    return place_service.CATEGORIES


@router.get("/cities", response_model=List[CityResponse])
async def list_cities(db: Session = Depends(get_db)):
    return await place_service.list_cities(db)
