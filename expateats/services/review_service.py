# expateats/services/review_service.py

"""
Отзывы о местах и закладки (saved stores) пользователей.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expateats.models import ModerationStatus, Place, Review, SavedStore
from expateats.schemas import ReviewCreate


def average_rating(ratings: list[int]) -> Optional[int]:
    """Среднее, округлённое до целого (половина - вверх)"""
    if not ratings:
        return None
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def list_reviews(db: Session, place_id: int) -> list[Review]:
    return (
        db.query(Review)
        .filter(Review.place_id == place_id)
        .order_by(Review.created_at, Review.id)
        .all()
    )


async def create_review(
    db: Session,
    review_in: ReviewCreate,
    user_id: int,
) -> Optional[Review]:
    """
    Добавить отзыв и пересчитать average_rating места.
    None, если места нет или оно не одобрено.
    """
    place = (
        db.query(Place)
        .filter(
            Place.id == review_in.place_id,
            Place.status == ModerationStatus.APPROVED.value,
        )
        .first()
    )
    if place is None:
        return None

    db_review = Review(
        place_id=place.id,
        user_id=user_id,
        rating=review_in.rating,
        comment=review_in.comment,
    )
    db.add(db_review)
    db.flush()

    ratings = [r for (r,) in db.query(Review.rating).filter(Review.place_id == place.id).all()]
    place.average_rating = average_rating(ratings)

    db.commit()
    db.refresh(db_review)
    return db_review


# ==============
# Saved stores
# ==============

async def list_saved_places(db: Session, user_id: int) -> list[Place]:
    """Избранное пользователя, только одобренные места"""
    return (
        db.query(Place)
        .join(SavedStore, SavedStore.place_id == Place.id)
        .filter(
            SavedStore.user_id == user_id,
            Place.status == ModerationStatus.APPROVED.value,
        )
        .order_by(SavedStore.created_at.desc(), SavedStore.id.desc())
        .all()
    )


async def save_store(db: Session, user_id: int, place_id: int) -> Optional[SavedStore]:
    """
    Сохранить место в избранное:
    - None -> такая пара (user, place) уже есть.
    """
    exists = (
        db.query(SavedStore)
        .filter(SavedStore.user_id == user_id, SavedStore.place_id == place_id)
        .first()
    )
    if exists:
        return None

    db_saved = SavedStore(user_id=user_id, place_id=place_id)
    db.add(db_saved)
    try:
        db.commit()
    except IntegrityError:
        # Параллельный запрос успел вставить ту же пару
        db.rollback()
        return None
    db.refresh(db_saved)
    return db_saved


async def unsave_store(db: Session, user_id: int, place_id: int) -> bool:
    deleted = (
        db.query(SavedStore)
        .filter(SavedStore.user_id == user_id, SavedStore.place_id == place_id)
        .delete()
    )
    db.commit()
    return bool(deleted)
