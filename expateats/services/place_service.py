# expateats/services/place_service.py

"""
Сервисный слой для мест и их модерации.

Знает про модели и БД, но не про HTTP-статусы/исключения:
None -> не найдено, False -> переход статуса невозможен.
"""

import re
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expateats.models import City, ModerationStatus, Place
from expateats.schemas import PlaceCreate

ONLINE_CITY = "Online"
ONLINE_STORE_CATEGORY = "Online Store"

CATEGORIES = [
    {
        "id": 1,
        "name": "International Markets",
        "icon": "ri-store-2-line",
        "description": "Find specialty ingredients",
    },
    {
        "id": 2,
        "name": "Restaurants",
        "icon": "ri-restaurant-line",
        "description": "Authentic dining experiences",
    },
    {
        "id": 3,
        "name": "Grocery Stores",
        "icon": "ri-shopping-basket-line",
        "description": "Stock your pantry",
    },
    {
        "id": 4,
        "name": "Expat Groups",
        "icon": "ri-community-line",
        "description": "Connect with fellow foodies",
    },
]


def _split_csv(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _capitalize(city: str) -> str:
    city = city.lower()
    return city[:1].upper() + city[1:]


def _matches_tags(place: Place, wanted: list[str]) -> bool:
    """Хотя бы один тег места содержит хотя бы один искомый (без учёта регистра)"""
    place_tags = place.tags or []
    return any(
        filter_tag.lower() in tag.lower()
        for tag in place_tags
        for filter_tag in wanted
    )


async def list_places(
    db: Session,
    city: Optional[str] = None,
    category: Optional[str] = None,
    tags: Optional[str] = None,
) -> list[Place]:
    """
    Одобренные места с фильтрами.

    city и category - списки через запятую. Если в category есть "Online Store",
    к городам добавляются интернет-магазины (город "Online").
    Теги фильтруются уже в памяти: подстрока без учёта регистра.
    """
    query = db.query(Place).filter(Place.status == ModerationStatus.APPROVED.value)

    cities = [_capitalize(c) for c in _split_csv(city)]
    if cities:
        if category and ONLINE_STORE_CATEGORY in category:
            query = query.filter(or_(Place.city.in_(cities), Place.city == ONLINE_CITY))
        else:
            query = query.filter(Place.city.in_(cities))

    categories = _split_csv(category)
    if categories:
        query = query.filter(Place.category.in_(categories))

    places = query.order_by(Place.id).all()

    wanted_tags = _split_csv(tags)
    if wanted_tags:
        places = [place for place in places if _matches_tags(place, wanted_tags)]

    return places


async def get_place(db: Session, place_id: int) -> Optional[Place]:
    return db.query(Place).filter(Place.id == place_id).first()


async def get_visible_place(
    db: Session,
    place_id: int,
    include_unapproved: bool = False,
) -> Optional[Place]:
    """Место для публичной карточки: неодобренные видит только админ"""
    place = await get_place(db, place_id)
    if place is None:
        return None
    if place.status != ModerationStatus.APPROVED.value and not include_unapproved:
        return None
    return place


async def create_place(
    db: Session,
    place_in: PlaceCreate,
    user_id: Optional[int] = None,
) -> Place:
    """Новое место всегда уходит на модерацию"""
    db_place = Place(
        **place_in.model_dump(),
        user_id=user_id,
        status=ModerationStatus.PENDING.value,
    )
    db.add(db_place)
    db.commit()
    db.refresh(db_place)
    return db_place


# ==========
# Модерация
# ==========

async def list_pending_places(db: Session) -> list[Place]:
    return (
        db.query(Place)
        .filter(Place.status == ModerationStatus.PENDING.value)
        .order_by(Place.created_at, Place.id)
        .all()
    )


async def approve_place(
    db: Session,
    place: Place,
    admin_notes: Optional[str] = None,
    soft_rating: Optional[int] = None,
    curator_notes: Optional[str] = None,
    coordinates: Optional[dict[str, str]] = None,
) -> bool:
    """
    pending -> approved, ровно один раз.
    False, если место уже не в статусе pending.
    """
    if place.status != ModerationStatus.PENDING.value:
        return False

    place.status = ModerationStatus.APPROVED.value
    place.admin_notes = admin_notes
    place.reviewed_at = datetime.utcnow()
    if soft_rating is not None:
        place.soft_rating = soft_rating
    if curator_notes is not None:
        place.curator_notes = curator_notes
    if coordinates:
        place.latitude = coordinates["latitude"]
        place.longitude = coordinates["longitude"]

    db.commit()
    db.refresh(place)
    return True


async def reject_place(db: Session, place: Place, admin_notes: str) -> bool:
    """pending -> rejected, ровно один раз"""
    if place.status != ModerationStatus.PENDING.value:
        return False

    place.status = ModerationStatus.REJECTED.value
    place.admin_notes = admin_notes
    place.reviewed_at = datetime.utcnow()
    db.commit()
    db.refresh(place)
    return True


async def update_place_notes(
    db: Session,
    place: Place,
    soft_rating: Optional[int],
    curator_notes: Optional[str],
) -> Place:
    place.soft_rating = soft_rating
    place.curator_notes = curator_notes
    db.commit()
    db.refresh(place)
    return place


async def update_place_data(db: Session, place: Place, data: dict[str, Any]) -> Place:
    """Правка адреса перед повторным геокодированием"""
    for key, value in data.items():
        setattr(place, key, value)
    db.commit()
    db.refresh(place)
    return place


async def list_places_without_coordinates(db: Session) -> list[Place]:
    return (
        db.query(Place)
        .filter(
            Place.status == ModerationStatus.APPROVED.value,
            or_(
                Place.latitude.is_(None),
                Place.longitude.is_(None),
                Place.latitude == "",
                Place.longitude == "",
            ),
        )
        .order_by(Place.id)
        .all()
    )


async def update_place_coordinates(
    db: Session,
    place_id: int,
    latitude: str,
    longitude: str,
) -> bool:
    updated = (
        db.query(Place)
        .filter(Place.id == place_id)
        .update({Place.latitude: latitude, Place.longitude: longitude})
    )
    db.commit()
    return bool(updated)


# ======
# Города
# ======

def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


async def list_cities(db: Session) -> list[City]:
    return db.query(City).filter(City.is_active.is_(True)).order_by(City.name).all()


async def create_city(
    db: Session,
    name: str,
    country: str,
    region: Optional[str] = None,
) -> Optional[City]:
    """None, если город с таким именем/slug уже есть"""
    db_city = City(name=name, slug=slugify(name), country=country, region=region or None)
    db.add(db_city)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    db.refresh(db_city)
    return db_city
