# expateats/routes/admin.py

"""
API endpoints модерации (только для администраторов).

Места и события проходят pending -> approved | rejected ровно один раз:
повторное одобрение/отклонение отвечает 409.
"""

from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from loguru import logger
from sqlalchemy.orm import Session

from expateats.dependencies import require_admin
from expateats.models import ModerationStatus, User
from expateats.schemas import (
    ApprovePlaceResponse,
    BatchGeocodeResponse,
    CityCreate,
    CityResponse,
    EventModeration,
    EventResponse,
    EventUpdate,
    EventUpdateResponse,
    MessageResponse,
    PlaceApprove,
    PlaceLocationUpdate,
    PlaceNotesUpdate,
    PlaceReject,
    PlaceResponse,
)
from expateats.services import event_service, place_service
from expateats.services.csrf_service import verify_csrf
from expateats.services.geocoding_service import GeocodingService, get_geocoder
from expateats.utils.database import get_db
from expateats.utils.exceptions import Conflict, GeocodingFailed, NotFound, ValidationFailed

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _already_reviewed(kind: str) -> Conflict:
    return Conflict(f"{kind} has already been reviewed", code="ALREADY_REVIEWED")


async def _get_place_or_404(db: Session, place_id: int):
    place = await place_service.get_place(db, place_id)
    if not place:
        raise NotFound("Place not found")
    return place


async def _get_event_or_404(db: Session, event_id: int):
    event = await event_service.get_event(db, event_id)
    if not event:
        raise NotFound("Event not found")
    return event


# ================
# МОДЕРАЦИЯ МЕСТ
# ================

@router.get("/pending-places", response_model=List[PlaceResponse])
async def pending_places(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return await place_service.list_pending_places(db)


@router.post(
    "/approve-place/{place_id}",
    response_model=ApprovePlaceResponse,
    dependencies=[Depends(verify_csrf)],
)
async def approve_place(
    place_id: int,
    body: Optional[PlaceApprove] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    geocoder: GeocodingService = Depends(get_geocoder),
):
    """
    Одобрить место.

    Адрес геокодируется, если не передан skip_geocode или готовые coordinates.
    Ошибка геокодирования -> 422 с geocoding_error, место остаётся pending.
    """
    body = body or PlaceApprove()
    place = await _get_place_or_404(db, place_id)
    if place.status != ModerationStatus.PENDING.value:
        raise _already_reviewed("Place")

    coordinates = None
    if body.coordinates is not None:
        coordinates = body.coordinates.model_dump()
        logger.info("Using admin-provided coordinates for place {}", place_id)
    elif not body.skip_geocode:
        result = await geocoder.geocode_address(
            place.address,
            place.city,
            place.region or None,
            place.country,
        )
        if not result.success:
            logger.warning("Geocoding failed for place {}: {}", place_id, result.error)
            raise GeocodingFailed(
                result.error or "Failed to geocode address",
                geocoding_error=True,
                place=PlaceResponse.model_validate(place).model_dump(),
            )
        coordinates = result.coordinates
    else:
        logger.info("Geocoding skipped for place {}", place_id)

    approved = await place_service.approve_place(
        db,
        place,
        admin_notes=body.admin_notes,
        soft_rating=body.soft_rating,
        curator_notes=body.curator_notes,
        coordinates=coordinates,
    )
    if not approved:
        raise _already_reviewed("Place")

    return {
        "success": True,
        "message": "Place approved successfully",
        "coordinates": coordinates,
    }


@router.post(
    "/reject-place/{place_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def reject_place(
    place_id: int,
    body: Optional[PlaceReject] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin_notes = body.admin_notes if body else None
    if not admin_notes:
        raise ValidationFailed("Admin notes are required for rejection", code="ADMIN_NOTES_REQUIRED")

    place = await _get_place_or_404(db, place_id)
    if not await place_service.reject_place(db, place, admin_notes):
        raise _already_reviewed("Place")

    return {"message": "Place rejected successfully"}


@router.patch(
    "/update-place-notes/{place_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def update_place_notes(
    place_id: int,
    body: PlaceNotesUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    place = await _get_place_or_404(db, place_id)
    await place_service.update_place_notes(db, place, body.soft_rating, body.curator_notes)
    return {"message": "Place notes and rating updated successfully"}


@router.patch(
    "/update-place/{place_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def update_place(
    place_id: int,
    body: PlaceLocationUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Правка адреса, чтобы повторить геокодирование"""
    data = {}
    if body.address:
        data["address"] = body.address
    if body.city:
        data["city"] = body.city
    if "region" in body.model_fields_set:
        data["region"] = body.region
    if body.country:
        data["country"] = body.country

    if not data:
        raise ValidationFailed("No fields to update")

    place = await _get_place_or_404(db, place_id)
    await place_service.update_place_data(db, place, data)
    return {"message": "Place updated successfully"}


@router.post(
    "/batch-geocode",
    response_model=BatchGeocodeResponse,
    dependencies=[Depends(verify_csrf)],
)
async def batch_geocode(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    geocoder: GeocodingService = Depends(get_geocoder),
):
    """Геокодировать одобренные места без координат (последовательно)"""
    places = await place_service.list_places_without_coordinates(db)
    if not places:
        return {
            "success": True,
            "message": "No places need geocoding",
            "results": [],
            "summary": {"total": 0, "successful": 0, "failed": 0},
        }

    results = await geocoder.geocode_batch(places)

    for result in results:
        if result.success and result.coordinates:
            await place_service.update_place_coordinates(
                db,
                result.place_id,
                result.coordinates["latitude"],
                result.coordinates["longitude"],
            )

    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful

    return {
        "success": True,
        "message": f"Geocoded {successful} places successfully, {failed} failed",
        "results": [asdict(r) for r in results],
        "summary": {"total": len(results), "successful": successful, "failed": failed},
    }


# ======
# ГОРОДА
# ======

@router.post(
    "/cities",
    response_model=CityResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
async def create_city(
    body: CityCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not body.name or not body.country:
        raise ValidationFailed("Name and country are required")

    city = await place_service.create_city(db, body.name, body.country, body.region)
    if city is None:
        raise Conflict("City already exists", code="CITY_EXISTS")
    return city


# ==================
# МОДЕРАЦИЯ СОБЫТИЙ
# ==================

@router.get("/pending-events", response_model=List[EventResponse])
async def pending_events(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return await event_service.list_pending_events(db)


@router.post(
    "/approve-event/{event_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def approve_event(
    event_id: int,
    body: Optional[EventModeration] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = await _get_event_or_404(db, event_id)
    admin_notes = body.admin_notes if body else None
    if not await event_service.approve_event(db, event, admin.id, admin_notes):
        raise _already_reviewed("Event")
    return {"message": "Event approved successfully"}


@router.post(
    "/reject-event/{event_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def reject_event(
    event_id: int,
    body: Optional[EventModeration] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin_notes = body.admin_notes if body else None
    if not admin_notes:
        raise ValidationFailed("Admin notes are required for rejection", code="ADMIN_NOTES_REQUIRED")

    event = await _get_event_or_404(db, event_id)
    if not await event_service.reject_event(db, event, admin.id, admin_notes):
        raise _already_reviewed("Event")
    return {"message": "Event rejected successfully"}


@router.put(
    "/events/{event_id}",
    response_model=EventUpdateResponse,
    dependencies=[Depends(verify_csrf)],
)
async def update_event(
    event_id: int,
    body: EventUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = await _get_event_or_404(db, event_id)
    event = await event_service.update_event(db, event, body)
    return {"message": "Event updated successfully", "event": event}


@router.delete(
    "/events/{event_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def delete_event(
    event_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = await _get_event_or_404(db, event_id)
    await event_service.delete_event(db, event)
    return {"message": "Event deleted successfully"}
