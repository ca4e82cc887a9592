# expateats/routes/events.py

"""
API endpoints календаря событий.

Публично видны только одобренные события, предложить событие может любой.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expateats.dependencies import current_session
from expateats.models import ModerationStatus
from expateats.schemas import EventCreate, EventResponse, EventSubmitResponse
from expateats.services import event_service
from expateats.services.csrf_service import verify_csrf
from expateats.utils.database import get_db
from expateats.utils.exceptions import NotFound
from expateats.utils.session import SessionContext

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("", response_model=List[EventResponse])
async def list_events(
    city: Optional[str] = None,
    category: Optional[str] = None,
    include_past: bool = False,
    db: Session = Depends(get_db),
):
    return await event_service.list_events(
        db,
        city=city,
        category=category,
        include_past=include_past,
    )


@router.get("/upcoming", response_model=List[EventResponse])
async def upcoming_events(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return await event_service.list_upcoming_events(db, limit=limit)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    event = await event_service.get_event(db, event_id)
    if not event:
        raise NotFound("Event not found")

    # Неодобренные события видит только админ
    if event.status != ModerationStatus.APPROVED.value and not session.is_admin:
        raise NotFound("Event not found")

    return event


@router.post(
    "",
    response_model=EventSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
async def submit_event(
    event: EventCreate,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    db_event = await event_service.create_event(db, event, user_id=session.user_id)
    return {
        "message": "Event submitted successfully and is pending approval",
        "event_id": db_event.id,
    }
