# expateats/services/event_service.py

"""
Сервисный слой для событий: публичный календарь и модерация.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from expateats.models import Event, ModerationStatus
from expateats.schemas import EventCreate, EventUpdate

UPCOMING_DEFAULT_LIMIT = 10


async def list_events(
    db: Session,
    city: Optional[str] = None,
    category: Optional[str] = None,
    include_past: bool = False,
    now: Optional[datetime] = None,
) -> list[Event]:
    """Одобренные события по дате; прошедшие только по запросу"""
    query = db.query(Event).filter(Event.status == ModerationStatus.APPROVED.value)

    if city:
        query = query.filter(Event.city == city)
    if category:
        query = query.filter(Event.category == category)
    if not include_past:
        query = query.filter(Event.date >= (now or datetime.utcnow()))

    return query.order_by(Event.date, Event.id).all()


async def list_upcoming_events(
    db: Session,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[Event]:
    return (
        db.query(Event)
        .filter(
            Event.status == ModerationStatus.APPROVED.value,
            Event.date >= (now or datetime.utcnow()),
        )
        .order_by(Event.date, Event.id)
        .limit(limit or UPCOMING_DEFAULT_LIMIT)
        .all()
    )


async def get_event(db: Session, event_id: int) -> Optional[Event]:
    return db.query(Event).filter(Event.id == event_id).first()


async def create_event(
    db: Session,
    event_in: EventCreate,
    user_id: Optional[int] = None,
) -> Event:
    """Событие от пользователя (или анонима) ждёт модерации"""
    db_event = Event(
        **event_in.model_dump(),
        current_attendees=0,
        user_id=user_id,
        status=ModerationStatus.PENDING.value,
    )
    db.add(db_event)
    db.commit()
    db.refresh(db_event)
    return db_event


async def list_pending_events(db: Session) -> list[Event]:
    return (
        db.query(Event)
        .filter(Event.status == ModerationStatus.PENDING.value)
        .order_by(Event.created_at, Event.id)
        .all()
    )


async def _moderate(
    db: Session,
    event: Event,
    new_status: ModerationStatus,
    admin_id: int,
    admin_notes: Optional[str],
) -> bool:
    if event.status != ModerationStatus.PENDING.value:
        return False

    event.status = new_status.value
    event.admin_notes = admin_notes
    event.reviewed_at = datetime.utcnow()
    event.reviewed_by = admin_id
    db.commit()
    db.refresh(event)
    return True


async def approve_event(
    db: Session,
    event: Event,
    admin_id: int,
    admin_notes: Optional[str] = None,
) -> bool:
    return await _moderate(db, event, ModerationStatus.APPROVED, admin_id, admin_notes)


async def reject_event(
    db: Session,
    event: Event,
    admin_id: int,
    admin_notes: str,
) -> bool:
    return await _moderate(db, event, ModerationStatus.REJECTED, admin_id, admin_notes)


async def update_event(db: Session, event: Event, event_update: EventUpdate) -> Event:
    """Админская правка: статус и поля модерации отсюда не меняются"""
    update_data = event_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(event, key, value)

    db.commit()
    db.refresh(event)
    return event


async def delete_event(db: Session, event: Event) -> None:
    db.delete(event)
    db.commit()
