from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session
from eventy.api.deps import get_current_user, get_db
from eventy.dto import event as event_schemas
from eventy.entities.user import User
from eventy.exceptions import EventHasSalesError, EventNotFoundError, InventoryGenerationError, StoreError
from eventy.kafka.producer import ticket_producer
from eventy.repositories.event_repository import event_repository
from eventy.utils.kafka_config import InventoryGeneratedEvent
from eventy.utils.observability import TICKETS_GENERATED
import logging

router = APIRouter(prefix="/events", tags=["events"])

logger = logging.getLogger(__name__)


@router.post("/", response_model=event_schemas.EventDetail, status_code=201)
def create_event(
    event: event_schemas.EventCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        result = event_repository.create(db, event, owner_id=user.id)
    except InventoryGenerationError as e:
        logger.error(f"Inventory generation failed for zone {e.zone_id} and date {e.date_id}")
        raise HTTPException(status_code=500, detail=e.to_detail())
    except StoreError as e:
        raise HTTPException(status_code=500, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Unexpected error creating event: {e}")
        raise HTTPException(status_code=500, detail="Failed to create event")

    ticket_count = sum(zone.seat_count for zone in result.zones) * len(result.dates)
    TICKETS_GENERATED.inc(ticket_count)
    background_tasks.add_task(
        ticket_producer.produce_inventory_generated,
        InventoryGeneratedEvent(event_id=result.id, ticket_count=ticket_count),
    )
    logger.info(f"Event created with id {result.id}")
    return result


@router.get("/{event_id}", response_model=event_schemas.EventDetail)
def read_event(event_id: int, db: Session = Depends(get_db)):
    event = event_repository.get_detail(db, event_id)
    if not event:
        logger.error("Event not found")
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/{event_id}/can-delete", response_model=event_schemas.CanDeleteEvent)
def can_delete_event(event_id: int, db: Session = Depends(get_db)):
    try:
        allowed = event_repository.can_delete(db, event_id)
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_detail())
    return event_schemas.CanDeleteEvent(event_id=event_id, can_delete=allowed)


@router.delete("/{event_id}", response_model=event_schemas.EventDeleted)
def delete_event(event_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        event_repository.delete(db, event_id, owner_id=user.id)
    except EventNotFoundError as e:
        logger.error(f"Event {event_id} not found for deletion by user {user.id}")
        raise HTTPException(status_code=404, detail=e.to_detail())
    except EventHasSalesError as e:
        logger.warning(f"Refused to delete event {event_id}: it has purchased tickets")
        raise HTTPException(status_code=400, detail=e.to_detail())
    except StoreError as e:
        raise HTTPException(status_code=500, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Unexpected error deleting event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete event")
    return event_schemas.EventDeleted()


@router.get("/{event_id}/sales", response_model=event_schemas.SalesSummary)
def read_sales_summary(event_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return event_repository.sales_summary(db, event_id, owner_id=user.id)
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_detail())
