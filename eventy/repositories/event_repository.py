import logging
from decimal import Decimal

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from eventy.dto.event import Booking, EventCreate, EventDetail, SalesSummary, ZoneSales
from eventy.entities.event import Event, EventDate, EventSocialMedia, EventZone
from eventy.entities.sale import PurchaseContactInfo, SoldTicket
from eventy.entities.ticket import Ticket, TicketStatus
from eventy.entities.user import User
from eventy.exceptions import EventHasSalesError, EventNotFoundError, InventoryGenerationError, StoreError
from eventy.repositories.base import BaseRepository
from eventy.repositories.ticket_repository import ticket_repository
from eventy.utils.cache import cache_data, invalidate_cache

logger = logging.getLogger(__name__)


class EventRepository(BaseRepository[Event]):
    def __init__(self):
        super().__init__(Event)

    def create(self, db: Session, obj_in: EventCreate, owner_id: int) -> EventDetail:
        """Create an event with its dates, zones, social media and seat inventory.

        Everything is one transaction: if inventory generation fails the event
        is rolled back with it.
        """
        event_data = obj_in.model_dump(exclude={"dates", "zones", "social_media"})
        db_obj = self.model(owner_id=owner_id, **event_data)
        db_obj.dates = [EventDate(date=item.date) for item in obj_in.dates]
        db_obj.zones = [EventZone(**item.model_dump()) for item in obj_in.zones]
        db_obj.social_media = [EventSocialMedia(**item.model_dump()) for item in obj_in.social_media]

        try:
            db.add(db_obj)
            db.flush()
            ticket_count = ticket_repository.generate(db, db_obj.zones, db_obj.dates)
            db.commit()
        except InventoryGenerationError:
            db.rollback()
            logger.error(f"Rolled back event '{obj_in.title}' after inventory generation failed")
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating event '{obj_in.title}': {e}")
            raise StoreError("Failed to create event") from e

        logger.info(f"Event {db_obj.id} created with {ticket_count} tickets")
        return EventDetail.model_validate(db_obj)

    @cache_data(key_prefix="event", schema=EventDetail)
    def get_detail(self, db: Session, event_id: int) -> EventDetail | None:
        event = (
            db.query(self.model)
            .options(
                selectinload(self.model.dates),
                selectinload(self.model.zones),
                selectinload(self.model.social_media),
            )
            .filter(self.model.id == event_id)
            .first()
        )
        if event is None:
            return None
        return EventDetail.model_validate(event)

    def _unavailable_ticket_count(self, db: Session, event_id: int) -> int:
        return (
            db.query(func.count(Ticket.id))
            .join(EventZone, Ticket.event_zone_id == EventZone.id)
            .filter(EventZone.event_id == event_id, Ticket.status != TicketStatus.AVAILABLE)
            .scalar()
        )

    def can_delete(self, db: Session, event_id: int) -> bool:
        if not self.exists(db, event_id):
            raise EventNotFoundError(event_id)
        return self._unavailable_ticket_count(db, event_id) == 0

    @staticmethod
    def deletion_plan(event_id: int) -> list:
        """Child tables first, event row last."""
        zone_ids = select(EventZone.id).where(EventZone.event_id == event_id)
        return [
            delete(Ticket).where(Ticket.event_zone_id.in_(zone_ids)),
            delete(EventZone).where(EventZone.event_id == event_id),
            delete(EventDate).where(EventDate.event_id == event_id),
            delete(EventSocialMedia).where(EventSocialMedia.event_id == event_id),
            delete(Event).where(Event.id == event_id),
        ]

    def delete(self, db: Session, event_id: int, owner_id: int | None = None) -> None:
        """Delete an event and everything under it, unless any ticket was sold.

        Raises:
            EventNotFoundError: If the event does not exist or is not owned by owner_id.
            EventHasSalesError: If any ticket under the event is not AVAILABLE.
            StoreError: If the store fails; nothing is deleted.
        """
        try:
            query = db.query(self.model.id).filter(self.model.id == event_id)
            if owner_id is not None:
                query = query.filter(self.model.owner_id == owner_id)
            if query.with_for_update().first() is None:
                raise EventNotFoundError(event_id)

            statuses = (
                db.query(Ticket.status)
                .join(EventZone, Ticket.event_zone_id == EventZone.id)
                .filter(EventZone.event_id == event_id)
                .order_by(Ticket.id)
                .with_for_update(of=Ticket)
                .all()
            )
            if any(TicketStatus(row.status) != TicketStatus.AVAILABLE for row in statuses):
                raise EventHasSalesError(event_id)

            for statement in self.deletion_plan(event_id):
                db.execute(statement.execution_options(synchronize_session=False))
            db.commit()
        except (EventNotFoundError, EventHasSalesError):
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error deleting event {event_id}: {e}")
            raise StoreError("Failed to delete event") from e

        invalidate_cache(f"event:{event_id}")
        logger.info(f"Event {event_id} deleted with {len(statuses)} tickets")

    def sales_summary(self, db: Session, event_id: int, owner_id: int | None = None) -> SalesSummary:
        query = db.query(self.model.id).filter(self.model.id == event_id)
        if owner_id is not None:
            query = query.filter(self.model.owner_id == owner_id)
        if query.first() is None:
            raise EventNotFoundError(event_id)

        sold_count = func.coalesce(func.sum(case((Ticket.status == TicketStatus.SOLD, 1), else_=0)), 0)
        rows = (
            db.query(
                EventZone.id,
                EventZone.name,
                EventZone.currency,
                EventZone.price,
                func.count(Ticket.id).label("total_seats"),
                sold_count.label("sold_seats"),
            )
            .outerjoin(Ticket, Ticket.event_zone_id == EventZone.id)
            .filter(EventZone.event_id == event_id)
            .group_by(EventZone.id, EventZone.name, EventZone.currency, EventZone.price)
            .order_by(EventZone.id)
            .all()
        )

        zones = [
            ZoneSales(
                zone_id=row.id,
                zone_name=row.name,
                currency=row.currency,
                price=row.price,
                total_seats=row.total_seats,
                sold_seats=int(row.sold_seats),
                revenue=Decimal(row.price) * int(row.sold_seats),
            )
            for row in rows
        ]
        return SalesSummary(
            event_id=event_id,
            total_seats=sum(zone.total_seats for zone in zones),
            sold_seats=sum(zone.sold_seats for zone in zones),
            zones=zones,
            bookings=self._bookings(db, event_id),
        )

    def _bookings(self, db: Session, event_id: int) -> list[Booking]:
        """Every sale under the event, newest first, with any checkout contact snapshot."""
        rows = (
            db.query(SoldTicket, Ticket, EventZone, EventDate, User, PurchaseContactInfo)
            .join(Ticket, SoldTicket.ticket_id == Ticket.id)
            .join(EventZone, Ticket.event_zone_id == EventZone.id)
            .join(EventDate, Ticket.event_date_id == EventDate.id)
            .join(User, SoldTicket.buyer_id == User.id)
            .outerjoin(PurchaseContactInfo, SoldTicket.purchase_contact_info_id == PurchaseContactInfo.id)
            .filter(EventZone.event_id == event_id)
            .order_by(SoldTicket.sold_at.desc(), SoldTicket.id.desc())
            .all()
        )
        return [
            Booking(
                sold_ticket_id=sale.id,
                ticket_id=ticket.id,
                seat_number=ticket.seat_number,
                zone_name=zone.name,
                price=zone.price,
                currency=zone.currency,
                payment_method=sale.payment_method,
                sold_at=sale.sold_at,
                date=event_date.date,
                buyer_name=buyer.full_name,
                buyer_email=buyer.email,
                contact_name=contact.name if contact else None,
                contact_email=contact.email if contact else None,
                contact_phone=contact.phone if contact else None,
            )
            for sale, ticket, zone, event_date, buyer, contact in rows
        ]


event_repository = EventRepository()
