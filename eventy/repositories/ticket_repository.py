import logging
from typing import Iterable, Sequence

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eventy.dto.purchase import ContactInfo, PurchaseResult, PurchasedTicket
from eventy.dto.ticket import AvailableTicket, UserTicket
from eventy.entities.event import Event, EventDate, EventZone
from eventy.entities.sale import PurchaseContactInfo, SoldTicket
from eventy.entities.ticket import Ticket, TicketStatus
from eventy.entities.user import User
from eventy.exceptions import (
    InventoryGenerationError,
    StoreError,
    TicketConflictError,
    TicketNotFoundError,
    UserNotFoundError,
)
from eventy.repositories.base import BaseRepository
from eventy.utils.contact_info import ProfileSnapshot, resolve_consent_change, resolve_contact_info

logger = logging.getLogger(__name__)

SELL = (TicketStatus.AVAILABLE, TicketStatus.AVAILABLE.transition_to(TicketStatus.SOLD))


class TicketRepository(BaseRepository[Ticket]):
    def __init__(self):
        super().__init__(Ticket)

    def generate(self, db: Session, zones: Iterable[EventZone], dates: Sequence[EventDate]) -> int:
        """Create seats 1..seat_count for every zone and date.

        Runs inside the caller's transaction and only flushes. Any failure
        raises InventoryGenerationError so the caller can roll the whole event
        back instead of keeping a partially stocked one.
        """
        created = 0
        for zone in zones:
            for event_date in dates:
                tickets_data = [
                    {
                        "event_zone_id": zone.id,
                        "event_date_id": event_date.id,
                        "seat_number": seat_number,
                        "status": TicketStatus.AVAILABLE,
                    }
                    for seat_number in range(1, zone.seat_count + 1)
                ]
                if not tickets_data:
                    continue

                try:
                    db.execute(insert(Ticket), tickets_data)
                except SQLAlchemyError as e:
                    logger.error(
                        f"Error generating tickets for event zone {zone.id} and date {event_date.id}: {e}"
                    )
                    raise InventoryGenerationError(zone.id, event_date.id) from e
                created += len(tickets_data)

        logger.info(f"Generated {created} tickets")
        return created

    def list_available(
        self,
        db: Session,
        event_id: int,
        zone_id: int | None = None,
        date_id: int | None = None,
    ) -> list[AvailableTicket]:
        query = (
            db.query(Ticket, EventZone, EventDate)
            .join(EventZone, Ticket.event_zone_id == EventZone.id)
            .join(EventDate, Ticket.event_date_id == EventDate.id)
            .filter(
                EventZone.event_id == event_id,
                Ticket.status == TicketStatus.AVAILABLE,
                ~Ticket.sold_ticket.has(),
            )
        )
        if zone_id is not None:
            query = query.filter(EventZone.id == zone_id)
        if date_id is not None:
            query = query.filter(EventDate.id == date_id)

        rows = query.order_by(EventZone.id, EventDate.date, EventDate.id, Ticket.seat_number).all()
        return [
            AvailableTicket(
                ticket_id=ticket.id,
                zone_id=zone.id,
                date_id=event_date.id,
                seat_number=ticket.seat_number,
                zone_name=zone.name,
                price=zone.price,
                currency=zone.currency,
                date=event_date.date,
            )
            for ticket, zone, event_date in rows
        ]

    def purchase(
        self,
        db: Session,
        ticket_ids: Iterable[int],
        buyer: User,
        payment_method: str,
        contact_info: ContactInfo | None = None,
    ) -> PurchaseResult:
        """Sell every ticket in `ticket_ids` to `buyer`, or none of them.

        Raises:
            ValueError: If no ticket ids were given.
            TicketNotFoundError: If some ids do not resolve (carries them).
            TicketConflictError: If some tickets are already sold (carries them).
            StoreError: If the store fails; nothing is committed.
        """
        ids = list(dict.fromkeys(ticket_ids))
        if not ids:
            raise ValueError("At least one ticket id is required")

        try:
            locked = (
                db.query(Ticket.id, Ticket.status, EventZone.event_id)
                .join(EventZone, Ticket.event_zone_id == EventZone.id)
                .filter(Ticket.id.in_(ids))
                .order_by(Ticket.id)
                .with_for_update(of=Ticket)
                .all()
            )
            found = {row.id: row for row in locked}

            missing = [ticket_id for ticket_id in ids if ticket_id not in found]
            if missing:
                raise TicketNotFoundError.for_ids(missing)

            sold = [row.id for row in locked if TicketStatus(row.status) != TicketStatus.AVAILABLE]
            if sold:
                raise TicketConflictError.for_ids(sold)

            db_buyer = db.get(User, buyer.id)
            if db_buyer is None:
                raise UserNotFoundError(buyer.id)
            profile = ProfileSnapshot.from_user(db_buyer)

            contact_record = None
            new_contact = resolve_contact_info(profile, contact_info)
            if new_contact is not None:
                contact_record = PurchaseContactInfo(
                    name=new_contact.name,
                    email=new_contact.email,
                    phone=new_contact.phone,
                    agree_to_terms=new_contact.agree_to_terms,
                    marketing_consent=new_contact.marketing_consent,
                )
                db.add(contact_record)
                db.flush()

            new_consent = resolve_consent_change(profile, contact_info)
            if new_consent is not None:
                db_buyer.marketing_consent = new_consent

            from_status, to_status = SELL
            result = db.execute(
                update(Ticket)
                .where(Ticket.id.in_(ids), Ticket.status == from_status)
                .values(status=to_status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != len(ids):
                raise _LostRace()

            sales = [
                SoldTicket(
                    ticket_id=ticket_id,
                    buyer_id=db_buyer.id,
                    payment_method=payment_method,
                    purchase_contact_info_id=contact_record.id if contact_record else None,
                )
                for ticket_id in ids
            ]
            db.add_all(sales)
            db.flush()
            db.commit()

        except (TicketNotFoundError, TicketConflictError, UserNotFoundError):
            db.rollback()
            raise
        except (_LostRace, IntegrityError):
            db.rollback()
            logger.warning(f"Concurrent purchase won the race for tickets {ids}")
            raise self._conflict_after_race(db, ids)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error purchasing tickets {ids}: {e}")
            raise StoreError("Failed to purchase tickets") from e

        logger.info(f"User {db_buyer.id} purchased {len(sales)} tickets with {payment_method}")
        return PurchaseResult(
            purchased_tickets=[
                PurchasedTicket(
                    ticket_id=sale.ticket_id,
                    sold_ticket_id=sale.id,
                    event_id=found[sale.ticket_id].event_id,
                )
                for sale in sales
            ],
            total_tickets=len(sales),
            payment_method=payment_method,
            contact_info=contact_info,
            purchase_contact_info_id=contact_record.id if contact_record else None,
        )

    def _conflict_after_race(self, db: Session, ids: list[int]) -> Exception:
        try:
            rows = db.query(Ticket.id, Ticket.status).filter(Ticket.id.in_(ids)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error re-reading tickets {ids}: {e}")
            return StoreError("Failed to purchase tickets")
        finally:
            db.rollback()

        statuses = {row.id: TicketStatus(row.status) for row in rows}
        sold = [ticket_id for ticket_id, status in statuses.items() if status != TicketStatus.AVAILABLE]
        if sold:
            return TicketConflictError.for_ids(sold)
        missing = [ticket_id for ticket_id in ids if ticket_id not in statuses]
        if missing:
            return TicketNotFoundError.for_ids(missing)
        return StoreError("Failed to purchase tickets")

    def list_user_tickets(self, db: Session, user_id: int) -> list[UserTicket]:
        rows = (
            db.query(SoldTicket, Ticket, EventZone, EventDate, Event)
            .join(Ticket, SoldTicket.ticket_id == Ticket.id)
            .join(EventZone, Ticket.event_zone_id == EventZone.id)
            .join(EventDate, Ticket.event_date_id == EventDate.id)
            .join(Event, EventZone.event_id == Event.id)
            .filter(SoldTicket.buyer_id == user_id)
            .order_by(SoldTicket.sold_at.desc(), SoldTicket.id.desc())
            .all()
        )
        return [
            UserTicket(
                sold_ticket_id=sale.id,
                ticket_id=ticket.id,
                seat_number=ticket.seat_number,
                payment_method=sale.payment_method,
                sold_at=sale.sold_at,
                event_id=event.id,
                event_title=event.title,
                zone_name=zone.name,
                price=zone.price,
                currency=zone.currency,
                date=event_date.date,
            )
            for sale, ticket, zone, event_date, event in rows
        ]


class _LostRace(Exception):
    """The conditional status update touched fewer rows than requested."""


ticket_repository = TicketRepository()
