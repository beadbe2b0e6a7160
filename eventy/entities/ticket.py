import enum

from sqlalchemy import Column, ForeignKey, Integer, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship, validates
from eventy.utils.database import Base
from eventy.entities import TimestampMixin


class IllegalTransitionError(ValueError):
    pass


class TicketStatus(str, enum.Enum):
    """Closed set of ticket states. AVAILABLE -> SOLD is the only legal move."""

    AVAILABLE = "AVAILABLE"
    SOLD = "SOLD"

    def can_transition_to(self, target: "TicketStatus") -> bool:
        return (self, target) in _LEGAL_TRANSITIONS

    def transition_to(self, target: "TicketStatus") -> "TicketStatus":
        if not self.can_transition_to(target):
            raise IllegalTransitionError(f"Ticket cannot move from {self.value} to {target.value}")
        return target


_LEGAL_TRANSITIONS = frozenset({(TicketStatus.AVAILABLE, TicketStatus.SOLD)})


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("event_zone_id", "event_date_id", "seat_number", name="uq_ticket_seat"),
        Index("ix_tickets_zone_date_status", "event_zone_id", "event_date_id", "status"),
    )

    id = Column(Integer, primary_key=True)
    event_zone_id = Column(Integer, ForeignKey("event_zones.id"), nullable=False)
    event_date_id = Column(Integer, ForeignKey("event_dates.id"), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False)
    status = Column(
        Enum(TicketStatus, name="ticket_status", native_enum=False, validate_strings=True),
        nullable=False,
        default=TicketStatus.AVAILABLE,
    )

    # Relationships
    zone = relationship("EventZone", back_populates="tickets")
    event_date = relationship("EventDate")
    sold_ticket = relationship("SoldTicket", back_populates="ticket", uselist=False)

    @validates("status")
    def _validate_status(self, key, value):
        value = TicketStatus(value)
        current = self.status
        if current is None or current == value:
            return value
        return TicketStatus(current).transition_to(value)

    def __repr__(self):
        return f"<Ticket(id={self.id}, seat={self.seat_number}, status='{self.status}')>"
