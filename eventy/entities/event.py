from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from eventy.utils.database import Base
from eventy.entities import TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    short_description = Column(Text, nullable=False)
    full_description = Column(Text, nullable=False)
    country = Column(String(100))
    state = Column(String(100))
    street = Column(String(255))
    building_number = Column(String(50))
    cover_img = Column(String(500))
    logo_img = Column(String(500))
    main_img = Column(String(500))

    # Relationships
    owner = relationship("User", back_populates="events")
    dates = relationship("EventDate", back_populates="event", order_by="EventDate.date")
    zones = relationship("EventZone", back_populates="event", order_by="EventZone.id")
    social_media = relationship("EventSocialMedia", back_populates="event")

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}')>"


class EventDate(Base):
    __tablename__ = "event_dates"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False)

    event = relationship("Event", back_populates="dates")

    def __repr__(self):
        return f"<EventDate(id={self.id}, date='{self.date}')>"


class EventZone(Base):
    __tablename__ = "event_zones"
    __table_args__ = (
        CheckConstraint("seat_count >= 0", name="check_seat_count_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), nullable=False)
    seat_count = Column(Integer, nullable=False)

    event = relationship("Event", back_populates="zones")
    tickets = relationship("Ticket", back_populates="zone")

    def __repr__(self):
        return f"<EventZone(id={self.id}, name='{self.name}', seats={self.seat_count})>"


class EventSocialMedia(Base):
    __tablename__ = "event_social_media"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    platform = Column(String(100), nullable=False)
    link = Column(String(500), nullable=False)

    event = relationship("Event", back_populates="social_media")
