from datetime import datetime
from decimal import Decimal

from pydantic import Field

from eventy.dto import BaseSchema


class EventDateCreate(BaseSchema):
    date: datetime

class EventZoneCreate(BaseSchema):
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    currency: str = Field(min_length=1, max_length=10)
    seat_count: int = Field(ge=0)

class EventSocialMediaCreate(BaseSchema):
    platform: str = Field(min_length=1)
    link: str = Field(min_length=1)

class EventCreate(BaseSchema):
    title: str = Field(min_length=1)
    short_description: str = Field(min_length=1)
    full_description: str = Field(min_length=1)
    country: str | None = None
    state: str | None = None
    street: str | None = None
    building_number: str | None = None
    cover_img: str | None = None
    logo_img: str | None = None
    main_img: str | None = None
    dates: list[EventDateCreate]
    zones: list[EventZoneCreate]
    social_media: list[EventSocialMediaCreate] = []

class EventDate(BaseSchema):
    id: int
    date: datetime

class EventZone(BaseSchema):
    id: int
    name: str
    price: Decimal
    currency: str
    seat_count: int

class EventSocialMedia(BaseSchema):
    id: int
    platform: str
    link: str

class Event(BaseSchema):
    id: int
    owner_id: int
    title: str
    short_description: str
    full_description: str
    country: str | None = None
    state: str | None = None
    street: str | None = None
    building_number: str | None = None
    cover_img: str | None = None
    logo_img: str | None = None
    main_img: str | None = None
    created_at: datetime
    updated_at: datetime

class EventDetail(Event):
    dates: list[EventDate] = []
    zones: list[EventZone] = []
    social_media: list[EventSocialMedia] = []

class CanDeleteEvent(BaseSchema):
    event_id: int
    can_delete: bool

class EventDeleted(BaseSchema):
    success: bool = True
    message: str = "Event successfully deleted"

class ZoneSales(BaseSchema):
    zone_id: int
    zone_name: str
    currency: str
    price: Decimal
    total_seats: int
    sold_seats: int
    revenue: Decimal

class Booking(BaseSchema):
    sold_ticket_id: int
    ticket_id: int
    seat_number: int
    zone_name: str
    price: Decimal
    currency: str
    payment_method: str
    sold_at: datetime
    date: datetime
    buyer_name: str
    buyer_email: str
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None

class SalesSummary(BaseSchema):
    event_id: int
    total_seats: int
    sold_seats: int
    zones: list[ZoneSales] = []
    bookings: list[Booking] = []
