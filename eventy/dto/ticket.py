from datetime import datetime
from decimal import Decimal

from eventy.dto import BaseSchema

class AvailableTicket(BaseSchema):
    ticket_id: int
    zone_id: int
    date_id: int
    seat_number: int
    zone_name: str | None = None
    price: Decimal | None = None
    currency: str | None = None
    date: datetime | None = None

class UserTicket(BaseSchema):
    sold_ticket_id: int
    ticket_id: int
    seat_number: int
    payment_method: str
    sold_at: datetime
    event_id: int
    event_title: str
    zone_name: str
    price: Decimal
    currency: str
    date: datetime
