from pydantic import EmailStr, Field

from eventy.dto import BaseSchema


class ContactInfo(BaseSchema):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)
    agree_to_terms: bool
    marketing_consent: bool | None = None

class PurchaseRequest(BaseSchema):
    ticket_ids: list[int]
    payment_method: str = Field(min_length=1, max_length=50)
    contact_info: ContactInfo | None = None

class PurchasedTicket(BaseSchema):
    ticket_id: int
    sold_ticket_id: int
    event_id: int | None = None

class PurchaseResult(BaseSchema):
    purchased_tickets: list[PurchasedTicket]
    total_tickets: int
    payment_method: str
    contact_info: ContactInfo | None = None
    purchase_contact_info_id: int | None = None
