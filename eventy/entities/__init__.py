from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import TIMESTAMP, func
from datetime import datetime



class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


from eventy.entities.user import User
from eventy.entities.event import Event, EventDate, EventZone, EventSocialMedia
from eventy.entities.ticket import Ticket, TicketStatus
from eventy.entities.sale import SoldTicket, PurchaseContactInfo
