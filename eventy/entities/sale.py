from sqlalchemy import Column, ForeignKey, Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from eventy.utils.database import Base


class PurchaseContactInfo(Base):
    """Contact details given at checkout when they differ from the buyer profile."""
    __tablename__ = "purchase_contact_info"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    agree_to_terms = Column(Boolean, nullable=False, default=False)
    marketing_consent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)

    sold_tickets = relationship("SoldTicket", back_populates="purchase_contact_info")


class SoldTicket(Base):
    __tablename__ = "sold_tickets"

    id = Column(Integer, primary_key=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, unique=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payment_method = Column(String(50), nullable=False)
    purchase_contact_info_id = Column(Integer, ForeignKey("purchase_contact_info.id"))
    sold_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)

    # Relationships
    ticket = relationship("Ticket", back_populates="sold_ticket")
    buyer = relationship("User", back_populates="purchases")
    purchase_contact_info = relationship("PurchaseContactInfo", back_populates="sold_tickets")

    def __repr__(self):
        return f"<SoldTicket(id={self.id}, ticket_id={self.ticket_id}, buyer_id={self.buyer_id})>"
