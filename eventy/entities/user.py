from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from eventy.utils.database import Base
from eventy.entities import TimestampMixin


class User(Base, TimestampMixin):
    """Local copy of an identity issued by the auth provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    user_name = Column(String(100), nullable=False)
    user_surname = Column(String(100))
    email = Column(String(255), nullable=False, unique=True)
    phone_number = Column(String(50))
    marketing_consent = Column(Boolean, nullable=False, default=False)

    # Relationships
    events = relationship("Event", back_populates="owner")
    purchases = relationship("SoldTicket", back_populates="buyer")

    @property
    def full_name(self) -> str:
        return f"{self.user_name} {self.user_surname or ''}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
