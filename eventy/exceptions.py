"""Domain error codes for the ticketing engine."""

from dataclasses import dataclass, field
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TICKET_ALREADY_SOLD = "TICKET_ALREADY_SOLD"
    EVENT_HAS_SALES = "EVENT_HAS_SALES"
    INVENTORY_GENERATION_FAILED = "INVENTORY_GENERATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_detail(self) -> dict:
        return {"code": self.code.value, "message": self.message}


@dataclass(eq=False)
class TicketNotFoundError(DomainError):
    """Raised when requested ticket ids do not resolve."""

    ticket_ids: tuple[int, ...] = field(default=())

    @classmethod
    def for_ids(cls, ticket_ids) -> "TicketNotFoundError":
        ids = tuple(ticket_ids)
        return cls(
            code=ErrorCode.TICKET_NOT_FOUND,
            message=f"{len(ids)} ticket(s) not found",
            ticket_ids=ids,
        )

    @property
    def missing_count(self) -> int:
        return len(self.ticket_ids)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["ticket_ids"] = list(self.ticket_ids)
        detail["missing_count"] = self.missing_count
        return detail


@dataclass(eq=False)
class TicketConflictError(DomainError):
    """Raised when one or more requested tickets are already sold."""

    ticket_ids: tuple[int, ...] = field(default=())

    @classmethod
    def for_ids(cls, ticket_ids) -> "TicketConflictError":
        ids = tuple(sorted(ticket_ids))
        return cls(
            code=ErrorCode.TICKET_ALREADY_SOLD,
            message="Ticket is already sold",
            ticket_ids=ids,
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["ticket_ids"] = list(self.ticket_ids)
        return detail


class EventNotFoundError(DomainError):
    """Raised when an event is not found or not visible to the caller."""

    def __init__(self, event_id: int) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found or access denied",
        )
        self.event_id = event_id


class UserNotFoundError(DomainError):
    def __init__(self, user_id) -> None:
        super().__init__(
            code=ErrorCode.USER_NOT_FOUND,
            message="User not found",
        )
        self.user_id = user_id


class EventHasSalesError(DomainError):
    """Raised when deleting an event that has purchased tickets."""

    def __init__(self, event_id: int) -> None:
        super().__init__(
            code=ErrorCode.EVENT_HAS_SALES,
            message="Cannot delete event with sold tickets. Event has purchased tickets.",
        )
        self.event_id = event_id


class InventoryGenerationError(DomainError):
    """Fatal: seats for a zone/date pair could not be created."""

    def __init__(self, zone_id: int, date_id: int) -> None:
        super().__init__(
            code=ErrorCode.INVENTORY_GENERATION_FAILED,
            message="Failed to generate tickets for event zone and date",
        )
        self.zone_id = zone_id
        self.date_id = date_id


class StoreError(DomainError):
    """Unexpected failure of the relational store."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(code=ErrorCode.INTERNAL_ERROR, message=message)
