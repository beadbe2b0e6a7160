import asyncio
from collections import defaultdict
from functools import partial

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session, sessionmaker
from eventy.api.deps import get_current_user, get_db, get_session_factory
from eventy.dto import purchase as purchase_schemas
from eventy.dto import ticket as ticket_schemas
from eventy.entities.user import User
from eventy.exceptions import StoreError, TicketConflictError, TicketNotFoundError, UserNotFoundError
from eventy.kafka.producer import ticket_producer
from eventy.repositories.ticket_repository import ticket_repository
from eventy.repositories.user_repository import user_repository
from eventy.utils.config import settings
from eventy.utils.kafka_config import TicketsPurchasedEvent
from eventy.utils.observability import PURCHASE_CONFLICTS, PURCHASE_TIMEOUTS, TICKETS_SOLD
import logging

router = APIRouter(prefix="/tickets", tags=["tickets"])

logger = logging.getLogger(__name__)


def run_purchase(
    session_factory: sessionmaker, buyer_id: int, purchase: purchase_schemas.PurchaseRequest
) -> purchase_schemas.PurchaseResult:
    """Run one purchase transaction on its own session."""
    with session_factory() as db:
        buyer = user_repository.get(db, buyer_id)
        if not buyer:
            raise UserNotFoundError(buyer_id)
        return ticket_repository.purchase(
            db,
            purchase.ticket_ids,
            buyer,
            purchase.payment_method,
            purchase.contact_info,
        )


async def publish_purchase(result: purchase_schemas.PurchaseResult, buyer_id: int):
    by_event = defaultdict(list)
    for item in result.purchased_tickets:
        by_event[item.event_id].append({"ticket_id": item.ticket_id, "sold_ticket_id": item.sold_ticket_id})

    for event_id, purchased in by_event.items():
        await ticket_producer.produce_purchase(
            TicketsPurchasedEvent(
                event_id=event_id,
                buyer_id=buyer_id,
                payment_method=result.payment_method,
                purchased=purchased,
            )
        )


@router.get("/event/{event_id}", response_model=list[ticket_schemas.AvailableTicket])
def read_available_tickets(
    event_id: int,
    zone_id: int | None = None,
    date_id: int | None = None,
    db: Session = Depends(get_db),
):
    return ticket_repository.list_available(db, event_id, zone_id=zone_id, date_id=date_id)


@router.post("/purchase", response_model=purchase_schemas.PurchaseResult)
async def purchase_tickets(
    purchase: purchase_schemas.PurchaseRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    loop = asyncio.get_running_loop()
    try:
        # the worker keeps running after a timeout and commits or rolls back on its own
        result = await asyncio.wait_for(
            loop.run_in_executor(None, partial(run_purchase, session_factory, user.id, purchase)),
            timeout=settings.PURCHASE_TIMEOUT,
        )
    except asyncio.TimeoutError:
        PURCHASE_TIMEOUTS.inc()
        logger.error(f"Purchase of tickets {purchase.ticket_ids} by user {user.id} timed out")
        raise HTTPException(
            status_code=408,
            detail="Ticket purchase timeout. Check your tickets before trying again.",
        )
    except TicketNotFoundError as e:
        logger.error(f"Purchase by user {user.id} referenced missing tickets {list(e.ticket_ids)}")
        raise HTTPException(status_code=404, detail=e.to_detail())
    except TicketConflictError as e:
        PURCHASE_CONFLICTS.inc()
        logger.warning(f"Purchase by user {user.id} conflicted on tickets {list(e.ticket_ids)}")
        raise HTTPException(status_code=409, detail=e.to_detail())
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_detail())
    except ValueError as e:
        logger.error(f"ValueError purchasing tickets: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Unexpected error purchasing tickets: {e}")
        raise HTTPException(status_code=500, detail="Failed to purchase tickets")

    TICKETS_SOLD.inc(result.total_tickets)
    background_tasks.add_task(publish_purchase, result, user.id)
    return result


@router.get("/user", response_model=list[ticket_schemas.UserTicket])
def read_user_tickets(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ticket_repository.list_user_tickets(db, user.id)
