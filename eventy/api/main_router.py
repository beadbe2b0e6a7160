from fastapi import APIRouter
from eventy.api.ticket_system import api_events, api_tickets

router = APIRouter()

router.include_router(api_events.router)
router.include_router(api_tickets.router)
