from .base import BaseRepository
from .user_repository import user_repository
from .ticket_repository import ticket_repository
from .event_repository import event_repository
