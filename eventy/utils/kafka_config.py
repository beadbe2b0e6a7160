import json
import time
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List

from aiokafka import AIOKafkaProducer

from eventy.utils.config import settings


class KafkaConfig:
    """Topic naming and producer construction for ticket facts."""

    topic_prefix = "ticket-events"

    def __init__(self):
        self.bootstrap_servers = settings.KAFKA_BOOTSTRAP_SERVERS

    def get_event_topic(self, event_id: int) -> str:
        return f"{self.topic_prefix}-{event_id}"

    def create_producer(self) -> AIOKafkaProducer:
        # keys: buyer id for purchases, event id for inventory
        return AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=settings.APP_NAME,
            value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
            acks="all",
            enable_idempotence=True,
            request_timeout_ms=15000,
        )


kafka_config = KafkaConfig()


@dataclass
class TicketsPurchasedEvent:
    event_id: int
    buyer_id: int
    payment_method: str
    purchased: List[Dict[str, int]]
    timestamp: float = field(default_factory=time.time)

    @property
    def key(self) -> str:
        return str(self.buyer_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "tickets_purchased", "total_tickets": len(self.purchased), **asdict(self)}


@dataclass
class InventoryGeneratedEvent:
    event_id: int
    ticket_count: int
    timestamp: float = field(default_factory=time.time)

    @property
    def key(self) -> str:
        return str(self.event_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "inventory_generated", **asdict(self)}
