import asyncio
import logging
from aiokafka.errors import KafkaError
from eventy.utils.config import settings
from eventy.utils.kafka_config import kafka_config, TicketsPurchasedEvent, InventoryGeneratedEvent

logger = logging.getLogger(__name__)


class TicketKafkaProducer:
    """Publishes committed ticket facts. Never part of a store transaction."""

    def __init__(self):
        self.producer = None
        self._start_lock = asyncio.Lock()

    async def connect(self) -> bool:
        async with self._start_lock:
            if self.producer:
                return True
            producer = kafka_config.create_producer()
            try:
                await producer.start()
            except KafkaError as e:
                logger.error(f"Kafka unreachable at {kafka_config.bootstrap_servers}: {e}")
                await producer.stop()
                return False
            self.producer = producer
            logger.info(f"Kafka producer started against {kafka_config.bootstrap_servers}")
            return True

    async def _publish(self, event_id: int, key: str, value: dict) -> bool:
        if not settings.KAFKA_ENABLED:
            logger.debug(f"Kafka disabled, dropping {value['type']} for event {event_id}")
            return False
        if not self.producer and not await self.connect():
            return False

        topic = kafka_config.get_event_topic(event_id)
        try:
            metadata = await self.producer.send_and_wait(topic, key=key, value=value)
        except KafkaError as e:
            logger.error(f"Failed to publish {value['type']} to {topic}: {e}")
            return False

        logger.info(f"Published {value['type']} to {metadata.topic}[{metadata.partition}] at offset {metadata.offset}")
        return True

    async def produce_purchase(self, purchase: TicketsPurchasedEvent) -> bool:
        return await self._publish(purchase.event_id, purchase.key, purchase.to_dict())

    async def produce_inventory_generated(self, generated: InventoryGeneratedEvent) -> bool:
        return await self._publish(generated.event_id, generated.key, generated.to_dict())

    async def close(self):
        if self.producer:
            await self.producer.stop()
            self.producer = None
            logger.info("Kafka producer stopped")


ticket_producer = TicketKafkaProducer()
